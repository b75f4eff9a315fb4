import enum
import os

from redis import StrictRedis

from dotenv import load_dotenv

load_dotenv()


class RedisDatabase(enum.IntEnum):
    CELERY = 0
    STATISTICS = 1


def get_redis_client(database: RedisDatabase) -> StrictRedis:
    return StrictRedis(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", 6379)),
        password=os.environ.get("REDIS_PASSWORD"),
        db=int(database),
    )

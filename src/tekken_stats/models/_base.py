from sqlalchemy.orm import DeclarativeBase

from tekken_stats.schema.postgres import metadata


class Base(DeclarativeBase):
    metadata = metadata

import os

from celery import Celery

from dotenv import load_dotenv

load_dotenv()


def make_celery_app():
    return Celery(
        broker=os.environ["CELERY_BROKER_URL"],
        backend=os.environ.get("CELERY_RESULT_BACKEND", os.environ["CELERY_BROKER_URL"]),
    )


def make_worker_celery_app(concurrency=4):
    """
    Celery app for the ingestion worker.

    Tasks run as threads of one process so they share process-wide state such
    as the match existence filter.
    """
    app = make_celery_app()
    app.conf.update(
        worker_pool="threads",
        worker_concurrency=concurrency,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        task_serializer="json",
        accept_content=["json"],
        timezone="UTC",
    )
    return app

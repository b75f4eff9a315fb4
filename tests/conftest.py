"""Shared fixtures: an in-memory SQLite database standing in for Postgres."""

from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tekken_stats.schema.postgres as schema
from tekken_stats.ingestion.existence import ExistenceFilter
from tekken_stats.ingestion.types import MatchRecord


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ).execution_options(schema_translate_map={"replay": None, "statistics": None})
    schema.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    maker = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def managed_session():
        session = maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return managed_session


@pytest.fixture
def existence_filter():
    return ExistenceFilter(expected_insertions=10_000, false_positive_rate=0.001)


@pytest.fixture
def fetch_rows(session_factory):
    def fetch(table, *order_by):
        with session_factory() as db:
            query = select(table)
            if order_by:
                query = query.order_by(*order_by)
            return [dict(row) for row in db.execute(query).mappings()]

    return fetch


def make_match(
    match_id="m1",
    match_at=1_700_000_000,
    winner=1,
    p1_user_id="A",
    p2_user_id="B",
    p1_character_id=8,
    p2_character_id=12,
    p1_dan_rank=20,
    p2_dan_rank=19,
    p1_power=100_000,
    p2_power=90_000,
    p1_name=None,
    p2_name=None,
    game_version=10901,
):
    return MatchRecord(
        match_id=match_id,
        match_at=match_at,
        match_type=2,
        game_version=game_version,
        stage_id=1500,
        winner=winner,
        p1_user_id=p1_user_id,
        p1_name=p1_name or f"name-{p1_user_id}",
        p1_polaris_id=f"polaris-{p1_user_id}",
        p1_power=p1_power,
        p1_character_id=p1_character_id,
        p1_dan_rank=p1_dan_rank,
        p1_rating_before=1500,
        p1_rating_change=12,
        p1_rounds_won=3,
        p2_user_id=p2_user_id,
        p2_name=p2_name or f"name-{p2_user_id}",
        p2_polaris_id=f"polaris-{p2_user_id}",
        p2_power=p2_power,
        p2_character_id=p2_character_id,
        p2_dan_rank=p2_dan_rank,
        p2_rating_before=1480,
        p2_rating_change=-12,
        p2_rounds_won=1,
    )


@pytest.fixture
def match_factory():
    return make_match

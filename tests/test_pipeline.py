import json

import pytest

import tekken_stats.schema.postgres as schema
from tekken_stats.ingestion import (
    ExistenceFilter,
    PipelineOptions,
    parse_match_batch,
    process_match_batch,
)
from tekken_stats.ingestion.errors import MalformedBatchError

WIRE_MATCH = {
    "battle_id": "abc123",
    "battle_at": 1_700_000_000,
    "battle_type": 2,
    "game_version": 10901,
    "stage_id": 1500,
    "winner": 2,
    "p1_user_id": 1111,
    "p1_name": "Jin",
    "p1_polaris_id": "polaris-1",
    "p1_power": 100_000,
    "p1_chara_id": 8,
    "p1_rank": 20,
    "p1_rating_before": 1500,
    "p1_rating_change": -10,
    "p1_rounds": 1,
    "p2_user_id": 2222,
    "p2_name": "Reina",
    "p2_polaris_id": "polaris-2",
    "p2_power": 95_000,
    "p2_chara_id": 38,
    "p2_rank": 21,
    "p2_rating_before": 1490,
    "p2_rating_change": 10,
    "p2_rounds": 3,
}


def stats_by_participant(fetch_rows):
    rows = fetch_rows(schema.replay.character_stat)
    return {(r["participant_id"], r["character_id"]): (r["wins"], r["losses"]) for r in rows}


def test_parse_wire_names():
    (match,) = parse_match_batch(json.dumps([WIRE_MATCH]))

    assert match.match_id == "abc123"
    assert match.p1_user_id == "1111"
    assert match.p2_character_id == 38
    assert match.p2_dan_rank == 21
    assert match.p2_rounds_won == 3
    assert match.winner == 2


@pytest.mark.parametrize(
    "message",
    [
        "not json",
        json.dumps({"battle_id": "abc"}),
        json.dumps([{"battle_id": "abc"}]),
        json.dumps([{**WIRE_MATCH, "winner": 3}]),
    ],
)
def test_parse_rejects_malformed_messages(message):
    with pytest.raises(MalformedBatchError):
        parse_match_batch(message)


def test_repeated_match_in_batch_counts_once(session_factory, existence_filter, fetch_rows, match_factory):
    m1 = match_factory(match_id="M1", winner=1)

    summary = process_match_batch([m1, m1], existence_filter, session_factory)

    assert summary.received == 2
    assert summary.new == 1
    assert summary.matches_written == 1
    assert len(fetch_rows(schema.replay.match)) == 1
    assert stats_by_participant(fetch_rows) == {("A", 8): (1, 0), ("B", 12): (0, 1)}


def test_new_match_after_stored_one(session_factory, existence_filter, fetch_rows, match_factory):
    process_match_batch([match_factory(match_id="M1", match_at=1_000, winner=1)], existence_filter, session_factory)

    summary = process_match_batch(
        [
            match_factory(match_id="M1", match_at=1_000, winner=1),
            match_factory(match_id="M2", match_at=2_000, winner=2),
        ],
        existence_filter,
        session_factory,
    )

    assert summary.authoritative_lookup is True
    assert summary.new == 1
    assert summary.duplicates == 1
    assert stats_by_participant(fetch_rows) == {("A", 8): (1, 1), ("B", 12): (1, 1)}


def test_resubmitted_batch_is_not_counted_again(session_factory, existence_filter, fetch_rows, match_factory):
    batch = [match_factory(match_id=f"m{i}", match_at=1_000 + i, winner=1 + i % 2) for i in range(6)]

    process_match_batch(batch, existence_filter, session_factory)
    before = stats_by_participant(fetch_rows)
    summary = process_match_batch(batch, existence_filter, session_factory)

    assert summary.new == 0
    assert summary.matches_written == 0
    assert stats_by_participant(fetch_rows) == before == {("A", 8): (3, 3), ("B", 12): (3, 3)}


def test_unseeded_filter_lets_stored_matches_count_again(session_factory, fetch_rows, match_factory):
    batch = [match_factory(match_id="m1", winner=1)]
    process_match_batch(batch, ExistenceFilter(1_000, 0.001), session_factory)

    summary = process_match_batch(batch, ExistenceFilter(1_000, 0.001), session_factory)

    assert summary.authoritative_lookup is False
    assert summary.new == 1
    assert len(fetch_rows(schema.replay.match)) == 1
    assert stats_by_participant(fetch_rows)[("A", 8)] == (2, 0)


def test_older_batch_does_not_regress_profile(session_factory, existence_filter, fetch_rows, match_factory):
    process_match_batch(
        [match_factory(match_id="new", match_at=5_000, p1_power=150_000, p1_dan_rank=22)],
        existence_filter,
        session_factory,
    )
    process_match_batch(
        [match_factory(match_id="old", match_at=1_000, p1_power=50_000, p1_dan_rank=15, winner=2)],
        existence_filter,
        session_factory,
    )

    participants = {r["participant_id"]: r for r in fetch_rows(schema.replay.participant)}
    assert participants["A"]["power"] == 150_000
    assert participants["A"]["latest_match_at"] == 5_000

    (a_stat,) = [r for r in fetch_rows(schema.replay.character_stat) if r["participant_id"] == "A"]
    assert a_stat["dan_rank"] == 22
    assert (a_stat["wins"], a_stat["losses"]) == (1, 1)


def test_options_reach_the_writer(session_factory, existence_filter, match_factory):
    sleeps = []
    options = PipelineOptions(chunk_size=1, max_attempts=2, backoff_base=0.5, seed_from_storage=False)

    summary = process_match_batch(
        [match_factory(match_id="m1"), match_factory(match_id="m2", p1_user_id="C")],
        existence_filter,
        session_factory,
        options=options,
        sleep=sleeps.append,
    )

    assert summary.participants == 3
    assert summary.character_stats == 3
    assert sleeps == []


def test_summary_as_dict(session_factory, existence_filter, match_factory):
    summary = process_match_batch([match_factory()], existence_filter, session_factory)

    result = summary.as_dict()
    assert result["new"] == 1
    assert result["matches_written"] == 1
    assert set(result) >= {"received", "duplicates", "authoritative_lookup", "elapsed_ms"}


def test_empty_batch(session_factory, existence_filter):
    summary = process_match_batch([], existence_filter, session_factory)

    assert summary.received == 0
    assert summary.new == 0

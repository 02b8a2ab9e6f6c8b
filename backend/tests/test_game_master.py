"""Tests for round direction, scoring, and answer submission."""
import json
from datetime import timedelta

import pytest

from errors import (
    ContentValidationError, GameNotFoundError, InvalidRoundError, LifecycleError,
    RoundAlreadyRecordedError, RoundOutOfOrderError,
)
from models.game import Direction, GameStatus, JudgeSource, RoundResult
from agents.answer_judge import AnswerJudge
from agents.game_master import (
    GameMaster, calculate_round_score, calculate_total_score, get_max_score,
    get_round_direction, get_round_max_score, next_round,
)
from conftest import NOW, make_active_game, make_payload


class TestRoundDirection:
    @pytest.mark.parametrize("round_number, expected", [
        (1, Direction.HIGH), (2, Direction.HIGH), (3, Direction.LOW), (4, Direction.LOW),
    ])
    def test_direction(self, round_number, expected):
        assert get_round_direction(round_number) == expected

    @pytest.mark.parametrize("bad", [0, 5, -1, True, "1", 2.0])
    def test_invalid_round_raises(self, bad):
        with pytest.raises(InvalidRoundError):
            get_round_direction(bad)

    def test_invalid_round_is_value_error(self):
        with pytest.raises(ValueError, match="Must be 1-4"):
            get_round_direction(0)


class TestScoring:
    def test_high_round_rewards_common(self):
        assert calculate_round_score(1, 1) == 400
        assert calculate_round_score(1, 200) == 2
        assert calculate_round_score(2, 1) == 600

    def test_low_round_rewards_rare(self):
        assert calculate_round_score(3, 1) == 2
        assert calculate_round_score(3, 200) == 400
        assert calculate_round_score(4, 200) == 600

    def test_off_list_scores_zero(self):
        for round_number in range(1, 5):
            assert calculate_round_score(round_number, None) == 0

    def test_arbiter_rank_beyond_list(self):
        """Ranks past the seed list floor at 0 for HIGH and cap at N for LOW."""
        assert calculate_round_score(1, 450) == 0
        assert calculate_round_score(4, 450) == 600

    def test_monotone_per_direction(self):
        high = [calculate_round_score(1, r) for r in range(1, 201)]
        low = [calculate_round_score(3, r) for r in range(1, 201)]
        assert high == sorted(high, reverse=True)
        assert low == sorted(low)

    def test_invalid_rank(self):
        with pytest.raises(ValueError):
            calculate_round_score(1, 0)

    def test_invalid_round(self):
        with pytest.raises(InvalidRoundError):
            calculate_round_score(5, 10)

    def test_max_scores(self):
        assert get_round_max_score(1) == 400
        assert get_round_max_score(4) == 600
        assert get_max_score() == 2000
        assert get_max_score(100) == 1000

    def test_total(self):
        rounds = [
            RoundResult(round_number=1, direction=Direction.HIGH, submitted_answer="love", round_score=400),
            RoundResult(round_number=2, direction=Direction.HIGH, submitted_answer="x", round_score=0),
        ]
        assert calculate_total_score(rounds) == 400

    def test_next_round(self):
        assert next_round(None) == 1


class TestSubmitAnswer:
    @pytest.mark.asyncio
    async def test_exact_hit_recorded(self, master, store, active_game, arbiter):
        result = await master.submit_answer(active_game.id, "p1", 1, "  LOVE ", display_name="Sam", now=NOW)
        assert result.on_list is True
        assert result.rank == 1
        assert result.round_score == 400
        assert result.total_score == 400
        assert result.recorded is True
        assert result.direction == Direction.HIGH
        assert arbiter.prompts == []
        session = store.sessions[(active_game.id, "p1")]
        assert session.display_name == "Sam"
        assert session.rounds[0].judged_by == JudgeSource.EXACT

    @pytest.mark.asyncio
    async def test_miss_not_recorded_by_default(self, master, store, active_game, arbiter):
        arbiter.reply = '{"valid": false, "rank": null, "reason": "off topic"}'
        result = await master.submit_answer(active_game.id, "p1", 1, "pizza", now=NOW)
        assert result.on_list is False
        assert result.round_score == 0
        assert result.recorded is False
        assert store.record_calls == 0

        retry = await master.submit_answer(active_game.id, "p1", 1, "grace", now=NOW)
        assert retry.recorded is True
        assert retry.round_score == 398

    @pytest.mark.asyncio
    async def test_every_response_carries_ranked_list(self, master, active_game, arbiter):
        """The reveal screen gets the full ranked list after each round, hit or miss."""
        hit = await master.submit_answer(active_game.id, "p1", 1, "love", now=NOW)
        assert hit.completed is False
        assert len(hit.all_answers) == 200
        assert [a.rank for a in hit.all_answers] == list(range(1, 201))
        assert hit.all_answers[0].answer == "Love"

        arbiter.reply = '{"valid": false, "rank": null, "reason": "off topic"}'
        miss = await master.submit_answer(active_game.id, "p1", 2, "pizza", now=NOW)
        assert len(miss.all_answers) == 200

    @pytest.mark.asyncio
    async def test_miss_recorded_when_configured(self, store, active_game, arbiter):
        master = GameMaster(store=store, judge=AnswerJudge(arbiter), record_misses=True)
        result = await master.submit_answer(active_game.id, "p1", 1, "pizza", now=NOW)
        assert result.recorded is True
        assert store.sessions[(active_game.id, "p1")].rounds[0].on_list is False

    @pytest.mark.asyncio
    async def test_duplicate_round_never_double_scores(self, master, store, active_game):
        await master.submit_answer(active_game.id, "p1", 1, "love", now=NOW)
        with pytest.raises(RoundAlreadyRecordedError) as exc_info:
            await master.submit_answer(active_game.id, "p1", 1, "grace", now=NOW)
        assert exc_info.value.recorded.submitted_answer == "love"
        session = store.sessions[(active_game.id, "p1")]
        assert session.total_score == 400
        assert len(session.rounds) == 1

    @pytest.mark.asyncio
    async def test_skipping_ahead_rejected(self, master, active_game):
        with pytest.raises(RoundOutOfOrderError):
            await master.submit_answer(active_game.id, "p1", 3, "love", now=NOW)

    @pytest.mark.asyncio
    async def test_closed_window_rejected(self, master, store, active_game):
        with pytest.raises(LifecycleError, match="expired"):
            await master.submit_answer(active_game.id, "p1", 1, "love", now=NOW + timedelta(days=8))
        assert store.record_calls == 0

    @pytest.mark.asyncio
    async def test_ready_game_rejected(self, master, store):
        game = make_active_game("READY001")
        game.status = GameStatus.READY
        store.put_game(game)
        with pytest.raises(LifecycleError):
            await master.submit_answer("READY001", "p1", 1, "love", now=NOW)

    @pytest.mark.asyncio
    async def test_unknown_game(self, master):
        with pytest.raises(GameNotFoundError):
            await master.submit_answer("NOPE", "p1", 1, "love", now=NOW)

    @pytest.mark.asyncio
    async def test_invalid_round_checked_first(self, master):
        with pytest.raises(InvalidRoundError):
            await master.submit_answer("NOPE", "p1", 5, "love", now=NOW)

    @pytest.mark.asyncio
    async def test_arbiter_hit_cached_for_later_players(self, master, store, active_game, arbiter):
        arbiter.reply = '{"valid": true, "rank": 3.6, "matched_to": "Hope", "reason": "word form"}'
        first = await master.submit_answer(active_game.id, "p1", 1, "Hoping", now=NOW)
        assert first.rank == 4
        assert store.games[active_game.id].judged_answers[0].answer == "hoping"

        arbiter.reply = '{"valid": false}'
        second = await master.submit_answer(active_game.id, "p2", 1, "hoping", now=NOW)
        assert second.on_list is True
        assert second.rank == 4
        assert len(arbiter.prompts) == 1

    @pytest.mark.asyncio
    async def test_full_game_flow(self, master, active_game):
        """Four hits complete the session; halftime appears after round 2."""
        r1 = await master.submit_answer(active_game.id, "p1", 1, "love", now=NOW)
        r2 = await master.submit_answer(active_game.id, "p1", 2, "grace", now=NOW)
        assert r1.halftime is None
        assert r2.halftime is not None
        assert r2.halftime.score == 400 + 597
        assert r2.halftime.max_score == 1000
        assert len(r2.halftime.fun_facts) == 3

        await master.submit_answer(active_game.id, "p1", 3, "word150", now=NOW)
        r4 = await master.submit_answer(active_game.id, "p1", 4, "word200", now=NOW)
        assert r4.completed is True
        assert r4.total_score == 400 + 597 + 300 + 600
        assert r4.all_answers is not None and len(r4.all_answers) == 200

        view = await master.session_view(active_game.id, "p1")
        assert view.completed is True
        assert view.next_round is None


class TestLifecycleTransitions:
    @pytest.mark.asyncio
    async def test_ingest_valid_content_makes_game_ready(self, master, store):
        game = await master.create_game(title="Week 2")
        assert game.status == GameStatus.GENERATING
        ready = await master.ingest_content(game.id, json.dumps(make_payload()))
        assert ready.status == GameStatus.READY
        assert len(ready.content.answers) == 200

    @pytest.mark.asyncio
    async def test_rejected_content_keeps_generating(self, master, store):
        game = await master.create_game(title="Week 3")
        with pytest.raises(ContentValidationError):
            await master.ingest_content(game.id, "not json")
        stored = store.games[game.id]
        assert stored.status == GameStatus.GENERATING
        assert stored.content is None
        assert "parse" in stored.generation_error

    @pytest.mark.asyncio
    async def test_activate_and_close(self, master, store):
        game = await master.create_game()
        await master.ingest_content(game.id, json.dumps(make_payload()))
        active = await master.activate_game(game.id, closes_at=NOW + timedelta(days=1), now=NOW)
        assert active.status == GameStatus.ACTIVE
        assert active.opens_at == NOW
        closed = await master.close_game(game.id)
        assert closed.status == GameStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_activate_requires_ready(self, master, store):
        game = await master.create_game()
        with pytest.raises(LifecycleError):
            await master.activate_game(game.id, closes_at=NOW + timedelta(days=1), now=NOW)

    @pytest.mark.asyncio
    async def test_activate_rejects_inverted_window(self, master, store):
        game = await master.create_game()
        await master.ingest_content(game.id, json.dumps(make_payload()))
        with pytest.raises(ValueError):
            await master.activate_game(game.id, closes_at=NOW - timedelta(hours=1), now=NOW)

    @pytest.mark.asyncio
    async def test_close_requires_active(self, master, store):
        game = await master.create_game()
        with pytest.raises(LifecycleError):
            await master.close_game(game.id)

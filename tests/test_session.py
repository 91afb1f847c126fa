"""
Test: review session lifecycle around save and cancel.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from review_engine.client import ReviewApiClient
from review_engine.errors import PersistenceError, SaveInProgressError, SessionClosedError
from review_engine.models import Challenge, FileConfig, FilePayload, RequirementReview, Submission
from review_engine.session import ReviewSession, save


def _stored(submission, points, status):
    return Submission(
        id=submission.id, challenge_id=submission.challenge_id, user_id=submission.user_id,
        submission_data=submission.submission_data, status=status, points=points,
    )


@pytest.fixture
def client():
    return MagicMock(put_granular_review=AsyncMock())


class TestEditing:
    def test_opens_seeded(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        assert session.review("r1").status == "approved"
        assert session.overall_feedback == "First pass"
        assert session.totals.earned_points == 10

    def test_set_status_and_feedback(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        session.set_status("r2", "approved")
        session.set_feedback("r2", "Great demo")
        assert session.review("r2") == RequirementReview("r2", "approved", "Great demo")
        assert session.totals.earned_points == 30
        assert session.derived_status == "pending"

    def test_unknown_requirement_is_ignored(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        before = session.reviews
        session.set_status("nope", "approved")
        session.set_feedback("nope", "x")
        assert session.reviews == before

    def test_reviews_snapshot_is_not_live(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        snapshot = session.reviews
        session.set_status("r3", "rejected")
        assert snapshot[2].status == "pending"


class TestSave:
    @pytest.mark.asyncio
    async def test_success_clears_state(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        session.set_status("r2", "rejected")
        session.set_overall_feedback("Almost there")
        client.put_granular_review.return_value = _stored(submission, 10, "pending")

        result = await session.save()

        client.put_granular_review.assert_awaited_once()
        args = client.put_granular_review.await_args.args
        assert args[0] == 42
        assert [r.status for r in args[1]] == ["approved", "rejected", "pending"]
        assert args[2] == "Almost there"
        assert result.candidate.earned_points == 10
        assert result.agrees
        assert not session.is_open
        with pytest.raises(SessionClosedError):
            session.set_status("r1", "approved")

    @pytest.mark.asyncio
    async def test_unreadable_save_response_keeps_session_open(self, challenge, submission):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        async with ReviewApiClient(base_url="http://portal", transport=transport) as client:
            session = ReviewSession(client, challenge, submission)
            session.set_status("r2", "approved")
            with pytest.raises(PersistenceError) as exc_info:
                await session.save()
        assert exc_info.value.retryable
        assert session.is_open
        assert not session.is_saving
        assert session.review("r2").status == "approved"

    @pytest.mark.asyncio
    async def test_failure_preserves_state(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        session.set_status("r2", "approved")
        session.set_feedback("r3", "Wrong format")
        session.set_overall_feedback("Needs the report")
        reviews_before = session.reviews
        client.put_granular_review.side_effect = PersistenceError("502 Bad Gateway", status_code=502)

        with pytest.raises(PersistenceError) as exc_info:
            await session.save()

        assert exc_info.value.retryable
        assert session.is_open
        assert not session.is_saving
        assert session.reviews == reviews_before
        assert session.overall_feedback == "Needs the report"

        client.put_granular_review.side_effect = None
        client.put_granular_review.return_value = _stored(submission, 30, "pending")
        result = await session.save()
        assert result.submission.points == 30
        assert client.put_granular_review.await_count == 2

    @pytest.mark.asyncio
    async def test_second_save_while_in_flight_is_refused(self, client, challenge, submission):
        release = asyncio.Event()

        async def slow_put(*args):
            await release.wait()
            return _stored(submission, 10, "pending")

        client.put_granular_review.side_effect = slow_put
        session = ReviewSession(client, challenge, submission)
        first = asyncio.ensure_future(session.save())
        await asyncio.sleep(0)
        assert session.is_saving
        with pytest.raises(SaveInProgressError):
            await session.save()
        release.set()
        await first
        assert client.put_granular_review.await_count == 1

    @pytest.mark.asyncio
    async def test_listeners_get_stored_submission(self, client, challenge, submission):
        stored = _stored(submission, 10, "pending")
        client.put_granular_review.return_value = stored
        seen = []
        session = ReviewSession(client, challenge, submission)
        session.subscribe(seen.append)
        await session.save()
        assert seen == [stored]

    @pytest.mark.asyncio
    async def test_listener_error_does_not_fail_save(self, client, challenge, submission):
        client.put_granular_review.return_value = _stored(submission, 10, "pending")
        session = ReviewSession(client, challenge, submission)
        session.subscribe(MagicMock(side_effect=RuntimeError("cache down")))
        result = await session.save()
        assert result.submission.points == 10

    @pytest.mark.asyncio
    async def test_no_requirements_feedback_only(self, client, submission):
        challenge = Challenge(id=7, title="Open", evaluation_type="file", file=FileConfig())
        client.put_granular_review.return_value = _stored(submission, 0, "pending")
        session = ReviewSession(client, challenge, submission)
        assert session.reviews == []
        session.set_overall_feedback("Thanks")
        result = await session.save()
        assert client.put_granular_review.await_args.args[1:] == ([], "Thanks")
        assert result.candidate.possible_points == 0

    @pytest.mark.asyncio
    async def test_module_level_save_does_not_send_points(self, client, requirements, submission):
        client.put_granular_review.return_value = _stored(submission, 10, "pending")
        reviews = [RequirementReview("r1", "approved")]
        result = await save(client, 42, reviews, "ok", requirements)
        client.put_granular_review.assert_awaited_once_with(42, reviews, "ok")
        assert result.candidate.earned_points == 10


class TestCancel:
    def test_cancel_discards_edits(self, client, challenge, submission):
        session = ReviewSession(client, challenge, submission)
        session.set_status("r1", "rejected")
        session.set_status("r2", "approved")
        session.set_overall_feedback("scratch")
        session.cancel()

        assert not session.is_open
        client.put_granular_review.assert_not_called()
        session.open()
        assert [r.status for r in session.reviews] == ["approved", "pending", "pending"]
        assert session.overall_feedback == "First pass"

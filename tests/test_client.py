"""
Test: HTTP client error mapping and retry behaviour, against a mock transport.
"""
import json

import httpx
import pytest
from tenacity import wait_none

from review_engine.client import ReviewApiClient
from review_engine.errors import PersistenceError
from review_engine.models import RequirementReview
from review_engine.settings import settings

SUBMISSION = {
    "id": 42, "challengeId": 7, "userId": 3, "submissionType": "file",
    "submissionData": {"file": {"files": []}, "requirementReviews": []},
    "status": "pending", "points": 0, "adminFeedback": None,
}


def _client(handler, **kwargs):
    return ReviewApiClient(base_url="http://portal", transport=httpx.MockTransport(handler), **kwargs)


class TestGranularReview:
    @pytest.mark.asyncio
    async def test_sends_reviews_and_feedback_only(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={**SUBMISSION, "points": 10})

        async with _client(handler, api_key="secret") as client:
            stored = await client.put_granular_review(
                42, [RequirementReview("r1", "approved", "ok")], "Good job"
            )

        assert stored.points == 10
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/gamification/submissions/42/review-granular"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {
            "requirementReviews": [{"requirementId": "r1", "status": "approved", "feedback": "ok"}],
            "adminFeedback": "Good job",
        }

    @pytest.mark.asyncio
    async def test_server_error_is_retryable_and_not_resent(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="maintenance")

        async with _client(handler) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.put_granular_review(42, [], "")

        assert len(calls) == 1
        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retryable(self):
        async with _client(lambda request: httpx.Response(400, text="bad")) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.put_granular_review(42, [], "")
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.put_granular_review(42, [], "")
        assert exc_info.value.retryable
        assert "timed out" in str(exc_info.value)


class TestReads:
    @pytest.mark.asyncio
    async def test_get_submission_retries_transient_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502)
            return httpx.Response(200, json=SUBMISSION)

        async with _client(handler) as client:
            submission = await client.get_submission(42)

        assert len(calls) == 2
        assert submission.submission_type == "file"

    @pytest.mark.asyncio
    async def test_read_gives_up_after_max_attempts(self, monkeypatch):
        monkeypatch.setattr(ReviewApiClient._get_json.retry, "wait", wait_none())
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        async with _client(handler) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.get_challenge(7)
        assert len(calls) == settings.read_max_attempts
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_submission(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"detail": "Submission not found"})

        async with _client(handler) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.get_submission(1)
        assert len(calls) == 1
        assert exc_info.value.status_code == 404
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[SUBMISSION])

        async with _client(handler, api_key="") as client:
            rows = await client.list_submissions(7)
        assert [s.id for s in rows] == [42]
        assert "Authorization" not in seen[0].headers


class TestUnreadableResponses:
    @pytest.mark.asyncio
    async def test_save_answered_with_html_is_retryable(self):
        async with _client(lambda request: httpx.Response(200, text="<html>proxy</html>")) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.put_granular_review(42, [], "")
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_save_answered_with_wrong_shape_is_retryable(self):
        async with _client(lambda request: httpx.Response(200, json={"ok": True})) as client:
            with pytest.raises(PersistenceError) as exc_info:
                await client.put_granular_review(42, [], "")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_unreadable_read(self):
        async with _client(lambda request: httpx.Response(200, json={**SUBMISSION, "status": "lost"})) as client:
            with pytest.raises(PersistenceError):
                await client.get_submission(42)

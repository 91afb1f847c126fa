from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential, wait_random

from .errors import PersistenceError, UnknownSubmissionTypeError
from .models import Challenge, RequirementReview, Submission
from .schemas import ChallengeOut, GranularReviewRequest, HolisticReviewRequest, SubmissionOut
from .settings import settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/gamification"
_RETRYABLE_CLIENT_ERRORS = (408, 409, 429)

def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500

def _as_persistence_error(exc: Exception, what: str) -> PersistenceError:
    if isinstance(exc, httpx.TimeoutException):
        return PersistenceError(f"{what}: timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        retryable = code >= 500 or code in _RETRYABLE_CLIENT_ERRORS
        return PersistenceError(f"{what}: {code} {exc.response.text[:200]}", status_code=code, retryable=retryable)
    return PersistenceError(f"{what}: {exc}")

def _decode(schema, data: Any, what: str):
    """Map a body the service answered with but we cannot read to a retryable PersistenceError."""
    try:
        return schema.model_validate(data).to_model()
    except (ValueError, UnknownSubmissionTypeError) as e:
        logger.warning("%s: unexpected response body: %s", what, e)
        raise PersistenceError(f"{what}: unexpected response body") from e


class ReviewApiClient:
    """Async client for the gamification submission endpoints.

    Reads are retried on transport errors and 5xx responses. Writes are sent
    exactly once; a failed write surfaces as ``PersistenceError`` and the
    caller decides whether to retry.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else settings.api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"
        self._http = httpx.AsyncClient(
            base_url=(base_url or settings.api_base_url).rstrip("/"),
            headers=headers,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ReviewApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @retry(
        reraise=True,
        stop=stop_after_attempt(settings.read_max_attempts),
        wait=(wait_exponential(multiplier=settings.read_backoff_seconds, max=10)
              + wait_random(0, settings.read_backoff_seconds)),
        retry=retry_if_exception(_is_transient),
    )
    async def _get_json(self, path: str) -> Any:
        resp = await self._http.get(path)
        resp.raise_for_status()
        return resp.json()

    async def _get(self, path: str, what: str) -> Any:
        try:
            return await self._get_json(path)
        except httpx.HTTPError as e:
            raise _as_persistence_error(e, what) from e
        except ValueError as e:
            raise PersistenceError(f"{what}: response is not JSON") from e

    async def _put(self, path: str, body: Dict[str, Any], what: str) -> Any:
        try:
            resp = await self._http.put(path, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            err = _as_persistence_error(e, what)
            logger.warning("%s failed (retryable=%s): %s", what, err.retryable, err)
            raise err from e
        try:
            return resp.json()
        except ValueError as e:
            raise PersistenceError(f"{what}: response is not JSON", status_code=resp.status_code) from e

    async def get_submission(self, submission_id: int) -> Submission:
        what = f"get submission {submission_id}"
        return _decode(SubmissionOut, await self._get(f"{API_PREFIX}/submissions/{submission_id}", what), what)

    async def get_challenge(self, challenge_id: int) -> Challenge:
        what = f"get challenge {challenge_id}"
        return _decode(ChallengeOut, await self._get(f"{API_PREFIX}/challenges/{challenge_id}", what), what)

    async def list_submissions(self, challenge_id: int) -> List[Submission]:
        what = f"list submissions of challenge {challenge_id}"
        data = await self._get(f"{API_PREFIX}/challenges/{challenge_id}/submissions", what)
        if not isinstance(data, list):
            raise PersistenceError(f"{what}: expected a list")
        return [_decode(SubmissionOut, row, what) for row in data]

    async def put_granular_review(
        self, submission_id: int, reviews: Sequence[RequirementReview], admin_feedback: str
    ) -> Submission:
        body = GranularReviewRequest.build(reviews, admin_feedback).model_dump(by_alias=True)
        what = f"granular review of submission {submission_id}"
        data = await self._put(f"{API_PREFIX}/submissions/{submission_id}/review-granular", body, what)
        return _decode(SubmissionOut, data, what)

    async def review_submission(self, submission_id: int, status: str, points: int, admin_feedback: str = "") -> Submission:
        body = HolisticReviewRequest(status=status, points=points, admin_feedback=admin_feedback)
        what = f"review of submission {submission_id}"
        data = await self._put(f"{API_PREFIX}/submissions/{submission_id}/review", body.model_dump(by_alias=True), what)
        return _decode(SubmissionOut, data, what)

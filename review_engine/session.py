from __future__ import annotations
import logging
from collections import OrderedDict
from typing import Callable, List, Optional, Sequence

from .client import ReviewApiClient
from .errors import SaveInProgressError, SessionClosedError
from .models import Challenge, PersistResult, Requirement, RequirementReview, ReviewTotals, Submission
from .scoring import (
    compute_totals, derive_status, initialize_session, set_requirement_feedback, set_requirement_status,
)

logger = logging.getLogger(__name__)

SubmissionListener = Callable[[Submission], None]

async def save(
    client: ReviewApiClient,
    submission_id: int,
    reviews: Sequence[RequirementReview],
    overall_feedback: str,
    requirements: Sequence[Requirement] = (),
) -> PersistResult:
    """Send one granular review to the server.

    Points are not sent: the server derives them from the reviews. The local
    totals are returned alongside the stored submission for comparison.
    """
    candidate = compute_totals(requirements, reviews)
    stored = await client.put_granular_review(submission_id, reviews, overall_feedback)
    logger.info(
        "saved review of submission %s: %s points (local %s/%s), status %s",
        submission_id, stored.points, candidate.earned_points, candidate.possible_points, stored.status,
    )
    return PersistResult(submission=stored, candidate=candidate)


class ReviewSession:
    """One administrator's in-progress review of one submission.

    Reviews are held in requirement order, keyed by requirement id. The state
    survives a failed save and is dropped after a successful save or cancel;
    call ``open()`` to start editing again.
    """

    def __init__(self, client: ReviewApiClient, challenge: Challenge, submission: Submission):
        self._client = client
        self.challenge = challenge
        self.submission = submission
        self.overall_feedback = ""
        self._reviews: Optional[OrderedDict] = None
        self._saving = False
        self._listeners: List[SubmissionListener] = []
        self.open()

    @classmethod
    async def load(cls, client: ReviewApiClient, submission_id: int) -> "ReviewSession":
        submission = await client.get_submission(submission_id)
        challenge = await client.get_challenge(submission.challenge_id)
        return cls(client, challenge, submission)

    def subscribe(self, listener: SubmissionListener) -> None:
        """Call ``listener`` with the stored submission after every successful save."""
        self._listeners.append(listener)

    def open(self) -> None:
        reviews = initialize_session(self.challenge, self.submission)
        self._reviews = OrderedDict((r.requirement_id, r) for r in reviews)
        self.overall_feedback = self.submission.admin_feedback or ""
        logger.debug("opened review of submission %s with %d requirements", self.submission.id, len(reviews))

    @property
    def is_open(self) -> bool:
        return self._reviews is not None

    @property
    def is_saving(self) -> bool:
        return self._saving

    def _require_open(self) -> OrderedDict:
        if self._reviews is None:
            raise SessionClosedError(f"review of submission {self.submission.id} is not open")
        return self._reviews

    @property
    def reviews(self) -> List[RequirementReview]:
        return list(self._require_open().values())

    def review(self, requirement_id: str) -> Optional[RequirementReview]:
        return self._require_open().get(requirement_id)

    def _apply(self, requirement_id: str, updated: Sequence[RequirementReview]) -> None:
        if updated:
            self._require_open()[requirement_id] = updated[0]

    def set_status(self, requirement_id: str, status: str) -> None:
        current = self._require_open().get(requirement_id)
        if current is None:
            logger.debug("submission %s has no requirement %s", self.submission.id, requirement_id)
            return
        self._apply(requirement_id, set_requirement_status([current], requirement_id, status))

    def set_feedback(self, requirement_id: str, feedback: str) -> None:
        current = self._require_open().get(requirement_id)
        if current is None:
            logger.debug("submission %s has no requirement %s", self.submission.id, requirement_id)
            return
        self._apply(requirement_id, set_requirement_feedback([current], requirement_id, feedback))

    def set_overall_feedback(self, feedback: str) -> None:
        self._require_open()
        self.overall_feedback = feedback or ""

    @property
    def totals(self) -> ReviewTotals:
        return compute_totals(self.challenge.requirements, self.reviews)

    @property
    def derived_status(self) -> str:
        return derive_status(self.totals, self.submission.status)

    async def save(self) -> PersistResult:
        reviews = self.reviews
        if self._saving:
            raise SaveInProgressError(f"review of submission {self.submission.id} is already being saved")
        self._saving = True
        try:
            result = await save(
                self._client, self.submission.id, reviews, self.overall_feedback, self.challenge.requirements
            )
        finally:
            self._saving = False
        self.submission = result.submission
        self._close()
        for listener in self._listeners:
            try:
                listener(result.submission)
            except Exception:
                logger.exception("submission listener failed for submission %s", result.submission.id)
        return result

    def cancel(self) -> None:
        logger.debug("cancelled review of submission %s", self.submission.id)
        self._close()

    def _close(self) -> None:
        self._reviews = None
        self.overall_feedback = ""

"""Per-requirement scoring for granular submission reviews.

All functions are pure: review lists go in, new review lists (or totals) come
out. Entries that are not touched by an update are the same objects in the
returned list, so callers can compare snapshots by identity.
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from .models import (
    REQUIREMENT_STATUSES, Challenge, Requirement, RequirementReview, ReviewTotals, Submission,
)

logger = logging.getLogger(__name__)

def _first_by_id(reviews: Iterable[RequirementReview]) -> Dict[str, RequirementReview]:
    index: Dict[str, RequirementReview] = {}
    for review in reviews:
        index.setdefault(review.requirement_id, review)
    return index

def initialize_session(challenge: Challenge, submission: Submission) -> List[RequirementReview]:
    prior = _first_by_id(submission.requirement_reviews)
    reviews = []
    for req in challenge.requirements:
        seed = prior.get(req.id)
        reviews.append(RequirementReview(
            requirement_id=req.id,
            status=seed.status if seed else "pending",
            feedback=(seed.feedback or "") if seed else "",
        ))
    return reviews

def _update(reviews: Sequence[RequirementReview], requirement_id: str, **changes) -> Sequence[RequirementReview]:
    if not any(r.requirement_id == requirement_id for r in reviews):
        logger.debug("ignoring update for unknown requirement %s", requirement_id)
        return reviews
    return [replace(r, **changes) if r.requirement_id == requirement_id else r for r in reviews]

def set_requirement_status(reviews: Sequence[RequirementReview], requirement_id: str, status: str) -> Sequence[RequirementReview]:
    if status not in REQUIREMENT_STATUSES:
        raise ValueError(f"unknown requirement status: {status!r}")
    return _update(reviews, requirement_id, status=status)

def set_requirement_feedback(reviews: Sequence[RequirementReview], requirement_id: str, feedback: str) -> Sequence[RequirementReview]:
    return _update(reviews, requirement_id, feedback=feedback or "")

def compute_totals(requirements: Sequence[Requirement], reviews: Sequence[RequirementReview]) -> ReviewTotals:
    by_id = _first_by_id(reviews)
    possible = sum(req.points for req in requirements)
    earned = sum(
        req.points for req in requirements
        if by_id.get(req.id) is not None and by_id[req.id].status == "approved"
    )
    counts = {status: 0 for status in REQUIREMENT_STATUSES}
    for review in reviews:
        counts[review.status] += 1
    return ReviewTotals(
        earned_points=earned,
        possible_points=possible,
        approved_count=counts["approved"],
        rejected_count=counts["rejected"],
        pending_count=counts["pending"],
    )

def derive_status(totals: ReviewTotals, current: str = "pending") -> str:
    """Submission-level status implied by per-requirement decisions.

    Any pending requirement keeps the submission pending; all rejected means
    rejected; otherwise at least one approval approves it. A review with no
    requirements leaves ``current`` alone.
    """
    reviewed = totals.approved_count + totals.rejected_count + totals.pending_count
    if reviewed == 0:
        return current
    if totals.pending_count:
        return "pending"
    if totals.approved_count == 0:
        return "rejected"
    return "approved"

"""Automatic evaluation of challenge submissions.

Quiz and QR code submissions are graded on arrival. Text and file submissions
stay pending until an administrator reviews them; file uploads are filtered
against the challenge limits before they are stored.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import EvaluationError, UnknownSubmissionTypeError
from .models import (
    Challenge, FileConfig, FilePayload, NoPayload, QrCodeConfig, QrCodePayload, QuizConfig, QuizPayload,
    Requirement, Submission, TextConfig, TextPayload, UploadedFile,
)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class EvaluationResult:
    status: str
    points: int
    score: Optional[int] = None

def _percent(correct: int, total: int) -> int:
    # half-up
    return (correct * 200 + total) // (2 * total) if total else 0

def allowed_attempts(config: QuizConfig) -> int:
    return max(config.max_attempts, 1) if config.allow_multiple_attempts else 1

def grade_quiz(config: QuizConfig, payload: QuizPayload, points: int) -> EvaluationResult:
    attempt = max(payload.attempt_number, 1)
    if attempt > allowed_attempts(config):
        raise EvaluationError(f"attempt {attempt} exceeds the {allowed_attempts(config)} allowed")
    answers = {a.question_id: a.answer for a in payload.answers}
    correct = sum(1 for q in config.questions if answers.get(q.id) == q.correct_answer)
    score = max(0, _percent(correct, len(config.questions)) - config.score_reduction_per_attempt * (attempt - 1))
    passed = score >= config.min_score
    logger.debug("quiz attempt %d: %d/%d correct, score %d", attempt, correct, len(config.questions), score)
    return EvaluationResult("completed" if passed else "rejected", points if passed else 0, score)

def check_qrcode(config: QrCodeConfig, payload: QrCodePayload, points: int) -> EvaluationResult:
    expected = config.qr_code_data.strip()
    if expected and payload.scanned_data.strip() == expected:
        return EvaluationResult("completed", points)
    return EvaluationResult("rejected", 0)

def check_text(config: TextConfig, payload: TextPayload) -> EvaluationResult:
    if len(payload.content) > config.max_length:
        raise EvaluationError(f"text has {len(payload.content)} characters, limit is {config.max_length}")
    return EvaluationResult("pending", 0)

def _extension(name: str) -> str:
    return os.path.splitext(name)[1].lower().lstrip(".")

def _type_accepted(upload: UploadedFile, accepted: Sequence[str]) -> bool:
    if not accepted:
        return True
    mime = (upload.type or "").lower()
    return _extension(upload.name) in accepted or mime in accepted or mime.split("/")[0] in accepted

def filter_uploads(
    config: FileConfig, uploads: Sequence[UploadedFile]
) -> Tuple[List[UploadedFile], List[UploadedFile]]:
    """Split uploads into (accepted, refused).

    Uploads tagged with a requirement are checked against that requirement's
    accepted types and size; the rest against the challenge-wide limits. Links
    are only checked for a URL. ``max_files`` caps the uploads that answer no
    requirement; evidence for a known requirement is not counted against it.
    """
    by_id = {req.id: req for req in config.requirements}
    accepted: List[UploadedFile] = []
    refused: List[UploadedFile] = []
    untagged = 0
    for upload in uploads:
        req: Optional[Requirement] = by_id.get(upload.requirement_id) if upload.requirement_id else None
        if req is not None and req.submission_kind == "link":
            ok = bool(upload.link_url)
        else:
            types = req.accepted_types if req is not None and req.accepted_types else config.allowed_types
            max_size = req.max_size if req is not None and req.max_size else config.max_size
            ok = _type_accepted(upload, types) and (upload.size or 0) <= max_size
        if ok and req is None:
            untagged += 1
            ok = untagged <= config.max_files
        (accepted if ok else refused).append(upload)
    if refused:
        logger.info("refused %d of %d uploads", len(refused), len(uploads))
    return accepted, refused

def evidence_for(submission: Submission, requirement_id: str) -> List[UploadedFile]:
    if not isinstance(submission.submission_data, FilePayload):
        return []
    return [f for f in submission.submission_data.files if f.requirement_id == requirement_id]

def evaluate(challenge: Challenge, submission: Submission) -> EvaluationResult:
    data = submission.submission_data
    if data.submission_type != challenge.evaluation_type:
        raise EvaluationError(
            f"challenge {challenge.id} expects {challenge.evaluation_type!r}, got {data.submission_type!r}"
        )
    if isinstance(data, QuizPayload):
        if challenge.quiz is None:
            raise EvaluationError(f"challenge {challenge.id} has no quiz configured")
        return grade_quiz(challenge.quiz, data, challenge.points)
    if isinstance(data, QrCodePayload):
        return check_qrcode(challenge.qrcode or QrCodeConfig(), data, challenge.points)
    if isinstance(data, TextPayload):
        return check_text(challenge.text or TextConfig(), data)
    if isinstance(data, FilePayload):
        return EvaluationResult("pending", 0)
    if isinstance(data, NoPayload):
        return EvaluationResult("completed", challenge.points)
    raise UnknownSubmissionTypeError(type(data).__name__)

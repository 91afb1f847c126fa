from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import UnknownSubmissionTypeError
from .models import (
    Challenge, FileConfig, FilePayload, NoPayload, QrCodeConfig, QrCodePayload, QuizAnswer,
    QuizConfig, QuizPayload, QuizQuestion, Requirement, RequirementReview, Submission,
    SubmissionData, TextConfig, TextPayload, UploadedFile,
)

RequirementStatus = Literal["pending", "approved", "rejected"]
SubmissionStatus = Literal["pending", "approved", "rejected", "completed"]
EvaluationType = Literal["none", "quiz", "text", "file", "qrcode"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---- review payloads ----

class RequirementReviewIn(CamelModel):
    requirement_id: str = Field(..., min_length=1)
    status: RequirementStatus = "pending"
    feedback: Optional[str] = ""

    def to_model(self) -> RequirementReview:
        return RequirementReview(self.requirement_id, self.status, self.feedback or "")

    @classmethod
    def from_model(cls, review: RequirementReview) -> "RequirementReviewIn":
        return cls(requirement_id=review.requirement_id, status=review.status, feedback=review.feedback)


class GranularReviewRequest(CamelModel):
    requirement_reviews: List[RequirementReviewIn] = Field(default_factory=list)
    admin_feedback: str = ""

    @classmethod
    def build(cls, reviews: Sequence[RequirementReview], admin_feedback: str) -> "GranularReviewRequest":
        return cls(
            requirement_reviews=[RequirementReviewIn.from_model(r) for r in reviews],
            admin_feedback=admin_feedback or "",
        )


class HolisticReviewRequest(CamelModel):
    status: SubmissionStatus
    points: int = Field(0, ge=0)
    admin_feedback: str = ""


# ---- challenge definitions ----

class FileRequirementIn(CamelModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    points: int = 0
    submission_type: Literal["file", "link"] = "file"
    allowed_types: List[str] = Field(default_factory=list)
    max_size: Optional[int] = None

    def to_model(self) -> Requirement:
        return Requirement(
            id=self.id, name=self.name, points=self.points, description=self.description,
            submission_kind=self.submission_type, accepted_types=tuple(self.allowed_types),
            max_size=self.max_size,
        )


class QuizQuestionIn(CamelModel):
    id: str
    question: str = ""
    options: List[str] = Field(default_factory=list)
    correct_answer: int = 0


class QuizConfigIn(CamelModel):
    questions: List[QuizQuestionIn] = Field(default_factory=list)
    min_score: int = 70
    allow_multiple_attempts: bool = False
    max_attempts: int = 1
    score_reduction_per_attempt: int = 0


class TextConfigIn(CamelModel):
    placeholder: str = ""
    max_length: int = 1000


class FileConfigIn(CamelModel):
    allowed_types: List[str] = Field(default_factory=list)
    max_size: int = 5 * 1024 * 1024
    max_files: int = 1
    file_requirements: List[FileRequirementIn] = Field(default_factory=list)


class QrCodeConfigIn(CamelModel):
    qr_code_data: str = ""


class EvaluationConfigIn(CamelModel):
    quiz: Optional[QuizConfigIn] = None
    text: Optional[TextConfigIn] = None
    file: Optional[FileConfigIn] = None
    qrcode: Optional[QrCodeConfigIn] = None


class ChallengeCreate(CamelModel):
    title: str = ""
    evaluation_type: EvaluationType = "none"
    evaluation_config: EvaluationConfigIn = Field(default_factory=EvaluationConfigIn)
    points: int = 0
    is_active: bool = True


class ChallengeOut(ChallengeCreate):
    id: int

    def to_model(self) -> Challenge:
        cfg = self.evaluation_config
        quiz = text = file = qrcode = None
        if cfg.quiz:
            quiz = QuizConfig(
                questions=tuple(QuizQuestion(q.id, q.question, tuple(q.options), q.correct_answer)
                                for q in cfg.quiz.questions),
                min_score=cfg.quiz.min_score,
                allow_multiple_attempts=cfg.quiz.allow_multiple_attempts,
                max_attempts=cfg.quiz.max_attempts,
                score_reduction_per_attempt=cfg.quiz.score_reduction_per_attempt,
            )
        if cfg.text:
            text = TextConfig(cfg.text.placeholder, cfg.text.max_length)
        if cfg.file:
            file = FileConfig(
                allowed_types=tuple(t.lower().lstrip(".") for t in cfg.file.allowed_types),
                max_size=cfg.file.max_size,
                max_files=cfg.file.max_files,
                requirements=tuple(r.to_model() for r in cfg.file.file_requirements),
            )
        if cfg.qrcode:
            qrcode = QrCodeConfig(cfg.qrcode.qr_code_data)
        return Challenge(
            id=self.id, title=self.title, evaluation_type=self.evaluation_type, points=self.points,
            is_active=self.is_active, quiz=quiz, text=text, file=file, qrcode=qrcode,
        )


# ---- submissions ----

class UploadedFileIn(CamelModel):
    name: str = ""
    filename: Optional[str] = None
    size: Optional[int] = None
    file_size: Optional[int] = None
    type: str = ""
    url: str = ""
    requirement_id: Optional[str] = None
    link_url: Optional[str] = None

    def to_model(self) -> UploadedFile:
        return UploadedFile(
            name=self.name or self.filename or "",
            size=self.size if self.size else self.file_size,
            type=self.type, url=self.url,
            requirement_id=self.requirement_id, link_url=self.link_url,
        )


class SubmissionCreate(CamelModel):
    user_id: int
    submission_type: EvaluationType = "none"
    submission_data: Dict[str, Any] = Field(default_factory=dict)


class SubmissionOut(CamelModel):
    id: int
    challenge_id: int
    user_id: int
    submission_type: EvaluationType = "none"
    submission_data: Dict[str, Any] = Field(default_factory=dict)
    status: SubmissionStatus = "pending"
    points: int = 0
    admin_feedback: Optional[str] = None
    reviewed_at: Optional[str] = None

    def to_model(self) -> Submission:
        return Submission(
            id=self.id, challenge_id=self.challenge_id, user_id=self.user_id,
            submission_data=decode_submission_data(self.submission_type, self.submission_data),
            status=self.status, points=self.points, admin_feedback=self.admin_feedback,
            reviewed_at=self.reviewed_at,
        )


def decode_submission_data(submission_type: str, data: Dict[str, Any]) -> SubmissionData:
    data = data or {}
    if submission_type == "none":
        return NoPayload()
    if submission_type == "quiz":
        body = data.get("quiz") or {}
        return QuizPayload(
            answers=tuple(QuizAnswer(str(a.get("questionId")), int(a.get("answer") or 0))
                          for a in body.get("answers") or []),
            attempt_number=int(body.get("attemptNumber") or 1),
            score=body.get("score"),
            total_questions=body.get("totalQuestions"),
            submitted_at=body.get("submittedAt"),
        )
    if submission_type == "text":
        body = data.get("text") or {}
        return TextPayload(content=body.get("content") or "", submitted_at=body.get("submittedAt"))
    if submission_type == "file":
        body = data.get("file") or {}
        return FilePayload(
            files=tuple(UploadedFileIn.model_validate(f).to_model() for f in body.get("files") or []),
            requirement_reviews=tuple(RequirementReviewIn.model_validate(r).to_model()
                                      for r in data.get("requirementReviews") or []),
            submitted_at=body.get("submittedAt"),
        )
    if submission_type == "qrcode":
        body = data.get("qrcode") or {}
        return QrCodePayload(scanned_data=body.get("scannedData") or "", submitted_at=body.get("submittedAt"))
    raise UnknownSubmissionTypeError(submission_type)


def encode_submission_data(payload: SubmissionData) -> Dict[str, Any]:
    if isinstance(payload, NoPayload):
        return {}
    if isinstance(payload, QuizPayload):
        return {"quiz": {
            "answers": [{"questionId": a.question_id, "answer": a.answer} for a in payload.answers],
            "attemptNumber": payload.attempt_number,
            "score": payload.score,
            "totalQuestions": payload.total_questions,
            "submittedAt": payload.submitted_at,
        }}
    if isinstance(payload, TextPayload):
        return {"text": {"content": payload.content, "submittedAt": payload.submitted_at}}
    if isinstance(payload, FilePayload):
        files = [
            UploadedFileIn(
                name=f.name, size=f.size, type=f.type, url=f.url,
                requirement_id=f.requirement_id, link_url=f.link_url,
            ).model_dump(by_alias=True, exclude_none=True)
            for f in payload.files
        ]
        return {
            "file": {"files": files, "submittedAt": payload.submitted_at},
            "requirementReviews": [RequirementReviewIn.from_model(r).model_dump(by_alias=True)
                                   for r in payload.requirement_reviews],
        }
    if isinstance(payload, QrCodePayload):
        return {"qrcode": {"scannedData": payload.scanned_data, "submittedAt": payload.submitted_at}}
    raise UnknownSubmissionTypeError(type(payload).__name__)

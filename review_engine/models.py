from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Tuple, Union

REQUIREMENT_STATUSES = ("pending", "approved", "rejected")

@dataclass(frozen=True)
class Requirement:
    id: str
    name: str
    points: int
    description: str = ""
    submission_kind: str = "file"     # 'file' | 'link'
    accepted_types: Tuple[str, ...] = ()
    max_size: Optional[int] = None    # bytes

@dataclass(frozen=True)
class RequirementReview:
    requirement_id: str
    status: str = "pending"           # pending|approved|rejected
    feedback: str = ""

@dataclass(frozen=True)
class ReviewTotals:
    earned_points: int = 0
    possible_points: int = 0
    approved_count: int = 0
    rejected_count: int = 0
    pending_count: int = 0

@dataclass(frozen=True)
class QuizQuestion:
    id: str
    question: str
    options: Tuple[str, ...]
    correct_answer: int

@dataclass(frozen=True)
class QuizConfig:
    questions: Tuple[QuizQuestion, ...] = ()
    min_score: int = 70
    allow_multiple_attempts: bool = False
    max_attempts: int = 1
    score_reduction_per_attempt: int = 0

@dataclass(frozen=True)
class TextConfig:
    placeholder: str = ""
    max_length: int = 1000

@dataclass(frozen=True)
class FileConfig:
    allowed_types: Tuple[str, ...] = ()
    max_size: int = 5 * 1024 * 1024
    max_files: int = 1
    requirements: Tuple[Requirement, ...] = ()

@dataclass(frozen=True)
class QrCodeConfig:
    qr_code_data: str = ""

@dataclass(frozen=True)
class Challenge:
    id: int
    title: str
    evaluation_type: str = "none"
    points: int = 0
    is_active: bool = True
    quiz: Optional[QuizConfig] = None
    text: Optional[TextConfig] = None
    file: Optional[FileConfig] = None
    qrcode: Optional[QrCodeConfig] = None

    @property
    def requirements(self) -> Tuple[Requirement, ...]:
        return self.file.requirements if self.file else ()

# --- submission payloads, one variant per evaluation type ---

@dataclass(frozen=True)
class QuizAnswer:
    question_id: str
    answer: int

@dataclass(frozen=True)
class QuizPayload:
    submission_type: ClassVar[str] = "quiz"
    answers: Tuple[QuizAnswer, ...] = ()
    attempt_number: int = 1
    score: Optional[int] = None
    total_questions: Optional[int] = None
    submitted_at: Optional[str] = None

@dataclass(frozen=True)
class TextPayload:
    submission_type: ClassVar[str] = "text"
    content: str = ""
    submitted_at: Optional[str] = None

@dataclass(frozen=True)
class UploadedFile:
    name: str = ""
    size: Optional[int] = None
    type: str = ""
    url: str = ""
    requirement_id: Optional[str] = None
    link_url: Optional[str] = None

@dataclass(frozen=True)
class FilePayload:
    submission_type: ClassVar[str] = "file"
    files: Tuple[UploadedFile, ...] = ()
    requirement_reviews: Tuple[RequirementReview, ...] = ()
    submitted_at: Optional[str] = None

@dataclass(frozen=True)
class QrCodePayload:
    submission_type: ClassVar[str] = "qrcode"
    scanned_data: str = ""
    submitted_at: Optional[str] = None

@dataclass(frozen=True)
class NoPayload:
    submission_type: ClassVar[str] = "none"

SubmissionData = Union[QuizPayload, TextPayload, FilePayload, QrCodePayload, NoPayload]

@dataclass
class Submission:
    id: int
    challenge_id: int
    user_id: int
    submission_data: SubmissionData = field(default_factory=NoPayload)
    status: str = "pending"           # pending|approved|rejected|completed
    points: int = 0
    admin_feedback: Optional[str] = None
    reviewed_at: Optional[str] = None

    @property
    def submission_type(self) -> str:
        return self.submission_data.submission_type

    @property
    def requirement_reviews(self) -> List[RequirementReview]:
        if isinstance(self.submission_data, FilePayload):
            return list(self.submission_data.requirement_reviews)
        return []

@dataclass(frozen=True)
class PersistResult:
    submission: Submission
    candidate: ReviewTotals

    @property
    def agrees(self) -> bool:
        """True when the stored points match the locally computed candidate."""
        return self.submission.points == self.candidate.earned_points

from .errors import (
    EvaluationError, PersistenceError, ReviewEngineError, SaveInProgressError, SessionClosedError,
    UnknownSubmissionTypeError,
)
from .models import (
    Challenge, PersistResult, Requirement, RequirementReview, ReviewTotals, Submission,
)
from .scoring import (
    compute_totals, derive_status, initialize_session, set_requirement_feedback, set_requirement_status,
)
from .session import ReviewSession, save
from .client import ReviewApiClient

__version__ = "0.1.0"

class ReviewEngineError(Exception):
    pass


class PersistenceError(ReviewEngineError):
    """Raised when the persistence collaborator could not store or return a record.

    ``retryable`` is False only for responses that will fail the same way again
    (4xx other than 408/409/429).
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class SessionClosedError(ReviewEngineError):
    pass


class SaveInProgressError(ReviewEngineError):
    pass


class UnknownSubmissionTypeError(ReviewEngineError):
    pass


class EvaluationError(ReviewEngineError):
    pass

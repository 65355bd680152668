"""Error taxonomy of the evaluation service.

Collaborator errors (document, embedding, retrieval, LLM) are fatal to the job
they occur in. ``MalformedModelOutput`` never leaves the repair protocol.
"""


class EvaluationError(Exception):
    """Base class for every error raised by the evaluation core."""


class DocumentMissing(EvaluationError):
    def __init__(self, document_id: str):
        super().__init__(f"uploaded document not found: {document_id}")
        self.document_id = document_id


class UnreadableDocument(EvaluationError):
    pass


class EmbeddingUnavailable(EvaluationError):
    pass


class RetrievalUnavailable(EvaluationError):
    pass


class LLMUnavailable(EvaluationError):
    pass


class MalformedModelOutput(EvaluationError):
    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class StalledTooManyTimes(EvaluationError):
    def __init__(self, job_id: str, stalled_count: int):
        super().__init__(
            f"job {job_id} stalled {stalled_count} times and will not be retried")
        self.job_id = job_id
        self.stalled_count = stalled_count


class JobNotFound(EvaluationError):
    def __init__(self, job_id: str):
        super().__init__(f"job not found: {job_id}")
        self.job_id = job_id


class JobAlreadyExists(EvaluationError):
    def __init__(self, job_id: str):
        super().__init__(f"job already exists: {job_id}")
        self.job_id = job_id


class RevisionConflict(EvaluationError):
    """The job record changed since the caller read it."""

    def __init__(self, job_id: str, expected: int, actual: int):
        super().__init__(
            f"job {job_id} revision conflict: expected {expected}, found {actual}")
        self.job_id = job_id
        self.expected = expected
        self.actual = actual


class InvalidTransition(EvaluationError):
    def __init__(self, job_id: str, current: str, new: str):
        super().__init__(f"job {job_id} cannot move from {current} to {new}")
        self.job_id = job_id
        self.current = current
        self.new = new


class InvalidJobRecord(EvaluationError):
    pass

"""Custom exceptions for the jsondelta engine."""


class JsonDeltaError(Exception):
    """Base exception for jsondelta errors."""
    pass


class ValidationError(JsonDeltaError):
    """Raised when input validation fails."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParseError(JsonDeltaError):
    """Raised when a document or rule file cannot be parsed."""
    def __init__(self, message: str, source: str = None, line: int = None, column: int = None):
        super().__init__(message)
        self.message = message
        self.source = source
        self.line = line
        self.column = column


class RuleError(JsonDeltaError):
    """Raised when a rule definition cannot be built."""
    def __init__(self, rule: str, message: str):
        super().__init__(f"Invalid rule '{rule}': {message}")
        self.rule = rule
        self.message = message


class ComputeError(JsonDeltaError):
    """Raised when a diff computation fails unexpectedly."""
    def __init__(self, message: str, backend: str = None):
        super().__init__(message)
        self.message = message
        self.backend = backend


class JobCancelledError(JsonDeltaError):
    """Raised at a pipeline checkpoint once the job has been cancelled."""
    def __init__(self, checkpoint: str):
        super().__init__(f"Job cancelled at checkpoint: {checkpoint}")
        self.checkpoint = checkpoint


class QueueFullError(JsonDeltaError):
    """Raised when the job queue cannot accept more work."""
    def __init__(self, max_queue_size: int):
        super().__init__(
            f"Job queue is full ({max_queue_size} jobs). Wait for some jobs to complete."
        )
        self.max_queue_size = max_queue_size


class JobNotFoundError(JsonDeltaError):
    """Raised when a job id is unknown or has already been purged."""
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id

"""Exception taxonomy for the pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class RecordNotFoundError(PipelineError):
    """A task referenced a posting that no longer exists. Never retried."""
    
    def __init__(self, posting_id: str):
        super().__init__(f"Posting not found: {posting_id}")
        self.posting_id = posting_id


class SourceFetchError(PipelineError):
    """A posting source was unreachable or answered with a non-OK status."""
    
    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class ReasoningServiceError(PipelineError):
    """The reasoning service could not be called."""


class KnowledgeBaseError(PipelineError):
    """A knowledge-base document could not be parsed."""


class TransitionError(PipelineError):
    """A stage produced an outcome the transition table does not allow."""

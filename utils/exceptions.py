"""
Custom Exceptions
Errors raised inside collaborators; the pipeline converts them into status values.
"""


class GroundingError(Exception):
    """Base error for the grounding pipeline"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class CollaboratorError(GroundingError):
    """An external collaborator (search, feed, extractor) failed"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class FeedError(CollaboratorError):
    """A content feed returned an unusable response"""
    pass

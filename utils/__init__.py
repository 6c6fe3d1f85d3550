"""
Utils Module
Logging setup and the shared exception hierarchy.
"""
from .logger import setup_logger
from .exceptions import (
    GroundingError,
    CollaboratorError,
    FeedError,
)

__all__ = [
    "setup_logger",
    "GroundingError",
    "CollaboratorError",
    "FeedError",
]

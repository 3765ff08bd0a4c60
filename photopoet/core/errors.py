"""
Purpose:
- Error taxonomy shared by flows, the controller and the HTTP layer.
- Flows raise these; the controller turns flow failures into user-facing messages.
"""

from __future__ import annotations
from typing import List, Optional


class PhotoPoetError(Exception):
    """Base exception for the service."""


class InvalidInput(PhotoPoetError):
    """Caller-supplied data fails a precondition (e.g. missing photo)."""


class ValidationError(PhotoPoetError):
    """Data does not conform to the expected schema."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class CapabilityError(PhotoPoetError):
    """The AI backend failed to produce a response."""


class AnalysisError(PhotoPoetError):
    """Photo analysis call failed or was rejected."""


class GenerationError(PhotoPoetError):
    """Poem generation call failed or was rejected."""


class StateError(PhotoPoetError):
    """An action was requested out of sequence."""


class SessionNotFound(PhotoPoetError):
    """No session with the given id."""


class ConfigurationError(PhotoPoetError):
    """Required configuration is missing or invalid."""

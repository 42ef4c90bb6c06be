"""
Service error types.

Placed in a separate module so the API layer, the store and the generation
pipeline raise and catch the same classes.
"""

from typing import Any, Optional


class PrepError(Exception):
    """Base exception for errors reported to the caller"""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class SessionNotFoundError(PrepError):
    status_code = 404
    code = "session_not_found"


class PreconditionError(PrepError):
    """Generation cannot start; nothing was mutated and no LLM call was made"""
    status_code = 400
    code = "precondition_failed"


class NoDocumentsError(PreconditionError):
    code = "no_documents"


class MissingCredentialError(PreconditionError):
    status_code = 500
    code = "llm_not_configured"


class InvalidInputError(PrepError):
    status_code = 400
    code = "invalid_input"


class InvalidUploadError(InvalidInputError):
    code = "invalid_upload"


class OutlineError(InvalidInputError):
    code = "outline_error"


class SectionNotFoundError(PrepError):
    status_code = 404
    code = "section_not_found"


class LLMUnavailableError(PrepError):
    status_code = 502
    code = "llm_unavailable"

"""Error taxonomy for the recommendation core."""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError


class CurioError(Exception):
    """Base exception for Curio errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code used when surfaced through the API
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error body used by the API."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(CurioError):
    """A user or product id does not resolve through an external lookup."""

    status_code = 404

    def __init__(self, kind: str, identifier: Any) -> None:
        super().__init__(
            f"{kind.capitalize()} '{identifier}' not found",
            details={"kind": kind, "id": identifier},
        )


class ValidationError(CurioError):
    """Input rejected at the boundary; nothing was applied."""

    status_code = 422

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError, subject: str) -> "ValidationError":
        """Translate a pydantic validation failure, listing every violated field."""
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return cls(f"Invalid {subject}", details={"errors": errors})


class TransientIOError(CurioError):
    """An external lookup or store operation failed; the caller may retry."""

    status_code = 503


class GenerationTimeoutError(TransientIOError):
    """A generation run exceeded its time budget and was aborted before commit."""

    status_code = 504

    def __init__(self, user_id: str, timeout: float) -> None:
        super().__init__(
            f"Generation for user '{user_id}' exceeded {timeout:.1f}s and was aborted",
            details={"user_id": user_id, "timeout_seconds": timeout},
        )

"""Result type shared by the view operations."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ViewResult:
    """Result from a view operation."""
    success: bool
    data: Any = None
    message: str = ""
    error: Optional[str] = None
    status_code: int = 200

    def to_dict(self) -> dict:
        body = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        if self.error:
            body["error"] = self.error
        return body


def unauthorized() -> ViewResult:
    return ViewResult(
        success=False,
        error="Not signed in",
        message="Please sign in to continue.",
        status_code=401,
    )


def forbidden(message: str = "You don't have permission to view this page.") -> ViewResult:
    return ViewResult(success=False, error="Forbidden", message=message, status_code=403)


def invalid(message: str) -> ViewResult:
    return ViewResult(success=False, error=message, message=message, status_code=400)


def not_found(message: str) -> ViewResult:
    return ViewResult(success=False, error="Not found", message=message, status_code=404)

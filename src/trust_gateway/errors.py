"""Error taxonomy shared by the REST handlers, the CLI and the A2A executor."""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for per-request failures. Never fatal to the process."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str = "", details: Any = None, *, error: Optional[str] = None):
        self.message = message or self.error
        self.details = details
        if error is not None:
            self.error = error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class InputValidationError(GatewayError):
    """Malformed agent id or schema violation (400)."""
    status_code = 400
    error = "Invalid input"


class PaymentRequiredError(GatewayError):
    status_code = 402
    error = "Payment required"


class NotFoundError(GatewayError):
    """Registry document absent or unresolvable (404)."""
    status_code = 404
    error = "Agent registration not found"


class UpstreamError(GatewayError):
    """Registry, RPC or gateway transport failure (502)."""
    status_code = 502
    error = "Upstream service unavailable"

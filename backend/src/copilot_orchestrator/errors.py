"""Error taxonomy for the orchestrator.

Every error carries a stable ``code`` (recorded in failure notices and logs),
the HTTP status the boundary maps it to, and a ``public_message`` that is safe
to show to the end user.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""

    code = "internal_error"
    http_status = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class InvalidInput(OrchestratorError):
    """Malformed request, rejected before the loop runs."""

    code = "invalid_input"
    http_status = 400

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class DuplicateToolName(OrchestratorError):
    code = "duplicate_tool_name"


# ---------------------------------------------------------------------------
# Tool errors: recoverable inside the loop, surfaced to the model as ToolResult errors
# ---------------------------------------------------------------------------


class ToolError(OrchestratorError):
    code = "tool_error"


class UnknownTool(ToolError):
    code = "unknown_tool"


class ToolValidationError(ToolError):
    code = "tool_validation_error"


class ToolExecutionError(ToolError):
    code = "tool_execution_error"


# ---------------------------------------------------------------------------
# Model errors: fail the current user turn, never the session
# ---------------------------------------------------------------------------


class ModelError(OrchestratorError):
    code = "model_error"
    http_status = 502
    public_message = "The assistant is not available right now. Please try again."


class ModelUnavailable(ModelError):
    code = "model_unavailable"
    http_status = 503


class ModelResponseMalformed(ModelError):
    code = "model_response_malformed"
    http_status = 502


class ToolCycleLimitExceeded(OrchestratorError):
    code = "tool_cycle_limit_exceeded"
    public_message = "The assistant could not finish this request."


class SessionConcurrencyConflict(OrchestratorError):
    code = "session_concurrency_conflict"
    http_status = 409
    public_message = "The conversation changed while this message was processed."


class TurnCancelled(OrchestratorError):
    code = "turn_cancelled"
    http_status = 499
    public_message = "The request was cancelled."

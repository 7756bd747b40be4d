"""
Domain exceptions raised by the engine.

Recoverable errors (ValidationError, SourceTimeoutError,
TemplatePreconditionUnmet) are handled inside a run and surface only in the
diagnostic report and logs. EmptyInputError and ConfigurationError propagate
to the caller.
"""

from typing import Any, List, Optional


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(EngineError):
    """Raised when a raw record cannot become an Observation."""

    def __init__(
        self,
        reason: str,
        record_id: Optional[str] = None,
        source: Optional[str] = None,
    ):
        self.reason = reason
        self.record_id = record_id
        self.source = source

        message = reason
        if record_id is not None:
            message = f"Record {record_id} ({source or 'unknown source'}): {reason}"
        super().__init__(message)


class SourceTimeoutError(EngineError):
    """Raised when a record source does not answer within its timeout."""

    def __init__(self, source_name: str, timeout_ms: int):
        self.source_name = source_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Source '{source_name}' timed out after {timeout_ms} ms")


class TemplatePreconditionUnmet(EngineError):
    """Raised by an insight template whose inputs are missing or insufficient."""

    def __init__(self, template_key: str, detail: str = ""):
        self.template_key = template_key
        self.detail = detail
        message = f"Template '{template_key}' precondition unmet"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class EmptyInputError(EngineError):
    """
    Raised when no record survives normalization.

    Carries the DiagnosticReport so callers can see what was excluded and why.
    """

    def __init__(self, report: Any):
        self.report = report
        super().__init__(
            f"No valid observations: {report.seen} records seen, "
            f"{report.excluded} excluded"
        )


class ConfigurationError(EngineError):
    """Raised when a rule table or catalog is malformed."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        message = "Invalid engine configuration:\n" + "\n".join(
            f"  ERROR: {p}" for p in problems
        )
        super().__init__(message)


__all__ = [
    "EngineError",
    "ValidationError",
    "SourceTimeoutError",
    "TemplatePreconditionUnmet",
    "EmptyInputError",
    "ConfigurationError",
]

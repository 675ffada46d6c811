"""
Error taxonomy for the generation pipeline.

Only these errors are surfaced to callers. Anything else raised inside the
pipeline is an internal bug and is converted to ``EngineUnavailable`` before
it reaches the HTTP layer.
"""

from typing import Any, Optional


class GenerationError(Exception):
    """Base class for user-visible pipeline failures."""

    code = "generation_error"
    retryable = False

    def __init__(self, message: str, *, iteration_count: int = 0):
        super().__init__(message)
        self.message = message
        self.iteration_count = iteration_count

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "iteration_count": self.iteration_count,
        }


class ValidationError(GenerationError):
    """The brief is malformed. Never retried."""

    code = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload


class EngineUnavailable(GenerationError):
    """Transient backend failure or timeout."""

    code = "engine_unavailable"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        iteration_count: int = 0,
        cause: Optional[BaseException] = None,
        deadline_reached: bool = False,
    ):
        super().__init__(message, iteration_count=iteration_count)
        self.cause = cause
        self.deadline_reached = deadline_reached


class EngineRejected(GenerationError):
    """The backend refused the request (content policy, auth, bad input)."""

    code = "engine_rejected"

    def __init__(self, message: str, *, iteration_count: int = 0, cause: Optional[BaseException] = None):
        super().__init__(message, iteration_count=iteration_count)
        self.cause = cause


class ConstraintUnsatisfiable(GenerationError):
    """Raised in strict mode when the loop exhausts without meeting every constraint."""

    code = "constraint_unsatisfiable"

    def __init__(self, result: Any):
        failing = []
        report = getattr(result, "constraint_report", None)
        if report is not None:
            failing = [item.name for item in report.failing()]
        message = "Constraints not fully met after refinement"
        if failing:
            message = f"{message}: {', '.join(failing)}"
        super().__init__(message, iteration_count=getattr(result, "iteration_count", 0))
        self.result = result


class GenerationCancelled(GenerationError):
    """The caller cancelled the run."""

    code = "cancelled"

    def __init__(self, message: str = "Generation cancelled by caller", *, iteration_count: int = 0):
        super().__init__(message, iteration_count=iteration_count)

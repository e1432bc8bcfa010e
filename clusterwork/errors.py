"""
Clusterwork errors.

Pre-flight errors (dangling references, cycles, capability mismatches) abort a
run before any task renders. Per-task errors are attached to the failing task
and only block its dependents.
"""

from typing import Any


class ClusterworkError(Exception):
    """Base exception for all Clusterwork errors."""
    pass


class ConfigurationError(ClusterworkError):
    """Errors in configuration or task declarations."""
    pass


class PreflightError(ConfigurationError):
    """Errors detected before any task starts running."""
    pass


class DanglingReferenceError(PreflightError):
    """A task references another task that was never declared."""

    def __init__(self, owner: str | None, missing: str):
        self.owner = owner
        self.missing = missing
        if owner:
            message = f"Task '{owner}' references undeclared task '{missing}'"
        else:
            message = f"Reference to undeclared task '{missing}'"
        super().__init__(message)


class DependencyCycleError(PreflightError):
    """The task graph contains a dependency cycle."""

    def __init__(self, chain: list[str]):
        self.chain = list(chain)
        super().__init__(f"Dependency cycle detected: {' → '.join(self.chain)}")


class CapabilityError(PreflightError):
    """One or more task types cannot render to the active target."""

    def __init__(self, target: str, task_types: list[str]):
        self.target = target
        self.task_types = sorted(task_types)
        super().__init__(
            f"Task type(s) {', '.join(self.task_types)} have no render "
            f"method for target '{target}'"
        )


class CannotChangeFieldError(ClusterworkError):
    """An immutable field differs between actual and expected state."""

    def __init__(self, field: str, old: Any = None, new: Any = None):
        self.field = field
        self.old = old
        self.new = new
        super().__init__(
            f"Field '{field}' cannot be changed (from {old!r} to {new!r})"
        )


class MissingRequiredFieldError(ClusterworkError):
    """A required field was not set on the expected task."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' is required")


class AmbiguousMatchError(ClusterworkError):
    """Find returned more than one candidate for a unique identity."""
    pass


class ResourceNotFoundError(ClusterworkError):
    """A resource that must already exist was not found."""
    pass


class ValidationFailedError(ClusterworkError):
    """An existing resource does not match its validate-only declaration."""
    pass


class BackendError(ClusterworkError):
    """A backend call failed."""

    def __init__(self, message: str, code: str | None = None):
        self.code = code
        super().__init__(message)


class TransientBackendError(BackendError):
    """A retryable backend failure that outlasted its retry budget."""
    pass


class InsufficientAccessError(BackendError):
    """The caller lacks permission to inspect or modify a resource."""
    pass


def describe_error(error: BaseException) -> dict[str, Any]:
    """Structured, serializable description of an error for run reports."""
    details: dict[str, Any] = {
        "type": error.__class__.__name__,
        "message": str(error),
    }
    if isinstance(error, CannotChangeFieldError):
        details.update({"field": error.field, "old": error.old, "new": error.new})
    elif isinstance(error, MissingRequiredFieldError):
        details["field"] = error.field
    elif isinstance(error, BackendError) and error.code:
        details["code"] = error.code
    return details

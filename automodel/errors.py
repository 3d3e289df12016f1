from __future__ import annotations


class AutoModelError(Exception):
    """Base error for endpoint selection and forwarding."""


class EndpointNotFoundError(AutoModelError):
    def __init__(self, model_id: str) -> None:
        super().__init__(f"chat endpoint not found: {model_id}")
        self.model_id = model_id


class NoCandidatesError(AutoModelError):
    """No preferred, fallback or baseline endpoint could be resolved."""

    def __init__(self, *, candidates_total: int, baseline_model: str) -> None:
        super().__init__(
            f"no chat endpoint available: candidates={candidates_total} "
            f"baseline={baseline_model}"
        )
        self.candidates_total = candidates_total
        self.baseline_model = baseline_model


class UnsupportedOperationError(AutoModelError, NotImplementedError):
    """Raised by the auto facade for operations that need a concrete endpoint."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"{operation} is not supported on the auto endpoint; "
            "call it on the resolved endpoint instead"
        )
        self.operation = operation


class RequestCancelledError(AutoModelError):
    pass


class EndpointRequestError(AutoModelError):
    """Transport or protocol failure while talking to a remote endpoint."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

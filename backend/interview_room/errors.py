from __future__ import annotations


class InterviewError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = str(message or self.code)

    def to_payload(self) -> dict:
        return {"detail": self.message, "error": self.code}


class InvalidInput(InterviewError):
    status_code = 400
    code = "invalid_input"


class MediaPermissionDenied(InterviewError):
    status_code = 403
    code = "media_permission_denied"


class NotFound(InterviewError):
    status_code = 404
    code = "not_found"


class InvalidState(InterviewError):
    """Operation attempted outside its valid state (HTTP 409 Conflict)."""

    status_code = 409
    code = "invalid_state"


class UpstreamFailure(InterviewError):
    status_code = 502
    code = "upstream_failure"


class RecordingRetry(InterviewError):
    """Transient answer-upload failure; the turn is re-recorded once."""

    status_code = 503
    code = "recording_retry"


_BY_STATUS = {
    InvalidInput.status_code: InvalidInput,
    MediaPermissionDenied.status_code: MediaPermissionDenied,
    NotFound.status_code: NotFound,
    InvalidState.status_code: InvalidState,
}


def error_for_status(status_code: int, message: str) -> InterviewError:
    cls = _BY_STATUS.get(int(status_code))
    if cls is None:
        return UpstreamFailure(message)
    return cls(message)

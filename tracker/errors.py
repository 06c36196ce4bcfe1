"""Error kinds raised by the tracker, each mapped to an HTTP status."""


class TrackerError(Exception):
    """Base class for request-level tracker failures."""

    kind = "TrackerError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class NotFound(TrackerError):
    kind = "NotFound"
    status_code = 404


class DuplicateKey(TrackerError):
    kind = "DuplicateKey"
    status_code = 409


class AlreadyFinished(TrackerError):
    kind = "AlreadyFinished"
    status_code = 409


class ValidationError(TrackerError):
    kind = "ValidationError"
    status_code = 400

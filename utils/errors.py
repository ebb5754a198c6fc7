from typing import Any, Dict


class ProcurementError(ValueError):
    """Base of every business error raised by the DAO layer.

    Subclasses ValueError so callers that only know about ValueError keep
    working; the HTTP layer maps each class to a status code.
    """

    code = "procurement_error"
    http_status = 400

    def __init__(self, message: str, code: str | None = None, **details: Any):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_payload(self, request_id: str | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "request_id": request_id,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(ProcurementError):
    code = "validation_failed"
    http_status = 400


class Forbidden(ProcurementError):
    code = "forbidden"
    http_status = 403


class NotFound(ProcurementError):
    code = "not_found"
    http_status = 404


class PreconditionFailed(ProcurementError):
    code = "precondition_failed"
    http_status = 409


class IllegalTransition(PreconditionFailed):
    code = "illegal_transition"

    def __init__(self, entity: str, current, target):
        cur = getattr(current, "value", current)
        tgt = getattr(target, "value", target)
        super().__init__(
            f"{entity}: transition {cur} -> {tgt} is not allowed.",
            entity=entity,
            current=cur,
            target=tgt,
        )

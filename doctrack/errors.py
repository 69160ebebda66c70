from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class WorkflowError(HTTPException):
    """Base for failures the workflow engine reports to its callers.

    Each kind has a fixed status code and machine-readable ``code`` so the
    boundary can map it to a role-appropriate message.
    """

    status_code = 400
    code = "workflow_error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message, "details": details},
        )


class Unauthorized(WorkflowError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(WorkflowError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidState(WorkflowError):
    status_code = 409
    code = "invalid_state"
    default_message = "Action is not allowed in the document's current state"


class AlreadyApproved(InvalidState):
    code = "already_approved"
    default_message = "Document is already approved."


class AlreadyRejected(InvalidState):
    code = "already_rejected"
    default_message = "Document is already rejected."


class ValidationError(WorkflowError):
    status_code = 400
    code = "validation_error"
    default_message = "Validation error"


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )

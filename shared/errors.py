"""
Failure taxonomy shared by every service.

Services raise these instead of HTTPException so the same rules apply
whether an operation is reached through a router, the webhook receiver
or a test. `register_error_handlers()` turns them into JSON responses.
Upstream error text never reaches the client; only `public_message` does.
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal"
    public_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    @property
    def detail(self) -> str:
        return self.message

    @property
    def extra(self) -> dict:
        return {}


class Unauthorized(StorefrontError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "unauthorized"
    public_message = "Could not validate credentials"


class Forbidden(StorefrontError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "forbidden"
    public_message = "Operator privilege required"


class InvalidInput(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_input"
    public_message = "Invalid input"


class NotFound(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    public_message = "Not found"


class UpstreamFailure(StorefrontError):
    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "upstream_failure"
    public_message = "An upstream service failed. Please try again."

    def __init__(self, operation: str, upstream_code: str | None = None, message: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.upstream_code = upstream_code

    @property
    def detail(self) -> str:
        return self.public_message


class PersistenceFailure(StorefrontError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    kind = "persistence_failure"
    public_message = "The order store is unavailable. Please try again."

    def __init__(self, operation: str, message: str | None = None):
        super().__init__(message)
        self.operation = operation

    @property
    def detail(self) -> str:
        return self.public_message


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if isinstance(exc, (UpstreamFailure, PersistenceFailure)):
        logger.error(
            "request_failed",
            kind=exc.kind,
            operation=exc.operation,
            upstream_code=getattr(exc, "upstream_code", None),
            error=exc.message,
            path=request.url.path,
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.detail, **exc.extra},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies share the invalid_input shape with service-level rejections
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": InvalidInput.kind, "detail": InvalidInput.public_message, "errors": errors},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

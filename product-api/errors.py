import logging
from http import HTTPStatus
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def envelope(success: bool, **fields: Any) -> dict:
    """Enveloppe JSON commune {success, message?, data?, count?, errors?, error?}"""
    body = {"success": success}
    body.update({key: value for key, value in fields.items() if value is not None})
    return jsonable_encoder(body)


def respond(status_code: int, **fields: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(True, **fields))


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        message: str,
        errors: Optional[List[str]] = None,
        error: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors
        self.error = error


def validation_error(messages: List[str]) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "Validation error", errors=messages)


def malformed_id() -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "Invalid product ID format")


def not_found() -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "Product not found")


def backend_error(message: str, exc: Exception) -> ApiError:
    # Le message brut du driver est renvoyé tel quel au client
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, message, error=str(exc))


async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, message=exc.message, errors=exc.errors, error=exc.error),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err['msg']}" if location else err["msg"])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=envelope(False, message="Validation error", errors=messages),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Chemin connu mais méthode non routée: même réponse que n'importe quelle route inconnue
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=envelope(False, message="Route not found"),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, message=HTTPStatus(exc.status_code).phrase),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[UNHANDLED ERROR] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=envelope(False, message="Internal server error", error=str(exc)),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""RFC 7807 Problem Details error handling."""

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ProblemDetailError(Exception):
    """Raise for RFC 7807 problem+json responses."""

    def __init__(
        self,
        status: int,
        title: str,
        detail: str,
        error_type: str | None = None,
    ):
        self.status = status
        self.title = title
        self.detail = detail
        self.error_type = error_type or "about:blank"


def _problem(
    request: Request,
    status: int,
    title: str,
    detail: Any,
    error_type: str = "about:blank",
) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "type": error_type,
            "title": title,
            "status": status,
            "detail": detail,
            "instance": str(request.url.path),
        },
        media_type="application/problem+json",
    )


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    return _problem(request, exc.status, exc.title, exc.detail, exc.error_type)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    title = exc.detail if isinstance(exc.detail, str) else "Error"
    return _problem(request, exc.status_code, title, exc.detail)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed beacon bodies (bad JSON, wrong field types) end up here."""
    return _problem(request, 422, "Validation Error", jsonable_encoder(exc.errors()))

import uuid
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from servicedesk.domain.errors import DomainError

PROBLEM_BASE_URI = "https://servicedesk.local/problems"


def problem_type(slug: str) -> str:
    return f"{PROBLEM_BASE_URI}/{slug}"


PROBLEM_TYPE_VALIDATION = problem_type("validation-error")
PROBLEM_TYPE_DOMAIN = problem_type("domain-error")
PROBLEM_TYPE_SERVER = problem_type("server-error")


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def _default_type(status_code: int) -> str:
    if status_code >= 500:
        return PROBLEM_TYPE_SERVER
    if status_code in (HTTPStatus.BAD_REQUEST, HTTPStatus.UNPROCESSABLE_ENTITY):
        return PROBLEM_TYPE_VALIDATION
    return PROBLEM_TYPE_DOMAIN


def problem_details(
    request: Request,
    *,
    status: int,
    title: str | None,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
    type_: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an RFC 7807 body; every problem carries the request id."""
    request_id = _request_id(request)
    if not title:
        try:
            title = HTTPStatus(status).phrase
        except ValueError:
            title = "Error"
    response = JSONResponse(
        status_code=status,
        content={
            "type": type_ or _default_type(status),
            "title": title,
            "status": status,
            "detail": detail,
            "request_id": request_id,
            "errors": errors or [],
        },
        headers=headers,
        media_type="application/problem+json",
    )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def domain_problem(request: Request, exc: DomainError) -> JSONResponse:
    return problem_details(
        request,
        status=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
        type_=problem_type(exc.problem),
    )

from fastapi import HTTPException

from ..domain.errors import DomainError


def error_detail(kind: str, message: str) -> dict[str, str]:
    return {"kind": kind, "message": message}


def to_http_exception(exc: DomainError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return HTTPException(
        status_code=exc.status_code,
        detail=error_detail(exc.kind, exc.message),
        headers=headers,
    )

from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Raised by dependencies to short-circuit a request with a coded body."""

    def __init__(self, status_code: int, code: str, **context: Any) -> None:
        super().__init__(code)
        self.status_code = status_code
        self.code = code
        self.context = context


def error_body(code: str, **context: Any) -> Dict[str, Any]:
    """Return the error envelope: a machine readable ``code`` plus context."""
    return {"code": code, **context}


def error_response(status_code: int, code: str, **context: Any) -> JSONResponse:
    return JSONResponse(error_body(code, **context), status_code=status_code)


async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, **exc.context)

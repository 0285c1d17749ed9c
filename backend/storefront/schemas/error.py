from typing import Any

from pydantic import BaseModel


_STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "not_authenticated",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
}


class ErrorResponse(BaseModel):
    detail: Any
    code: str | None = None


def error_code_for_status(status_code: int) -> str | None:
    return _STATUS_CODES.get(status_code)

"""
Uniform JSON envelope for operator endpoints:
{"success": bool, "message": str, "data"?: ..., "errors"?: {...}}
"""
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


def _envelope(success: bool, message: str, status_code: int, **extra: Any) -> JSONResponse:
    body = {"success": success, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(content=body, status_code=status_code)


def success_response(message: str = "Success", data: Any = None, status_code: int = 200) -> JSONResponse:
    return _envelope(True, message, status_code, data=data)


def error_response(message: str = "Error", status_code: int = 400) -> JSONResponse:
    return _envelope(False, message, status_code)


def validation_error_response(
    message: str = "Validation error",
    errors: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """422 with per-field messages"""
    return _envelope(False, message, 422, errors=errors or None)


def unauthorized_response(message: str = "Unauthorized") -> JSONResponse:
    return _envelope(False, message, 401)

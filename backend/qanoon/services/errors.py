"""Errors raised by Qanoon services and the function response envelope.

Function endpoints answer ``{"success": true, ...}`` on success and
``{"error": message}`` on failure. Services raise ``ValueError`` for bad
input and a ``FunctionError`` subclass when a specific status is needed.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class FunctionError(Exception):
    """Error carrying the HTTP status it should be reported with."""
    
    status_code = 400
    
    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class UnauthorizedError(FunctionError):
    status_code = 401


class ForbiddenError(FunctionError):
    status_code = 403


class NotFoundError(FunctionError):
    status_code = 404


def function_response(payload: Optional[Dict[str, Any]] = None, status_code: int = 200) -> JSONResponse:
    body = {"success": True}
    if payload:
        body.update(payload)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def function_error(message: str, status_code: int = 400, **extra) -> JSONResponse:
    body = {"error": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def to_http_exception(error: Exception) -> HTTPException:
    """Map a service error onto the HTTPException the dashboard routes raise."""
    if isinstance(error, FunctionError):
        return HTTPException(status_code=error.status_code, detail=error.message)
    return HTTPException(status_code=400, detail=str(error))

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Optional, Generic, TypeVar, List, Union

T = TypeVar("T")


class BaseResponse(BaseModel, Generic[T]):
    success: bool
    message: str
    data: Optional[T] = None
    errors: Optional[Union[str, List[str], dict]] = None


class ErrorBody(BaseModel):
    success: bool = False
    message: str
    errors: Optional[Union[str, List[str], dict]] = None


def api_response(success: bool, message: str, data: Any = None, errors: Any = None):
    return {"success": success, "message": message, "data": data, "errors": errors}


def error_response(exc: HTTPException) -> JSONResponse:
    """Render a raised HTTPException as the standard failure envelope."""
    body = api_response(False, str(exc.detail), None, exc.detail)
    code = getattr(exc, "error_code", None)
    if code:
        body["error"] = {"code": code, "user_message": getattr(exc, "user_message", str(exc.detail))}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)

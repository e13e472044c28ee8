import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

UNAUTHORIZED = 'UNAUTHORIZED'
FORBIDDEN = 'FORBIDDEN'
NOT_FOUND = 'NOT_FOUND'
VALIDATION_ERROR = 'VALIDATION_ERROR'
SERVER_ERROR = 'SERVER_ERROR'

_CODES_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: FORBIDDEN,
    status.HTTP_404_NOT_FOUND: NOT_FOUND,
}


class ApiError(HTTPException):
    def __init__(self, status_code: int, message: str, code: str, details: Any = None):
        detail = {'message': message, 'code': code}
        if details is not None:
            detail['details'] = details
        super().__init__(status_code=status_code, detail=detail)


def unauthorized(message: str = 'Authentication required') -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, message, UNAUTHORIZED)


def forbidden(message: str) -> ApiError:
    return ApiError(status.HTTP_403_FORBIDDEN, message, FORBIDDEN)


def not_found(message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, message, NOT_FOUND)


def database_unavailable() -> ApiError:
    return ApiError(status.HTTP_503_SERVICE_UNAVAILABLE, 'Database unavailable. Please try again later.', SERVER_ERROR)


def success_response(data: Any, message: str | None = None) -> dict:
    body = {'success': True, 'data': jsonable_encoder(data)}
    if message:
        body['message'] = message
    return body


def error_body(message: str, code: str | None = None, details: Any = None) -> dict:
    error = {'message': message, 'code': code}
    if details is not None:
        error['details'] = details
    return {'success': False, 'error': error}


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict) and 'message' in exc.detail:
        body = {'success': False, 'error': exc.detail}
    else:
        body = error_body(str(exc.detail), _CODES_BY_STATUS.get(exc.status_code, SERVER_ERROR))
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=exc.headers)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(error_body('Invalid request data', VALIDATION_ERROR, exc.errors())),
    )


async def _database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception('Database error while handling %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_body('Database unavailable. Please try again later.', SERVER_ERROR),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, _database_exception_handler)

# finboard/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class FinboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(FinboardError):
    status_code = 400


class NotFound(FinboardError):
    status_code = 404


class Unauthorized(FinboardError):
    status_code = 401


class InvalidCredentials(FinboardError):
    status_code = 401


class IncorrectPassword(InvalidCredentials):
    # raised for an already authenticated caller; not a session failure
    status_code = 400


class Forbidden(FinboardError):
    status_code = 403


class BusinessRuleViolation(FinboardError):
    status_code = 400


class DuplicateEmail(BusinessRuleViolation):
    pass


class AccountTypeConflict(BusinessRuleViolation):
    pass


class InvalidAccountType(BusinessRuleViolation):
    pass


class CrossUserTransfer(BusinessRuleViolation):
    pass


class InsufficientFunds(BusinessRuleViolation):
    pass


class AccountHasTransactions(BusinessRuleViolation):
    pass


class UserHasAccounts(BusinessRuleViolation):
    pass


class InvalidTransition(BusinessRuleViolation):
    pass


class ImmutableTransaction(BusinessRuleViolation):
    pass


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _format_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FinboardError)
    async def finboard_error_handler(request: Request, exc: FinboardError):
        if isinstance(exc, BusinessRuleViolation):
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error(exc.status_code, exc.message, headers)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, _format_validation_error(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

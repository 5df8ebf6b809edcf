"""Global error handlers returning RFC 7807 problem details."""
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from token_vault.exceptions import AuthenticationFailure, ConfigurationError, NotFoundError

logger = structlog.get_logger()

RECONNECT_MESSAGE = "Please reconnect your Gmail account."


class AppException(Exception):
    def __init__(self, status_code: int, detail: str, error_type: str = "about:blank"):
        self.status_code = status_code
        self.detail = detail
        self.error_type = error_type


def _problem(status: int, title: str, detail: str, error_type: str = "about:blank") -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "type": error_type,
            "title": title,
            "status": status,
            "detail": detail,
        },
    )


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(_request: Request, exc: AppException) -> JSONResponse:
        return _problem(exc.status_code, "Error", exc.detail, exc.error_type)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.warning("vault_configuration_error", path=request.url.path, error=str(exc))
        return _problem(400, "Encryption Not Configured", str(exc), "vault/configuration-error")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("vault_credentials_missing", path=request.url.path)
        return _problem(404, "Not Found", RECONNECT_MESSAGE, "vault/not-found")

    @app.exception_handler(AuthenticationFailure)
    async def authentication_failure_handler(request: Request, exc: AuthenticationFailure) -> JSONResponse:
        logger.error("vault_authentication_failure", path=request.url.path)
        return _problem(409, "Credentials Unusable", RECONNECT_MESSAGE, "vault/authentication-failure")

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _problem(400, "Bad Request", str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return _problem(500, "Internal Server Error", "An unexpected error occurred.")

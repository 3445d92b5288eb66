from typing import Optional

from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
import traceback
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class BusinessLogicError(Exception):
    """Caller-supplied input is invalid. Reported as a 400, never as a system fault."""

    def __init__(self, message: str, error_code: str = "BLOC_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class AuthenticationError(Exception):
    """Custom exception for authentication errors."""

    def __init__(
        self, message: str = "Authentication failed", error_code: str = "AUTH_ERROR"
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class AuthorizationError(Exception):
    """Custom exception for authorization errors."""

    def __init__(self, message: str = "Access denied", error_code: str = "AUTHZ_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class NotFoundError(Exception):
    """Custom exception for resource not found errors."""

    def __init__(
        self, message: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ConfigurationError(Exception):
    """Required provider credentials or settings are missing."""

    def __init__(self, message: str, error_code: str = "CONFIGURATION_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ProviderError(Exception):
    """The push provider could not be reached or answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        endpoint: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        error_code: str = "PROVIDER_ERROR",
    ):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        self.error_code = error_code


class SyncAbortedError(ProviderError):
    """Pagination against the provider failed; no partial counts are authoritative."""

    def __init__(self, page: int, records_fetched: int, cause: ProviderError):
        super().__init__(
            message=f"Subscriber sync aborted on page {page}: {cause.message}",
            endpoint=cause.endpoint,
            status_code=cause.status_code,
            body=cause.body,
            error_code="SYNC_ABORTED",
        )
        self.page = page
        self.records_fetched = records_fetched


class SyncInProgressError(Exception):
    """Another subscriber sync is already running in this process."""

    def __init__(
        self,
        message: str = "A subscriber sync is already running",
        error_code: str = "SYNC_IN_PROGRESS",
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class NoRecipientsError(Exception):
    """The selected groups resolve to no deliverable subscribers."""

    def __init__(
        self,
        message: str = "Selected groups have no subscribers",
        error_code: str = "NO_RECIPIENTS",
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class DispatchInconsistencyError(Exception):
    """The provider accepted a notification but its log row could not be written."""

    def __init__(
        self,
        provider_dispatch_id: Optional[str],
        message: str = "Notification was sent but could not be recorded",
        error_code: str = "DISPATCH_NOT_RECORDED",
    ):
        super().__init__(message)
        self.message = message
        self.provider_dispatch_id = provider_dispatch_id
        self.error_code = error_code


def _format_validation_errors(exc) -> list:
    formatted_errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        formatted_errors.append(
            {
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
                "input": error.get("input"),
            }
        )
    return formatted_errors


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    """
    RequestValidationError is a sub-class of Pydantic's ValidationError.
    """

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Request Validation Error: {exc.errors()}")

        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=_format_validation_errors(exc),
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    """
    If you use a Pydantic model in response_model, and your data has an error, you will see the error in your log.
    """

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Pydantic Validation Error: {exc.errors()}")

        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        # Don't expose internal database errors to users
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(BusinessLogicError)
    async def business_logic_exception_handler(
        request: Request, exc: BusinessLogicError
    ):
        logger.warning(f"Business Logic Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "BUSINESS_ERROR"},
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_exception_handler(
        request: Request, exc: AuthenticationError
    ):
        logger.warning(f"Authentication Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code="UNAUTHORIZED",
            status_code=status.HTTP_401_UNAUTHORIZED,
            meta={"error_type": "AUTHENTICATION_ERROR"},
        )

    @app.exception_handler(AuthorizationError)
    async def authorization_exception_handler(
        request: Request, exc: AuthorizationError
    ):
        logger.warning(f"Authorization Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code="FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
            meta={"error_type": "AUTHORIZATION_ERROR"},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError):
        logger.warning(f"Not Found Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            meta={"error_type": "NOT_FOUND_ERROR"},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(
        request: Request, exc: ConfigurationError
    ):
        logger.error(f"Configuration Error: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "CONFIGURATION_ERROR"},
        )

    @app.exception_handler(SyncAbortedError)
    async def sync_aborted_exception_handler(request: Request, exc: SyncAbortedError):
        logger.error(
            f"Sync Aborted: {exc.message}",
            page=exc.page,
            endpoint=exc.endpoint,
            provider_status=exc.status_code,
        )

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            meta={
                "error_type": "PROVIDER_ERROR",
                "failed_page": exc.page,
                "records_fetched": exc.records_fetched,
                "provider_status": exc.status_code,
            },
        )

    @app.exception_handler(ProviderError)
    async def provider_exception_handler(request: Request, exc: ProviderError):
        logger.error(
            f"Provider Error: {exc.message}",
            endpoint=exc.endpoint,
            provider_status=exc.status_code,
            body=exc.body,
        )

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            meta={
                "error_type": "PROVIDER_ERROR",
                "endpoint": exc.endpoint,
                "provider_status": exc.status_code,
            },
        )

    @app.exception_handler(SyncInProgressError)
    async def sync_in_progress_exception_handler(
        request: Request, exc: SyncInProgressError
    ):
        logger.warning(f"Sync In Progress: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_409_CONFLICT,
            meta={"error_type": "SYNC_IN_PROGRESS"},
        )

    @app.exception_handler(NoRecipientsError)
    async def no_recipients_exception_handler(request: Request, exc: NoRecipientsError):
        logger.info(f"No Recipients: {exc.message}")

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            meta={"error_type": "NO_RECIPIENTS"},
        )

    @app.exception_handler(DispatchInconsistencyError)
    async def dispatch_inconsistency_exception_handler(
        request: Request, exc: DispatchInconsistencyError
    ):
        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={
                "error_type": "DISPATCH_INCONSISTENCY",
                "provider_dispatch_id": exc.provider_dispatch_id,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"Value Error: {str(exc)}")

        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "VALUE_ERROR"},
        )

    @app.exception_handler(KeyError)
    async def key_error_handler(request: Request, exc: KeyError):
        logger.error(f"Key Error: {str(exc)}")

        return ResponseBuilder.error(
            request=request,
            message=f"Required key not found: {str(exc)}",
            error_code="KEY_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "KEY_ERROR", "missing_key": str(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions"""
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )

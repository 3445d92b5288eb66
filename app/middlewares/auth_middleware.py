from typing import Callable, Optional

from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config.settings import settings
from app.utils.auth import AuthUtils
from app.utils.errors import AuthenticationError, AuthorizationError
from app.utils.responses import ResponseBuilder
from app.utils.logging import get_logger

logger = get_logger()


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: str,
        email: str,
        role: str,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.is_authenticated = is_authenticated


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for JWT bearer token validation"""

    # Paths that don't require authentication
    EXCLUDED_PATHS = {
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        f"{settings.API_PREFIX}/auth/login",
        f"{settings.API_PREFIX}/health",
        f"{settings.API_PREFIX}/subscribers/register",
        f"{settings.API_PREFIX}/subscribers/status",
        f"{settings.API_PREFIX}/subscribers/unsubscribe",
    }

    def __init__(self, app, excluded_paths: Optional[set] = None):
        super().__init__(app)
        self.excluded_paths = set(self.EXCLUDED_PATHS)
        if excluded_paths:
            self.excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through authentication middleware"""

        # Skip authentication for excluded paths
        if self._is_excluded_path(request.url.path):
            return await call_next(request)

        # Skip authentication for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_result = self._authenticate_request(request)
        if not auth_result:
            return ResponseBuilder.error(
                request=request,
                message="Invalid or expired authentication",
                error_code="UNAUTHORIZED",
                status_code=401,
            )

        request.state.auth = auth_result
        return await call_next(request)

    def _is_excluded_path(self, path: str) -> bool:
        """Check if path is excluded from authentication"""
        return any(path.startswith(excluded) for excluded in self.excluded_paths)

    @staticmethod
    def _authenticate_request(request: Request) -> Optional[AuthState]:
        """Validate the bearer token and build the auth state"""
        token = AuthUtils.extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return None

        payload = AuthUtils.verify_access_token(token)
        if not payload:
            logger.debug("Rejected invalid or expired access token")
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        role = payload.get("role")
        if not all([user_id, email, role]):
            return None

        return AuthState(user_id=str(user_id), email=str(email), role=str(role))


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated", "NOT_AUTHENTICATED")

    return auth_state


# Dependency for requiring specific roles
def require_roles(*allowed_roles: str):
    """Create dependency that requires one of the given roles"""

    def check_role(
        current_user: AuthState = Depends(get_current_user),
    ) -> AuthState:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        return current_user

    return check_role


# Pre-defined dependencies for the two roles
require_admin = require_roles("ADMIN")
require_sender = require_roles("ADMIN", "SENDER")

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import uuid
import jwt
import bcrypt

from app.config.settings import settings


class AuthUtils:
    """Authentication utilities for JWT token management and password hashing"""

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a plain-text password with bcrypt"""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Check a plain-text password against a stored bcrypt hash"""
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            # Malformed hash in storage
            return False

    @staticmethod
    def generate_access_token(user_id: str, email: str, role: str) -> str:
        """Generate JWT access token with user information"""
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": str(user_id),  # Subject (user ID)
            "email": email,
            "role": role,
            "iat": now,  # Issued at
            "exp": expire,  # Expiration
            "jti": str(uuid.uuid4()),  # JWT ID for uniqueness
        }

        return jwt.encode(
            payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
        )

    @staticmethod
    def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode access token"""
        try:
            return jwt.decode(
                token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @staticmethod
    def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
        """Extract the token from an ``Authorization: Bearer <token>`` header"""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

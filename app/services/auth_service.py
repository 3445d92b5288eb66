from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import User
from app.utils.auth import AuthUtils
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import AuthenticationError


class AuthService:
    """Authentication service for handling login and user lookup"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Authenticate user by email and bcrypt password hash"""
        stmt = select(User).where(
            User.email == email.strip().lower(), User.is_active == True
        )
        user = self.db.execute(stmt).scalar_one_or_none()

        if not user or not AuthUtils.verify_password(password, user.password):
            return None

        return user

    async def login_user(self, email: str, password: str) -> Tuple[str, User]:
        """Login user and issue an access token"""
        user = await self.authenticate_user(email, password)
        if not user:
            raise AuthenticationError("Invalid email or password", "INVALID_CREDENTIALS")

        access_token = AuthUtils.generate_access_token(
            user_id=str(user.id), email=user.email, role=user.role.value
        )

        user.last_login = naive_utc_now()
        self.db.commit()

        return access_token, user

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get active user by ID"""
        stmt = select(User).where(User.id == user_id, User.is_active == True)
        return self.db.execute(stmt).scalar_one_or_none()

    @staticmethod
    def token_lifetime_seconds() -> int:
        return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

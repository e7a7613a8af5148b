"""
User Service - accounts, login and the password reset flow
"""

from datetime import datetime, timedelta
from typing import Optional

import aiosmtplib
from sqlalchemy import select, update, or_, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cidco_records.core.config import settings
from cidco_records.core.exceptions import (
    AuthenticationError,
    DatabaseWriteError,
    InvalidResetTokenError,
    ResourceNotFoundError,
    ValidationError,
)
from cidco_records.core.logging_config import logger
from cidco_records.core.security import (
    get_password_hash,
    is_bcrypt_hash,
    verify_password,
    generate_reset_token,
)
from cidco_records.models.user import User, UserRole
from cidco_records.schemas.auth import UserCreate
from cidco_records.services.email_service import EmailService


RESET_REQUESTED = "If an account with that email or username exists, a reset link has been sent."
PASSWORD_RESET_DONE = "Your password has been successfully updated."
USER_CREATED = "User created successfully"

_SYNC_SEQUENCE_SQL = text(
    "SELECT setval(pg_get_serial_sequence('users_react', 'id'), "
    "COALESCE((SELECT MAX(id) FROM users_react), 0) + 1, false)"
)


def is_primary_key_violation(error: IntegrityError) -> bool:
    message = str(error.orig if error.orig is not None else error).lower()
    return "pkey" in message or "primary key" in message or "users_react.id" in message


async def sync_user_sequence(db: AsyncSession) -> bool:
    """
    Point the users_react id sequence past the current max(id).

    Rows imported with explicit ids leave the sequence behind, so the next
    insert collides. Safe to run any number of times; PostgreSQL only.
    """
    if db.get_bind().dialect.name != "postgresql":
        return False
    await db.execute(_SYNC_SEQUENCE_SQL)
    await db.commit()
    logger.info("[Users] users_react id sequence synchronised")
    return True


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def authenticate(self, username: str, password: str) -> User:
        """
        Check credentials. Unknown user and wrong password fail the same way.
        Accounts still on a legacy password format are moved to bcrypt here.
        """
        user = await self.get_by_username(username) if username else None
        if user is None or not verify_password(password, user.password_hash):
            logger.log_auth_event("login", False, username=username, reason="invalid credentials")
            raise AuthenticationError()

        if not is_bcrypt_hash(user.password_hash):
            user.password_hash = get_password_hash(password)
            await self.db.commit()
            logger.info(f"[Users] Upgraded legacy password hash for user {user.id}")

        logger.log_auth_event("login", True, username=user.username, account_id=user.id)
        return user

    async def add_user(self, data: UserCreate) -> User:
        if await self.get_by_username(data.username):
            raise ValidationError("Username already exists", field="username")

        role = (data.role or UserRole.USER).value
        password_hash = get_password_hash(data.password)

        for attempt in range(2):
            user = User(
                username=data.username,
                email=data.email,
                name=data.name,
                role=role,
                password_hash=password_hash,
            )
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                if attempt == 0 and is_primary_key_violation(e):
                    logger.warning("[Users] Primary key collision on insert, resyncing id sequence")
                    await sync_user_sequence(self.db)
                    continue
                logger.log_error_with_context(e, context="add user", username=data.username)
                raise DatabaseWriteError("Could not create user", cause=e)

            await self.db.refresh(user)
            logger.info(f"[Users] Created user {user.username} ({user.role})")
            return user

    async def update_password(self, user_id: int, new_password: str) -> None:
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=get_password_hash(new_password))
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ResourceNotFoundError("User", str(user_id))
        await self.db.commit()
        logger.log_auth_event("password_update", True, account_id=user_id)

    async def request_password_reset(self, identifier: str, email_service: EmailService) -> str:
        """
        Issue a reset token when the identifier matches a username or email.
        The answer is the same whether or not anything matched.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            return RESET_REQUESTED

        result = await self.db.execute(
            select(User).where(or_(User.username == identifier, User.email == identifier))
        )
        user = result.scalars().first()
        if user is None:
            logger.log_auth_event("password_reset_request", False, username=identifier, reason="no match")
            return RESET_REQUESTED

        token = generate_reset_token()
        user.reset_token = token
        user.reset_expires = datetime.utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
        await self.db.commit()

        reset_link = email_service.build_reset_link(token)
        if user.email:
            try:
                sent = await email_service.send_password_reset_email(
                    user.email, user.name or user.username, reset_link
                )
            except (aiosmtplib.SMTPException, OSError) as e:
                logger.log_error_with_context(e, "password reset email", account_id=user.id)
                sent = False
            if not sent:
                logger.warning(f"[Users] Reset email for user {user.id} was not delivered")
        else:
            logger.warning(f"[Users] User {user.id} has no email address; reset link not sent")

        logger.log_auth_event("password_reset_request", True, username=user.username)
        return RESET_REQUESTED

    async def reset_password(self, token: str, new_password: str) -> str:
        if not token:
            raise InvalidResetTokenError()

        result = await self.db.execute(
            select(User).where(
                User.reset_token == token,
                User.reset_expires > datetime.utcnow(),
            )
        )
        user = result.scalars().first()
        if user is None:
            logger.log_auth_event("password_reset", False, reason="invalid or expired token")
            raise InvalidResetTokenError()

        # Matching on the token again makes a concurrent second use a no-op
        result = await self.db.execute(
            update(User)
            .where(User.id == user.id, User.reset_token == token)
            .values(
                password_hash=get_password_hash(new_password),
                reset_token=None,
                reset_expires=None,
            )
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise InvalidResetTokenError()

        await self.db.commit()
        logger.log_auth_event("password_reset", True, username=user.username)
        return PASSWORD_RESET_DONE

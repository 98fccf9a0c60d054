"""
Credential and profile persistence.

This module provides:
- The store interfaces consumed by the identity service
- Password and user validation applied on user creation
- SQLAlchemy implementations sharing one request-scoped session
"""
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from marketplace.identity.models import User, Role, TaskerProfile, normalize

logger = logging.getLogger("marketplace.identity")

PASSWORD_MIN_LENGTH = 6
# bcrypt only accepts this many bytes of input
PASSWORD_MAX_BYTES = 72
ALLOWED_USERNAME_CHARACTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-._@+"
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


@dataclass(frozen=True)
class IdentityErrorDescription:
    """A single reason the store rejected an operation."""
    code: str
    description: str


@dataclass
class IdentityResult:
    """Outcome of a store mutation."""
    succeeded: bool
    errors: List[IdentityErrorDescription] = field(default_factory=list)

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: IdentityErrorDescription) -> "IdentityResult":
        return cls(succeeded=False, errors=list(errors))


def validate_password(password: str) -> List[IdentityErrorDescription]:
    """Password policy checks, in reporting order."""
    password = password or ""
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(IdentityErrorDescription(
            "PasswordTooShort", f"Passwords must be at least {PASSWORD_MIN_LENGTH} characters."))
    if all(c.isascii() and c.isalnum() for c in password):
        errors.append(IdentityErrorDescription(
            "PasswordRequiresNonAlphanumeric", "Passwords must have at least one non alphanumeric character."))
    if not any("0" <= c <= "9" for c in password):
        errors.append(IdentityErrorDescription(
            "PasswordRequiresDigit", "Passwords must have at least one digit ('0'-'9')."))
    if not any("a" <= c <= "z" for c in password):
        errors.append(IdentityErrorDescription(
            "PasswordRequiresLower", "Passwords must have at least one lowercase ('a'-'z')."))
    if not any("A" <= c <= "Z" for c in password):
        errors.append(IdentityErrorDescription(
            "PasswordRequiresUpper", "Passwords must have at least one uppercase ('A'-'Z')."))
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.append(IdentityErrorDescription(
            "PasswordTooLong", f"Passwords must be at most {PASSWORD_MAX_BYTES} bytes."))
    return errors


def invalid_username(username: Optional[str]) -> Optional[IdentityErrorDescription]:
    if not username or any(c not in ALLOWED_USERNAME_CHARACTERS for c in username):
        return IdentityErrorDescription(
            "InvalidUserName", f"Username '{username or ''}' is invalid, can only contain letters or digits.")
    return None


def invalid_email(email: Optional[str]) -> Optional[IdentityErrorDescription]:
    if not email or not EMAIL_PATTERN.match(email):
        return IdentityErrorDescription("InvalidEmail", f"Email '{email or ''}' is invalid.")
    return None


def duplicate_username(username: str) -> IdentityErrorDescription:
    return IdentityErrorDescription("DuplicateUserName", f"Username '{username}' is already taken.")


def duplicate_email(email: str) -> IdentityErrorDescription:
    return IdentityErrorDescription("DuplicateEmail", f"Email '{email}' is already taken.")


class CredentialStore(Protocol):
    """Durable user records, uniqueness, password checks and role membership."""

    async def find_by_email(self, email: str) -> Optional[User]: ...

    async def find_by_username(self, username: str) -> Optional[User]: ...

    async def create(self, user: User, password: str) -> IdentityResult: ...

    async def check_password(self, user: User, password: str) -> bool: ...

    async def add_to_role(self, user: User, role_name: str) -> None: ...

    async def commit(self) -> None: ...


class ProfileStore(Protocol):
    """Durable tasker profiles with an explicit save boundary."""

    def add(self, profile: TaskerProfile) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlCredentialStore:
    """
    Credential store backed by an async SQLAlchemy session.

    Mutations flush but do not commit; the caller decides the commit point so
    that user, role assignment and profile can land in one transaction.
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        result = await self.db.execute(
            select(User).where(User.normalized_email == normalize(email))
        )
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Optional[User]:
        if not username:
            return None
        result = await self.db.execute(
            select(User).where(User.normalized_username == normalize(username))
        )
        return result.scalar_one_or_none()

    async def validate_user(self, user: User) -> List[IdentityErrorDescription]:
        errors = []
        bad_name = invalid_username(user.username)
        if bad_name:
            errors.append(bad_name)
        else:
            owner = await self.find_by_username(user.username)
            if owner is not None and owner.id != user.id:
                errors.append(duplicate_username(user.username))
        bad_email = invalid_email(user.email)
        if bad_email:
            errors.append(bad_email)
        else:
            owner = await self.find_by_email(user.email)
            if owner is not None and owner.id != user.id:
                errors.append(duplicate_email(user.email))
        return errors

    async def create(self, user: User, password: str) -> IdentityResult:
        """
        Validate, hash and insert a new user.

        Returns a failed result instead of raising when validation fails or
        when a concurrent insert wins the unique constraint.
        """
        password_errors = validate_password(password)
        if password_errors:
            return IdentityResult.failed(*password_errors)

        user_errors = await self.validate_user(user)
        if user_errors:
            return IdentityResult.failed(*user_errors)

        user.hashed_password = User.get_password_hash(password)
        user.normalized_username = normalize(user.username)
        user.normalized_email = normalize(user.email)

        try:
            async with self.db.begin_nested():
                self.db.add(user)
                await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Concurrent registration lost unique constraint for {user.username}: {e.orig}")
            errors = []
            if await self.find_by_username(user.username) is not None:
                errors.append(duplicate_username(user.username))
            if await self.find_by_email(user.email) is not None:
                errors.append(duplicate_email(user.email))
            if not errors:
                raise
            return IdentityResult.failed(*errors)

        return IdentityResult.success()

    async def check_password(self, user: User, password: str) -> bool:
        return user.verify_password(password)

    async def add_to_role(self, user: User, role_name: str) -> None:
        result = await self.db.execute(
            select(Role).where(Role.normalized_name == normalize(role_name))
        )
        role = result.scalar_one_or_none()

        # If the role doesn't exist, create it
        if role is None:
            role = Role(name=role_name, normalized_name=normalize(role_name))
            self.db.add(role)
            await self.db.flush()

        if not user.has_role(role_name):
            user.roles.append(role)
            await self.db.flush()

    async def commit(self) -> None:
        await self.db.commit()


class SqlProfileStore:
    """Tasker profile store sharing the credential store's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def add(self, profile: TaskerProfile) -> None:
        self.db.add(profile)

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

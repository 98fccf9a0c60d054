"""
Identity service.

This module provides functionality for:
- Member registration
- Tasker registration with a service-provider profile
- Login and token issuance
"""
import logging
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from marketplace.config import Configuration, JWT_SECRET, JWT_VALID_ISSUER, JWT_VALID_AUDIENCE
from marketplace.identity.errors import (
    AuthenticationFailedError, DuplicateUserError, RegistrationFailedError
)
from marketplace.identity.jwt import TokenSigner, ALGORITHM
from marketplace.identity.models import User, TaskerProfile, MEMBER_TASKER_ROLE, new_stamp
from marketplace.identity.stores import CredentialStore, ProfileStore

logger = logging.getLogger("marketplace.identity")

TOKEN_LIFETIME = timedelta(hours=3)
TASKER_REGISTERED_MESSAGE = "Tasker registered successfully!"


def format_errors(errors: Iterable[Any]) -> str:
    """Join error descriptions with ", " in the order given."""
    return ", ".join(getattr(error, "description", error) for error in errors)


class IdentityService:
    """
    Registration and login for members and taskers.

    Holds only its collaborators; every call is independent.
    """
    def __init__(
        self,
        credentials: CredentialStore,
        profiles: ProfileStore,
        config: Configuration,
        signer: TokenSigner,
    ):
        self.credentials = credentials
        self.profiles = profiles
        self.config = config
        self.signer = signer

    async def register(self, full_name: str, email: str, username: str, password: str) -> str:
        """
        Register a member and log them in.

        Returns:
            Signed token for the new user

        Raises:
            DuplicateUserError: If the email or username is already in use
            RegistrationFailedError: If the credential store rejects the user
        """
        user_by_email = await self.credentials.find_by_email(email)
        user_by_username = await self.credentials.find_by_username(username)
        if user_by_email is not None or user_by_username is not None:
            raise DuplicateUserError(email, username)

        user = User(
            full_name=full_name,
            email=email,
            username=username,
            security_stamp=new_stamp(),
            is_tasker=False,
        )

        result = await self.credentials.create(user, password)
        if not result.succeeded:
            descriptions = [e.description for e in result.errors]
            raise RegistrationFailedError(
                f"Unable to register user {username} errors: {format_errors(descriptions)}",
                descriptions,
            )
        await self.credentials.commit()

        logger.info(f"Registered member {username} ({user.id})")
        return await self.login(email, password)

    async def register_tasker(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        skills: List[str],
        experience_level: Optional[str],
        hourly_rate: Decimal,
        selected_category: Optional[str],
        category_id: Optional[int],
    ) -> str:
        """
        Register a tasker with the MemberTasker role and a profile.

        User, role assignment and profile are committed together. No token
        is issued.

        Raises:
            RegistrationFailedError: If the credential store rejects the user
        """
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            security_stamp=new_stamp(),
            is_tasker=True,
        )

        result = await self.credentials.create(user, password)
        if not result.succeeded:
            descriptions = [e.description for e in result.errors]
            raise RegistrationFailedError(format_errors(descriptions), descriptions)

        try:
            await self.credentials.add_to_role(user, MEMBER_TASKER_ROLE)
            self.profiles.add(TaskerProfile(
                user_id=user.id,
                skills=list(skills),
                experience_level=experience_level,
                hourly_rate=hourly_rate,
                selected_category=selected_category,
                category_id=category_id,
            ))
            await self.profiles.commit()
        except Exception:
            await self.profiles.rollback()
            raise

        logger.info(f"Registered tasker {username} ({user.id})")
        return TASKER_REGISTERED_MESSAGE

    async def login(self, username_or_email: str, password: str) -> str:
        """
        Authenticate by username or email and issue a token.

        Raises:
            AuthenticationFailedError: If the user is unknown or the password is wrong
        """
        user = await self.credentials.find_by_username(username_or_email)
        if user is None:
            user = await self.credentials.find_by_email(username_or_email)

        if user is None or not await self.credentials.check_password(user, password):
            logger.warning(f"Failed login for {username_or_email}")
            raise AuthenticationFailedError(username_or_email)

        token = self.get_token(self.build_claims(user))
        logger.info(f"Login: {user.username} ({user.id})")
        return token

    @staticmethod
    def build_claims(user: User) -> Dict[str, Any]:
        return {
            "name": user.username,
            "sub": user.id,
            "email": user.email,
            "jti": str(uuid.uuid4()),
        }

    def get_token(self, claims: Dict[str, Any]) -> str:
        issued_at = self.signer.clock()
        return self.signer.sign(
            claims,
            issuer=self.config.get(JWT_VALID_ISSUER),
            audience=self.config.get(JWT_VALID_AUDIENCE),
            secret_key=self.config[JWT_SECRET],
            expires=issued_at + TOKEN_LIFETIME,
            algorithm=ALGORITHM,
            issued_at=issued_at,
        )

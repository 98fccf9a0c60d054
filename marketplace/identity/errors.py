"""
Error kinds raised by the identity service.
"""
from typing import Iterable, List


class IdentityServiceError(Exception):
    """Base class for identity service failures."""


class DuplicateUserError(IdentityServiceError):
    """An existing user already owns the submitted email or username."""

    def __init__(self, email: str, username: str):
        self.email = email
        self.username = username
        super().__init__(f"User with email {email} or username {username} already exists.")


class RegistrationFailedError(IdentityServiceError):
    """The credential store rejected user creation."""

    def __init__(self, message: str, errors: Iterable[str] = ()):
        self.errors: List[str] = list(errors)
        super().__init__(message)


class AuthenticationFailedError(IdentityServiceError):
    """
    Login failed. The message names only the submitted identifier and is the
    same whether the user is unknown or the password is wrong.
    """

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Unable to authenticate user {identifier}")


class ConfigurationError(IdentityServiceError):
    """A required configuration key is missing."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Missing configuration value for '{key}'")

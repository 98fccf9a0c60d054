"""
JWT token handling for authentication.

This module provides functionality for:
- Signing claim sets into compact JWT strings
- Validating JWT tokens (signature, issuer, audience, expiry)
- Resolving the current user from a bearer token
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Callable
import jwt
from jwt.exceptions import PyJWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from marketplace.config import Configuration, get_configuration, JWT_SECRET, JWT_VALID_ISSUER, JWT_VALID_AUDIENCE

ALGORITHM = "HS256"

# Authentication scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class TokenData(BaseModel):
    """Token payload model."""
    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    jti: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    iat: Optional[int] = None
    exp: Optional[int] = None  # Expiration time


class TokenSigner:
    """
    Signs and validates HMAC tokens.

    Args:
        clock: Callable returning the current aware datetime, used for
            issuance time and for expiry checks on validation.
    """
    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def sign(
        self,
        claims: Dict[str, Any],
        issuer: Optional[str],
        audience: Optional[str],
        secret_key: str,
        expires: datetime,
        algorithm: str = ALGORITHM,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """
        Create a signed token from a claim set.

        Args:
            claims: Claim name to value mapping
            issuer: Value of the ``iss`` claim
            audience: Value of the ``aud`` claim
            secret_key: Symmetric signing key
            expires: Absolute expiry time
            algorithm: JWS algorithm, HMAC-SHA256 by default
            issued_at: Issuance time, defaults to the signer's clock

        Returns:
            Compact JWT string
        """
        to_encode = dict(claims)
        issued = _timestamp(issued_at or self.clock())
        to_encode.update({
            "iat": issued,
            "nbf": issued,
            "exp": _timestamp(expires),
        })
        if issuer is not None:
            to_encode["iss"] = issuer
        if audience is not None:
            to_encode["aud"] = audience
        return jwt.encode(to_encode, secret_key, algorithm=algorithm)

    def verify(
        self,
        token: str,
        secret_key: str,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        algorithm: str = ALGORITHM,
    ) -> Optional[TokenData]:
        """
        Verify a JWT token and return its data.

        Expiry is checked against the signer's clock with no leeway.

        Returns:
            TokenData if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                secret_key,
                algorithms=[algorithm],
                audience=audience,
                issuer=issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_aud": audience is not None,
                    "verify_iss": issuer is not None,
                },
            )
        except PyJWTError:
            return None

        now = _timestamp(self.clock())
        exp = payload.get("exp")
        if not isinstance(exp, int) or exp <= now:
            return None
        nbf = payload.get("nbf")
        if isinstance(nbf, int) and nbf > now:
            return None

        return TokenData(
            user_id=payload.get("sub"),
            username=payload.get("name"),
            email=payload.get("email"),
            jti=payload.get("jti"),
            issuer=payload.get("iss"),
            audience=payload.get("aud"),
            iat=payload.get("iat"),
            exp=exp,
        )


def get_token_signer() -> TokenSigner:
    """Dependency returning the token signer."""
    return TokenSigner()


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    config: Configuration = Depends(get_configuration),
    signer: TokenSigner = Depends(get_token_signer),
) -> TokenData:
    """
    FastAPI dependency to get the current authenticated user from token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = signer.verify(
        token,
        config[JWT_SECRET],
        issuer=config.get(JWT_VALID_ISSUER),
        audience=config.get(JWT_VALID_AUDIENCE),
    )
    if token_data is None:
        raise credentials_exception

    return token_data

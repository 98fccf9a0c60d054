"""
Identity router.

This module provides FastAPI router for identity endpoints:
- Member registration
- Tasker registration
- Login
- Current user lookup
"""
from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime, timezone

from marketplace.base_service import BaseMicroservice, AsyncSessionLocal, Base, engine, get_db_session
from marketplace.config import Configuration, get_configuration
from marketplace.identity.errors import (
    AuthenticationFailedError, DuplicateUserError, RegistrationFailedError
)
from marketplace.identity.jwt import TokenData, TokenSigner, get_current_user, get_token_signer
from marketplace.identity.models import Role, MEMBER_TASKER_ROLE, normalize
from marketplace.identity.schemas import RegisterRequest, TaskerRegisterRequest, LoginRequest
from marketplace.identity.service import IdentityService
from marketplace.identity.stores import SqlCredentialStore, SqlProfileStore

# Create router
router = APIRouter(tags=["identity"])

# Create service instance
base_service = BaseMicroservice("marketplace.identity")


async def init_roles():
    """Create the default roles if they don't exist."""
    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(Role).where(Role.normalized_name == normalize(MEMBER_TASKER_ROLE))
        )
        if result.scalar_one_or_none() is None:
            db.add(Role(
                name=MEMBER_TASKER_ROLE,
                normalized_name=normalize(MEMBER_TASKER_ROLE),
                description="Service provider with a tasker profile"
            ))
            await db.commit()


async def start_identity_service():
    """Initialize the identity service."""
    base_service.log_event("service.startup", {"service": "identity"})
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await init_roles()
        base_service.logger.info("Initialized identity tables and roles")
    except Exception as e:
        base_service.log_error(e, context="Identity service startup")
        raise


def get_identity_service(
    db: AsyncSession = Depends(get_db_session),
    config: Configuration = Depends(get_configuration),
    signer: TokenSigner = Depends(get_token_signer),
) -> IdentityService:
    """Dependency wiring the identity service onto one request-scoped session."""
    return IdentityService(
        credentials=SqlCredentialStore(db),
        profiles=SqlProfileStore(db),
        config=config,
        signer=signer,
    )


@router.post("/register", response_model=Dict[str, Any])
async def register(
    request: RegisterRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Register a new member and return a token.
    """
    try:
        token = await service.register(
            full_name=request.full_name,
            email=request.email,
            username=request.username,
            password=request.password,
        )

        base_service.log_event("user.registered", {
            "username": request.username,
            "email": request.email
        })

        return base_service.mcp_response(
            message="User registered successfully",
            data={"token": token}
        )
    except (DuplicateUserError, RegistrationFailedError) as e:
        base_service.log_warning("user.register.failed", {
            "username": request.username,
            "reason": str(e)
        })
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        base_service.log_error(e, context="User registration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed"
        )


@router.post("/register-tasker", response_model=Dict[str, Any])
async def register_tasker(
    request: TaskerRegisterRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Register a new tasker with a profile. No token is issued.
    """
    try:
        message = await service.register_tasker(
            username=request.username,
            email=request.email,
            full_name=request.full_name,
            password=request.password,
            skills=request.skills,
            experience_level=request.experience_level,
            hourly_rate=request.hourly_rate,
            selected_category=request.selected_category,
            category_id=request.category_id,
        )

        base_service.log_event("tasker.registered", {
            "username": request.username,
            "email": request.email,
            "category_id": request.category_id
        })

        return base_service.mcp_response(message=message)
    except RegistrationFailedError as e:
        base_service.log_warning("tasker.register.failed", {
            "username": request.username,
            "reason": str(e)
        })
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        base_service.log_error(e, context="Tasker registration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Tasker registration failed"
        )


@router.post("/login", response_model=Dict[str, Any])
async def login(
    request: LoginRequest,
    service: IdentityService = Depends(get_identity_service)
):
    """
    Authenticate by username or email and return a token.
    """
    try:
        token = await service.login(request.username, request.password)

        base_service.log_event("user.login", {"username": request.username})

        return base_service.mcp_response(
            message="Login successful",
            data={"token": token}
        )
    except AuthenticationFailedError as e:
        # Log failed login attempt
        base_service.log_warning("user.login.failed", {"username": request.username})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except Exception as e:
        base_service.log_error(e, context="User login")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )


@router.get("/me", response_model=Dict[str, Any])
async def get_current_user_info(
    token_data: TokenData = Depends(get_current_user)
):
    """
    Get the claims of the current authenticated user.
    """
    return base_service.mcp_response(
        message="User information retrieved successfully",
        data=token_data.model_dump()
    )


# --- Health Check ---

@router.get("/ping", response_model=Dict[str, Any])
async def ping():
    """
    Health check endpoint for the identity service.
    """
    return base_service.mcp_response(
        message="Identity service is alive",
        data={"timestamp": datetime.now(timezone.utc).isoformat()}
    )

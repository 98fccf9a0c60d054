from datetime import datetime, timezone

import pytest

from marketplace.config import Configuration, get_configuration
from marketplace.identity.jwt import TokenSigner, get_token_signer
from marketplace.identity.router import get_identity_service
from marketplace.identity.service import IdentityService
from marketplace.main import app
from marketplace.tests.fakes import (
    FrozenClock, InMemoryIdentityDb, InMemoryCredentialStore, InMemoryProfileStore,
    TEST_SECRET, TEST_ISSUER, TEST_AUDIENCE,
)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def identity_db():
    return InMemoryIdentityDb()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return Configuration({
        "JWT:Secret": TEST_SECRET,
        "JWT:ValidIssuer": TEST_ISSUER,
        "JWT:ValidAudience": TEST_AUDIENCE,
    }, use_environment=False)


@pytest.fixture
def signer(clock):
    return TokenSigner(clock=clock)


@pytest.fixture
def service(identity_db, config, signer):
    return IdentityService(
        credentials=InMemoryCredentialStore(identity_db),
        profiles=InMemoryProfileStore(identity_db),
        config=config,
        signer=signer,
    )


@pytest.fixture
def api(service, config, signer):
    """The FastAPI app wired to the in-memory service."""
    app.dependency_overrides[get_identity_service] = lambda: service
    app.dependency_overrides[get_configuration] = lambda: config
    app.dependency_overrides[get_token_signer] = lambda: signer
    yield app
    app.dependency_overrides.clear()

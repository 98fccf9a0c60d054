from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from marketplace.base_service import BaseMicroservice, engine
from marketplace.identity.router import router as identity_router, start_identity_service

# Create shared base microservice instance
base_service = BaseMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    base_service.log_event("service.startup", {"service": "main"})
    await start_identity_service()
    yield
    base_service.log_event("service.shutdown", {"service": "main"})
    await engine.dispose()


# Create main FastAPI app with lifespan
app = FastAPI(
    title="Marketplace Identity API",
    description="Registration, login and token issuance for members and taskers",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefixes
app.include_router(identity_router, prefix="/auth", tags=["identity"])


@app.get("/", tags=["root"])
async def root():
    """Root endpoint returning API information."""
    return {
        "name": "Marketplace Identity API",
        "version": "0.1.0",
        "services": ["identity"],
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Overall system health check."""
    return {
        "status": "ok",
        "services": {
            "identity": "online"
        }
    }


# For running directly with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000, reload=True)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.errors import SafhaError
from .core.logging import logger
from .core.responses import UTF8JSONResponse
from .db.base import Base
from .db.session import engine
from .api import admin, me, opportunities, org

# Optional fallback for local dev only
if settings.auto_create_db:
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("AUTO_CREATE_DB enabled: tables created via metadata.")
    except Exception as e:
        logger.error(f"Error creating database tables with AUTO_CREATE_DB: {e}")
        raise

# Create FastAPI app
app = FastAPI(
    title="Safha",
    description="Volunteer matching: opportunities, registrations and organization rosters",
    version="1.0.0",
    default_response_class=UTF8JSONResponse,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(opportunities.router, prefix="/opportunities", tags=["opportunities"])
app.include_router(me.router, prefix="/me", tags=["me"])
app.include_router(org.router, prefix="/org", tags=["org"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.exception_handler(SafhaError)
async def safha_error_handler(request: Request, exc: SafhaError) -> UTF8JSONResponse:
    """Render domain errors as readable messages scoped to the request."""
    logger.info(f"request_rejected path={request.url.path} error={exc.kind} detail={exc.message}")
    return UTF8JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Starting Safha application...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down Safha application...")

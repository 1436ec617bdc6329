from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hashdrop import __version__
from hashdrop.database import engine, Base
from hashdrop.errors import HashdropError
from hashdrop.routes import submissions as submission_routes
from hashdrop.config import get_settings

# Import models so create_all sees the uploads table
from hashdrop.models import models  # noqa: F401

logger = logging.getLogger(__name__)

# Get settings
settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: make sure the schema exists before serving."""
    # Alembic (setup_db.py) is the primary path; this covers fresh dev databases
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} {__version__} ready, storage backend: {settings.storage_backend}")

    yield

    engine.dispose()


app = FastAPI(
    title="hashdrop",
    version=__version__,
    description="Anonymous text and file sharing with content-addressed links",
    lifespan=lifespan,
)

# Configure CORS with specific origins from settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(HashdropError)
async def hashdrop_error_handler(request: Request, exc: HashdropError):
    """Map service errors to {"message": ...}; server-side detail stays in the log."""
    if exc.status_code >= 500:
        logger.error(f"Error encountered serving {request.method} {request.url.path}: {exc}", exc_info=exc)
        message = exc.default_message
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
        message = exc.message if exc.status_code != 404 else exc.default_message
    return JSONResponse(status_code=exc.status_code, content={"message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Unknown routes and other framework errors use the same error payload."""
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": "Invalid request"})


@app.get("/")
def read_root():
    return {
        "message": "hashdrop",
        "version": __version__,
        "endpoints": {
            "submit": "POST /submit (multipart: body, files)",
            "submission": "GET /{hash}",
            "download": "GET /download?hash={attachment_key}",
        },
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


# Included last: its /{hash} route would otherwise shadow the fixed paths above
app.include_router(submission_routes.router, tags=["Submissions"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)

"""
Personal CRM - FastAPI Application Entry Point

Serves contact, interaction and privacy operations over HTTP.
Start with the `crm-api` console script, or:

    uvicorn api.main:app --port 8000
"""
# Load environment variables from .env file first, before any imports
from dotenv import load_dotenv
load_dotenv()

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import crm
from config.settings import settings

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Personal CRM",
    description="Relationship tracking: contacts, interactions and derived contact summaries",
    version="0.1.0",
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(crm.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert validation errors to 400 with clear messages."""
    errors = exc.errors()

    # Sanitize errors for JSON serialization (convert bytes and exceptions to string)
    sanitized_errors = []
    for error in errors:
        sanitized = dict(error)
        if "input" in sanitized and isinstance(sanitized["input"], bytes):
            sanitized["input"] = sanitized["input"].decode("utf-8", errors="replace")
        if "ctx" in sanitized:
            sanitized["ctx"] = {k: str(v) for k, v in sanitized["ctx"].items()}
        sanitized_errors.append(sanitized)

    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "code": "validation_error", "detail": sanitized_errors}
    )


@app.get("/health")
async def health_check():
    """Health check reporting the data directory in use."""
    data_path = settings.data_path
    return {
        "status": "healthy" if data_path.is_dir() or not data_path.exists() else "degraded",
        "service": "personal-crm",
        "data_path": str(data_path),
    }


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Starting Personal CRM API on {settings.host}:{settings.port} (data: {settings.data_path})")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

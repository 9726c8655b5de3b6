"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.dependencies import get_template_store
from api.error_handlers import register_exception_handlers
from api.routes import batch, templates
from domain.models import FONT_FALLBACKS, SUPPORTED_FONTS


# Create app
app = FastAPI(
    title="CertMail Studio API",
    description="API for personalizing certificate images and mailing them to a recipient list",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(templates.router, prefix="/templates", tags=["templates"])
app.include_router(batch.router, prefix="/batch", tags=["batch"])


@app.on_event("startup")
def startup_event():
    """Load the saved templates before the first request."""
    get_template_store()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "CertMail Studio API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/fonts")
async def fonts():
    """Font families offered by the template editor, with their fallback classes."""
    return {"fonts": [{"family": f, "fallback": FONT_FALLBACKS[f]} for f in SUPPORTED_FONTS]}

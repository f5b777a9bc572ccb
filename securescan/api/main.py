from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .config import settings
from ..log_utils import configure_logging
from .. import __version__

# Configure logging
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SecureScan",
    description="API for scanning repositories, reviewing findings and opening AI-generated fix pull requests.",
    version=__version__
)

from .database import engine
from . import models

# Create database tables
models.Base.metadata.create_all(bind=engine)

from .routers import scans, findings, settings as settings_router

app.include_router(scans.router)
app.include_router(findings.router)
app.include_router(settings_router.router)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {
        "message": "Welcome to SecureScan API",
        "docs": "/docs",
        "version": __version__
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

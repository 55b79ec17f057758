# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from quizportal.database import engine, Base
from quizportal.routers import quiz, certificates

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,
        environment=os.getenv("ENVIRONMENT", "development"),
    )

# Create database tables
Base.metadata.create_all(bind=engine)

# OpenAPI tag metadata for organized documentation
tags_metadata = [
    {
        "name": "quiz",
        "description": "Question sets, answer submission, attempt history and analytics.",
    },
    {
        "name": "certificates",
        "description": "Certificates issued for attempts scoring 50% or more.",
    },
]

app = FastAPI(
    title="Quiz Portal API",
    description="""
## Quiz Portal

Timed multiple-choice quizzes in four categories with scoring, analytics and certificates.

### Rate Limits
Each user may attempt each category at most **3 times per day**. The limit resets at
server-local midnight; rejected requests return `429` with a `Retry-After` header.
    """,
    version="1.0.0",
    openapi_tags=tags_metadata,
)

ALLOWED_ORIGINS = [
    "http://localhost:3000",  # Frontend dev server
]

# Allow additional origins from environment (for preview deploys)
extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
if extra_origins:
    ALLOWED_ORIGINS.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)

# Include routers
app.include_router(quiz.router)
app.include_router(certificates.router)


@app.get("/")
def root():
    return {
        "message": "Quiz Portal API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}

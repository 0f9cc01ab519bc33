"""
FastAPI application for the task router.

Serves the issue event webhook and the procedures used by the admin page,
the issue panel and the dashboards.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes import router
from utils.logger import setup_logger

logger = setup_logger()

app = FastAPI(
    title="AI Task Router API",
    description="Auto-triage and auto-routing for Jira issues",
    version="1.0.0"
)

# Allow the dashboard dev server to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
def health():
    return {"status": "ok"}


logger.info("FastAPI app initialized")

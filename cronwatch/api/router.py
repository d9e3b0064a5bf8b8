from fastapi import APIRouter

from cronwatch.api.health import router as health_router
from cronwatch.api.jobs import router as jobs_router
from cronwatch.api.runs import router as runs_router
from cronwatch.api.slack import router as slack_router
from cronwatch.api.webhook import router as webhook_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
api_router.include_router(runs_router, prefix="/api", tags=["runs"])
api_router.include_router(health_router, prefix="/api", tags=["health"])

# Slack app at /slack/*
api_router.include_router(slack_router, prefix="/slack", tags=["slack"])

# Generic webhook at the root
api_router.include_router(webhook_router, tags=["webhook"])

"""FastAPI application entry point."""
import logging
import threading

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .context import build_context
from .api import queue, webhook

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Yieldera Field Reports",
    description="Queued agronomic field reports: enrichment, narrative generation and email delivery",
    version="0.1.0",
)

# CORS middleware for the farm-management frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(queue.router, prefix="/api/queue", tags=["queue"])
app.include_router(webhook.router, prefix="/api/webhook", tags=["webhook"])


@app.on_event("startup")
async def startup_event():
    """Build the service context and optionally start the scheduler."""
    # Tests install their own context before startup
    if getattr(app.state, "context", None) is None:
        app.state.context = build_context(settings)
    app.state.owns_scheduler = False

    context = app.state.context
    if context.settings.enable_scheduler:
        from .scheduler import start_scheduler, run_queue_cycle
        start_scheduler(context)
        app.state.owns_scheduler = True
        # Drain anything queued while the service was down
        threading.Thread(target=run_queue_cycle, args=(context,), daemon=True).start()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    if getattr(app.state, "owns_scheduler", False):
        from .scheduler import stop_scheduler
        stop_scheduler()

    context = getattr(app.state, "context", None)
    if context is not None:
        context.close()


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Yieldera Field Reports",
        "description": "Queued agronomic field reports",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
def health_check(request: Request):
    """Health check: database and email transport reachability."""
    context = request.app.state.context
    database_ok = context.store.ping()
    email_ok = context.mailer.verify()

    return {
        "status": "healthy" if database_ok and email_ok else "degraded",
        "database": "connected" if database_ok else "unreachable",
        "email": "connected" if email_ok else "unreachable",
        "pending": context.store.pending_count() if database_ok else None,
    }

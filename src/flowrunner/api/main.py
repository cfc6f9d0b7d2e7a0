"""FastAPI application."""
from fastapi import FastAPI

from flowrunner import __version__
from flowrunner.api.routes import health, webhooks, workflows
from flowrunner.observability import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Flowrunner",
    description="Workflow automation runtime: registry, executor and run history",
    version=__version__,
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(workflows.router, tags=["workflows"])
app.include_router(webhooks.router, tags=["webhooks"])


@app.get("/")
def root() -> dict:
    """Root endpoint."""
    return {
        "service": "flowrunner",
        "version": __version__,
        "docs": "/docs",
    }

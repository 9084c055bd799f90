"""Delifast Sync - Main Entry Point."""

import os

from dotenv import load_dotenv

load_dotenv()

from delifast_sync.config.settings import settings  # noqa: E402
from delifast_sync.server.app import create_app  # noqa: E402

# Create FastAPI application
app = create_app()

if __name__ == "__main__":
    import uvicorn

    reload = os.getenv("RELOAD", "false").lower() == "true"

    uvicorn.run(
        "delifast_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=120,  # uvicorn's outer limit; the app waits for pending tasks
        timeout_keep_alive=5,
        access_log=False,  # Structured logging instead
    )

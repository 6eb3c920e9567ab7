"""Session search FastAPI service: HTTP entry point for the tool registry."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from session_search import config
from session_search.observability import initialize as initialize_observability, shutdown as shutdown_observability
from session_search.parsers.projects import projects_dir
from session_search.routers.tools import TOOL_REGISTRY, tools_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("session_search")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Session search starting up (claude home: %s)", config.CLAUDE_HOME)
    initialize_observability(app)
    if not projects_dir(config.CLAUDE_HOME).is_dir():
        logger.warning("No projects directory under %s", config.CLAUDE_HOME)

    yield

    logger.info("Session search shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="Claude Session Search API",
    description="Read-only search and analytics over Claude Code session logs",
    version=config.SERVER_VERSION,
    lifespan=lifespan,
)

app.include_router(tools_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "claudeHome": str(config.CLAUDE_HOME),
        "projectsDir": "present" if projects_dir(config.CLAUDE_HOME).is_dir() else "missing",
        "tools": len(TOOL_REGISTRY),
    }


def run() -> None:
    import uvicorn

    uvicorn.run("session_search.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()

"""Run the FastAPI app for the road copilot."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.copilot_orchestrator.bootstrap import build_orchestrator
from src.copilot_orchestrator.config import OrchestratorSettings
from src.copilot_orchestrator.errors import OrchestratorError
from src.copilot_orchestrator.loop import Orchestrator
from src.routers import chat_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Orchestrator | None = None,
    settings: OrchestratorSettings | None = None,
) -> FastAPI:
    """Build the app. The lifespan owns the orchestrator and closes it on shutdown."""
    settings = settings or OrchestratorSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.orchestrator = orchestrator or build_orchestrator(settings)
        try:
            yield
        finally:
            await app.state.orchestrator.aclose()
            logger.info("Orchestrator closed")

    app = FastAPI(title="Road Copilot", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(OrchestratorError)
    async def orchestrator_error_handler(request: Request, exc: OrchestratorError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=exc.http_status, content={"error": exc.public_message})

    @app.get("/")
    async def health(request: Request) -> dict[str, str]:
        return {"status": "ok", "agent": request.app.state.orchestrator.agent.name}

    app.include_router(chat_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )

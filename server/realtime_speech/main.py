"""FastAPI application entrypoint for the realtime speech gateway."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import settings
from .routers import speech_realtime

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Realtime speech gateway starting: deployment=%s endpoint configured=%s",
        settings.azure_openai_realtime_deployment,
        bool(settings.azure_openai_realtime_endpoint),
    )
    yield


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    application = FastAPI(
        title="Realtime Speech Gateway",
        description=(
            "Text-to-speech and speech-to-text over the Azure OpenAI realtime API, "
            "with Azure neural voice names mapped onto realtime voices."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    application.include_router(speech_realtime.router)

    @application.get("/")
    async def root() -> dict[str, str]:
        """Lightweight health endpoint for service discovery."""
        return {"service": "realtime-speech", "status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from whale_tracker.api import router as whales_router
from whale_tracker.config import Settings
from whale_tracker.narrator import InsightNarrator
from whale_tracker.whale_service import WhaleTrackerService

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)


def create_app(
    service: Optional[WhaleTrackerService] = None,
    narrator: Optional[InsightNarrator] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = service.settings if service else Settings.from_env()
        app.state.whale_service = service or WhaleTrackerService(settings)
        app.state.narrator = narrator or InsightNarrator(settings.openai_api_key, settings.openai_model)
        yield
        await app.state.whale_service.aclose()

    app = FastAPI(
        title="Whale Tracker",
        description="Classifies on-chain whale transfers on Sei and derives risk and insight signals.",
        lifespan=lifespan,
    )
    app.include_router(whales_router)

    @app.api_route("/health", methods=["GET", "HEAD"], include_in_schema=False)
    def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

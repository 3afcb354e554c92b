import logging

from fastapi import FastAPI

from murder.api.routes import router
from murder.config import load_settings
from murder.maps.startup import init_maps_for_app

app = FastAPI(title="murder-game", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=load_settings().log_level.upper())
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_maps_for_app()
    logger.info("Maps loaded")


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "murder-game", "version": "0.1.0"}

import logging

from fastapi import FastAPI

from minigames.api.prime_drop_routes import router as prime_drop_router
from minigames.api.prime_drop_routes import ws_router as prime_drop_ws_router
from minigames.api.routes import router
from minigames.settings import get_settings

APP_NAME = "minigames"
APP_VERSION = "0.1.0"

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=APP_NAME, version=APP_VERSION)
app.include_router(router)
app.include_router(prime_drop_router)
app.include_router(prime_drop_ws_router)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": APP_NAME, "version": APP_VERSION}

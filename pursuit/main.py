import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pursuit.api.routes import router, status_for
from pursuit.errors import GameError

app = FastAPI(title="pursuit", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@app.exception_handler(GameError)
async def _game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "pursuit", "version": "0.1.0"}

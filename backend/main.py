import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Hi-Lo backend starting up (answer_count=%d)...", settings.answer_count)
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set — generation and arbiter judging disabled")
    yield
    logger.info("Backend shutting down.")


app = FastAPI(
    title="Hi-Lo",
    version="0.1.0",
    description="Hi-Lo trivia game engine — AI-generated ranked answers, judged by Gemini",
    lifespan=lifespan,
)

_origins = list(settings.allowed_origins)
if settings.extra_origin:
    _origins.append(settings.extra_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Player-Id"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "hilo", "version": "0.1.0"}


from routers.game_router import router as game_router

app.include_router(game_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)

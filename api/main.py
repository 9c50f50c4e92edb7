import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from analytics import router as analytics_router
from auth import router as auth_router
from core import config, db
from core.errors import install_exception_handlers
from core.logging_config import configure_logging
from core.rate_limit import limiter
from profiles import router as profiles_router
from progress import router as progress_router
from reading_modules import router as reading_modules_router
from subscriptions import router as subscriptions_router

configure_logging()
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    logger.info("api_started environment=%s", config.environment())
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(title="NoteEarly API", lifespan=lifespan)

install_exception_handlers(app)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Browser clients send the refresh-token cookie, so credentials must be allowed.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router, prefix=API_PREFIX, tags=["auth"])
app.include_router(profiles_router.router, prefix=API_PREFIX, tags=["profiles"])
app.include_router(reading_modules_router.router, prefix=API_PREFIX, tags=["reading-modules"])
app.include_router(progress_router.router, prefix=API_PREFIX, tags=["progress"])
app.include_router(subscriptions_router.router, prefix=API_PREFIX, tags=["subscriptions"])
app.include_router(analytics_router.router, prefix=API_PREFIX, tags=["analytics"])


@app.get("/health")
@app.get(f"{API_PREFIX}/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "NoteEarly API"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=config.port())

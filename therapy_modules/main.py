"""Therapy Modules - FastAPI app entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from therapy_modules.core.config import get_settings
from therapy_modules.core.errors import EngineError
from therapy_modules.core.logging_config import configure_logging
from therapy_modules.db.base import Base
from therapy_modules.db.session import AsyncSessionLocal, engine
from therapy_modules.routers import assignments, attempts, modules, reporting
from therapy_modules.services.seeding import seed_content

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.seed_content:
        async with AsyncSessionLocal() as db:
            await seed_content(db)

    logger.info("%s started", settings.app_name)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Attempt and assignment engine for therapy modules",
    lifespan=lifespan,
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(modules.router)
app.include_router(attempts.router)
app.include_router(reporting.router)
app.include_router(assignments.router)


@app.get("/health")
async def health():
    return {"status": "ok"}

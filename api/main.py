import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bulk_edit import errors as bulk_edit_errors
from bulk_edit import relations
from bulk_edit.router import router as bulk_edit_router
from core import db, settings
from core.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    # Initialize the DB pool once per process.
    await db.init_pool()
    logger.info(
        "startup default_limit=%s max_limit=%s",
        settings.bulk_edit_default_limit(),
        settings.bulk_edit_max_limit(),
    )
    try:
        yield
    finally:
        relations.sessions.clear()
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

# Allow the admin frontend to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

bulk_edit_errors.add_exception_handlers(app)
app.include_router(bulk_edit_router, tags=["bulk-edit"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "wwtrail bulk-edit api"}

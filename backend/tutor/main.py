import asyncio
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from .db import Base, engine, get_db
from .cleanup import purge_older_than_one_week
from .errors import FlowError, flow_error_handler
from .settings import settings
from .routers import health
from .routers import auth
from .routers import progress
from .routers import conversation
from .routers import translation
from .routers import reading
from .routers import newspaper
from .routers import explain

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="English Tutor API")
app.add_exception_handler(FlowError, flow_error_handler)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(progress.router)
app.include_router(conversation.router)
app.include_router(translation.router)
app.include_router(reading.router)
app.include_router(newspaper.router)
app.include_router(explain.router)

_cleanup_task: Optional[asyncio.Task] = None


@app.get("/", include_in_schema=False)
async def redirect_root_to_docs():
	return RedirectResponse(url="/docs")


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"news_configured": bool(settings.news_api_key),
	}


def _run_cleanup() -> None:
	db = next(get_db())
	try:
		removed = purge_older_than_one_week(db)
		logger.info("cleanup: removed %d stale rows", removed)
	except Exception:
		logger.exception("cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_cleanup()


@app.on_event("startup")
async def startup_event():
	global _cleanup_task
	Base.metadata.create_all(bind=engine)
	_run_cleanup()
	_cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	if _cleanup_task is not None:
		_cleanup_task.cancel()

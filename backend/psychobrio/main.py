import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import SessionLocal, init_db
from .errors import PsychobrioError
from .settings import settings
from .routers import health
from .routers import auth
from .routers import catalog
from .routers import patients
from .routers import assessments
from .routers import conclusions
from .routers import reports
from .routers import portal

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	# Initialize DB schema
	init_db()
	db = SessionLocal()
	try:
		auth.ensure_seed_user(db)
	finally:
		db.close()
	yield


app = FastAPI(title="Psychobrio Connect API", lifespan=lifespan)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(patients.router)
app.include_router(assessments.router)
app.include_router(conclusions.router)
app.include_router(conclusions.notes_router)
app.include_router(reports.router)
app.include_router(portal.router)


@app.exception_handler(PsychobrioError)
async def psychobrio_error_handler(request: Request, exc: PsychobrioError):
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

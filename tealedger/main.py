# tealedger/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tealedger.middleware import RequestIdMiddleware
from tealedger.db import Base, engine
from tealedger.config import settings
from tealedger.errors import InvalidInput, NotFound
from tealedger.util.logs import configure_logging
import tealedger.models  # noqa: F401  (registers tables)

from tealedger.routers import auth, admin, users, customers, collections, rates, deductions, invoices
from tealedger.routers import settings as settings_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="TeaLedger API", version="1.0.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)
    logger.info("tealedger started (env=%s)", settings.APP_ENV)

@app.exception_handler(NotFound)
def _not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(InvalidInput)
def _invalid(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(users.router)
app.include_router(customers.router)
app.include_router(collections.router)
app.include_router(rates.router)
app.include_router(deductions.router)
app.include_router(invoices.router)
app.include_router(settings_router.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}

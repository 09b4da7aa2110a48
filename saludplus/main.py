import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from saludplus.core.errors import SaludPlusError
from saludplus.core.settings import configure_logging, settings, validate_settings
from saludplus.db.session import engine
from saludplus.deps import get_history_store
from saludplus.routers.appointments import router as appointments_router
from saludplus.routers.catalog import insurances_router, treatments_router
from saludplus.routers.doctors import router as doctors_router
from saludplus.routers.migration import router as migration_router
from saludplus.routers.patients import router as patients_router
from saludplus.routers.reports import router as reports_router, status_router
from saludplus.services.migration.relational import init_schema

app = FastAPI(title="SaludPlus Hybrid Persistence API", version="0.1.0")
logger = logging.getLogger("saludplus.startup")


@app.exception_handler(SaludPlusError)
async def domain_error_handler(request: Request, exc: SaludPlusError):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = "Route not found" if exc.status_code == 404 else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"ok": False, "error": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    configure_logging(settings)
    validate_settings(settings)
    init_schema(engine)
    logger.info("Relational schema ready.")
    get_history_store().ensure_indexes()
    logger.info("Patient history indexes ensured.")


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(migration_router)
app.include_router(doctors_router)
app.include_router(patients_router)
app.include_router(insurances_router)
app.include_router(treatments_router)
app.include_router(appointments_router)
app.include_router(reports_router)
app.include_router(status_router)

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fencecalc.core.logging import configure_logging
from fencecalc.models import business_unit, formula_parameter, labor, material, product, product_rule, project, sku  # noqa: F401
from fencecalc.routers.auth import router as auth_router
from fencecalc.routers.calculator import router as calculator_router
from fencecalc.routers.projects import router as projects_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Fence calculator starting", extra={"version": VERSION})
    yield


app = FastAPI(
    title="Fence BOM/BOL Calculator",
    version=VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception", extra={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(calculator_router)
app.include_router(projects_router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": VERSION,
    }

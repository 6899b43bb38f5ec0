"""
Inventory Reconciler — vendor stock sync service

FastAPI app: inventory refresh API, error envelope handlers, CORS,
and the background scheduler.
"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import settings
from .exceptions import ReconcileError
from .http_client import close_clients
from .logging_config import setup_logging
from .routers import inventory
from .schemas.errors import ErrorResponse


# --- App Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if not settings.uses_rest_store:
        from .startup import run_startup_migrations

        run_startup_migrations()

    task = None
    if settings.scheduler_active:
        from .scheduler import scheduler_loop

        task = asyncio.create_task(scheduler_loop())
    yield
    if task:
        task.cancel()
    await close_clients()


app = FastAPI(title="Inventory Reconciler", version="1.0.0", lifespan=lifespan)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=False,
    allow_methods=["POST", "GET", "OPTIONS", "PUT", "DELETE", "PATCH"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    max_age=86400,
)

app.include_router(inventory.router)


# --- Error envelopes: {"error": {"code", "message"}} ---
@app.exception_handler(ReconcileError)
async def reconcile_error_handler(request: Request, exc: ReconcileError):
    if exc.http_status >= 500:
        logger.error("{} {} failed: {} {}", request.method, request.url.path, exc.code, exc.message)
    body = ErrorResponse(error=exc.to_dict())
    return JSONResponse(status_code=exc.http_status, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INVALID_REQUEST", "message": problems or "Invalid request body"}},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": {"code": "REFRESH_FAILED", "message": str(exc)}})


@app.get("/health")
def health():
    return {"status": "ok"}

"""
AlgoLab — Classification Algorithm Lab, FastAPI Server (Port 8001)
====================================================================
User-defined classification algorithms, run against stored data sets:
alias-bound classifiers, paged sample streaming, persisted results and
DEFAULT / ROC estimates.

Run:
  uvicorn main:app --host 0.0.0.0 --port 8001 --reload
  # or
  python main.py
"""

import asyncio
import logging
from contextlib import asynccontextmanager

# Load .env file BEFORE anything reads os.getenv()
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from algolab.config import settings  # noqa: E402
from algolab.core.errors import (  # noqa: E402
    AlgoLabError, AuthorizationError, ConflictError, InvalidArgumentError,
    NotFoundError, ValidationError,
)

# ── Logging ──
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("algolab")


# ── Lifespan: create tables + optional run queue worker ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    from algolab.core.database import engine, Base

    # Import ALL models so they register with Base.metadata
    import algolab.models.entities  # noqa: F401

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")

    worker, worker_task = None, None
    if settings.RUN_QUEUE_WORKER:
        from algolab.core.services.run_queue import RunQueueWorker
        worker = RunQueueWorker()
        worker_task = asyncio.create_task(worker.run_forever())

    yield

    if worker is not None:
        worker.stop()
        await worker_task
    logger.info("Shutting down AlgoLab")


# ── Create FastAPI app ──
app = FastAPI(
    title="AlgoLab",
    description=(
        "Classification algorithm lab: define algorithms and their parameters, "
        "queue runs against stored data sets, and read back per-sample results "
        "with DEFAULT (accuracy) and ROC (AUC) estimates."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Domain errors → HTTP ──
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=406, content=exc.to_dict())


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=403, content={"message": "Unauthorized Access"})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"message": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"message": str(exc)})


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"message": str(exc)})


@app.exception_handler(AlgoLabError)
async def algolab_error_handler(request: Request, exc: AlgoLabError):
    logger.error(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"message": "Internal error"})


# ── Mount all API routes ──
from algolab.api.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


# ── Root ──
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": "AlgoLab",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "algorithms": "/api/v1/algorithms",
            "sessions": "/api/v1/sessions/{id}",
            "estimations": "/api/v1/estimations/{id}",
            "datasets": "/api/v1/datasets",
        },
    }


# ── Direct run ──
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )

"""
Support Intelligence Pipeline - FastAPI Backend
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from support_intel.config import get_settings
from support_intel.pipeline import get_pipeline
from support_intel.routes import health, metrics, sync
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pipeline = None
    if settings.enable_scheduler:
        pipeline = get_pipeline()
        pipeline.start_scheduler()
    yield
    if pipeline is not None:
        pipeline.stop_scheduler()


app = FastAPI(
    title="Support Intelligence Pipeline",
    description="Freshdesk ticket ingestion, snapshots and metrics",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync.router)
app.include_router(metrics.router)
app.include_router(health.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
async def root():
    return {"message": "Support Intelligence Pipeline API", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)

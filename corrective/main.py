import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from corrective.core.config import settings
from corrective.db import models
from corrective.db.session import engine
from corrective.downtime.router import router as downtime_router
from corrective.failures.router import router as failures_router
from corrective.qa.router import router as qa_router
from corrective.settings.router import router as settings_router
from corrective.solutions.router import router as solutions_router
from corrective.workorders.router import router as work_orders_router

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("corrective")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Motor de decisiones de mantenimiento correctivo",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    if settings.ENV.lower() == "production" and settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        logger.warning("SQLALCHEMY_DATABASE_URI apunta a SQLite en produccion.")


app.include_router(failures_router, prefix="/api")
app.include_router(qa_router, prefix="/api")
app.include_router(downtime_router, prefix="/api")
app.include_router(solutions_router, prefix="/api")
app.include_router(work_orders_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}

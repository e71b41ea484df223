import logging

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from docportal.api.files import router as files_router
from docportal.errors import register_error_handlers
from docportal.logging import configure_logging
from docportal.observability import ObservabilityMiddleware
from docportal.services.object_storage import ensure_storage_bucket

app = FastAPI(title="docportal files API")
logger = logging.getLogger(__name__)
configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)

app.include_router(files_router)


@app.on_event("startup")
def _ensure_storage():
    try:
        ensure_storage_bucket()
    except Exception:
        logger.exception("Object storage bucket check failed at startup.")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

import logging
import time

from docportal.celery_app import celery_app
from docportal.db import SessionLocal
from docportal.metrics import observe_job
from docportal.services import replace_reconciler as replace_reconciler_service
from docportal.services import staging_sweep as staging_sweep_service

logger = logging.getLogger(__name__)


@celery_app.task(name="docportal.tasks.storage.sweep_staging_objects")
def sweep_staging_objects():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        results = staging_sweep_service.sweep_all_buckets(session)
        deleted = sum(len(result.deleted) for result in results)
        logger.info("Staging sweep buckets=%s deleted=%s", len(results), deleted)
        return {result.bucket: len(result.deleted) for result in results}
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Staging sweep failed.")
        raise
    finally:
        session.close()
        observe_job("staging_sweep", status, time.monotonic() - start)


@celery_app.task(name="docportal.tasks.storage.reconcile_replace_intents")
def reconcile_replace_intents():
    start = time.monotonic()
    status = "success"
    session = SessionLocal()
    try:
        result = replace_reconciler_service.replace_reconciler.reconcile(session)
        logger.info(
            "Replace intent reconcile reconciled=%s superseded=%s abandoned=%s errors=%s",
            len(result.reconciled),
            len(result.superseded),
            len(result.abandoned),
            len(result.errors),
        )
        if result.errors:
            status = "partial"
        return {
            "reconciled": len(result.reconciled),
            "superseded": len(result.superseded),
            "abandoned": len(result.abandoned),
            "errors": len(result.errors),
        }
    except Exception:
        status = "error"
        session.rollback()
        logger.exception("Replace intent reconcile failed.")
        raise
    finally:
        session.close()
        observe_job("replace_intent_reconcile", status, time.monotonic() - start)

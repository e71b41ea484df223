from datetime import timedelta

from celery import Celery

from docportal.config import settings


def get_celery_config() -> dict:
    return {
        "broker_url": settings.celery_broker_url,
        "result_backend": settings.celery_result_backend,
        "timezone": settings.celery_timezone,
    }


def build_beat_schedule() -> dict:
    return {
        "staging_sweep": {
            "task": "docportal.tasks.storage.sweep_staging_objects",
            "schedule": timedelta(minutes=max(settings.staging_sweep_interval_minutes, 1)),
        },
        "replace_intent_reconcile": {
            "task": "docportal.tasks.storage.reconcile_replace_intents",
            "schedule": timedelta(minutes=max(settings.intent_reconcile_interval_minutes, 1)),
        },
    }


celery_app = Celery("docportal")
celery_app.conf.update(get_celery_config())
celery_app.conf.beat_schedule = build_beat_schedule()
celery_app.autodiscover_tasks(["docportal.tasks"])

from docportal.tasks.storage import reconcile_replace_intents, sweep_staging_objects  # noqa: F401

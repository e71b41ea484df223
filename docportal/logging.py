import logging
import logging.config

from docportal.config import settings

# Fields passed through ``extra=`` that are rendered after the message.
CONTEXT_FIELDS = (
    "request_id",
    "correlation_id",
    "file_id",
    "stage",
    "state",
    "bucket",
    "key",
    "intent_id",
)


class KeyValueFormatter(logging.Formatter):
    """Append structured ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        pairs = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if pairs:
            line = f"{line} {' '.join(pairs)}"
        return line


def configure_logging(level: str | None = None) -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "kv": {
                    "()": KeyValueFormatter,
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "kv",
                }
            },
            "root": {
                "level": (level or settings.log_level).upper(),
                "handlers": ["console"],
            },
            "loggers": {
                "botocore": {"level": "WARNING"},
                "urllib3": {"level": "WARNING"},
            },
        }
    )

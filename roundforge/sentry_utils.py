from logging import LogRecord

from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.types import Event, Hint

_IGNORED_LOGGERS = {"django_q"}

_PIPELINE_TAG_KEYS = ("pipeline_id", "round")


class CustomLoggingIntegration(LoggingIntegration):
    def _handle_record(self, record: LogRecord) -> None:
        # This match upper logger names, e.g. "django_q" will match "django_q.cluster"
        if record.name in _IGNORED_LOGGERS or record.name.split(".")[0] in _IGNORED_LOGGERS:
            return
        super()._handle_record(record)


def before_send(event: Event, hint: Hint) -> Event | None:
    # structlog key/values end up in "extra"; lift the pipeline ones to tags so
    # events can be filtered per run in Sentry.
    extra = event.get("extra") or {}
    tags = event.setdefault("tags", {})

    if isinstance(tags, dict):
        for key in _PIPELINE_TAG_KEYS:
            if extra.get(key):
                tags[key] = str(extra[key])
    else:
        for key in _PIPELINE_TAG_KEYS:
            if extra.get(key):
                tags.append([key, str(extra[key])])

    return event

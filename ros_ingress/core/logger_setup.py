import json
import logging
from datetime import datetime, timezone
from typing import Optional
from ros_ingress.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

CONTEXT_FIELDS = ("request_id", "account", "org_id")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with request tags as top-level keys when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, "")
            if value:
                entry[field] = value
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def build_formatter(log_format: Optional[str] = None) -> logging.Formatter:
    if (log_format or settings.LOG_FORMAT or "text").lower() == "json":
        return JsonFormatter()
    return logging.Formatter(LOG_FORMAT)


def setup_logging(level_override: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    level_name = (level_override or settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(log_format))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return logging.getLogger("ros_ingress")


class UploadLogAdapter(logging.LoggerAdapter):
    """Tags request-scoped log lines with the request id, account and org id."""

    def process(self, msg, kwargs):
        fields = " ".join(f"{key}={value}" for key, value in self.extra.items() if value)
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return (f"[{fields}] {msg}" if fields else msg), kwargs


def with_upload_context(logger: logging.Logger, request_id: str, account: str = "", org_id: str = "") -> UploadLogAdapter:
    return UploadLogAdapter(logger, {"request_id": request_id, "account": account, "org_id": org_id})

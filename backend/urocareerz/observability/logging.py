from __future__ import annotations

import logging
import sys

import structlog


def _drop_none(_: logging.Logger, __: str, event_dict: dict) -> dict:
    # Optional fields are passed as None by callers; keep lines compact.
    return {k: v for k, v in event_dict.items() if v is not None}


_CONFIGURED = False


def configure_logging(*, level: str | int = "INFO") -> None:
    """
    Configure stdlib logging + structlog to emit one JSON object per line on stdout.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _drop_none,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=shared,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper() if isinstance(level, str) else level)

    # uvicorn installs its own handlers; route everything through root instead.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(name)
        log.handlers = []
        log.propagate = True
    # The access log middleware already records every request.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def email_domain(email: str | None) -> str | None:
    """Loggable stand-in for an address (never log full emails)."""
    raw = str(email or "").strip().lower()
    if "@" not in raw:
        return None
    return raw.split("@", 1)[1] or None

"""Structured logging configuration for CertPilot.

Provides JSON and text formatters, a challenge-context filter that
injects the current provider and domain into every log record, and a
one-call ``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from certpilot.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Our own well-known context attributes (handled explicitly):
        "provider",
        "domain",
    }
)

_challenge_provider: ContextVar[str | None] = ContextVar("challenge_provider", default=None)
_challenge_domain: ContextVar[str | None] = ContextVar("challenge_domain", default=None)


@contextlib.contextmanager
def challenge_context(*, provider: str | None = None, domain: str | None = None) -> Iterator[None]:
    """Tag every log record emitted inside the block with *provider* and *domain*.

    Context variables follow asyncio tasks, so concurrent challenges keep
    their own tags.
    """
    provider_token = _challenge_provider.set(provider)
    domain_token = _challenge_domain.set(domain)
    try:
        yield
    finally:
        _challenge_domain.reset(domain_token)
        _challenge_provider.reset(provider_token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        provider = getattr(record, "provider", None)
        if provider is not None:
            data["provider"] = provider

        domain = getattr(record, "domain", None)
        if domain is not None:
            data["domain"] = domain

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(provider)s %(domain)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class ChallengeContextFilter(logging.Filter):
    """Inject the active challenge context into every log record.

    Adds ``provider`` and ``domain`` from :func:`challenge_context` when
    one is active.  Structured output omits them otherwise; text output
    shows ``-``.
    """

    CONTEXT_ATTRS = frozenset({"provider", "domain"})

    def __init__(self, *, placeholder: str | None = None) -> None:
        super().__init__()
        self._placeholder = placeholder

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if getattr(record, "provider", None) is None:
            record.provider = _challenge_provider.get() or self._placeholder  # type: ignore[attr-defined]
        if getattr(record, "domain", None) is None:
            record.domain = _challenge_domain.get() or self._placeholder  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``certpilot`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    adds a file handler when ``settings.file`` is set.

    Returns the root ``certpilot`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("certpilot")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    if settings.format == "json":
        formatter = StructuredFormatter()
        ctx_filter = ChallengeContextFilter()
    else:
        formatter = TextFormatter()
        ctx_filter = ChallengeContextFilter(placeholder="-")

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    if settings.file:
        try:
            fh = logging.FileHandler(settings.file, encoding="utf-8")
        except OSError as exc:
            root.warning("Could not open log file %s: %s", settings.file, exc)
        else:
            # File logs are always structured JSON
            fh.setFormatter(StructuredFormatter())
            fh.addFilter(ChallengeContextFilter())
            root.addHandler(fh)

    # Quieten noisy third-party loggers
    for lib in ("httpx", "httpcore", "acmeow"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root

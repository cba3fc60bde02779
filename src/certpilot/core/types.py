"""Enumerated types shared across the DNS-01 layer.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that logs and JSON output render naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class ProviderName(StrEnum):
    TENCENT_CLOUD = "tencent-cloud"
    ALIYUN = "aliyun"


# ---------------------------------------------------------------------------
# Record lifecycle
# ---------------------------------------------------------------------------


class DeleteOutcome(StrEnum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Challenge orchestration
# ---------------------------------------------------------------------------


class ChallengeState(StrEnum):
    IDLE = "idle"
    ZONE_RESOLVING = "zone_resolving"
    QUEUED = "queued"
    CREATED = "created"
    CLEANUP_QUEUED = "cleanup_queued"
    REMOVED = "removed"
    FAILED = "failed"

"""DNS-01 challenge automation.

Zone resolution, the per-credential operation queue and the challenge
orchestrator that the ACME issuer calls into.
"""

from certpilot.dns01.orchestrator import ChallengeOrchestrator
from certpilot.dns01.queue import OperationQueue
from certpilot.dns01.zones import ZoneMatch, ZoneResolver, challenge_subdomain, match_zone

__all__ = [
    "ChallengeOrchestrator",
    "OperationQueue",
    "ZoneMatch",
    "ZoneResolver",
    "challenge_subdomain",
    "match_zone",
]

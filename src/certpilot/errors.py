"""Exception taxonomy for the DNS-01 challenge layer.

Every failure raised below the challenge orchestrator derives from
:class:`DnsChallengeError`.  The orchestrator is the single place that
catches these: it logs them and degrades to a no-op so that one broken
domain never aborts validation of its siblings.
"""

from __future__ import annotations


class DnsChallengeError(Exception):
    """Base class for DNS-01 automation failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the operation may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class ZoneNotFound(DnsChallengeError):
    """No provider-managed zone is a suffix of the requested domain."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"No managed DNS zone matches '{domain}'")


class ZoneNotUsable(DnsChallengeError):
    """A matching zone exists but is disabled or not delegated to the provider."""

    def __init__(self, zone_name: str, reason: str) -> None:
        self.zone_name = zone_name
        self.reason = reason
        super().__init__(f"DNS zone '{zone_name}' is not usable: {reason}")


class RecordNotFound(DnsChallengeError):
    """The TXT record targeted for deletion does not exist.

    Not an error condition during cleanup; callers log it as a warning.
    """

    def __init__(self, zone_name: str, subdomain: str) -> None:
        self.zone_name = zone_name
        self.subdomain = subdomain
        super().__init__(f"No matching TXT record at '{subdomain}' in zone '{zone_name}'")


class ApiCallFailed(DnsChallengeError):
    """A provider API call failed.

    Covers transport errors, non-2xx responses, undecodable bodies and
    vendor error codes embedded in otherwise successful responses.

    Parameters
    ----------
    message:
        Human-readable description.
    code:
        Vendor error code, when the provider reported one.
    status:
        HTTP status code, when a response was received.
    retryable:
        Whether retrying after a pause may succeed.

    """

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.code = code
        self.status = status
        detail = f"{message} (code={code})" if code else message
        super().__init__(detail, retryable=retryable)


class SigningInputInvalid(DnsChallengeError):
    """The request handed to a signer cannot be canonicalised."""

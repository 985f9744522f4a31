"""Exception hierarchy for timelinemeta."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation failures."""

    pass


class RateLimitError(ReconciliationError):
    """A provider signalled throttling.

    Args:
        provider: Provider that refused the call
        retry_after: Seconds to wait before calling again, if the provider said so
    """

    def __init__(self, provider, retry_after: Optional[float] = None, message: str = ""):
        self.provider = provider
        self.retry_after = retry_after
        name = getattr(provider, "value", provider)
        detail = f" ({message})" if message else ""
        super().__init__(f"{name} rate limited{detail}")


class ProviderError(ReconciliationError):
    """Unexpected provider failure that is not throttling."""

    pass


class ProviderNotImplemented(ProviderError):
    """Provider participates in ordering but has no network implementation."""

    pass


class ContentStoreError(ReconciliationError):
    """Content store read/write failure."""

    pass


class WorkflowStateError(ReconciliationError):
    """Approval workflow transition not allowed from the current step."""

    pass

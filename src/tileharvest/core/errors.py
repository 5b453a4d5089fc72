"""Exception hierarchy shared by the harvest pipeline."""

from __future__ import annotations


class HarvestError(RuntimeError):
    """Raised when a harvest job cannot complete."""

    category = "internal"


class InvalidRequestError(HarvestError):
    """Raised when a request cannot be served as described."""

    category = "invalid-request"


class UnsupportedServiceError(InvalidRequestError):
    """Raised when no tile source is registered for a service type."""


class CapabilitiesError(InvalidRequestError):
    """Raised when a capabilities document is unusable for the requested layers."""


class StoreError(HarvestError):
    """Raised when the tile store cannot be opened, read or written."""

    category = "store-io"

"""Milestone-gated crowdfunding ledger."""

from fundgate.config import APP_VERSION as __version__

__all__ = ["__version__"]

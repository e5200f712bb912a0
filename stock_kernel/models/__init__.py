"""Persistence models for the stock kernel."""

from stock_kernel.models.session_state import DraftSessionState

__all__ = ["DraftSessionState"]

"""
Analysis module for options opportunities.

This module loads securities, computes their metrics, and screens trades.
"""

from .metrics import contract_metrics, enrich
from .scanner import SecurityLoader, build_loader
from .screener import OptionsScreener

__all__ = [
    "contract_metrics",
    "enrich",
    "SecurityLoader",
    "build_loader",
    "OptionsScreener",
]

"""P&L import, account mapping and cash-flow allocation."""

__version__ = "0.1.0"

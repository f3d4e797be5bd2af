"""
Hub Overlap Pipeline Package

This package enriches Stargaze accounts with the balance and staking status of
their derived Cosmos Hub accounts, and reports how much the two user bases
overlap.
"""

__version__ = "1.0.0"

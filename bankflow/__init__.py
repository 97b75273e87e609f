"""
BankFlow - Source Package

A single-account personal finance ledger: deposits, withdrawals,
running balances, daily limits and monthly statistics.

DESIGN PRINCIPLES:
1. Validate everything before touching state
2. Rejections are values, not crashes
3. Rounding to cents after every currency operation
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "BankFlow Team"

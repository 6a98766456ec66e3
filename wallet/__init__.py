"""
Personal Wallet - Source Package

A personal-finance ledger that derives every balance from an append-only
transaction log and gates money-moving operations behind fraud-prevention
rate limits.

DESIGN PRINCIPLES:
1. The log is the truth, balances are derived from it
2. A transfer is one commit, never two writes
3. Fail loudly with a specific reason
4. Every money movement is auditable
5. Storage and identity are swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Wallet Team"

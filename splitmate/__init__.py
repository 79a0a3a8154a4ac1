"""
SplitMate - Shared Expense Ledger

Records shared expenses, splits them among group or one-on-one
participants, and keeps every user's running balance.

DESIGN PRINCIPLES:
1. Expense and settlement records are the source of truth
2. Balances are a view that every write keeps in step
3. Fail early, fail visibly on writes
4. AI proposes an expense; the ledger re-validates it
5. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "SplitMate Team"

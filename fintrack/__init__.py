"""
fintrack

The balance-consistency core of a personal finance tracker: accounts,
credit cards, expenses, income and the transactions derived from them.

DESIGN PRINCIPLES:
1. Every stored balance is explainable by its live transactions
2. Fail early, fail visibly
3. No partial writes
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"

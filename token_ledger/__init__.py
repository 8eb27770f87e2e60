"""
Token Ledger

A fixed-supply fungible token ledger with balance transfers, allowances
and delegated transfers, backed by atomic storage and a hash-chained
record log.
"""

__version__ = "1.0.0"

"""
Dairy Kernel - settlement ledger core

An append-only settlement ledger for milk collection with:
- Write-time pricing against banded rate cards
- Immutable collection entries and payments (corrections by compensation)
- FIFO advance drawdown with per-customer serialization
- Typed errors and structured logging
"""

__version__ = "0.1.0"

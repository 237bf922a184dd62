"""wallet-sync: pending transaction reconciliation and live wallet events.

Watches a single EVM-compatible chain, moves locally recorded transactions
from ``pending`` to ``success`` or ``failed`` as receipts appear, and pushes
block and transaction events to connected WebSocket clients.
"""

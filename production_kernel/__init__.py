"""
Production Kernel

A transactional core for a shoe factory floor with:
- A strict three-state order lifecycle (queued -> in_progress -> finished)
- Lazily generated, idempotent supply requirements per order
- Atomic, all-or-nothing supply consumption that never drives stock negative
- An append-only audit trail of status changes and consumption events
- Single-snapshot dashboard KPIs
"""

__version__ = "0.1.0"

"""
Budget Kernel

The recurring budget period engine:
- Timezone-local calendar arithmetic
- Period generation (forward, retroactive, continuation)
- Forward-only period status classification
- Budget role state machine (one active, one upcoming)
- Orphan expense reconciliation
"""

__version__ = "0.1.0"

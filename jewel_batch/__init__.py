"""
jewel_batch -- Scheduling for the autopilot.

Runs autopilot cycles once after the initial order load and, optionally,
on a fixed interval in a background thread.

Architecture:
    jewel_batch/ is a top-level package.  Nothing in kernel/, engines/,
    config/ or services/ imports from jewel_batch.

Invariants:
    - Cycles are serialized; no two scans overlap.
    - Clock injection (no datetime.now() calls outside SystemClock).
    - Graceful shutdown.
"""

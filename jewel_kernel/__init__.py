"""
Jewel Kernel - payment plan and gold-rate protection core

Order values, money rounding, typed errors, structured logging and the
persistence primitives shared by the engine, service and batch layers:
- Integer-rupee rounding with no drift across recalculation
- Immutable order aggregate replaced wholesale on every change
- Deterministic clock injection
"""

__version__ = "0.1.0"

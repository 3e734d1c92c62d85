"""
Compliance Kernel

The lowest layer of the outdoor-advertising compliance engine:
- Tender agreements and the tax installments they own
- Typed errors with machine-readable codes
- Structured JSON logging
- Injectable clock for deterministic status classification
- SQLAlchemy persistence with soft-delete lifecycle columns
"""

__version__ = "0.1.0"

"""
Tax Kernel - order tax snapshots and invoice numbering

A pure calculation core for closed restaurant orders with:
- Integer minor-unit money and explicit rounding modes
- Typed, immutable tax profiles with jurisdiction overrides
- Frozen tax snapshots persisted verbatim alongside orders
- Gap-free, reset-aware invoice sequences
"""

__version__ = "0.1.0"

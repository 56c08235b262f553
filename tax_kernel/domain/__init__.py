"""
Pure domain layer.

Money primitives, the typed tax profile, order inputs and the tax snapshot,
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time

All domain objects are immutable and deterministic.
"""

from tax_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from tax_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from tax_kernel.domain.money import (
    BPS_DENOMINATOR,
    RoundingMode,
    apply_rate_bps,
    extract_from_gross,
    line_base_cents,
    percent_of,
    round_ratio,
)
from tax_kernel.domain.order import Customer, Locality, OrderContext, OrderLine
from tax_kernel.domain.rules import (
    AllItems,
    AsLine,
    B2BConfig,
    DeliveryPolicy,
    FilteredItems,
    InvoiceNumberingConfig,
    JurisdictionMatch,
    JurisdictionRule,
    OutOfScope,
    RateFilter,
    ResetPolicy,
    SurchargeRule,
    TaxProfile,
    TaxRateRule,
    normalize_order_type,
)
from tax_kernel.domain.snapshot import (
    BaseSummary,
    DeliveryLine,
    RateSummary,
    SnapshotCustomer,
    SnapshotTotals,
    SurchargeLine,
    TaxSnapshot,
)

__all__ = [
    "AllItems",
    "AsLine",
    "B2BConfig",
    "BPS_DENOMINATOR",
    "BaseSummary",
    "Clock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Customer",
    "DeliveryLine",
    "DeliveryPolicy",
    "DeterministicClock",
    "FilteredItems",
    "InvoiceNumberingConfig",
    "JurisdictionMatch",
    "JurisdictionRule",
    "Locality",
    "OrderContext",
    "OrderLine",
    "OutOfScope",
    "RateFilter",
    "RateSummary",
    "ResetPolicy",
    "RoundingMode",
    "SnapshotCustomer",
    "SnapshotTotals",
    "SurchargeLine",
    "SurchargeRule",
    "SystemClock",
    "TaxProfile",
    "TaxRateRule",
    "TaxSnapshot",
    "apply_rate_bps",
    "extract_from_gross",
    "line_base_cents",
    "normalize_order_type",
    "percent_of",
    "round_ratio",
]

"""
Snapshot -- The frozen result of tax calculation for one closed order.

Responsibility:
    Immutable value objects produced by ``SnapshotCalculator`` and persisted
    verbatim alongside the order.  A snapshot is created once at order close
    and never recomputed, even when the tenant's profile changes later.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - ``totals.grand_total_cents == totals.sub_total_cents + totals.tax_cents
      + out-of-scope delivery fee``.
    - ``to_dict()`` is deterministic, so equal snapshots have equal
      ``fingerprint()`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tax_kernel.domain.money import RoundingMode
from tax_kernel.utils.hashing import hash_payload


@dataclass(frozen=True)
class SnapshotTotals:
    sub_total_cents: int
    tax_cents: int
    grand_total_cents: int


@dataclass(frozen=True)
class RateSummary:
    """Base and tax accumulated under one rate code."""

    code: str
    rate_bps: int
    base_cents: int
    tax_cents: int
    label: str = ""


@dataclass(frozen=True)
class BaseSummary:
    """Untaxed base: used for both the zero-rated and the exempt bucket."""

    base_cents: int = 0


@dataclass(frozen=True)
class SurchargeLine:
    code: str
    base_cents: int
    tax_cents: int
    taxable: bool
    label: str = ""
    tax_code: str | None = None


@dataclass(frozen=True)
class DeliveryLine:
    """
    How the delivery fee was treated.

    For ``out_of_scope`` the fee is carried in ``base_cents`` for display but
    is not part of the subtotal; it is added to the grand total after tax.
    """

    mode: str
    base_cents: int
    tax_cents: int
    taxable: bool
    tax_code: str | None = None


@dataclass(frozen=True)
class SnapshotCustomer:
    tax_id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class TaxSnapshot:
    """
    Immutable tax snapshot of a closed order.

    ``jurisdiction_applied`` is empty when the base profile applied.
    ``exemption_applied`` records that the B2B override moved the taxable
    base into ``summary_exempt``.
    """

    currency: str
    order_type: str
    jurisdiction_applied: str
    totals: SnapshotTotals
    summary_by_rate: tuple[RateSummary, ...] = ()
    summary_zero_rated: BaseSummary = field(default_factory=BaseSummary)
    summary_exempt: BaseSummary = field(default_factory=BaseSummary)
    surcharges: tuple[SurchargeLine, ...] = ()
    delivery: DeliveryLine | None = None
    customer: SnapshotCustomer = field(default_factory=SnapshotCustomer)
    prices_include_tax: bool = False
    rounding: RoundingMode = RoundingMode.HALF_UP
    exemption_applied: bool = False

    def rate(self, code: str) -> RateSummary | None:
        """Summary row for a rate code, or None."""
        for row in self.summary_by_rate:
            if row.code == code:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        """The persistence document (camelCase keys, ints for money)."""
        doc: dict[str, Any] = {
            "currency": self.currency,
            "orderType": self.order_type,
            "jurisdictionApplied": self.jurisdiction_applied,
            "pricesIncludeTax": self.prices_include_tax,
            "rounding": self.rounding.value,
            "exemptionApplied": self.exemption_applied,
            "totals": {
                "subTotalCents": self.totals.sub_total_cents,
                "taxCents": self.totals.tax_cents,
                "grandTotalCents": self.totals.grand_total_cents,
            },
            "summaryByRate": [
                {
                    "code": r.code,
                    "label": r.label,
                    "rateBps": r.rate_bps,
                    "baseCents": r.base_cents,
                    "taxCents": r.tax_cents,
                }
                for r in self.summary_by_rate
            ],
            "summaryZeroRated": {"baseCents": self.summary_zero_rated.base_cents},
            "summaryExempt": {"baseCents": self.summary_exempt.base_cents},
            "surcharges": [
                {
                    "code": s.code,
                    "label": s.label,
                    "baseCents": s.base_cents,
                    "taxCents": s.tax_cents,
                    "taxable": s.taxable,
                    "taxCode": s.tax_code,
                }
                for s in self.surcharges
            ],
            "customer": {"taxId": self.customer.tax_id, "name": self.customer.name},
            "delivery": None,
        }
        if self.delivery is not None:
            doc["delivery"] = {
                "mode": self.delivery.mode,
                "baseCents": self.delivery.base_cents,
                "taxCents": self.delivery.tax_cents,
                "taxable": self.delivery.taxable,
                "taxCode": self.delivery.tax_code,
            }
        return doc

    def fingerprint(self) -> str:
        """SHA-256 of the canonical persistence document."""
        return hash_payload(self.to_dict())

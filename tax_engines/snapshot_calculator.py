"""
Snapshot Calculator - Produce the frozen tax snapshot of a closed order.

Pure functions with no I/O - the profile and the order are provided as
parameters, a ``TaxSnapshot`` is returned.  Safe to call concurrently for
different orders.

Steps, in order:
    1. Resolve the jurisdiction (one rule at most).
    2. Validate the effective configuration: duplicate rate codes and
       dangling surcharge/delivery tax codes fail the whole calculation,
       whether or not this particular order would have used them.
    3. Classify every line; accumulate gross base per rate code, the
       zero-rated base (zero-rated and unclassified lines) and the exempt
       base.
    4. B2B exemption: with ``tax_exempt_with_tax_id`` and a customer that
       carries a tax ID (or is flagged exempt), every rate bucket's base
       moves to exempt.  All-or-nothing: surcharge and delivery tax are
       zero as well.
    5. Per rate bucket: inclusive pricing extracts net + tax from the
       gross; exclusive pricing applies the rate to the base.
    6. Surcharges on the pre-surcharge subtotal; tax-exclusive always.
    7. Delivery: as a line (optionally taxed) or out of scope.
    8. Totals.

Usage:
    from tax_engines.snapshot_calculator import SnapshotCalculator
    from tax_kernel.domain.order import OrderContext, OrderLine

    order = OrderContext(lines=(OrderLine(quantity=2, unit_price_cents=2500),))
    snapshot = SnapshotCalculator().calculate(order, profile)
    print(snapshot.totals.grand_total_cents)  # 5600 with a 12% "std" rate
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from tax_engines.classifier import Exempt, LineClassifier, TaxedAt, Unclassified, ZeroRated
from tax_engines.jurisdiction import EffectiveConfig, JurisdictionResolver
from tax_kernel.domain.money import apply_rate_bps, extract_from_gross, percent_of
from tax_kernel.domain.order import OrderContext
from tax_kernel.domain.rules import AsLine, OutOfScope, TaxProfile
from tax_kernel.domain.snapshot import (
    BaseSummary,
    DeliveryLine,
    RateSummary,
    SnapshotCustomer,
    SnapshotTotals,
    SurchargeLine,
    TaxSnapshot,
)
from tax_kernel.exceptions import DuplicateRateCodeError, UnknownTaxCodeError
from tax_kernel.logging_config import get_logger

logger = get_logger("engines.snapshot")


@dataclass
class _Accumulator:
    """Mutable working state for one calculation. Never leaves this module."""

    gross_by_code: dict[str, int]
    zero_rated_cents: int = 0
    exempt_cents: int = 0
    unclassified_count: int = 0


def validate_effective_config(effective: EffectiveConfig) -> None:
    """
    Fail fast on a broken effective configuration.

    Raises:
        DuplicateRateCodeError: Two effective rates share a code.
        UnknownTaxCodeError: A taxable surcharge or taxable as-line delivery
            has no tax code, or one absent from the effective rates.
    """
    seen: set[str] = set()
    for rate in effective.rates:
        if rate.code in seen:
            logger.error("tax_rate_code_duplicated", extra={
                "rate_code": rate.code,
                "jurisdiction_code": effective.jurisdiction_code,
            })
            raise DuplicateRateCodeError(rate.code, effective.jurisdiction_code)
        seen.add(rate.code)

    references: list[tuple[str, str | None]] = [
        (f"surcharge {s.code!r}", s.tax_code) for s in effective.surcharges if s.taxable
    ]
    delivery = effective.delivery
    if isinstance(delivery, AsLine) and delivery.taxable:
        references.append(("delivery", delivery.tax_code))

    for referenced_by, tax_code in references:
        if tax_code not in seen:
            logger.error("tax_code_not_found", extra={
                "tax_code": tax_code,
                "referenced_by": referenced_by,
                "available_codes": sorted(seen),
                "jurisdiction_code": effective.jurisdiction_code,
            })
            raise UnknownTaxCodeError(
                tax_code,
                referenced_by,
                available_codes=effective.rate_codes,
                jurisdiction_code=effective.jurisdiction_code,
            )


class SnapshotCalculator:
    """
    Compute tax snapshots for closed orders.

    Holds no per-order state; the resolver and classifier are stateless
    collaborators and may be replaced in tests.
    """

    def __init__(
        self,
        resolver: JurisdictionResolver | None = None,
        classifier: LineClassifier | None = None,
    ):
        self._resolver = resolver or JurisdictionResolver()
        self._classifier = classifier or LineClassifier()

    def calculate(self, order: OrderContext, profile: TaxProfile) -> TaxSnapshot:
        """
        Calculate the tax snapshot for ``order`` under ``profile``.

        Raises:
            ConfigurationError: The effective configuration is invalid.
        """
        t0 = time.monotonic()
        logger.info("tax_snapshot_started", extra={
            "line_count": len(order.lines),
            "order_type": order.order_type,
            "profile_id": profile.profile_id,
        })

        effective = self._resolver.resolve(profile, order.locality)
        validate_effective_config(effective)

        acc = self._accumulate(order, effective)

        exemption_applied = profile.b2b.tax_exempt_with_tax_id and (
            order.customer.has_tax_id or order.customer.tax_exempt
        )
        summary_by_rate = self._summarize_rates(acc, effective, exemption_applied)

        rate_base = sum(r.base_cents for r in summary_by_rate)
        rate_tax = sum(r.tax_cents for r in summary_by_rate)
        pre_surcharge_subtotal = rate_base + acc.zero_rated_cents + acc.exempt_cents

        surcharges = self._surcharges(
            effective, order.order_type, pre_surcharge_subtotal, exemption_applied,
        )
        delivery = self._delivery(effective, order.delivery_fee_cents, exemption_applied)

        as_line_base = 0
        out_of_scope_fee = 0
        delivery_tax = 0
        if delivery is not None:
            if delivery.mode == AsLine.mode:
                as_line_base = delivery.base_cents
                delivery_tax = delivery.tax_cents
            else:
                out_of_scope_fee = delivery.base_cents

        sub_total = pre_surcharge_subtotal + sum(s.base_cents for s in surcharges) + as_line_base
        tax_total = rate_tax + sum(s.tax_cents for s in surcharges) + delivery_tax
        totals = SnapshotTotals(
            sub_total_cents=sub_total,
            tax_cents=tax_total,
            grand_total_cents=sub_total + tax_total + out_of_scope_fee,
        )

        customer = order.customer
        snapshot = TaxSnapshot(
            currency=(order.currency or profile.currency).strip().upper(),
            order_type=order.order_type,
            jurisdiction_applied=effective.jurisdiction_code,
            totals=totals,
            summary_by_rate=summary_by_rate,
            summary_zero_rated=BaseSummary(base_cents=acc.zero_rated_cents),
            summary_exempt=BaseSummary(base_cents=acc.exempt_cents),
            surcharges=surcharges,
            delivery=delivery,
            customer=SnapshotCustomer(
                tax_id=customer.tax_id.strip() if customer.has_tax_id else None,
                name=customer.name,
            ),
            prices_include_tax=effective.prices_include_tax,
            rounding=effective.rounding,
            exemption_applied=exemption_applied,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("tax_snapshot_completed", extra={
            "jurisdiction_code": effective.jurisdiction_code,
            "rate_bucket_count": len(summary_by_rate),
            "unclassified_line_count": acc.unclassified_count,
            "exemption_applied": exemption_applied,
            "sub_total_cents": totals.sub_total_cents,
            "tax_cents": totals.tax_cents,
            "grand_total_cents": totals.grand_total_cents,
            "duration_ms": duration_ms,
        })
        return snapshot

    def _accumulate(self, order: OrderContext, effective: EffectiveConfig) -> _Accumulator:
        acc = _Accumulator(gross_by_code={})
        for result in self._classifier.classify_all(
            order.lines, order.order_type, effective.rates,
        ):
            if result.base_cents == 0:
                continue
            bucket = result.bucket
            if isinstance(bucket, TaxedAt):
                acc.gross_by_code[bucket.code] = (
                    acc.gross_by_code.get(bucket.code, 0) + result.base_cents
                )
            elif isinstance(bucket, Exempt):
                acc.exempt_cents += result.base_cents
            elif isinstance(bucket, Unclassified):
                acc.unclassified_count += 1
                acc.zero_rated_cents += result.base_cents
            elif isinstance(bucket, ZeroRated):
                acc.zero_rated_cents += result.base_cents
        return acc

    def _summarize_rates(
        self,
        acc: _Accumulator,
        effective: EffectiveConfig,
        exemption_applied: bool,
    ) -> tuple[RateSummary, ...]:
        rows: list[RateSummary] = []
        for rate in effective.rates:
            if rate.code not in acc.gross_by_code:
                continue
            gross = acc.gross_by_code[rate.code]

            if exemption_applied:
                acc.exempt_cents += gross
                base, tax = 0, 0
            elif effective.prices_include_tax:
                base, tax = extract_from_gross(gross, rate.rate_bps, effective.rounding)
            else:
                base = gross
                tax = apply_rate_bps(gross, rate.rate_bps, effective.rounding)

            rows.append(RateSummary(
                code=rate.code,
                rate_bps=rate.rate_bps,
                base_cents=base,
                tax_cents=tax,
                label=rate.label,
            ))
        return tuple(rows)

    def _surcharges(
        self,
        effective: EffectiveConfig,
        order_type: str,
        subtotal_cents: int,
        exemption_applied: bool,
    ) -> tuple[SurchargeLine, ...]:
        """
        Surcharge lines on the pre-surcharge subtotal.

        Under the B2B exemption a taxable surcharge is still listed but its
        tax is 0, unlike item-level exemption which would leave it taxed.
        """
        lines: list[SurchargeLine] = []
        for rule in effective.surcharges:
            if not rule.applies_to_order_type(order_type):
                continue
            base = percent_of(subtotal_cents, rule.percent_bps, effective.rounding)
            tax = 0
            if rule.taxable and not exemption_applied:
                rate = effective.find_rate(rule.tax_code)
                tax = apply_rate_bps(base, rate.rate_bps, effective.rounding)
            lines.append(SurchargeLine(
                code=rule.code,
                base_cents=base,
                tax_cents=tax,
                taxable=rule.taxable,
                label=rule.label,
                tax_code=rule.tax_code,
            ))
        return tuple(lines)

    def _delivery(
        self,
        effective: EffectiveConfig,
        fee_cents: int,
        exemption_applied: bool,
    ) -> DeliveryLine | None:
        """None when there is no fee; delivery tax is 0 under the B2B exemption."""
        if fee_cents == 0:
            return None

        policy = effective.delivery
        if isinstance(policy, OutOfScope):
            return DeliveryLine(
                mode=OutOfScope.mode, base_cents=fee_cents, tax_cents=0, taxable=False,
            )

        tax = 0
        if policy.taxable and not exemption_applied:
            rate = effective.find_rate(policy.tax_code)
            tax = apply_rate_bps(fee_cents, rate.rate_bps, effective.rounding)
        return DeliveryLine(
            mode=AsLine.mode,
            base_cents=fee_cents,
            tax_cents=tax,
            taxable=policy.taxable,
            tax_code=policy.tax_code,
        )

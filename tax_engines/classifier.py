"""
Line Classifier - Map each order line to its tax bucket.

Pure functions with no I/O - the effective rate list is provided as a
parameter.

Buckets:
    TaxedAt(code)   first matching rule has a non-zero rate
    ZeroRated       first matching rule has rate 0 (taxable at 0%)
    Exempt          line flagged tax_exempt, or first matching rule is exempt
    Unclassified    no rule matched; booked as zero-rated by the snapshot
                    calculator so taxable base is never silently dropped

Usage:
    from tax_engines.classifier import LineClassifier
    from tax_kernel.domain.order import OrderLine

    result = LineClassifier().classify(
        OrderLine(quantity=2, unit_price_cents=2500, category_id="food"),
        order_type="dine-in",
        rates=profile.rates,
    )
    print(result.bucket, result.base_cents)  # TaxedAt(code='std') 5000
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from tax_kernel.domain.order import OrderLine
from tax_kernel.domain.rules import (
    AllItems,
    FilteredItems,
    TaxRateRule,
    normalize_order_type,
)
from tax_kernel.logging_config import get_logger

logger = get_logger("engines.classifier")


@dataclass(frozen=True)
class TaxedAt:
    code: str


@dataclass(frozen=True)
class ZeroRated:
    pass


@dataclass(frozen=True)
class Exempt:
    pass


@dataclass(frozen=True)
class Unclassified:
    pass


Bucket = Union[TaxedAt, ZeroRated, Exempt, Unclassified]


@dataclass(frozen=True)
class LineClassification:
    """
    Result of classifying one line.

    ``rule_code`` is the code of the rule that matched, or None when the
    line was exempted by its own flag or matched nothing.
    """

    bucket: Bucket
    base_cents: int
    rule_code: str | None = None


def _order_type_allowed(order_types: tuple[str, ...], order_type: str) -> bool:
    return not order_types or order_type in order_types


def rule_matches(rule: TaxRateRule, line: OrderLine, order_type: str) -> bool:
    """Whether ``rule`` applies to ``line`` under ``order_type``."""
    applies_to = rule.applies_to

    if isinstance(applies_to, AllItems):
        return _order_type_allowed(applies_to.order_types, order_type)

    if isinstance(applies_to, FilteredItems):
        if not _order_type_allowed(applies_to.order_types, order_type):
            return False
        if applies_to.categories and line.category_id not in applies_to.categories:
            return False
        tags = set(line.tags)
        if applies_to.tags_in and not tags.intersection(applies_to.tags_in):
            return False
        if tags.intersection(applies_to.tags_excluded):
            return False
        return True

    raise TypeError(f"Unsupported rate filter: {type(applies_to).__name__}")


class LineClassifier:
    """
    Classify order lines against an ordered rate list.

    Stateless; safe to share between threads.
    """

    def classify(
        self,
        line: OrderLine,
        order_type: str,
        rates: Sequence[TaxRateRule],
    ) -> LineClassification:
        base = line.base_cents

        if line.tax_exempt:
            return LineClassification(bucket=Exempt(), base_cents=base)

        normalized = normalize_order_type(order_type)
        for rule in rates:
            if not rule_matches(rule, line, normalized):
                continue
            if rule.exempt:
                bucket: Bucket = Exempt()
            elif rule.rate_bps == 0:
                bucket = ZeroRated()
            else:
                bucket = TaxedAt(rule.code)
            return LineClassification(bucket=bucket, base_cents=base, rule_code=rule.code)

        logger.debug("line_unclassified", extra={
            "line_id": line.line_id,
            "category_id": line.category_id,
            "order_type": normalized,
            "base_cents": base,
        })
        return LineClassification(bucket=Unclassified(), base_cents=base)

    def classify_all(
        self,
        lines: Sequence[OrderLine],
        order_type: str,
        rates: Sequence[TaxRateRule],
    ) -> list[LineClassification]:
        """Classify every line, preserving order."""
        return [self.classify(line, order_type, rates) for line in lines]

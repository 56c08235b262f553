"""
Jurisdiction Resolver - Merge a profile with its best-matching locality override.

Pure function with no I/O: the profile and the order's delivery locality are
passed in, one ``EffectiveConfig`` comes out.

Matching:
    A rule matches when every criterion present in its ``match`` equals the
    locality field (case-insensitive, surrounding whitespace ignored);
    ``zip_prefix`` matches by string prefix.

Selection:
    Highest specificity tier wins (zip_prefix > city > state > country).
    Within one tier the earliest rule in profile order wins.  Only one rule
    ever applies to an order.

Merging:
    Each override present on the winning rule replaces the base value; lists
    are never appended to.

Usage:
    from tax_engines.jurisdiction import JurisdictionResolver
    from tax_kernel.domain.order import Locality

    effective = JurisdictionResolver().resolve(profile, Locality(zip="01010"))
    effective.jurisdiction_code  # "" when the base profile applies
"""

from __future__ import annotations

from dataclasses import dataclass

from tax_kernel.domain.money import RoundingMode
from tax_kernel.domain.order import Locality
from tax_kernel.domain.rules import (
    DeliveryPolicy,
    JurisdictionMatch,
    JurisdictionRule,
    SurchargeRule,
    TaxProfile,
    TaxRateRule,
)
from tax_kernel.logging_config import get_logger

logger = get_logger("engines.jurisdiction")


@dataclass(frozen=True)
class EffectiveConfig:
    """The rule set that governs one order after jurisdiction resolution."""

    rates: tuple[TaxRateRule, ...]
    surcharges: tuple[SurchargeRule, ...]
    delivery: DeliveryPolicy
    prices_include_tax: bool
    rounding: RoundingMode
    jurisdiction_code: str = ""

    def find_rate(self, code: str | None) -> TaxRateRule | None:
        if not code:
            return None
        for rate in self.rates:
            if rate.code == code:
                return rate
        return None

    @property
    def rate_codes(self) -> tuple[str, ...]:
        return tuple(r.code for r in self.rates)


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def matches_locality(match: JurisdictionMatch, locality: Locality) -> bool:
    """True when every present criterion of ``match`` holds for ``locality``."""
    if match.country and _norm(match.country) != _norm(locality.country):
        return False
    if match.state and _norm(match.state) != _norm(locality.state):
        return False
    if match.city and _norm(match.city) != _norm(locality.city):
        return False
    if match.zip_prefix and not _norm(locality.zip).startswith(_norm(match.zip_prefix)):
        return False
    return True


class JurisdictionResolver:
    """
    Resolve the effective configuration for an order's locality.

    Stateless; safe to share between threads.
    """

    def select(
        self,
        jurisdictions: tuple[JurisdictionRule, ...],
        locality: Locality | None,
    ) -> JurisdictionRule | None:
        """
        Pick the single applicable jurisdiction rule, or None.

        Ties inside a tier go to the earliest rule: a later rule only
        replaces the current best when its tier is strictly higher.
        """
        if not jurisdictions or locality is None:
            return None

        best: JurisdictionRule | None = None
        for rule in jurisdictions:
            if not matches_locality(rule.match, locality):
                continue
            if best is None or rule.match.specificity > best.match.specificity:
                best = rule
        return best

    def resolve(self, profile: TaxProfile, locality: Locality | None) -> EffectiveConfig:
        """Merge the base profile with the winning jurisdiction's overrides."""
        rule = self.select(profile.jurisdictions, locality)

        if rule is None:
            logger.debug("jurisdiction_not_matched", extra={
                "jurisdiction_count": len(profile.jurisdictions),
            })
            return EffectiveConfig(
                rates=profile.rates,
                surcharges=profile.surcharges,
                delivery=profile.delivery,
                prices_include_tax=profile.prices_include_tax,
                rounding=profile.rounding,
                jurisdiction_code="",
            )

        effective = EffectiveConfig(
            rates=rule.rates if rule.rates is not None else profile.rates,
            surcharges=(
                rule.surcharges if rule.surcharges is not None else profile.surcharges
            ),
            delivery=rule.delivery if rule.delivery is not None else profile.delivery,
            prices_include_tax=(
                rule.prices_include_tax
                if rule.prices_include_tax is not None
                else profile.prices_include_tax
            ),
            rounding=rule.rounding if rule.rounding is not None else profile.rounding,
            jurisdiction_code=rule.code,
        )

        logger.debug("jurisdiction_resolved", extra={
            "jurisdiction_code": rule.code,
            "specificity": rule.match.specificity,
            "rates_overridden": rule.rates is not None,
            "surcharges_overridden": rule.surcharges is not None,
            "delivery_overridden": rule.delivery is not None,
        })
        return effective

"""
Tests for LineClassifier.

Covers:
- Bucket selection: TaxedAt, ZeroRated, Exempt, Unclassified
- Filter semantics (categories, tags in/excluded, order types)
- First matching rule wins
"""

from tax_engines.classifier import (
    Exempt,
    LineClassifier,
    TaxedAt,
    Unclassified,
    ZeroRated,
    rule_matches,
)
from tax_kernel.domain.order import OrderLine
from tax_kernel.domain.rules import AllItems, FilteredItems, TaxRateRule


def _line(**kwargs) -> OrderLine:
    fields = {"quantity": 1, "unit_price_cents": 1000}
    fields.update(kwargs)
    return OrderLine(**fields)


class TestBuckets:
    def setup_method(self):
        self.classifier = LineClassifier()

    def test_taxed_at_matching_rate(self, std_rate):
        result = self.classifier.classify(_line(quantity=2, unit_price_cents=2500), "dine-in", (std_rate,))
        assert result.bucket == TaxedAt("std")
        assert result.base_cents == 5000
        assert result.rule_code == "std"

    def test_base_includes_per_unit_addons(self, std_rate):
        result = self.classifier.classify(
            _line(quantity=3, unit_price_cents=1000, addons_cents=200), "dine-in", (std_rate,),
        )
        assert result.base_cents == 3600

    def test_zero_rate_is_zero_rated(self):
        rates = (TaxRateRule(code="basic", rate_bps=0),)
        result = self.classifier.classify(_line(), "dine-in", rates)
        assert result.bucket == ZeroRated()
        assert result.rule_code == "basic"

    def test_exempt_rule(self):
        rates = (TaxRateRule(code="exempt", rate_bps=0, exempt=True),)
        assert self.classifier.classify(_line(), "dine-in", rates).bucket == Exempt()

    def test_exempt_line_skips_rules(self, std_rate):
        result = self.classifier.classify(_line(tax_exempt=True), "dine-in", (std_rate,))
        assert result.bucket == Exempt()
        assert result.rule_code is None

    def test_no_match_is_unclassified(self):
        rates = (TaxRateRule(code="food", rate_bps=1200, applies_to=FilteredItems(categories=("food",))),)
        result = self.classifier.classify(_line(category_id="merch"), "dine-in", rates)
        assert result.bucket == Unclassified()
        assert result.rule_code is None
        assert result.base_cents == 1000

    def test_empty_rate_list_is_unclassified(self):
        assert self.classifier.classify(_line(), "dine-in", ()).bucket == Unclassified()

    def test_first_match_wins(self):
        rates = (
            TaxRateRule(code="drinks", rate_bps=500, applies_to=FilteredItems(categories=("bev",))),
            TaxRateRule(code="std", rate_bps=1200),
        )
        assert self.classifier.classify(_line(category_id="bev"), "", rates).bucket == TaxedAt("drinks")
        assert self.classifier.classify(_line(category_id="food"), "", rates).bucket == TaxedAt("std")

    def test_classify_all_preserves_order(self, std_rate):
        lines = (_line(line_id="a"), _line(line_id="b", tax_exempt=True))
        results = self.classifier.classify_all(lines, "dine-in", (std_rate,))
        assert [r.bucket for r in results] == [TaxedAt("std"), Exempt()]


class TestFilters:
    def test_all_items_scoped_to_order_types(self):
        rule = TaxRateRule(code="dine", rate_bps=1200, applies_to=AllItems(order_types=("dine-in",)))
        assert rule_matches(rule, _line(), "dine-in")
        assert not rule_matches(rule, _line(), "pickup")

    def test_empty_filtered_items_matches_everything(self):
        rule = TaxRateRule(code="std", rate_bps=1200, applies_to=FilteredItems())
        assert rule_matches(rule, _line(), "delivery")

    def test_category_filter(self):
        rule = TaxRateRule(code="food", rate_bps=1200, applies_to=FilteredItems(categories=("food", "dessert")))
        assert rule_matches(rule, _line(category_id="dessert"), "")
        assert not rule_matches(rule, _line(category_id=None), "")

    def test_tags_in_needs_intersection(self):
        rule = TaxRateRule(code="hot", rate_bps=1200, applies_to=FilteredItems(tags_in=("hot", "grill")))
        assert rule_matches(rule, _line(tags=("grill", "beef")), "")
        assert not rule_matches(rule, _line(tags=("cold",)), "")
        assert not rule_matches(rule, _line(), "")

    def test_excluded_tag_vetoes(self):
        rule = TaxRateRule(
            code="std",
            rate_bps=1200,
            applies_to=FilteredItems(tags_in=("food",), tags_excluded=("zero-rated",)),
        )
        assert not rule_matches(rule, _line(tags=("food", "zero-rated")), "")

    def test_all_filters_must_pass(self):
        rule = TaxRateRule(
            code="dine-food",
            rate_bps=1200,
            applies_to=FilteredItems(categories=("food",), order_types=("dine-in",)),
        )
        assert rule_matches(rule, _line(category_id="food"), "dine-in")
        assert not rule_matches(rule, _line(category_id="food"), "delivery")
        assert not rule_matches(rule, _line(category_id="bev"), "dine-in")

    def test_order_type_normalized_before_matching(self):
        rule = TaxRateRule(code="dine", rate_bps=1200, applies_to=FilteredItems(order_types=("dine_in",)))
        result = LineClassifier().classify(_line(), "Dine_In", (rule,))
        assert result.bucket == TaxedAt("dine")

"""Tests for scripts/calculate_snapshot.py."""

import json

import pytest

from scripts.calculate_snapshot import main, parse_order_document
from tax_config import SAMPLE_SETS_DIR
from tax_kernel.logging_config import reset_logging

SAMPLE_PROFILE = SAMPLE_SETS_DIR / "gt_restaurant.yaml"


@pytest.fixture(autouse=True)
def _isolated_logging():
    """main() configures logging against the captured stderr; undo it."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def write_order(tmp_path):
    def _write(document) -> str:
        path = tmp_path / "order.json"
        path.write_text(document if isinstance(document, str) else json.dumps(document))
        return str(path)

    return _write


class TestParseOrderDocument:
    def test_full_document(self):
        order = parse_order_document({
            "orderType": "dine_in",
            "deliveryFeeCents": 1500,
            "currency": "gtq",
            "customer": {"taxId": "1234567-8", "name": "ACME", "taxExempt": True},
            "locality": {"country": "GT", "city": "Antigua", "zip": "03001"},
            "lines": [{
                "quantity": 2,
                "unitPriceCents": 2500,
                "addonsCents": 300,
                "categoryId": "food",
                "tags": ["hot"],
                "lineId": "L1",
            }],
        })

        assert order.order_type == "dine-in"
        assert order.delivery_fee_cents == 1500
        assert order.customer.has_tax_id
        assert order.customer.tax_exempt is True
        assert order.locality.zip == "03001"
        line = order.lines[0]
        assert (line.base_cents, line.category_id, line.tags, line.line_id) == (5600, "food", ("hot",), "L1")

    def test_minimal_document(self):
        order = parse_order_document({"lines": [{"unitPriceCents": 100}]})
        assert order.lines[0].quantity == 1
        assert order.order_type == ""
        assert order.delivery_fee_cents == 0


class TestMain:
    def test_prints_snapshot(self, write_order, capsys):
        order_path = write_order({
            "orderType": "dine-in",
            "lines": [{"quantity": 2, "unitPriceCents": 5600}],
        })

        exit_code = main(["--profile", str(SAMPLE_PROFILE), "--order", order_path, "--log-level", "ERROR"])

        assert exit_code == 0
        document = json.loads(capsys.readouterr().out)
        assert document["totals"] == {"subTotalCents": 11000, "taxCents": 1320, "grandTotalCents": 12320}
        assert document["currency"] == "GTQ"
        assert len(document["fingerprint"]) == 64

    def test_pretty_output_is_same_document(self, write_order, capsys):
        order_path = write_order({"lines": [{"quantity": 1, "unitPriceCents": 1120}]})
        args = ["--profile", str(SAMPLE_PROFILE), "--order", order_path, "--log-level", "ERROR"]

        main(args)
        compact = json.loads(capsys.readouterr().out)
        reset_logging()
        main(args + ["--pretty"])
        pretty = json.loads(capsys.readouterr().out)

        assert compact == pretty

    def test_missing_order_file(self, tmp_path, capsys):
        exit_code = main([
            "--profile", str(SAMPLE_PROFILE), "--order", str(tmp_path / "nope.json"), "--log-level", "ERROR",
        ])
        assert exit_code == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid_json(self, write_order, capsys):
        exit_code = main([
            "--profile", str(SAMPLE_PROFILE), "--order", write_order("{not json"), "--log-level", "ERROR",
        ])
        assert exit_code == 1
        assert "not valid JSON" in capsys.readouterr().err

    def test_invalid_yaml(self, tmp_path, write_order, capsys):
        profile_path = tmp_path / "broken.yaml"
        profile_path.write_text("country: [GT\n")
        order_path = write_order({"lines": []})

        exit_code = main(["--profile", str(profile_path), "--order", order_path, "--log-level", "ERROR"])

        assert exit_code == 1
        assert "not valid YAML" in capsys.readouterr().err

    def test_invalid_profile(self, tmp_path, write_order, capsys):
        profile_path = tmp_path / "broken.yaml"
        profile_path.write_text(
            "country: GT\ncurrency: GTQ\nrates:\n  - code: std\n    rateBps: 1200\n"
            "delivery:\n  mode: as_line\n  taxable: true\n  taxCode: vat\n"
        )
        order_path = write_order({"lines": [{"quantity": 1, "unitPriceCents": 100}]})

        exit_code = main(["--profile", str(profile_path), "--order", order_path, "--log-level", "ERROR"])

        assert exit_code == 2
        assert "UNKNOWN_TAX_CODE" in capsys.readouterr().err

    def test_invalid_order(self, write_order, capsys):
        order_path = write_order({"lines": [{"quantity": -1, "unitPriceCents": 100}]})
        exit_code = main(["--profile", str(SAMPLE_PROFILE), "--order", order_path, "--log-level", "ERROR"])
        assert exit_code == 2
        assert "Invalid order" in capsys.readouterr().err

    @pytest.mark.parametrize(
        "document",
        [
            [],
            {"lines": ["not-a-line"]},
            {"lines": [{"quantity": 1, "unitPriceCents": 100}], "customer": "ACME"},
        ],
    )
    def test_non_object_order_parts(self, write_order, capsys, document):
        exit_code = main(["--profile", str(SAMPLE_PROFILE), "--order", write_order(document), "--log-level", "ERROR"])
        err = capsys.readouterr().err
        assert exit_code == 2
        assert "must be a JSON object" in err
        assert "Traceback" not in err

    def test_rejection_logged_with_error_details(self, tmp_path, write_order, capsys):
        profile_path = tmp_path / "broken.yaml"
        profile_path.write_text(
            "country: GT\ncurrency: GTQ\nrates:\n  - code: std\n    rateBps: 1200\n"
            "surcharges:\n  - code: service\n    percentBps: 1000\n    taxable: true\n    taxCode: vat\n"
        )
        order_path = write_order({"lines": []})

        exit_code = main(["--profile", str(profile_path), "--order", order_path, "--log-level", "DEBUG"])

        assert exit_code == 2
        records = [json.loads(l) for l in capsys.readouterr().err.splitlines() if l.startswith("{")]
        rejected = next(r for r in records if r["message"] == "tax_profile_rejected")
        assert rejected["error_code"] == "UNKNOWN_TAX_CODE"
        assert rejected["error_details"]["tax_code"] == "vat"
        assert rejected["error_details"]["referenced_by"] == "surcharge 'service'"

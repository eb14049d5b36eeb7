"""GST totals calculator: split rules, rounding identity and client key aliases."""
import pytest

from breeze_erp.services.tax_calculator import (
    LineItem,
    calculate_totals,
    hsn_summary,
    line_breakdown,
    state_code_from_gstin,
    state_name,
    validate_gstin,
    validate_line_items,
)

pytestmark = pytest.mark.unit

MIXED_ITEMS = [
    {"description": "Compressor", "hsn_code": "8414", "quantity": 3, "unit_rate": 333.33, "gst_percent": 18},
    {"product": "Hose", "hsn": "4009", "qty": 7, "rate": 12.35, "gstPercent": 12},
    {"itemName": "Valve", "hsnCode": "8481", "qty": "5", "rate": "99.99", "gst": "28"},
]


def test_intra_state_example():
    totals = calculate_totals([{"qty": 2, "rate": 100, "gst": 18}], "33", "33")
    assert totals.taxable_value == 200.00
    assert totals.cgst == 18.00
    assert totals.sgst == 18.00
    assert totals.igst == 0.00
    assert totals.gst_total == 36.00
    assert totals.invoice_total == 236.00


def test_inter_state_example():
    totals = calculate_totals([{"qty": 2, "rate": 100, "gst": 18}], "33", "29")
    assert totals.taxable_value == 200.00
    assert totals.igst == 36.00
    assert totals.cgst == 0
    assert totals.sgst == 0
    assert totals.invoice_total == 236.00


def test_equal_states_split_evenly():
    totals = calculate_totals(MIXED_ITEMS, "33", "33")
    assert totals.cgst == totals.sgst
    assert totals.igst == 0
    raw_gst = 3 * 333.33 * 0.18 + 7 * 12.35 * 0.12 + 5 * 99.99 * 0.28
    assert abs((totals.cgst + totals.sgst) - raw_gst) <= 0.01


def test_different_states_use_igst():
    totals = calculate_totals(MIXED_ITEMS, "33", "27")
    raw_gst = 3 * 333.33 * 0.18 + 7 * 12.35 * 0.12 + 5 * 99.99 * 0.28
    assert totals.cgst == 0 and totals.sgst == 0
    assert abs(totals.igst - raw_gst) <= 0.005


@pytest.mark.parametrize("recipient", ["33", "29", "7"])
def test_total_is_sum_of_components(recipient):
    totals = calculate_totals(MIXED_ITEMS, "33", recipient)
    assert totals.invoice_total == round(totals.taxable_value + totals.cgst + totals.sgst + totals.igst, 2)


def test_empty_items_give_zero():
    for items in ([], None):
        totals = calculate_totals(items, "33", "29")
        assert totals.as_dict() == {
            "taxable_value": 0.0, "cgst": 0.0, "sgst": 0.0, "igst": 0.0,
            "invoice_total": 0.0, "gst_total": 0.0,
        }


def test_blank_and_junk_values_count_as_zero():
    totals = calculate_totals([{"qty": "", "rate": "abc", "gst": None}, {"qty": 1, "rate": 50, "gst": 5}], "33", "33")
    assert totals.taxable_value == 50.0
    assert totals.invoice_total == 52.5


def test_deterministic():
    first = calculate_totals(MIXED_ITEMS, "33", "29")
    second = calculate_totals(MIXED_ITEMS, "33", "29")
    assert first == second


def test_negative_values_propagate():
    totals = calculate_totals([{"qty": 1, "rate": -100, "gst": 18}], "33", "29")
    assert totals.taxable_value == -100.0
    assert totals.igst == -18.0


def test_single_digit_state_code_is_padded():
    totals = calculate_totals([LineItem(quantity=1, unit_rate=100, gst_percent=18)], "7", "07")
    assert totals.igst == 0
    assert totals.cgst == 9.0


def test_line_breakdown_keeps_order_and_numbers_lines():
    rows = line_breakdown(MIXED_ITEMS, "33", "33")
    assert [r["sl_no"] for r in rows] == [1, 2, 3]
    assert [r["description"] for r in rows] == ["Compressor", "Hose", "Valve"]
    assert rows[1]["taxable_value"] == round(7 * 12.35, 2)
    assert rows[1]["cgst"] == rows[1]["sgst"]


def test_hsn_summary_groups_by_code_and_rate():
    items = [
        {"hsn": "8414", "qty": 1, "rate": 100, "gst": 18},
        {"hsn": "8414", "qty": 2, "rate": 100, "gst": 18},
        {"hsn": "8414", "qty": 1, "rate": 100, "gst": 12},
        {"hsn": "4009", "qty": 1, "rate": 10, "gst": 5},
    ]
    summary = hsn_summary(items, "33", "29")
    assert [(g["hsn_code"], g["gst_percent"]) for g in summary] == [("4009", 5.0), ("8414", 12.0), ("8414", 18.0)]
    eighteen = summary[-1]
    assert eighteen["quantity"] == 3
    assert eighteen["taxable_value"] == 300.0
    assert eighteen["igst"] == 54.0


def test_state_helpers():
    assert state_name("33") == "Tamil Nadu"
    assert state_name("7") == "Delhi"
    assert state_code_from_gstin("29AAACB1234C1Z5") == "29"
    assert state_code_from_gstin("99AAACB1234C1Z5") is None
    assert state_code_from_gstin(None) is None


def test_validate_gstin():
    assert validate_gstin("33AAACB1234C1Z5")
    assert validate_gstin(" 33aaacb1234c1z5 ")
    assert not validate_gstin("33AAACB1234C1X5")
    assert not validate_gstin("")
    assert not validate_gstin("12345")


def test_validate_line_items_reports_each_problem():
    problems = validate_line_items([
        {"qty": 0, "rate": 10, "gst": 18},
        {"qty": 1, "rate": -1, "gst": 18},
        {"qty": 1, "rate": 1, "gst": 7},
        {"qty": 1, "rate": 1, "gst": 5},
    ])
    assert len(problems) == 3
    assert problems[0].startswith("Item 1")
    assert problems[1].startswith("Item 2")
    assert problems[2].startswith("Item 3")

"""NIC payload builder, demo numbering and form validation."""
import re
from datetime import date

import pytest

from breeze_erp.services import einvoice_service as svc
from breeze_erp.services.tax_calculator import calculate_totals
from breeze_erp.utils.errors import ValidationError
from breeze_erp.utils.qr import DATA_URL_PREFIX, qr_data_url

pytestmark = pytest.mark.unit


@pytest.fixture
def form():
    return {
        "supplier_gstin": "33AAACB1234C1Z5",
        "supplier_name": "Breeze Techniques",
        "recipient_gstin": "29AAACR5678D1Z2",
        "recipient_name": "Rathna Industries",
        "recipient_pin": "560001",
        "invoice_number": "BT/001",
        "invoice_date": "2024-04-15",
        "items": [
            {"product": "Air compressor", "hsn": "8414", "qty": 1, "rate": 10000, "gstPercent": 18},
            {"product": "Pneumatic hose", "hsn": "4009", "qty": 2, "rate": 500, "gstPercent": 12},
        ],
    }


def test_inter_state_payload(form):
    totals = calculate_totals(form["items"], "33", "29")
    payload = svc.build_nic_payload(form, totals, date(2024, 4, 15))
    assert payload["Version"] == "1.1"
    assert payload["TranDtls"]["SupTyp"] == "INTER"
    assert payload["DocDtls"] == {"Typ": "INV", "No": "BT/001", "Dt": "15/04/2024"}
    assert payload["SellerDtls"]["Stcd"] == "33"
    assert payload["BuyerDtls"]["Stcd"] == "29"
    assert payload["BuyerDtls"]["Pin"] == 560001
    assert payload["ValDtls"] == {
        "AssVal": 11000.0, "CgstVal": 0.0, "SgstVal": 0.0, "IgstVal": 1920.0, "TotInvVal": 12920.0,
    }
    first = payload["ItemList"][0]
    assert first["SlNo"] == "1"
    assert first["HsnCd"] == "8414"
    assert first["IgstAmt"] == 1800.0
    assert first["CgstAmt"] == 0.0


def test_intra_state_payload_splits_tax(form):
    form["recipient_gstin"] = "33AAACR5678D1Z2"
    totals = calculate_totals(form["items"], "33", "33")
    payload = svc.build_nic_payload(form, totals, date(2024, 4, 15))
    assert payload["TranDtls"]["SupTyp"] == "INTRA"
    assert payload["ValDtls"]["CgstVal"] == payload["ValDtls"]["SgstVal"] == 960.0
    assert payload["ValDtls"]["IgstVal"] == 0.0


def test_demo_irn_format():
    irn = svc.demo_irn(now_ms=1700000000000)
    assert irn.startswith("IRN" + svc.to_base36(1700000000000))
    assert re.fullmatch(r"IRN[0-9A-Z]+", irn)
    assert len(irn) == 3 + len(svc.to_base36(1700000000000)) + 8


def test_to_base36():
    assert svc.to_base36(0) == "0"
    assert svc.to_base36(35) == "Z"
    assert svc.to_base36(36) == "10"


def test_demo_ewb_number_format():
    ewb = svc.demo_ewb_number(now_ms=1700000000123)
    assert re.fullmatch(r"EWB0000000123\d{3}", ewb)


@pytest.mark.parametrize("distance, days", [(1, 1), (99, 1), (100, 1), (101, 2), (250, 3)])
def test_ewb_validity_days(distance, days):
    assert svc.ewb_validity_days(distance) == days


def test_parse_invoice_date_accepts_both_formats():
    assert svc.parse_invoice_date("2024-04-15") == date(2024, 4, 15)
    assert svc.parse_invoice_date("15/04/2024") == date(2024, 4, 15)
    with pytest.raises(ValidationError):
        svc.parse_invoice_date("April 15")


@pytest.mark.parametrize(
    "change, message",
    [
        ({"supplier_gstin": ""}, "Supplier and Recipient GSTIN are required."),
        ({"recipient_gstin": None}, "Supplier and Recipient GSTIN are required."),
        ({"invoice_number": ""}, "Invoice number is required."),
        ({"items": []}, "At least one item is required."),
    ],
)
def test_validate_form_messages(form, change, message):
    form.update(change)
    with pytest.raises(ValidationError) as info:
        svc.validate_form(form)
    assert info.value.message == message


def test_validate_form_rejects_bad_gstin(form):
    form["recipient_gstin"] = "29AAACR5678D1X2"
    with pytest.raises(ValidationError) as info:
        svc.validate_form(form)
    assert info.value.details == {"field": "recipient_gstin"}


def test_qr_data_url_is_png():
    url = qr_data_url('{"irn": "IRN123"}')
    assert url.startswith(DATA_URL_PREFIX)
    assert len(url) > len(DATA_URL_PREFIX) + 100

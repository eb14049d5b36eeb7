"""Contract tests for /einvoice in demo mode (no NIC credentials)."""
import json

import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]


async def _irn(client: AsyncClient, form: dict) -> dict:
    resp = await client.post("/api/v1/einvoice/generate-irn", json=form)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_gateway_auth_demo_mode(auth_client: AsyncClient):
    resp = await auth_client.post("/api/v1/einvoice/auth", json={"gstin": "33AAACB1234C1Z5"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["mode"] == "demo"
    assert data["authenticated"] is False


@pytest.mark.asyncio
async def test_gateway_auth_rate_limited(auth_client: AsyncClient):
    statuses = []
    for _ in range(4):
        resp = await auth_client.post("/api/v1/einvoice/auth", json={"gstin": "33AAACB1234C1Z5"})
        statuses.append(resp.status_code)
    assert statuses == [200, 200, 200, 429]
    assert resp.json()["error"]["code"] == "RATE_LIMITED"

    other = await auth_client.post("/api/v1/einvoice/auth", json={"gstin": "29AAACR5678D1Z2"})
    assert other.status_code == 200


@pytest.mark.asyncio
async def test_generate_irn_recomputes_totals(auth_client: AsyncClient, sample_einvoice_form):
    form = dict(sample_einvoice_form, totals={"grandTotal": 1})
    data = await _irn(auth_client, form)
    assert data["mode"] == "demo"
    assert data["irn"].startswith("IRN")
    assert len(data["ack_no"]) == 12
    assert data["qrcode"].startswith("data:image/png;base64,")
    assert data["totals"]["taxable_value"] == 11000.0
    assert data["totals"]["cgst"] == 960.0
    assert data["totals"]["sgst"] == 960.0
    assert data["totals"]["igst"] == 0.0
    assert data["totals"]["invoice_total"] == 12920.0

    signed = json.loads(data["signed_invoice"])
    assert signed["Irn"] == data["irn"]
    assert signed["SignedInvoice"]["DocDtls"]["Dt"] == "15/04/2024"
    assert signed["SignedInvoice"]["TranDtls"]["SupTyp"] == "INTRA"

    record = data["record"]
    assert record["status"] == "generated"
    assert record["invoice_date"] == "2024-04-15"
    assert record["generated_by_name"] == "Administrator"
    assert len(record["items"]) == 2


@pytest.mark.asyncio
async def test_generate_irn_inter_state(auth_client: AsyncClient, sample_einvoice_form):
    form = dict(sample_einvoice_form, recipientGstin="29AAACR5678D1Z2", recipientState="29", invoiceDate="15/04/2024")
    data = await _irn(auth_client, form)
    assert data["totals"]["igst"] == 1920.0
    assert data["totals"]["cgst"] == 0.0
    assert data["record"]["recipient_state"] == "29"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "change, message",
    [
        ({"supplierGstin": ""}, "Supplier and Recipient GSTIN are required."),
        ({"recipientGstin": "NOT-A-GSTIN"}, "Invalid GSTIN format: NOT-A-GSTIN"),
        ({"invoiceNumber": ""}, "Invoice number is required."),
        ({"items": []}, "At least one item is required."),
        ({"items": [{"product": "Bolt", "qty": 0, "rate": 5, "gstPercent": 18}]}, "Invalid line items"),
        ({"invoiceDate": "April 15"}, "Invoice date must be YYYY-MM-DD"),
    ],
)
async def test_generate_irn_validation(auth_client: AsyncClient, sample_einvoice_form, change, message):
    resp = await auth_client.post("/api/v1/einvoice/generate-irn", json=dict(sample_einvoice_form, **change))
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == message


@pytest.mark.asyncio
async def test_generate_ewb_for_record(auth_client: AsyncClient, sample_einvoice_form):
    irn = await _irn(auth_client, sample_einvoice_form)
    resp = await auth_client.post("/api/v1/einvoice/generate-ewb", json={
        "recordId": irn["record"]["id"], "irn": irn["irn"], "distance": "250", "vehicleNo": "tn01ab1234",
        "transName": "Speed Logistics",
    })
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["ewb_no"].startswith("EWB")
    assert len(data["ewb_no"]) == 16
    assert data["ewb_qrcode"].startswith("data:image/png;base64,")
    record = data["record"]
    assert record["ewb_no"] == data["ewb_no"]
    assert record["ewb_vehicle_no"] == "TN01AB1234"
    assert record["ewb_distance"] == 250
    assert record["ewb_transporter_name"] == "Speed Logistics"
    assert record["ewb_status"] == "GENERATED"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"distance": 10}, "IRN is required to generate an E-Way Bill."),
        ({"irn": "IRNX", "distance": 0}, "Distance must be greater than 0 km."),
        ({"irn": "IRNX", "distance": "far"}, "Distance must be a number of kilometres."),
        ({"irn": "IRNX", "distance": "inf"}, "Distance must be a number of kilometres."),
        ({"irn": "IRNX", "distance": "1e400"}, "Distance must be a number of kilometres."),
        ({"irn": "IRNX", "distance": "nan"}, "Distance must be a number of kilometres."),
    ],
)
async def test_generate_ewb_validation(auth_client: AsyncClient, payload, message):
    resp = await auth_client.post("/api/v1/einvoice/generate-ewb", json=payload)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == message


@pytest.mark.asyncio
async def test_generate_ewb_placeholder_record_id_resolves_by_irn(auth_client: AsyncClient, sample_einvoice_form):
    irn = await _irn(auth_client, sample_einvoice_form)
    resp = await auth_client.post("/api/v1/einvoice/generate-ewb", json={
        "recordId": "temp-1712345678901", "irn": irn["irn"], "distance": 120,
    })
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["record"]["id"] == irn["record"]["id"]
    assert data["record"]["ewb_no"] == data["ewb_no"]
    assert data["record"]["ewb_distance"] == 120


@pytest.mark.asyncio
async def test_generate_ewb_without_record_still_issues_number(auth_client: AsyncClient):
    resp = await auth_client.post("/api/v1/einvoice/generate-ewb", json={"irn": "IRNUNKNOWN", "distance": 50})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["record"] is None
    assert data["ewb_no"].startswith("EWB")


@pytest.mark.asyncio
async def test_lookups_and_visibility(auth_client: AsyncClient, staff_client: AsyncClient, sample_einvoice_form):
    mine = await _irn(staff_client, sample_einvoice_form)
    admins = await _irn(auth_client, dict(sample_einvoice_form, invoiceNumber="BT/24-25/002",
                                         supplierGstin="33AAACB9999C1Z5"))

    staff_list = (await staff_client.get("/api/v1/einvoice/invoices-with-irn")).json()
    assert [r["irn"] for r in staff_list["data"]["records"]] == [mine["irn"]]
    assert "qrcode" not in staff_list["data"]["records"][0]

    admin_list = (await auth_client.get("/api/v1/einvoice/invoices-with-irn")).json()
    assert admin_list["meta"]["total"] == 2
    filtered = (await auth_client.get("/api/v1/einvoice/invoices-with-irn", params={"gstin": "33aaacb9999c1z5"})).json()
    assert [r["irn"] for r in filtered["data"]["records"]] == [admins["irn"]]

    hidden = await staff_client.get(f"/api/v1/einvoice/{admins['record']['id']}")
    assert hidden.status_code == 404
    shown = await auth_client.get(f"/api/v1/einvoice/{mine['record']['id']}")
    assert shown.json()["data"]["record"]["irn"] == mine["irn"]


@pytest.mark.asyncio
async def test_history_date_filters(auth_client: AsyncClient, sample_einvoice_form):
    await _irn(auth_client, sample_einvoice_form)
    await _irn(auth_client, dict(sample_einvoice_form, invoiceNumber="BT/24-25/002", invoiceDate="2024-05-20"))

    everything = (await auth_client.get("/api/v1/einvoice/history")).json()["data"]
    assert everything["total"] == 2
    may = (await auth_client.get("/api/v1/einvoice/history", params={"start_date": "2024-05-01"})).json()["data"]
    assert [r["invoice_number"] for r in may["records"]] == ["BT/24-25/002"]
    april = (await auth_client.get("/api/v1/einvoice/history", params={"end_date": "30/04/2024"})).json()["data"]
    assert [r["invoice_number"] for r in april["records"]] == ["BT/24-25/001"]


@pytest.mark.asyncio
async def test_stats(auth_client: AsyncClient, staff_client: AsyncClient, sample_einvoice_form):
    await _irn(auth_client, sample_einvoice_form)
    resp = await auth_client.get("/api/v1/einvoice/stats")
    assert resp.json()["data"] == {"pending": 0, "success_today": 1, "failed": 0}
    forbidden = await staff_client.get("/api/v1/einvoice/stats")
    assert forbidden.status_code == 403

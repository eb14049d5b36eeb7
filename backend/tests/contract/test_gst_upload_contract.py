"""Contract tests for GST bill uploads (multipart) and listing."""
import json
import os
from pathlib import Path

import pytest
from httpx import AsyncClient

pytestmark = [pytest.mark.contract]

PDF_BYTES = b"%PDF-1.4\n% test bill\n%%EOF\n"


async def _upload(client: AsyncClient, *, content=PDF_BYTES, content_type="application/pdf", **form):
    data = {"type": "sales", "business_date": "2024-04-15"}
    data.update(form)
    files = {"file": ("bill.pdf", content, content_type)} if content is not None else None
    return await client.post("/api/v1/gst/upload", data=data, files=files)


@pytest.mark.asyncio
async def test_upload_stores_file_and_record(auth_client: AsyncClient):
    metadata = json.dumps({"customer_name": "Rathna Industries", "gst_amount": "180", "amount": 1180})
    resp = await _upload(auth_client, metadata=metadata)
    assert resp.status_code == 201, resp.text
    record = resp.json()["data"]["record"]
    assert record["type"] == "sales"
    assert record["original_name"] == "bill.pdf"
    assert record["size"] == len(PDF_BYTES)
    assert record["customer_name"] == "Rathna Industries"
    assert record["gst_amount"] == 180.0
    assert record["total_amount"] == 1180.0
    assert record["file_url"].startswith("/uploads/sales/sales_")
    assert record["file_url"].endswith(".pdf")

    on_disk = Path(os.environ["UPLOAD_DIR"]) / "sales" / record["file_name"]
    assert on_disk.read_bytes() == PDF_BYTES

    served = await auth_client.get(record["file_url"])
    assert served.status_code == 200
    assert served.content == PDF_BYTES


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"content": None}, "File is required."),
        ({"type": "expense"}, 'Type must be "sales" or "purchase".'),
        ({"business_date": ""}, "Business date is required."),
        ({"business_date": "15-04-2024"}, "Business date must be YYYY-MM-DD."),
        ({"metadata": "{not json"}, "Invalid metadata format."),
        ({"metadata": "[1, 2]"}, "Invalid metadata format."),
        ({"metadata": '{"amount": "lots"}'}, "Metadata amount must be a number."),
        ({"content_type": "text/plain"}, "Invalid file type. Only PDF, JPG, and PNG files are allowed."),
    ],
)
async def test_upload_validation(auth_client: AsyncClient, kwargs, message):
    resp = await _upload(auth_client, **kwargs)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == message


@pytest.mark.asyncio
async def test_records_filtered_by_type_and_owner(auth_client: AsyncClient, staff_client: AsyncClient):
    await _upload(auth_client)
    await _upload(auth_client, type="purchase", content=b"\x89PNG\r\n", content_type="image/png")
    await _upload(staff_client, type="purchase")

    everything = (await auth_client.get("/api/v1/gst/records")).json()["data"]
    assert everything["total"] == 3
    purchases = (await auth_client.get("/api/v1/gst/records", params={"type": "purchase"})).json()["data"]
    assert {r["content_type"] for r in purchases["records"]} == {"image/png", "application/pdf"}

    own = (await staff_client.get("/api/v1/gst/records")).json()["data"]
    assert own["total"] == 1
    assert own["records"][0]["uploaded_by_name"] == "Sita Staff"


@pytest.mark.asyncio
async def test_upload_requires_authentication(async_client: AsyncClient):
    resp = await _upload(async_client)
    assert resp.status_code == 401

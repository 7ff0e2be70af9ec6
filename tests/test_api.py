from fastapi.testclient import TestClient
from bizadmin.main import create_app
import uuid

app = create_app()
client = TestClient(app)


def tenant_headers():
    return {"X-Tenant-ID": f"api-{uuid.uuid4().hex[:8]}", "X-Actor-Email": "ops@example.com"}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["entities"] == 6


def test_entities_and_schema():
    headers = tenant_headers()
    response = client.get("/entities", headers=headers)
    assert response.status_code == 200
    entities = {e["branch"]: e["collection"] for e in response.json()["entities"]}
    assert entities["Finances"] == "transactions"

    schema = client.get("/entities/Customers/schema", headers=headers).json()
    assert schema["entityLabel"] == "Customers"
    assert "customerNbr" in schema["search"]["keys"]

    response = client.get("/entities/Spaceships/schema", headers=headers)
    assert response.status_code == 404


def test_missing_tenant_is_rejected():
    response = client.get("/entities/Customers/records")
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing tenant identifier"


def test_record_lifecycle():
    headers = tenant_headers()
    print("Creating customer...")
    response = client.post(
        "/entities/Customers/records",
        json={"customerNbr": "600", "name1": "steve_600", "billing": {"address": {"city": "Austin"}}},
        headers=headers,
    )
    assert response.status_code == 201
    record_id = response.json()["id"]

    listing = client.get("/entities/Customers/records", headers=headers).json()
    assert listing["count"] == 1
    assert listing["rows"][0]["name1"] == "steve_600"
    assert listing["labels"][record_id] == "600 — steve_600"
    assert client.get("/entities/Customers/records?q=zzz", headers=headers).json()["count"] == 0

    detail = client.get(f"/entities/Customers/records/{record_id}", headers=headers).json()
    assert detail["record"]["createdBy"] == "ops@example.com"
    assert detail["form"]["mode"] == "change"
    widgets = {w["key"]: w for w in detail["form"]["widgets"]}
    assert widgets["customerNbr"]["disabled"] is True

    record = detail["record"]
    record["name1"] = "Acme"
    response = client.put(f"/entities/Customers/records/{record_id}", json=record, headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Changes saved."
    saved = client.get(f"/entities/Customers/records/{record_id}", headers=headers).json()["record"]
    assert saved["name1"] == "Acme"
    assert saved["customerNbr"] == "600"

    response = client.delete(f"/entities/Customers/records/{record_id}", headers=headers)
    assert response.status_code == 400
    response = client.delete(f"/entities/Customers/records/{record_id}?confirm=true", headers=headers)
    assert response.status_code == 200

    response = client.get(f"/entities/Customers/records/{record_id}", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Record not found."


def test_create_validation_returns_messages():
    response = client.post("/entities/Customers/records", json={"name1": ""}, headers=tenant_headers())
    assert response.status_code == 422
    assert "Customer # is required." in response.json()["messages"]


def test_tenants_do_not_see_each_other():
    first, second = tenant_headers(), tenant_headers()
    client.post("/entities/Assets/records", json={"name": "Laptop"}, headers=first)
    assert client.get("/entities/Assets/records", headers=first).json()["count"] == 1
    assert client.get("/entities/Assets/records", headers=second).json()["count"] == 0


def test_add_form():
    body = client.get("/entities/Customers/form", headers=tenant_headers()).json()
    assert body["mode"] == "add"
    assert body["values"]["customerNbr"] == ""
    keys = [w["key"] for w in body["widgets"]]
    assert keys[0] == "customerNbr"
    assert "createdAt" not in keys


def test_finances_summary():
    headers = tenant_headers()
    client.post("/entities/Finances/records", json={"type": "Income", "description": "Sale", "amount": 100, "date": "2024-02-01"}, headers=headers)
    client.post("/entities/Finances/records", json={"type": "Expense", "description": "Rent", "amount": 30, "date": "2024-02-02", "reconciled": True}, headers=headers)
    listing = client.get("/entities/Finances/records", headers=headers).json()
    assert listing["count"] == 2
    assert listing["rows"][0]["description"] == "Rent"
    assert listing["summary"]["net"] == 70


def test_csv_export():
    headers = tenant_headers()
    client.post("/entities/Customers/records", json={"customerNbr": "7", "name1": 'Acme "Quoted"'}, headers=headers)
    response = client.get("/entities/Customers/export.csv?columns=name1,customerNbr", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text == '"name1","customerNbr"\n"Acme ""Quoted""","7"\n'

    full = client.get("/entities/Customers/export.csv", headers=headers).text
    assert full.splitlines()[0].startswith('"customerNbr","name1"')


def test_live_list_snapshot():
    headers = tenant_headers()
    client.post("/entities/Assets/records", json={"name": "Printer"}, headers=headers)
    with client.websocket_connect("/entities/Assets/live", headers=headers) as ws:
        data = ws.receive_json()
        assert data["entity"] == "Assets"
        assert data["count"] == 1
        assert data["rows"][0]["name"] == "Printer"


def test_invoice_flow():
    headers = tenant_headers()
    response = client.post("/invoice-templates", json={"name": "Standard", "currency": "EUR"}, headers=headers)
    assert response.status_code == 201
    template_id = response.json()["id"]

    response = client.post("/invoice-templates", json={"name": "STANDARD"}, headers=headers)
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]

    response = client.post("/invoice-templates", json={"name": "  "}, headers=headers)
    assert response.status_code == 422

    templates = client.get("/invoice-templates", headers=headers).json()["templates"]
    assert [t["nameLower"] for t in templates] == ["standard"]

    items = [{"description": "Widget", "qty": 2, "unitPrice": 10}, {"description": "Gadget", "qty": 1, "unitPrice": 5}]
    totals = client.post("/invoices/totals", json={"lineItems": items}, headers=headers).json()
    assert totals["lineTotals"] == [20, 5]
    assert totals["subTotal"] == 25
    assert totals["taxTotal"] == 0
    assert totals["grandTotal"] == 25

    response = client.post(
        "/invoices",
        json={
            "templateId": template_id,
            "invoiceNumber": "INV-1",
            "issueDate": "2024-01-01",
            "dueDate": "2024-01-31",
            "customer": {"name": "Acme"},
            "lineItems": items,
        },
        headers=headers,
    )
    assert response.status_code == 201
    invoice_id = response.json()["id"]

    response = client.get(f"/invoices/{invoice_id}/pdf", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_duplicate_invoice_submission_is_rejected():
    headers = tenant_headers()
    guard = app.state.submission_guard
    with guard.hold(headers["X-Tenant-ID"], "invoice-save"):
        response = client.post("/invoices", json={"templateId": "any"}, headers=headers)
    assert response.status_code == 409


def test_generic_template_create_keeps_names_unique():
    headers = tenant_headers()
    response = client.post("/invoice-templates", json={"name": "Standard"}, headers=headers)
    assert response.status_code == 201

    response = client.post("/entities/InvoiceTemplates/records", json={"name": "STANDARD"}, headers=headers)
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]

    response = client.post("/entities/InvoiceTemplates/records", json={"name": "Retail"}, headers=headers)
    assert response.status_code == 201
    record = client.get(f"/entities/InvoiceTemplates/records/{response.json()['id']}", headers=headers).json()["record"]
    assert record["nameLower"] == "retail"
    assert record["header"]["title"] == "INVOICE"
    assert [c["key"] for c in record["lineItemColumns"]][-1] == "lineTotal"

    templates = client.get("/invoice-templates", headers=headers).json()["templates"]
    assert sorted(t["nameLower"] for t in templates) == ["retail", "standard"]


def test_generic_invoice_totals_come_from_line_items():
    headers = tenant_headers()
    invoice = {
        "templateId": "tpl-1",
        "invoiceNumber": "INV-9",
        "issueDate": "2024-02-01",
        "dueDate": "2024-02-29",
        "customer": {"name": "Acme"},
        "currency": "USD",
        "lineItems": [{"description": "Widget", "qty": 2, "unitPrice": 10}],
        "subTotal": 999,
        "grandTotal": 999,
    }
    response = client.post("/entities/Invoices/records", json=invoice, headers=headers)
    assert response.status_code == 201
    invoice_id = response.json()["id"]
    record = client.get(f"/entities/Invoices/records/{invoice_id}", headers=headers).json()["record"]
    assert record["subTotal"] == 20
    assert record["taxTotal"] == 0
    assert record["grandTotal"] == 20

    response = client.put(f"/entities/Invoices/records/{invoice_id}", json={"grandTotal": 1}, headers=headers)
    assert response.status_code == 200
    record = client.get(f"/entities/Invoices/records/{invoice_id}", headers=headers).json()["record"]
    assert record["grandTotal"] == 20

    items = [{"description": "Widget", "qty": 3, "unitPrice": 10}]
    client.put(f"/entities/Invoices/records/{invoice_id}", json={"lineItems": items, "subTotal": 5}, headers=headers)
    record = client.get(f"/entities/Invoices/records/{invoice_id}", headers=headers).json()["record"]
    assert record["subTotal"] == 30
    assert record["grandTotal"] == 30


if __name__ == "__main__":
    test_record_lifecycle()
    test_invoice_flow()

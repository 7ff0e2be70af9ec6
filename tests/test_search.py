import asyncio

from bizadmin.core.registry import SchemaRegistry
from bizadmin.core.search import (
    LiveList,
    cash_flow_summary,
    filter_records,
    merge_display_fields,
    shape_rows,
    sort_records,
)
from bizadmin.db.store import InMemoryDocumentStore
from bizadmin.schemas.entity import TextField

registry = SchemaRegistry()


def test_filter_is_case_insensitive_and_keeps_order():
    rows = [{"name1": "Acme"}, {"name1": "Zenith"}]
    assert filter_records(rows, "ac", ["name1"]) == [{"name1": "Acme"}]
    assert filter_records(rows, "", ["name1"]) == rows
    assert filter_records(rows, "   ", ["name1"]) == rows
    assert filter_records(rows, "nothing", ["name1"]) == []


def test_filter_follows_dot_paths():
    rows = [
        {"name1": "North", "billing": {"address": {"city": "Austin"}}},
        {"name1": "South", "billing": {"address": {"city": "Boston"}}},
        {"name1": "Nowhere"},
    ]
    found = filter_records(rows, "AUS", ["billing.address.city"])
    assert [r["name1"] for r in found] == ["North"]


def test_sort_null_first_numeric_and_natural():
    rows = [{"n": "item10"}, {"n": "item2"}, {"n": None}]
    assert [r["n"] for r in sort_records(rows, "n")] == [None, "item2", "item10"]
    assert [r["n"] for r in sort_records(rows, "n", "desc")] == ["item10", "item2", None]

    numbers = [{"v": 3}, {"v": 1.5}, {"v": 20}]
    assert [r["v"] for r in sort_records(numbers, "v")] == [1.5, 3, 20]
    assert sort_records(numbers, None) == numbers


def test_merge_display_fields_adds_extra_primitives():
    fields = [TextField(path="name1", label="Name 1")]
    record = {"id": "x", "name1": "A", "extra": "e", "count": 3, "flag": True, "nested": {"a": 1}}
    merged = merge_display_fields(fields, record)
    assert [f.path for f in merged] == ["name1", "extra", "count", "flag"]
    assert [f.type for f in merged] == ["text", "text", "number", "checkbox"]


def test_shape_customer_rows():
    row = {
        "id": "c1",
        "customerNbr": "600",
        "name1": "Acme",
        "contacts": {"primary": {"firstName": "Ann", "lastName": "Lee"}},
        "billing": {
            "address": {"line1": "1 Main", "city": "Austin", "state": "TX"},
            "paymentTerms": "Net 30",
        },
        "credit": {"limit": 5000, "onHold": True},
        "tax": {"taxId": {"protected": True}},
        "createdBy": "ops@example.com",
    }
    shaped = shape_rows(registry.get("Customers"), [row])[0]
    assert shaped["primaryContact"] == {"firstName": "Ann", "lastName": "Lee"}
    assert shaped["billingAddress"] == "1 Main, Austin, TX"
    assert shaped["creditLimit"] == 5000
    assert shaped["onCreditHold"] == "Yes"
    assert shaped["paymentTerms"] == "Net 30"
    assert "tax" not in shaped
    assert "createdBy" not in shaped


def test_shape_rows_drops_sensitive_fields():
    row = {"id": "e1", "lastName": "Lee", "ssn": {"protected": True}}
    shaped = shape_rows(registry.get("Employees"), [row])[0]
    assert "ssn" not in shaped
    assert shaped["lastName"] == "Lee"
    # input rows are left alone
    assert "ssn" in row


def test_cash_flow_summary():
    rows = [
        {"type": "Income", "amount": 100, "reconciled": True},
        {"type": "Expense", "amount": 40},
        {"type": "Income", "amount": "not a number"},
    ]
    assert cash_flow_summary(rows) == {"income": 100.0, "expense": 40.0, "net": 60.0, "unreconciled": -40.0}
    assert cash_flow_summary([]) == {"income": 0.0, "expense": 0.0, "net": 0.0, "unreconciled": 0.0}


def test_live_list_tracks_writes_until_closed():
    store = InMemoryDocumentStore()
    path = "artifacts/app/tenants/t-live/customers"
    updates = []
    live = LiveList(store, path, registry.get("Customers"), on_change=updates.append)
    assert live.rows == []
    assert store.listener_count(path) == 1

    asyncio.run(store.add(path, {"customerNbr": "1", "name1": "First"}))
    assert len(live.rows) == 1
    assert live.rows[0]["name1"] == "First"
    assert len(updates) == 2

    live.close()
    assert live.closed
    assert store.listener_count(path) == 0

    asyncio.run(store.add(path, {"customerNbr": "2", "name1": "Second"}))
    assert len(live.rows) == 1
    # closing twice is harmless
    live.close()

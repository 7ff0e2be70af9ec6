import asyncio
import copy
from datetime import datetime

import pytest

from bizadmin.core.errors import BackendError, BizAdminError, RecordNotFound, RecordValidationError
from bizadmin.core.records import RecordService
from bizadmin.core.registry import SchemaRegistry
from bizadmin.db.context import Actor, BackendContext
from bizadmin.db.store import SERVER_TIMESTAMP, InMemoryDocumentStore

registry = SchemaRegistry()
ACTOR = Actor(email="ops@example.com")


class UnavailableStore(InMemoryDocumentStore):
    async def update(self, path, doc_id, data):
        raise BackendError("unavailable", "backend down")


def make_service(branch="Customers", tenant_id="t-records", store=None, actor=ACTOR):
    ctx = BackendContext(store=store or InMemoryDocumentStore(), app_id="test-app", tenant_id=tenant_id, actor=actor)
    return RecordService(ctx, registry.get(branch))


EMPLOYEE = {
    "employeeId": "E1",
    "firstName": "Ann",
    "lastName": "Lee",
    "ssn": "123-45-6789",
    "address": {"street": "1 Main", "city": "Austin", "state": "TX", "zipCode": "73301"},
    "hireDate": "2020-01-06",
    "employmentStatus": "Active",
}


def test_update_payload_strips_immutable_union():
    service = make_service()
    record = {
        "tenantId": "t-records",
        "appId": "test-app",
        "createdAt": "2024-01-01",
        "createdBy": "someone",
        "name1": "Acme",
    }
    payload = service.build_update_payload(record)
    assert set(payload) == {"name1", "updatedAt", "updatedBy"}
    assert payload["updatedAt"] is SERVER_TIMESTAMP
    assert payload["updatedBy"] == "ops@example.com"
    # caller's record untouched
    assert record["tenantId"] == "t-records"


def test_actor_identifier_fallbacks():
    assert Actor().identifier == "unknown"
    assert Actor(uid="uid-9").identifier == "uid-9"
    payload = make_service(actor=Actor()).build_update_payload({"name1": "x"})
    assert payload["updatedBy"] == "unknown"


def test_create_stamps_tenant_and_audit_fields():
    service = make_service()
    new_id = asyncio.run(service.create({"customerNbr": "600", "name1": "steve_600", "tenantId": "spoofed"}))
    stored = asyncio.run(service.load(new_id))
    assert stored["id"] == new_id
    assert stored["tenantId"] == "t-records"
    assert stored["appId"] == "test-app"
    assert stored["createdBy"] == "ops@example.com"
    assert isinstance(stored["createdAt"], datetime)
    assert stored["updatedAt"] == stored["createdAt"]


def test_create_validation_collects_messages_and_writes_nothing():
    service = make_service(tenant_id="t-invalid")
    record = {"name1": "", "contacts": {"primary": {"email": "not-an-email", "phone": "call me"}}}
    with pytest.raises(RecordValidationError) as exc:
        asyncio.run(service.create(record))
    messages = exc.value.messages
    assert "Customer # is required." in messages
    assert "Name 1 is required." in messages
    assert "Primary Email must be a valid email address." in messages
    assert "Primary Phone must be a valid phone number." in messages
    assert asyncio.run(service.list_page()) == []


def test_sensitive_values_are_never_stored_raw():
    service = make_service("Employees", tenant_id="t-pii")
    new_id = asyncio.run(service.create(dict(EMPLOYEE)))
    stored = asyncio.run(service.load(new_id))
    assert stored["ssn"]["protected"] is True
    assert stored["ssn"]["masked"].endswith("6789")
    assert "123-45-6789" not in str(stored)


def test_save_updates_mutable_fields_only():
    service = make_service(tenant_id="t-save")
    new_id = asyncio.run(service.create({"customerNbr": "600", "name1": "Acme"}))
    loaded = asyncio.run(service.load(new_id))

    form = copy.deepcopy(loaded)
    form.update({"name1": "Acme 2", "customerNbr": "999", "tenantId": "other-tenant"})
    message = asyncio.run(service.save(new_id, form))
    assert message == "Changes saved."

    saved = asyncio.run(service.load(new_id))
    assert saved["name1"] == "Acme 2"
    assert saved["customerNbr"] == "600"
    assert saved["tenantId"] == "t-save"
    assert saved["createdAt"] == loaded["createdAt"]
    assert saved["updatedBy"] == "ops@example.com"


def test_save_failure_is_generic_and_leaves_form_alone():
    service = make_service(store=UnavailableStore())
    form = {"name1": "Acme"}
    with pytest.raises(BackendError) as exc:
        asyncio.run(service.save("c1", form))
    assert exc.value.message == "Error saving changes."
    assert exc.value.code == "unavailable"
    assert form == {"name1": "Acme"}


def test_save_requires_existing_record():
    service = make_service(tenant_id="t-missing")
    with pytest.raises(RecordNotFound):
        asyncio.run(service.save("nope", {"name1": "x"}))
    with pytest.raises(BizAdminError):
        asyncio.run(service.save("", {"name1": "x"}))


def test_soft_delete_stamps():
    service = make_service("Employees", tenant_id="t-soft")
    new_id = asyncio.run(service.create(dict(EMPLOYEE)))

    record = asyncio.run(service.load(new_id))
    record["isDeleted"] = True
    asyncio.run(service.save(new_id, record))
    deleted = asyncio.run(service.load(new_id))
    assert deleted["deletedBy"] == "ops@example.com"
    assert isinstance(deleted["deletedAt"], datetime)

    deleted["isDeleted"] = False
    asyncio.run(service.save(new_id, deleted))
    restored = asyncio.run(service.load(new_id))
    assert "deletedAt" not in restored
    assert "deletedBy" not in restored
    # the protected ssn survives round trips through the form
    assert restored["ssn"]["protected"] is True


def test_list_page_sorts_filters_caps_and_is_tenant_scoped():
    store = InMemoryDocumentStore()
    service = make_service(tenant_id="t-list", store=store)
    for nbr, name in (("3", "Gamma"), ("1", "Alpha"), ("2", "Beta Stevens")):
        asyncio.run(service.create({"customerNbr": nbr, "name1": name}))

    rows = asyncio.run(service.list_page())
    assert [r["customerNbr"] for r in rows] == ["1", "2", "3"]
    assert [r["name1"] for r in asyncio.run(service.list_page("stev"))] == ["Beta Stevens"]
    assert len(asyncio.run(service.list_page(limit=2))) == 2

    other = make_service(tenant_id="t-other", store=store)
    assert asyncio.run(other.list_page()) == []


def test_delete_requires_confirmation():
    service = make_service(tenant_id="t-delete")
    new_id = asyncio.run(service.create({"customerNbr": "1", "name1": "Doomed"}))
    with pytest.raises(BizAdminError):
        asyncio.run(service.delete(new_id))
    asyncio.run(service.load(new_id))

    asyncio.run(service.delete(new_id, confirm=True))
    with pytest.raises(RecordNotFound):
        asyncio.run(service.load(new_id))


def test_invoice_totals_are_derived_from_line_items():
    service = make_service("Invoices")
    payload = service.build_update_payload({"lineItems": [{"qty": 2, "unitPrice": 10}], "grandTotal": 999})
    assert payload["subTotal"] == 20
    assert payload["grandTotal"] == 20

    payload = service.build_update_payload({"subTotal": 5, "taxTotal": 1})
    assert "subTotal" not in payload
    assert "taxTotal" not in payload

    customers = make_service()
    assert customers.build_update_payload({"name1": "A", "grandTotal": 3})["grandTotal"] == 3

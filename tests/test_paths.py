from bizadmin.core.paths import delete_path, get_path, has_path, set_path


def test_dotted_set_then_get():
    record = {}
    set_path(record, "billing.address.line1", "1 Main St")
    assert get_path(record, "billing.address.line1") == "1 Main St"
    assert record == {"billing": {"address": {"line1": "1 Main St"}}}


def test_plain_key_fast_path():
    record = {"name1": "Acme"}
    set_path(record, "status", "Active")
    assert get_path(record, "name1") == "Acme"
    assert record["status"] == "Active"


def test_missing_links_return_none():
    assert get_path({"a": {"b": 1}}, "a.c") is None
    assert get_path({"a": 5}, "a.b") is None
    assert get_path({}, "x.y.z") is None
    assert get_path(None, "a") is None


def test_set_overwrites_non_mapping_intermediate():
    record = {"contacts": "legacy text"}
    set_path(record, "contacts.primary.email", "a@example.com")
    assert record == {"contacts": {"primary": {"email": "a@example.com"}}}


def test_delete_and_has_path():
    record = {"tax": {"taxId": "123", "ein": "9"}}
    assert has_path(record, "tax.taxId")
    delete_path(record, "tax.taxId")
    assert record == {"tax": {"ein": "9"}}
    assert not has_path(record, "tax.taxId")
    # missing paths are a no-op
    delete_path(record, "billing.address.city")
    assert record == {"tax": {"ein": "9"}}

"""Branch label -> collection id mapping and per-tenant document paths.

Branch names are UI labels ("Customers", "InvoiceTemplates"); collection ids are
the exact backend collection names (lowerCamelCase).
"""

import re
from typing import Optional

COLLECTIONS = {
    "customers": "customers",
    "employees": "employees",
    "assets": "assets",
    "transactions": "transactions",
    "invoices": "invoices",
    "invoiceTemplates": "invoiceTemplates",
    "expenses": "expenses",
    "vendors": "vendors",
}

BRANCH_TO_COLLECTION = {
    "Customers": COLLECTIONS["customers"],
    "Employees": COLLECTIONS["employees"],
    "Assets": COLLECTIONS["assets"],
    "Finances": COLLECTIONS["transactions"],
    "Expenses": COLLECTIONS["expenses"],
    "Vendors": COLLECTIONS["vendors"],
    "Invoices": COLLECTIONS["invoices"],
    "InvoiceTemplates": COLLECTIONS["invoiceTemplates"],
}

# "<Branch>|<SubBranch>" overrides where a screen lists a different collection
NAV_LIST_COLLECTION = {
    "Invoices|List Templates": COLLECTIONS["invoiceTemplates"],
    "Invoices|List Invoices": COLLECTIONS["invoices"],
}


def collection_id_for_branch(branch_label: Optional[str]) -> str:
    if not branch_label:
        return ""
    label = str(branch_label).strip()
    label = re.sub(r"^List\s+", "", label, flags=re.IGNORECASE)
    if label in BRANCH_TO_COLLECTION:
        return BRANCH_TO_COLLECTION[label]
    return re.sub(r"\s+", "_", label.lower())


def list_collection_key_for(branch: str, sub_branch: Optional[str] = None) -> str:
    explicit = NAV_LIST_COLLECTION.get(f"{branch}|{sub_branch}")
    if explicit:
        return explicit
    return collection_id_for_branch(branch)


def tenant_collection_path(app_id: str, tenant_id: str, key: str) -> str:
    if not app_id or not tenant_id or not key:
        raise ValueError("tenant_collection_path: missing app_id, tenant_id or key")
    return f"artifacts/{app_id}/tenants/{tenant_id}/{key}"


def tenant_document_path(app_id: str, tenant_id: str, key: str, doc_id: str) -> str:
    return f"{tenant_collection_path(app_id, tenant_id, key)}/{doc_id}"

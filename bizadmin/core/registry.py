"""Declarative entity table, normalized once at startup.

Keys are branch labels ("Customers", "Finances"); each entry is a raw schema in
the same camelCase shape the document store uses.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from bizadmin.core.collections import collection_id_for_branch
from bizadmin.core.errors import UnknownEntity
from bizadmin.core.schema_utils import normalize_schema
from bizadmin.schemas.entity import EntitySchema

logger = logging.getLogger(__name__)


def _audit_fields(hide: bool = True) -> List[dict]:
    return [
        {"path": "createdAt", "type": "date", "label": "Created At", "immutable": True, "hideOnChange": True, "hideOnAdd": True},
        {"path": "createdBy", "type": "text", "label": "Created By", "immutable": True, "hideOnChange": hide, "hideOnAdd": True},
        {"path": "updatedAt", "type": "date", "label": "Updated At", "immutable": True, "hideOnChange": True, "hideOnAdd": True},
        {"path": "updatedBy", "type": "text", "label": "Updated By", "immutable": True, "hideOnChange": hide, "hideOnAdd": True},
    ]


CUSTOMERS = {
    "label": "Customers",
    "meta": {
        "immutable": ["customerNbr", "createdAt", "createdBy", "updatedAt", "updatedBy", "tenantId", "appId"],
    },
    "search": {
        "keys": [
            "customerNbr",
            "name1",
            "name2",
            "contacts.primary.email",
            "billing.address.city",
            "billing.address.state",
            "billing.address.country",
        ],
    },
    "list": {
        "defaultSort": {"key": "customerNbr", "dir": "asc"},
        "sortable": True,
        "exclude": ["tax.ssn", "tax.ein", "tax.taxId", "billing.tax.taxId", "createdBy", "updatedBy", "deletedAt", "deletedBy"],
    },
    "csv": {"exclude": ["tax.ssn", "tax.ein", "tax.taxId", "billing.tax.taxId"]},
    "edit": {"idFields": ["customerNbr"], "nameField": "name1"},
    "fields": [
        {"path": "customerNbr", "type": "text", "label": "Customer #", "immutable": True, "editableOnCreate": True, "required": True},
        {"path": "name1", "type": "text", "label": "Name 1", "required": True},
        {"path": "name2", "type": "text", "label": "Name 2"},
        {"path": "name3", "type": "text", "label": "Name 3"},
        {"path": "status", "type": "select", "label": "Status", "enum": ["Lead", "Prospect", "Active", "Inactive"], "allowBlank": True},
        {"path": "contacts.primary.firstName", "type": "text", "label": "Primary First Name"},
        {"path": "contacts.primary.lastName", "type": "text", "label": "Primary Last Name"},
        {"path": "contacts.primary.email", "type": "email", "label": "Primary Email"},
        {"path": "contacts.primary.phone", "type": "tel", "label": "Primary Phone"},
        {"path": "billing.address.line1", "type": "text", "label": "Billing Address 1"},
        {"path": "billing.address.line2", "type": "text", "label": "Billing Address 2"},
        {"path": "billing.address.city", "type": "text", "label": "Billing City"},
        {"path": "billing.address.state", "type": "text", "label": "Billing State/Region"},
        {"path": "billing.address.postalCode", "type": "text", "label": "Billing Postal Code"},
        {"path": "billing.address.country", "type": "select", "label": "Billing Country", "allowBlank": True},
        {"path": "credit.limit", "type": "number", "label": "Credit Limit"},
        {"path": "credit.currency", "type": "select", "label": "Currency", "allowBlank": True},
        {"path": "credit.onHold", "type": "checkbox", "label": "On Credit Hold"},
        {
            "path": "billing.paymentTerms",
            "type": "select",
            "label": "Payment Terms",
            "enum": ["Due on Receipt", "Net 15", "Net 30", "Net 45", "Net 60"],
            "allowBlank": True,
        },
        {"path": "tax.taxId", "type": "text", "label": "Tax ID", "sensitive": True},
        {"path": "user.user1", "type": "text", "label": "User Field 1"},
        {"path": "user.user2", "type": "text", "label": "User Field 2"},
        {"path": "user.user3", "type": "text", "label": "User Field 3"},
        *_audit_fields(hide=False),
    ],
}

EMPLOYMENT_STATUS_OPTIONS = [
    {"value": v, "label": v} for v in ("Active", "On Leave", "Suspended", "Terminated", "Retired")
]

EMPLOYMENT_TYPE_OPTIONS = [
    {"value": v, "label": v}
    for v in ("Full-time", "Part-time", "Contract", "Intern", "Temporary", "Seasonal", "Contingent")
]

# Employees keep the legacy column-list / top-level defaultSort shape
EMPLOYEES = {
    "label": "Employees",
    "collectionName": "employees",
    "edit": {"idFields": ["employeeId"], "nameField": "lastName"},
    "search": {"keys": ["employeeId", "firstName", "lastName", "email", "department", "title"]},
    "fields": [
        {"path": "employeeId", "label": "Employee ID", "type": "text", "required": True, "hideOnChange": True},
        {"path": "firstName", "label": "First Name", "type": "text", "required": True},
        {"path": "lastName", "label": "Last Name", "type": "text", "required": True},
        {"path": "email", "label": "Email", "type": "email"},
        {"path": "phoneNumber", "label": "Phone", "type": "tel"},
        {"path": "dateOfBirth", "label": "Date of Birth", "type": "date", "immutable": True, "editableOnCreate": True},
        {"path": "ssn", "label": "SSN", "type": "text", "sensitive": True, "hideOnChange": True},
        {"path": "address.street", "label": "Street", "type": "text", "required": True},
        {"path": "address.city", "label": "City", "type": "text", "required": True},
        {"path": "address.state", "label": "State", "type": "text", "required": True},
        {"path": "address.zipCode", "label": "ZIP", "type": "text", "required": True},
        {"path": "hireDate", "label": "Hire Date", "type": "date", "required": True},
        {
            "path": "employmentStatus",
            "label": "Employment Status",
            "type": "select",
            "required": True,
            "options": EMPLOYMENT_STATUS_OPTIONS,
            "placeholder": "Select Employment status",
        },
        {
            "path": "employmentType",
            "label": "Employment Type",
            "type": "select",
            "options": EMPLOYMENT_TYPE_OPTIONS,
            "allowBlank": True,
            "placeholder": "Select Employment type",
        },
        {"path": "department", "label": "Department", "type": "text"},
        {"path": "title", "label": "Title", "type": "text"},
        {"path": "managerId", "label": "Manager Employee ID", "type": "text"},
        {"path": "location", "label": "Location", "type": "text"},
        {"path": "costCenter", "label": "Cost Center", "type": "text"},
        {"path": "isDeleted", "label": "Deleted?", "type": "checkbox", "hideOnAdd": True},
        {"path": "deletedAt", "label": "Deleted At", "type": "date", "hideOnAdd": True, "immutable": True},
        {"path": "deletedBy", "label": "Deleted By", "type": "text", "hideOnAdd": True, "immutable": True},
    ],
    "list": [
        {"path": "employeeId", "label": "ID"},
        {"path": "lastName", "label": "Last"},
        {"path": "firstName", "label": "First"},
        {"path": "email", "label": "Email"},
        {"path": "employmentStatus", "label": "Status"},
        {"path": "department", "label": "Dept"},
        {"path": "title", "label": "Title"},
        {"path": "updatedAt", "label": "Updated"},
    ],
    "defaultSort": {"path": "lastName", "dir": "asc"},
    "csv": ["employeeId", "lastName", "firstName", "email", "employmentStatus", "department", "title", "updatedAt"],
}

ASSETS = {
    "label": "Assets",
    "search": {"keys": ["assetNbr", "name", "type", "serialNumber", "location"]},
    "list": {"defaultSort": {"key": "name", "dir": "asc"}},
    "edit": {"idFields": ["assetNbr"], "nameField": "name"},
    "fields": [
        {"path": "assetNbr", "type": "text", "label": "Asset #", "immutable": True, "editableOnCreate": True},
        {"path": "name", "type": "text", "label": "Asset Name", "required": True},
        {"path": "type", "type": "text", "label": "Type"},
        {"path": "serialNumber", "type": "text", "label": "Serial Number"},
        {"path": "purchaseDate", "type": "date", "label": "Purchase Date"},
        {"path": "value", "type": "number", "label": "Value"},
        {"path": "location", "type": "text", "label": "Location"},
        {"path": "notes", "type": "textarea", "label": "Notes"},
        *_audit_fields(),
    ],
}

FINANCES = {
    "label": "Finances",
    "search": {"keys": ["description", "category", "type"]},
    "list": {"defaultSort": {"key": "date", "dir": "desc"}},
    "edit": {"nameField": "description"},
    "fields": [
        {"path": "type", "type": "select", "label": "Type", "enum": ["Income", "Expense"], "required": True},
        {"path": "description", "type": "text", "label": "Description", "required": True},
        {"path": "amount", "type": "number", "label": "Amount", "required": True},
        {"path": "date", "type": "date", "label": "Transaction Date", "required": True},
        {"path": "category", "type": "text", "label": "Category"},
        {"path": "reconciled", "type": "checkbox", "label": "Reconciled"},
        *_audit_fields(),
    ],
}

INVOICES = {
    "label": "Invoices",
    "collection": "invoices",
    "search": {"keys": ["invoiceNumber", "customer.name", "customer.email"]},
    "list": {"defaultSort": {"key": "createdAt", "dir": "desc"}},
    "meta": {"immutable": ["tenantId", "appId", "createdAt", "createdBy"]},
    "edit": {"idFields": ["invoiceNumber"], "nameField": "customer.name"},
    "fields": [
        {"path": "templateId", "label": "Template", "type": "text", "required": True, "immutable": True, "editableOnCreate": True},
        {"path": "invoiceNumber", "label": "Invoice #", "type": "text", "required": True},
        {"path": "customer.name", "label": "Bill To: Name", "type": "text", "required": True},
        {"path": "customer.email", "label": "Bill To: Email", "type": "email"},
        {"path": "issueDate", "label": "Issue Date", "type": "date", "required": True},
        {"path": "dueDate", "label": "Due Date", "type": "date", "required": True},
        {"path": "fields", "label": "Dynamic Fields", "type": "object", "hideOnChange": True},
        {"path": "lineItems", "label": "Line Items", "type": "object", "hideOnChange": True},
        {"path": "currency", "label": "Currency", "type": "text", "required": True},
        {"path": "subTotal", "label": "Subtotal", "type": "number", "edit": False},
        {"path": "taxTotal", "label": "Tax", "type": "number", "edit": False},
        {"path": "grandTotal", "label": "Total", "type": "number", "edit": False},
        *_audit_fields(),
    ],
}

INVOICE_TEMPLATES = {
    "label": "Invoice Templates",
    "collection": "invoiceTemplates",
    "search": {"keys": ["name", "currency", "header.title"]},
    "list": {"defaultSort": {"key": "name", "dir": "asc"}},
    "meta": {"immutable": ["tenantId", "appId", "createdAt", "createdBy", "nameLower"]},
    "edit": {"nameField": "name"},
    "fields": [
        {"path": "name", "label": "Template Name", "type": "text", "required": True, "immutable": True, "editableOnCreate": True},
        {"path": "currency", "label": "Default Currency", "type": "text", "required": True},
        {"path": "header.title", "label": "Header Title", "type": "text"},
        {"path": "header.logoUrl", "label": "Logo URL", "type": "text"},
        {"path": "footer.notes", "label": "Footer Notes", "type": "textarea"},
        {"path": "fields", "label": "Custom Fields[]", "type": "object", "hideOnChange": True},
        {"path": "lineItemColumns", "label": "Line Item Columns[]", "type": "object", "hideOnChange": True},
        *_audit_fields(),
    ],
}

ENTITY_TABLE: Dict[str, dict] = {
    "Customers": CUSTOMERS,
    "Employees": EMPLOYEES,
    "Assets": ASSETS,
    "Finances": FINANCES,
    "Invoices": INVOICES,
    "InvoiceTemplates": INVOICE_TEMPLATES,
}


class SchemaRegistry:
    """Normalized schemas keyed by branch label; also resolvable by collection id."""

    def __init__(self, table: Optional[Dict[str, dict]] = None):
        self._schemas: Dict[str, EntitySchema] = {}
        self._by_collection: Dict[str, str] = {}
        for branch, raw in (table if table is not None else ENTITY_TABLE).items():
            collection = raw.get("collection") or raw.get("collectionName") or collection_id_for_branch(branch)
            schema = normalize_schema(raw, entity_label=branch, collection_name=collection)
            self._schemas[branch] = schema
            self._by_collection[collection] = branch
        logger.info(f"Schema registry loaded: {', '.join(self._schemas)}")

    def branches(self) -> List[str]:
        return list(self._schemas)

    def resolve(self, branch_or_collection: str) -> str:
        if branch_or_collection in self._schemas:
            return branch_or_collection
        if branch_or_collection in self._by_collection:
            return self._by_collection[branch_or_collection]
        raise UnknownEntity(branch_or_collection)

    def get(self, branch_or_collection: str) -> EntitySchema:
        return self._schemas[self.resolve(branch_or_collection)]

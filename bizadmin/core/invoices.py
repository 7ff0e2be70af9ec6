"""Invoice templates and invoices: totals, unique template names, saving."""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from bizadmin.core.config import settings
from bizadmin.core.errors import (
    BackendError,
    DuplicateTemplateName,
    RecordNotFound,
    RecordValidationError,
    SubmissionInProgress,
    template_error_message,
)
from bizadmin.core.paths import get_path, set_path
from bizadmin.core.validation import validate_record
from bizadmin.db.context import BackendContext
from bizadmin.db.store import SERVER_TIMESTAMP
from bizadmin.schemas.entity import EntitySchema

logger = logging.getLogger(__name__)

TEMPLATES_COLLECTION = "invoiceTemplates"
INVOICES_COLLECTION = "invoices"

INVOICE_SAVE_FAILED = "Failed to save invoice. Please try again."

DEFAULT_CUSTOM_FIELDS = [
    {"key": "poNumber", "label": "PO Number", "type": "text", "required": False},
    {"key": "notes", "label": "Notes", "type": "textarea", "required": False},
]

DEFAULT_LINE_ITEM_COLUMNS = [
    {"key": "description", "label": "Description", "type": "text"},
    {"key": "qty", "label": "Qty", "type": "number"},
    {"key": "unitPrice", "label": "Unit Price", "type": "number"},
    {"key": "lineTotal", "label": "Line Total", "type": "number", "computed": True},
]

DEFAULT_FOOTER_NOTES = "Thank you for your business."


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def line_total(item: Optional[dict]) -> float:
    item = item or {}
    return _number(item.get("qty")) * _number(item.get("unitPrice"))


def compute_totals(line_items: Optional[Iterable[dict]]) -> Dict[str, float]:
    sub_total = sum(line_total(li) for li in (line_items or []))
    # no tax engine yet; taxTotal stays 0
    tax_total = 0.0
    return {"subTotal": sub_total, "taxTotal": tax_total, "grandTotal": sub_total + tax_total}


class SubmissionGuard:
    """Rejects a second submission for the same (tenant, action) while one is in flight."""

    def __init__(self):
        self._in_flight: Set[Tuple[str, str]] = set()

    def busy(self, tenant_id: str, action: str) -> bool:
        return (tenant_id, action) in self._in_flight

    @contextmanager
    def hold(self, tenant_id: str, action: str):
        key = (tenant_id, action)
        if key in self._in_flight:
            logger.warning(f"Rejected duplicate {action} submission for tenant {tenant_id}")
            raise SubmissionInProgress(action)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


def template_defaults(data: dict) -> dict:
    """Fill header title, footer notes, custom fields and line-item columns when absent."""
    out = copy.deepcopy(data)
    if not get_path(out, "header.title"):
        set_path(out, "header.title", "INVOICE")
    if get_path(out, "footer.notes") is None:
        set_path(out, "footer.notes", DEFAULT_FOOTER_NOTES)
    if not out.get("fields"):
        out["fields"] = copy.deepcopy(DEFAULT_CUSTOM_FIELDS)
    if not out.get("lineItemColumns"):
        out["lineItemColumns"] = copy.deepcopy(DEFAULT_LINE_ITEM_COLUMNS)
    if not out.get("currency"):
        out["currency"] = settings.DEFAULT_CURRENCY
    return out


def _creation_stamps(ctx: BackendContext) -> dict:
    actor_id = ctx.actor.identifier
    return {
        "tenantId": ctx.tenant_id,
        "appId": ctx.app_id,
        "createdAt": SERVER_TIMESTAMP,
        "createdBy": actor_id,
        "updatedAt": SERVER_TIMESTAMP,
        "updatedBy": actor_id,
    }


class TemplateService:
    def __init__(self, ctx: BackendContext):
        self.ctx = ctx
        self.path = ctx.collection_path(TEMPLATES_COLLECTION)

    async def list(self) -> List[dict]:
        docs = await self.ctx.store.query(self.path, order_by=("name", "asc"), limit=settings.LIST_ROW_CAP)
        return [d.as_row() for d in docs]

    async def get(self, template_id: str) -> dict:
        doc = await self.ctx.store.get(self.path, template_id)
        if doc is None:
            raise RecordNotFound(TEMPLATES_COLLECTION, template_id)
        return doc.as_row()

    async def name_taken(self, name: str) -> bool:
        docs = await self.ctx.store.query(self.path, where=[("nameLower", "==", name.strip().lower())], limit=1)
        return bool(docs)

    async def create(self, data: dict) -> str:
        name = str(data.get("name") or "").strip()
        if not name:
            raise RecordValidationError(["Template name is required."])
        try:
            if await self.name_taken(name):
                raise DuplicateTemplateName(name)
            payload = template_defaults(data)
            payload.pop("id", None)
            payload["name"] = name
            payload["nameLower"] = name.lower()
            payload.update(_creation_stamps(self.ctx))
            template_id = await self.ctx.store.add(self.path, payload)
        except BackendError as e:
            logger.error(f"Template save failed (tenant={self.ctx.tenant_id}, name={name}, code={e.code}): {e.message}")
            raise BackendError(e.code, template_error_message(e))
        logger.info(f"Template '{name}' created as {template_id} for tenant {self.ctx.tenant_id}")
        return template_id


class InvoiceService:
    def __init__(self, ctx: BackendContext, schema: EntitySchema):
        self.ctx = ctx
        self.schema = schema
        self.path = ctx.collection_path(INVOICES_COLLECTION)
        self.templates = TemplateService(ctx)

    async def get(self, invoice_id: str) -> dict:
        doc = await self.ctx.store.get(self.path, invoice_id)
        if doc is None:
            raise RecordNotFound(INVOICES_COLLECTION, invoice_id)
        return doc.as_row()

    async def build_payload(self, data: dict) -> dict:
        template_id = data.get("templateId")
        if not template_id:
            raise RecordValidationError(["Template is required."])
        template = await self.templates.get(template_id)
        line_items = [dict(li) for li in (data.get("lineItems") or [])]
        payload = {
            "templateId": template_id,
            "invoiceNumber": data.get("invoiceNumber") or "",
            "issueDate": data.get("issueDate") or "",
            "dueDate": data.get("dueDate") or "",
            "customer": dict(data.get("customer") or {}),
            "fields": dict(data.get("fields") or {}),
            "lineItems": line_items,
            "currency": template.get("currency") or settings.DEFAULT_CURRENCY,
            **compute_totals(line_items),
        }
        messages = validate_record(self.schema, payload, mode="add")
        if messages:
            raise RecordValidationError(messages)
        return payload

    async def create(self, data: dict) -> str:
        payload = await self.build_payload(data)
        payload.update(_creation_stamps(self.ctx))
        try:
            invoice_id = await self.ctx.store.add(self.path, payload)
        except BackendError as e:
            logger.error(
                f"Invoice save failed (tenant={self.ctx.tenant_id}, number={payload['invoiceNumber']}, code={e.code}): {e.message}"
            )
            raise BackendError(e.code, INVOICE_SAVE_FAILED)
        logger.info(f"Invoice {payload['invoiceNumber']} created as {invoice_id} (total {payload['grandTotal']})")
        return invoice_id

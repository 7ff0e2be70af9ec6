"""Record editor: list, load, save, create and delete for any registered entity."""

from __future__ import annotations

import copy
import logging
from typing import List, Optional

from bizadmin.core.config import settings
from bizadmin.core.errors import BackendError, BizAdminError, RecordNotFound, RecordValidationError
from bizadmin.core.invoices import INVOICES_COLLECTION, TEMPLATES_COLLECTION, TemplateService, compute_totals, template_defaults
from bizadmin.core.paths import delete_path, get_path, set_path
from bizadmin.core.pii import is_protected, protect_value
from bizadmin.core.schema_utils import AUDIT_STAMPS, immutable_union
from bizadmin.core.search import filter_records
from bizadmin.core.validation import validate_record
from bizadmin.db.context import BackendContext
from bizadmin.db.store import DELETE_FIELD, SERVER_TIMESTAMP
from bizadmin.schemas.entity import EntitySchema

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Error saving changes."
SAVED_MESSAGE = "Changes saved."


def strip_immutable(schema: EntitySchema, record: dict) -> dict:
    """Deep clone of ``record`` without any key in the immutable union (audit stamps excepted)."""
    payload = copy.deepcopy(record)
    payload.pop("id", None)
    for key in immutable_union(schema):
        if key in AUDIT_STAMPS:
            continue
        delete_path(payload, key)
    return payload


def stamp_soft_delete(payload: dict, actor_id: str) -> None:
    if "isDeleted" not in payload and "deleted" not in payload:
        return
    if payload.get("isDeleted") is True or payload.get("deleted") is True:
        payload["deletedAt"] = SERVER_TIMESTAMP
        payload["deletedBy"] = actor_id
    else:
        payload["deletedAt"] = DELETE_FIELD
        payload["deletedBy"] = DELETE_FIELD


def protect_sensitive(schema: EntitySchema, payload: dict, tenant_id: str) -> None:
    for f in schema.fields:
        if not f.sensitive:
            continue
        value = get_path(payload, f.path)
        if value is None or is_protected(value):
            continue
        set_path(payload, f.path, protect_value(value, tenant_id))


TOTAL_KEYS = ("subTotal", "taxTotal", "grandTotal")


def derive_totals(schema: EntitySchema, payload: dict, creating: bool = False) -> None:
    """Invoice totals always come from the line items, never from the client."""
    if schema.collection_name != INVOICES_COLLECTION:
        return
    for key in TOTAL_KEYS:
        payload.pop(key, None)
    if creating or "lineItems" in payload:
        payload.update(compute_totals(payload.get("lineItems")))


class RecordService:
    """CRUD for one entity, scoped to the caller's (app, tenant)."""

    def __init__(self, ctx: BackendContext, schema: EntitySchema):
        self.ctx = ctx
        self.schema = schema
        self.path = ctx.collection_path(schema.collection_name)

    async def list_page(self, q: Optional[str] = None, limit: Optional[int] = None) -> List[dict]:
        sort = self.schema.list.default_sort
        docs = await self.ctx.store.query(
            self.path,
            order_by=(sort.key, sort.dir) if sort else None,
            limit=limit or settings.LIST_ROW_CAP,
        )
        rows = [d.as_row() for d in docs]
        return filter_records(rows, q, self.schema.search.keys)

    async def load(self, record_id: str) -> dict:
        doc = await self.ctx.store.get(self.path, record_id)
        if doc is None:
            raise RecordNotFound(self.schema.collection_name, record_id)
        return doc.as_row()

    def build_update_payload(self, record: dict) -> dict:
        actor_id = self.ctx.actor.identifier
        payload = strip_immutable(self.schema, record)
        payload["updatedAt"] = SERVER_TIMESTAMP
        payload["updatedBy"] = actor_id
        stamp_soft_delete(payload, actor_id)
        protect_sensitive(self.schema, payload, self.ctx.tenant_id)
        derive_totals(self.schema, payload)
        return payload

    async def save(self, record_id: str, record: dict) -> str:
        if not record_id:
            raise BizAdminError("A record must be selected before saving.")
        payload = self.build_update_payload(record)
        try:
            await self.ctx.store.update(self.path, record_id, payload)
        except BackendError as e:
            logger.error(
                f"Save failed for {self.schema.entity_label} {record_id} "
                f"(tenant={self.ctx.tenant_id}, code={e.code}): {e.message}"
            )
            if e.code == "not-found":
                raise RecordNotFound(self.schema.collection_name, record_id)
            raise BackendError(e.code, SAVE_FAILED_MESSAGE)
        logger.info(f"Saved {self.schema.entity_label} {record_id} by {self.ctx.actor.identifier}")
        return SAVED_MESSAGE

    def build_create_payload(self, record: dict) -> dict:
        messages = validate_record(self.schema, record, mode="add")
        if messages:
            raise RecordValidationError(messages)
        actor_id = self.ctx.actor.identifier
        payload = copy.deepcopy(record)
        payload.pop("id", None)
        protect_sensitive(self.schema, payload, self.ctx.tenant_id)
        derive_totals(self.schema, payload, creating=True)
        payload.update(
            {
                "tenantId": self.ctx.tenant_id,
                "appId": self.ctx.app_id,
                "createdAt": SERVER_TIMESTAMP,
                "createdBy": actor_id,
                "updatedAt": SERVER_TIMESTAMP,
                "updatedBy": actor_id,
            }
        )
        return payload

    async def create(self, record: dict) -> str:
        if self.schema.collection_name == TEMPLATES_COLLECTION:
            return await self.create_template(record)
        payload = self.build_create_payload(record)
        try:
            new_id = await self.ctx.store.add(self.path, payload)
        except BackendError as e:
            logger.error(
                f"Create failed for {self.schema.entity_label} "
                f"(tenant={self.ctx.tenant_id}, code={e.code}): {e.message}"
            )
            raise BackendError(e.code, f"Error adding {self.schema.entity_label}.")
        logger.info(f"Created {self.schema.entity_label} {new_id} by {self.ctx.actor.identifier}")
        return new_id

    async def create_template(self, record: dict) -> str:
        # same unique-name check and defaults as the template endpoint
        messages = validate_record(self.schema, template_defaults(record), mode="add")
        if messages:
            raise RecordValidationError(messages)
        return await TemplateService(self.ctx).create(record)

    async def delete(self, record_id: str, confirm: bool = False) -> None:
        if not confirm:
            raise BizAdminError("Deletion must be confirmed.")
        await self.load(record_id)
        try:
            await self.ctx.store.delete(self.path, record_id)
        except BackendError as e:
            logger.error(
                f"Delete failed for {self.schema.entity_label} {record_id} "
                f"(tenant={self.ctx.tenant_id}, code={e.code}): {e.message}"
            )
            raise BackendError(e.code, f"Error deleting {self.schema.entity_label}.")
        logger.info(f"Deleted {self.schema.entity_label} {record_id} by {self.ctx.actor.identifier}")

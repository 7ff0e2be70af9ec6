import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from bizadmin.api.deps import build_context, get_context, get_registry
from bizadmin.core.config import settings
from bizadmin.core.errors import BizAdminError
from bizadmin.core.export import export_csv
from bizadmin.core.forms import build_form, initial_values
from bizadmin.core.records import RecordService
from bizadmin.core.registry import SchemaRegistry
from bizadmin.core.schema_utils import build_picker_label
from bizadmin.core.search import LiveList, cash_flow_summary, derive_columns, shape_rows, sort_records
from bizadmin.db.context import BackendContext
from bizadmin.schemas.entity import EntitySchema
from bizadmin.schemas.forms import FormView

router = APIRouter(prefix="/entities", tags=["entities"])
logger = logging.getLogger(__name__)


def list_columns(schema: EntitySchema, rows: List[dict]) -> List[str]:
    if schema.list.columns:
        return [c.path for c in schema.list.columns]
    return derive_columns(rows)


def list_payload(branch: str, schema: EntitySchema, raw_rows: List[dict]) -> dict:
    rows = shape_rows(schema, raw_rows)
    payload = {
        "entity": branch,
        "count": len(rows),
        "columns": list_columns(schema, rows),
        "rows": rows,
        "labels": {r["id"]: build_picker_label(schema, r, r["id"]) for r in raw_rows},
    }
    if branch == "Finances":
        payload["summary"] = cash_flow_summary(raw_rows)
    return payload


@router.get("")
async def list_entities(registry: SchemaRegistry = Depends(get_registry)):
    return {
        "entities": [
            {"branch": b, "collection": registry.get(b).collection_name}
            for b in registry.branches()
        ]
    }


@router.get("/{branch}/schema")
async def get_schema(branch: str, registry: SchemaRegistry = Depends(get_registry)):
    return registry.get(branch).model_dump(by_alias=True)


@router.get("/{branch}/records")
async def list_records(
    branch: str,
    q: Optional[str] = Query(None),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    raw_rows = await RecordService(ctx, schema).list_page(q)
    return list_payload(branch, schema, raw_rows)


@router.get("/{branch}/form", response_model=FormView)
async def add_form(branch: str, registry: SchemaRegistry = Depends(get_registry)):
    schema = registry.get(branch)
    return FormView(
        mode="add",
        entity=registry.resolve(branch),
        widgets=build_form(schema, None, mode="add"),
        values=initial_values(schema),
    )


@router.get("/{branch}/export.csv")
async def export_records(
    branch: str,
    q: Optional[str] = Query(None),
    columns: Optional[str] = Query(None),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    rows = shape_rows(schema, await RecordService(ctx, schema).list_page(q))
    selected = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    content = export_csv(rows, selected or schema.csv.columns or None, exclude=schema.csv.exclude)
    logger.info(f"CSV export of {len(rows)} {branch} rows for tenant {ctx.tenant_id}")
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={schema.collection_name}.csv"},
    )


@router.get("/{branch}/records/{record_id}")
async def get_record(
    branch: str,
    record_id: str,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    schema = registry.get(branch)
    record = await RecordService(ctx, schema).load(record_id)
    return {
        "entity": registry.resolve(branch),
        "id": record_id,
        "label": build_picker_label(schema, record, record_id),
        "record": record,
        "form": FormView(
            mode="change",
            entity=registry.resolve(branch),
            record_id=record_id,
            widgets=build_form(schema, record, mode="change"),
        ),
    }


@router.post("/{branch}/records", status_code=201)
async def create_record(
    branch: str,
    record: Dict[str, Any] = Body(...),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    schema = registry.get(branch)
    new_id = await RecordService(ctx, schema).create(record)
    return {"id": new_id, "message": f"{schema.entity_label} record added."}


@router.put("/{branch}/records/{record_id}")
async def save_record(
    branch: str,
    record_id: str,
    record: Dict[str, Any] = Body(...),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    schema = registry.get(branch)
    message = await RecordService(ctx, schema).save(record_id, record)
    return {"id": record_id, "message": message}


@router.delete("/{branch}/records/{record_id}")
async def delete_record(
    branch: str,
    record_id: str,
    confirm: bool = Query(False),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    if not confirm:
        raise HTTPException(status_code=400, detail="Deletion must be confirmed with confirm=true")
    schema = registry.get(branch)
    await RecordService(ctx, schema).delete(record_id, confirm=True)
    return {"id": record_id, "message": "Record deleted."}


@router.websocket("/{branch}/live")
async def live_records(websocket: WebSocket, branch: str):
    registry: SchemaRegistry = websocket.app.state.registry
    try:
        ctx = build_context(websocket)
        branch = registry.resolve(branch)
    except (HTTPException, BizAdminError) as e:
        logger.warning(f"Live list refused for {branch}: {e}")
        await websocket.close(code=1008)
        return
    schema = registry.get(branch)
    await websocket.accept()

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()
    live = LiveList(
        ctx.store,
        ctx.collection_path(schema.collection_name),
        schema,
        on_change=lambda rows: loop.call_soon_threadsafe(updates.put_nowait, rows),
    )

    async def push():
        sort = schema.list.default_sort
        while True:
            rows = await updates.get()
            if sort:
                rows = sort_records(rows, sort.key, sort.dir)
            rows = rows[: settings.LIST_ROW_CAP]
            await websocket.send_json(jsonable_encoder({"entity": branch, "count": len(rows), "rows": rows}))

    sender = asyncio.create_task(push())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Live list client for {branch} disconnected")
    finally:
        sender.cancel()
        live.close()

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pathlib import Path
from typing import Optional
import logging

from bizadmin.api.deps import get_context, get_registry
from bizadmin.core.config import settings
from bizadmin.core.dates import format_ts
from bizadmin.core.errors import BizAdminError, RecordNotFound, RecordValidationError
from bizadmin.core.export import render_value
from bizadmin.core.forms import build_form, initial_values, read_form
from bizadmin.core.paths import get_path
from bizadmin.core.records import RecordService
from bizadmin.core.registry import SchemaRegistry
from bizadmin.core.schema_utils import build_picker_label
from bizadmin.core.search import cash_flow_summary, derive_columns, shape_rows
from bizadmin.db.context import BackendContext

router = APIRouter()
logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.filters["cell"] = render_value
templates.env.filters["ts"] = format_ts


def _page(request: Request, name: str, status_code: int = 200, **context):
    context.setdefault("project_name", settings.PROJECT_NAME)
    context.setdefault("tenant_id", request.cookies.get(settings.TENANT_COOKIE))
    context.setdefault("branches", request.app.state.registry.branches())
    return templates.TemplateResponse(request, name, context, status_code=status_code)


@router.get("/", response_class=HTMLResponse)
async def landing_page(request: Request):
    return _page(request, "landing.html")


@router.post("/session")
async def start_session(tenant_id: str = Form(...), email: str = Form("")):
    response = RedirectResponse(url="/ui", status_code=303)
    response.set_cookie(key=settings.TENANT_COOKIE, value=tenant_id.strip(), httponly=True, path="/")
    if email.strip():
        response.set_cookie(key=settings.ACTOR_COOKIE, value=email.strip(), httponly=True, path="/")
    logger.info(f"Session started for tenant {tenant_id.strip()}")
    return response


@router.get("/ui", response_class=HTMLResponse)
async def entity_index(request: Request):
    return _page(request, "landing.html")


@router.get("/ui/{branch}", response_class=HTMLResponse)
async def list_page(
    request: Request,
    branch: str,
    q: Optional[str] = None,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    raw_rows = await RecordService(ctx, schema).list_page(q)
    rows = shape_rows(schema, raw_rows)
    columns = [c.path for c in schema.list.columns] or derive_columns(rows)
    return _page(
        request,
        "list.html",
        branch=branch,
        q=q or "",
        columns=columns,
        rows=[{"id": r["id"], "cells": [get_path(r, c) for c in columns]} for r in rows],
        labels={r["id"]: build_picker_label(schema, r, r["id"]) for r in raw_rows},
        summary=cash_flow_summary(raw_rows) if branch == "Finances" else None,
    )


@router.get("/ui/{branch}/add", response_class=HTMLResponse)
async def add_page(request: Request, branch: str, registry: SchemaRegistry = Depends(get_registry)):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    return _page(
        request,
        "form.html",
        branch=branch,
        mode="add",
        widgets=build_form(schema, initial_values(schema), mode="add"),
        record=None,
        messages=[],
    )


@router.post("/ui/{branch}/add", response_class=HTMLResponse)
async def add_submit(
    request: Request,
    branch: str,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    posted = dict(await request.form())
    data, messages = read_form(schema, posted, "add")
    status_code = 422
    if not messages:
        try:
            new_id = await RecordService(ctx, schema).create(data)
            return RedirectResponse(url=f"/ui/{branch}/{new_id}?added=1", status_code=303)
        except RecordValidationError as e:
            messages = e.messages
        except BizAdminError as e:
            messages = [e.message]
            status_code = e.status_code
    return _page(
        request,
        "form.html",
        status_code=status_code,
        branch=branch,
        mode="add",
        widgets=build_form(schema, data, mode="add"),
        record=None,
        messages=messages,
    )


@router.get("/ui/{branch}/{record_id}", response_class=HTMLResponse)
async def change_page(
    request: Request,
    branch: str,
    record_id: str,
    added: Optional[int] = None,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    try:
        record = await RecordService(ctx, schema).load(record_id)
    except RecordNotFound as e:
        return _page(
            request, "form.html", status_code=404,
            branch=branch, mode="change", widgets=[], record=None, messages=[e.message],
        )
    return _page(
        request,
        "form.html",
        branch=branch,
        mode="change",
        record_id=record_id,
        label=build_picker_label(schema, record, record_id),
        widgets=build_form(schema, record, mode="change"),
        record=record,
        messages=[f"{schema.entity_label} record added."] if added else [],
    )


@router.post("/ui/{branch}/{record_id}", response_class=HTMLResponse)
async def change_submit(
    request: Request,
    branch: str,
    record_id: str,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    service = RecordService(ctx, schema)
    try:
        record = await service.load(record_id)
    except RecordNotFound as e:
        return _page(
            request, "form.html", status_code=404,
            branch=branch, mode="change", widgets=[], record=None, messages=[e.message],
        )
    posted = dict(await request.form())
    data, messages = read_form(schema, posted, "change", record)
    status_code = 422
    if not messages:
        try:
            messages = [await service.save(record_id, data)]
            status_code = 200
            data = await service.load(record_id)
        except BizAdminError as e:
            # form state stays as submitted so the user can retry
            messages = [e.message]
            status_code = e.status_code
    return _page(
        request,
        "form.html",
        status_code=status_code,
        branch=branch,
        mode="change",
        record_id=record_id,
        label=build_picker_label(schema, data, record_id),
        widgets=build_form(schema, data, mode="change"),
        record=data,
        messages=messages,
    )


@router.get("/ui/{branch}/{record_id}/delete", response_class=HTMLResponse)
async def delete_page(
    request: Request,
    branch: str,
    record_id: str,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    schema = registry.get(branch)
    record = await RecordService(ctx, schema).load(record_id)
    return _page(
        request,
        "delete.html",
        branch=branch,
        record_id=record_id,
        label=build_picker_label(schema, record, record_id),
    )


@router.post("/ui/{branch}/{record_id}/delete")
async def delete_submit(
    branch: str,
    record_id: str,
    confirm: str = Form(""),
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    branch = registry.resolve(branch)
    if confirm != "yes":
        return RedirectResponse(url=f"/ui/{branch}/{record_id}", status_code=303)
    await RecordService(ctx, registry.get(branch)).delete(record_id, confirm=True)
    return RedirectResponse(url=f"/ui/{branch}", status_code=303)

"""Per-request dependencies: registry access and the tenant-scoped backend context."""

from fastapi import HTTPException, Request
from starlette.requests import HTTPConnection

from bizadmin.core.config import settings
from bizadmin.core.invoices import SubmissionGuard
from bizadmin.core.registry import SchemaRegistry
from bizadmin.db.context import Actor, BackendContext


def tenant_id_from(conn: HTTPConnection):
    return conn.cookies.get(settings.TENANT_COOKIE) or conn.headers.get("X-Tenant-ID")


def actor_from(conn: HTTPConnection) -> Actor:
    email = conn.headers.get("X-Actor-Email") or conn.cookies.get(settings.ACTOR_COOKIE)
    return Actor(email=email or None, uid=conn.headers.get("X-Actor-Id"))


def build_context(conn: HTTPConnection) -> BackendContext:
    tenant_id = tenant_id_from(conn)
    if not tenant_id:
        raise HTTPException(status_code=400, detail="Missing tenant identifier")
    return BackendContext(
        store=conn.app.state.store,
        app_id=settings.APP_ID,
        tenant_id=tenant_id,
        actor=actor_from(conn),
    )


def get_context(request: Request) -> BackendContext:
    return build_context(request)


def get_registry(request: Request) -> SchemaRegistry:
    return request.app.state.registry


def get_guard(request: Request) -> SubmissionGuard:
    return request.app.state.submission_guard

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
import hashlib
from bizadmin.core.config import settings
from bizadmin.schemas.audit import AuditLogEntry, AuditStatus
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = ["/session", "/static", "/health"]

RECORD_ACTIONS = {
    "GET": "RECORD_VIEW",
    "POST": "RECORD_CREATE",
    "PUT": "RECORD_SAVE",
    "DELETE": "RECORD_DELETE",
}


def is_public(path: str) -> bool:
    return path == "/" or any(path.startswith(p) for p in PUBLIC_PREFIXES)


def action_type_for(method: str, path: str) -> str:
    if path.startswith("/health"):
        return "HEALTH_CHECK"
    if path.startswith("/session") or path == "/":
        return "SESSION"
    if path.endswith("/export.csv"):
        return "CSV_EXPORT"
    if path.endswith("/pdf"):
        return "PDF_DOWNLOAD"
    if path.startswith("/invoice-templates"):
        return "TEMPLATE_SAVE" if method == "POST" else "TEMPLATE_VIEW"
    if path.startswith("/invoices/totals"):
        return "INVOICE_TOTALS"
    if path.startswith("/invoices"):
        return "INVOICE_SAVE" if method == "POST" else "INVOICE_VIEW"
    if path.startswith("/ui"):
        return "PAGE_SUBMIT" if method == "POST" else "PAGE_VIEW"
    if "/records" in path:
        if method == "GET" and path.rstrip("/").endswith("/records"):
            return "RECORD_LIST"
        return RECORD_ACTIONS.get(method, "UNKNOWN")
    if path.startswith("/entities"):
        return "SCHEMA_VIEW"
    return "UNKNOWN"


def entity_for(path: str) -> Optional[str]:
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2 and parts[0] in ("entities", "ui"):
        return parts[1]
    return None


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        endpoint = request.url.path
        method = request.method
        action_type = action_type_for(method, endpoint)
        audit_repo = request.app.state.audit_repo

        # Cookies first (web UI), then headers (API clients)
        tenant_id = request.cookies.get(settings.TENANT_COOKIE) or request.headers.get("X-Tenant-ID")
        actor = (
            request.headers.get("X-Actor-Email")
            or request.headers.get("X-Actor-Id")
            or request.cookies.get(settings.ACTOR_COOKIE)
            or "anonymous"
        )
        public = is_public(endpoint)

        logger.debug(f"Request to {endpoint}, tenant_id={tenant_id}, is_public={public}")

        if not tenant_id and not public:
            response = JSONResponse(status_code=400, content={"detail": "Missing tenant identifier"})
            try:
                audit_repo.save(AuditLogEntry(
                    endpoint=endpoint,
                    method=method,
                    action_type=action_type,
                    actor=actor,
                    tenant_id="MISSING",
                    entity=entity_for(endpoint),
                    status_code=400,
                    status=AuditStatus.FAILURE,
                ))
            except Exception as e:
                logger.error(f"Audit Logging Failed: {e}")
            return response

        if not tenant_id:
            tenant_id = "PUBLIC"

        request_body_bytes = await request.body()
        # Always hash the body, even if empty, for determinism
        input_hash = hashlib.sha256(request_body_bytes).hexdigest()

        response = None
        status = AuditStatus.FAILURE
        status_code = None
        output_hash = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            if 200 <= response.status_code < 400:
                status = AuditStatus.SUCCESS

            response_body_bytes = b""
            async for chunk in response.body_iterator:
                response_body_bytes += chunk
            output_hash = hashlib.sha256(response_body_bytes).hexdigest()

            rebuilt = Response(content=response_body_bytes, status_code=response.status_code)
            # raw headers keep repeated set-cookie entries
            rebuilt.raw_headers = list(response.raw_headers)
            response = rebuilt
        finally:
            try:
                audit_repo.save(AuditLogEntry(
                    endpoint=endpoint,
                    method=method,
                    action_type=action_type,
                    actor=actor,
                    tenant_id=tenant_id,
                    entity=entity_for(endpoint),
                    input_hash=input_hash,
                    output_hash=output_hash,
                    status_code=status_code,
                    status=status,
                ))
            except Exception as log_error:
                logger.error(f"Audit Logging Failed: {log_error}")

        return response

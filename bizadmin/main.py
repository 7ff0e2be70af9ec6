from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
from typing import Optional

from bizadmin.core.config import settings
from bizadmin.core.audit import AuditRepository, InMemoryAuditRepository
from bizadmin.core.errors import BackendError, BizAdminError, RecordValidationError
from bizadmin.core.invoices import SubmissionGuard
from bizadmin.core.middleware import AuditMiddleware
from bizadmin.core.registry import SchemaRegistry
from bizadmin.db.store import DocumentStore, InMemoryDocumentStore
from bizadmin.api import entities, health, invoices, web

logger = logging.getLogger(__name__)


async def bizadmin_error_handler(request: Request, exc: BizAdminError):
    content = {"detail": exc.message}
    if isinstance(exc, RecordValidationError):
        content["messages"] = exc.messages
    if isinstance(exc, BackendError):
        content["code"] = exc.code
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    store: Optional[DocumentStore] = None,
    registry: Optional[SchemaRegistry] = None,
    audit_repo: Optional[AuditRepository] = None,
) -> FastAPI:
    logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME)
    app.state.store = store or InMemoryDocumentStore()
    app.state.registry = registry or SchemaRegistry()
    app.state.audit_repo = audit_repo or InMemoryAuditRepository()
    app.state.submission_guard = SubmissionGuard()

    app.add_middleware(AuditMiddleware)
    app.add_exception_handler(BizAdminError, bizadmin_error_handler)

    app.include_router(health.router)
    app.include_router(entities.router)
    app.include_router(invoices.router)
    app.include_router(web.router)

    logger.info(f"{settings.PROJECT_NAME} ready (app id {settings.APP_ID}, store {type(app.state.store).__name__})")
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

from fastapi import APIRouter, Depends, Response
import hashlib
import logging

from bizadmin.api.deps import get_context, get_guard, get_registry
from bizadmin.core.errors import RecordNotFound
from bizadmin.core.invoice_pdf import build_invoice_pdf
from bizadmin.core.invoices import InvoiceService, SubmissionGuard, TemplateService, compute_totals, line_total
from bizadmin.core.registry import SchemaRegistry
from bizadmin.db.context import BackendContext
from bizadmin.schemas.invoice import CreatedResponse, InvoiceCreate, TemplateCreate, TotalsRequest, TotalsResponse

router = APIRouter(tags=["invoices"])
logger = logging.getLogger(__name__)


@router.get("/invoice-templates")
async def list_templates(ctx: BackendContext = Depends(get_context)):
    return {"templates": await TemplateService(ctx).list()}


@router.post("/invoice-templates", status_code=201, response_model=CreatedResponse)
async def create_template(
    body: TemplateCreate,
    ctx: BackendContext = Depends(get_context),
    guard: SubmissionGuard = Depends(get_guard),
):
    with guard.hold(ctx.tenant_id, "template-save"):
        template_id = await TemplateService(ctx).create(body.model_dump(by_alias=True, exclude_none=True))
    return CreatedResponse(id=template_id, message=f"Template “{body.name}” saved.")


@router.post("/invoices/totals", response_model=TotalsResponse)
async def invoice_totals(body: TotalsRequest):
    items = [li.model_dump(by_alias=True) for li in body.line_items]
    totals = compute_totals(items)
    return TotalsResponse(
        line_totals=[line_total(li) for li in items],
        sub_total=totals["subTotal"],
        tax_total=totals["taxTotal"],
        grand_total=totals["grandTotal"],
    )


@router.post("/invoices", status_code=201, response_model=CreatedResponse)
async def create_invoice(
    body: InvoiceCreate,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
    guard: SubmissionGuard = Depends(get_guard),
):
    with guard.hold(ctx.tenant_id, "invoice-save"):
        service = InvoiceService(ctx, registry.get("Invoices"))
        invoice_id = await service.create(body.model_dump(by_alias=True))
    return CreatedResponse(id=invoice_id, message=f"Invoice {body.invoice_number} saved.")


@router.get("/invoices/{invoice_id}/pdf")
async def invoice_pdf(
    invoice_id: str,
    ctx: BackendContext = Depends(get_context),
    registry: SchemaRegistry = Depends(get_registry),
):
    logger.info(f"Invoice PDF requested: {invoice_id} (tenant {ctx.tenant_id})")
    service = InvoiceService(ctx, registry.get("Invoices"))
    invoice = await service.get(invoice_id)
    try:
        template = await service.templates.get(invoice.get("templateId") or "")
    except RecordNotFound:
        logger.warning(f"Template {invoice.get('templateId')} missing for invoice {invoice_id}; using defaults")
        template = {}

    pdf_bytes = build_invoice_pdf(invoice, template)
    pdf_hash = hashlib.sha256(pdf_bytes).hexdigest()
    logger.info(f"Invoice PDF built: {invoice_id} sha256={pdf_hash[:12]}")

    number = invoice.get("invoiceNumber") or invoice_id
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=Invoice_{number}.pdf",
        },
    )

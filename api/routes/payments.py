"""
Payments API routes.

Exposes the processor webhook, the browser redirect targets and stored
payment method removal. Keep this thin: authentication and state changes
live in the application service.
"""
from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Header
from fastapi.responses import RedirectResponse
from starlette import status as http_status

from api.dependencies import get_payment_service, get_processor_settings
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from core.response import error_json, error_response, success_response
from core.settings import ProcessorSettings
from domain.common.exceptions import BusinessException


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


async def _redirect_fields(request: Request) -> dict:
    fields = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        fields.update({k: v for k, v in form.items() if isinstance(v, str)})
    return fields


@router.post("/webhook", summary="Processor webhook")
async def payments_webhook(
    request: Request,
    signature: str | None = Header(default=None, alias="Hash"),
    service: PaymentService = Depends(get_payment_service),
):
    raw_body = await request.body()
    try:
        event = await service.handle_webhook(raw_body, signature)
    except BusinessException as exc:
        logger.error("payment_webhook_failed", **exc.log_fields())
        response = error_response(
            code=exc.code,
            message=f'Webhook processing failed. Error: "{exc.message}".',
            error_type=exc.error_type,
            request_id=getattr(request.state, "request_id", None),
        )
        return error_json(http_status.HTTP_400_BAD_REQUEST, response)

    return success_response(
        data={"webhook_id": event.webhook_id, "webhook_type": event.kind},
        message="Webhook processed successfully.",
    )


@router.api_route("/redirect/order", methods=["GET", "POST"], summary="Order payment redirect")
async def order_redirect(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    settings: ProcessorSettings = Depends(get_processor_settings),
):
    result = await service.handle_order_redirect(await _redirect_fields(request))
    if result.success and result.order_id is not None:
        url = settings.urls.order_received.format(order_id=result.order_id, order_key=result.order_key or "")
    else:
        url = settings.urls.checkout
    return RedirectResponse(url, status_code=http_status.HTTP_303_SEE_OTHER)


@router.api_route("/redirect/payment-method", methods=["GET", "POST"], summary="Add payment method redirect")
async def payment_method_redirect(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    settings: ProcessorSettings = Depends(get_processor_settings),
):
    result = await service.handle_payment_method_redirect(await _redirect_fields(request))
    query = urlencode({settings.status_key: result.status or "error"})
    return RedirectResponse(f"{settings.urls.payment_methods}?{query}", status_code=http_status.HTTP_303_SEE_OTHER)


@router.get("/payment-method-notice", summary="Notice for an add payment method outcome")
async def payment_method_notice(status: str, service: PaymentService = Depends(get_payment_service)):
    notice = service.payment_method_notice(status)
    return success_response(data=notice.model_dump())


@router.delete("/customers/{user_id}/payment-methods/{token_id}", summary="Delete stored payment method")
async def delete_payment_method(user_id: int, token_id: int, service: PaymentService = Depends(get_payment_service)):
    await service.delete_payment_method(user_id, token_id)
    return success_response(data={"token_id": token_id}, message="Payment method deleted.")

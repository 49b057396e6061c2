"""
Order payment actions for operators: capture, cancel, refund.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_payment_service
from application.dtos.payments import ActionResult, RefundRequest
from application.services.payment_service import PaymentService
from core.response import success_response


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/{order_id}/capture", summary="Capture authorised payment")
async def capture_order(order_id: int, service: PaymentService = Depends(get_payment_service)):
    result = await service.capture(order_id)
    return success_response(data=ActionResult(order_id=order_id, result=result).model_dump())


@router.post("/{order_id}/cancel", summary="Cancel payment")
async def cancel_order(order_id: int, service: PaymentService = Depends(get_payment_service)):
    result = await service.cancel(order_id)
    return success_response(data=ActionResult(order_id=order_id, result=result).model_dump())


@router.post("/{order_id}/refunds", summary="Refund payment")
async def refund_order(order_id: int, payload: RefundRequest, service: PaymentService = Depends(get_payment_service)):
    await service.refund(order_id, payload.amount)
    return success_response(
        data={"order_id": order_id, "amount": str(payload.amount)},
        message="Payment refunded successfully.",
    )


@router.get("/{order_id}/notice", summary="Customer notice for a failed payment")
async def order_notice(order_id: int, service: PaymentService = Depends(get_payment_service)):
    notice = await service.fail_notice(order_id)
    return success_response(data={"order_id": order_id, "notice": notice})

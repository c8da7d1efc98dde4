"""
Payments API routes.

Exposes the eSewa initiate / callback / status endpoints via the
reconciliation service. Keep this thin: no signing details here.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from application.dtos.payments import CallbackResult, PaymentInitiation, StatusPollResult
from application.services.payment_service import ReconciliationService
from api.dependencies import get_reconciliation_service
from core.response import success_response, Response as ApiResponse
from domain.common.exceptions import DomainValidationException


router = APIRouter(prefix="/payments/esewa", tags=["Payments"])


async def read_callback_payload(request: Request) -> dict[str, Any]:
    """回调载荷可以是 JSON、表单或查询参数（v2 跳转携带 ?data=）"""
    payload: dict[str, Any] = dict(request.query_params)
    ct = (request.headers.get("content-type") or "").lower()
    if "application/json" in ct:
        try:
            body = await request.json()
        except ValueError:
            raise DomainValidationException("Callback body is not valid JSON") from None
        if not isinstance(body, dict):
            raise DomainValidationException("Callback body must be a JSON object")
        payload.update(body)
    elif "application/x-www-form-urlencoded" in ct or "multipart/form-data" in ct:
        form = await request.form()
        payload.update({k: v for k, v in form.items() if isinstance(v, str)})
    return payload


@router.post("/initiate/{order_id}", summary="发起 eSewa 支付", response_model=ApiResponse[PaymentInitiation])
async def initiate_payment(
    order_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """返回已签名的表单字段，前端据此跳转到 payment_url"""
    payload = await service.initiate(order_id)
    return success_response(data=payload, message="Payment initiated")


@router.post("/verify", summary="eSewa 回调验签", response_model=ApiResponse[CallbackResult])
async def verify_payment(
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    payload = await read_callback_payload(request)
    result = await service.handle_callback(payload)
    return success_response(data=result, message=result.message)


@router.get("/status/{order_id}", summary="查询 eSewa 支付状态", response_model=ApiResponse[StatusPollResult])
async def payment_status(
    order_id: str,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    result = await service.poll_status(order_id)
    return success_response(data=result)

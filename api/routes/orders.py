"""
订单API路由 - FastAPI表现层
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from application.dtos.orders import (
    CancelResultDTO,
    OrderCreateDTO,
    OrderResponseDTO,
    Principal,
    RefundRequestDTO,
    ResetResultDTO,
    StatusUpdateDTO,
)
from application.services.order_service import OrderApplicationService
from api.dependencies import get_current_admin, get_current_principal, get_order_service
from core.response import success_response, Response as ApiResponse

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


@router.post("", summary="创建订单", response_model=ApiResponse[OrderResponseDTO], status_code=201)
async def create_order(
    data: OrderCreateDTO,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    """
    创建订单

    - **products**: 图书ID与数量；标题和价格从图书目录快照
    - **total_price**: 含税总价，必须与明细合计一致（容差 0.01）
    """
    order = await service.create_order(data)
    return success_response(data=order, message="Order created successfully")


@router.get("", summary="订单列表（管理员）", response_model=ApiResponse[List[OrderResponseDTO]])
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_orders(admin, skip=skip, limit=limit)
    return success_response(data=orders)


@router.delete("/reset", summary="清空订单（管理员）", response_model=ApiResponse[ResetResultDTO])
async def reset_orders(
    admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    result = await service.reset_all_orders(admin)
    return success_response(data=result, message=result.message)


@router.get("/email/{email}", summary="按邮箱查询订单", response_model=ApiResponse[List[OrderResponseDTO]])
async def list_orders_by_email(
    email: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_orders_by_email(email, principal)
    return success_response(data=orders)


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderResponseDTO])
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.get_order(order_id, principal)
    return success_response(data=order)


@router.put("/{order_id}/status", summary="推进订单状态（管理员）", response_model=ApiResponse[OrderResponseDTO])
async def update_order_status(
    order_id: str,
    data: StatusUpdateDTO,
    admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    """只允许 pending→processing→shipped→delivered 的正向推进"""
    order = await service.update_status(order_id, data.status, admin)
    return success_response(data=order, message="Order status updated successfully")


@router.put("/{order_id}/cancel", summary="取消订单", response_model=ApiResponse[CancelResultDTO])
async def cancel_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    result = await service.cancel_order(order_id, principal)
    return success_response(data=result, message=result.message)


@router.put("/{order_id}/refund", summary="申请退款", response_model=ApiResponse[OrderResponseDTO])
async def request_refund(
    order_id: str,
    data: RefundRequestDTO,
    principal: Principal = Depends(get_current_principal),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.request_refund(order_id, data.refund_reason, principal)
    return success_response(data=order, message="Refund request submitted successfully")


@router.put("/{order_id}/approve-refund", summary="批准退款（管理员）", response_model=ApiResponse[OrderResponseDTO])
async def approve_refund(
    order_id: str,
    admin: Principal = Depends(get_current_admin),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.approve_refund(order_id, admin)
    return success_response(data=order, message="Refund approved successfully")

"""
Application service orchestrating payment reconciliation use-cases.

This class depends only on the application GatewayStatusClient port, the
domain payment components and DTOs. The gateway client and GatewayConfig are
built by the composition root (API dependencies) and injected here.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from application.dtos.orders import OrderResponseDTO
from application.dtos.payments import (
    CallbackResult,
    GatewayStatusQuery,
    PaymentInitiation,
    StatusPollResult,
)
from application.ports.payment_gateway import GatewayStatusClient
from core.logging_config import get_logger
from domain.common.exceptions import (
    InvalidSignatureException,
    MalformedIdException,
    MissingFieldsException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import GATEWAY_COMPLETE, is_well_formed_order_id
from domain.order.state_machine import OrderStatus
from domain.order.service import OrderDomainService
from domain.payment.config import GatewayConfig
from domain.payment.request_builder import PaymentRequestBuilder, format_amount
from domain.payment.response_verifier import PaymentResponseVerifier, decode_envelope


logger = get_logger(__name__)

# 网关确认付款时订单已处于这些状态：只记录到 payment_reference
INACTIVE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUND_PROCESSING, OrderStatus.REFUNDED})

REQUIRED_CALLBACK_FIELDS = (
    "transaction_uuid",
    "status",
    "total_amount",
    "product_code",
    "signed_field_names",
    "signature",
)


def _same_amount(reported: Any, expected: Decimal) -> bool:
    try:
        return Decimal(str(reported)) == expected
    except (InvalidOperation, ValueError):
        return False


class ReconciliationService:
    """支付发起、回调验签与状态轮询；每个用例在一个事务内读取-修改-比较并交换写入"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        config: GatewayConfig,
        status_client: GatewayStatusClient,
        frontend_url: str,
    ) -> None:
        self._uow_factory = uow_factory
        self.config = config
        self.builder = PaymentRequestBuilder(config)
        self.verifier = PaymentResponseVerifier(config)
        self.status_client = status_client
        self.frontend_url = frontend_url.rstrip("/")

    @property
    def success_url(self) -> str:
        return f"{self.frontend_url}/payment/{self.config.provider}/success"

    @property
    def failure_url(self) -> str:
        return f"{self.frontend_url}/payment/{self.config.provider}/failure"

    async def initiate(self, order_id: str) -> PaymentInitiation:
        """生成已签名的支付表单，并把订单标记为网关支付（仅 pending 订单）"""
        async with self._uow_factory() as uow:
            order = await OrderDomainService(uow.order_repository).load(order_id)
            fields = self.builder.build(order, self.success_url, self.failure_url)
            order.mark_payment_initiated()
            saved = await uow.order_repository.save(order)
        logger.info(
            "payment_initiated",
            provider=self.config.provider,
            order_id=saved.id,
            total_amount=fields["total_amount"],
            version=saved.version,
        )
        return PaymentInitiation(**fields)

    def _reject(self, reason: str, payload: Mapping[str, Any]) -> InvalidSignatureException:
        # 伪造回调属于安全事件：只记录交易号与原因，不记录签名
        logger.warning(
            "esewa_callback_rejected",
            provider=self.config.provider,
            reason=reason,
            transaction_uuid=str(payload.get("transaction_uuid", "")),
        )
        return InvalidSignatureException(reason)

    def _authenticate(self, payload: Mapping[str, Any]) -> None:
        missing = [name for name in REQUIRED_CALLBACK_FIELDS if payload.get(name) in (None, "")]
        if missing:
            logger.warning(
                "esewa_callback_rejected",
                provider=self.config.provider,
                reason="missing_fields",
                missing=missing,
            )
            raise MissingFieldsException(missing)
        try:
            valid = self.verifier.verify(payload)
        except MissingFieldsException as exc:
            raise self._reject(f"declared fields absent: {','.join(exc.missing)}", payload) from exc
        if not valid:
            raise self._reject("signature mismatch", payload)

    async def handle_callback(self, payload: Mapping[str, Any]) -> CallbackResult:
        """
        处理网关回调

        验签失败、交易号格式错误或订单不存在时不修改任何状态。
        """
        data = decode_envelope(payload)
        self._authenticate(data)

        transaction_uuid = str(data["transaction_uuid"])
        if not is_well_formed_order_id(transaction_uuid):
            logger.warning("esewa_callback_rejected", provider=self.config.provider, reason="malformed_id")
            raise MalformedIdException(transaction_uuid)

        async with self._uow_factory() as uow:
            order = await OrderDomainService(uow.order_repository).load(transaction_uuid)
            if str(data["product_code"]) != self.config.merchant_code:
                raise self._reject("product_code mismatch", data)
            if not _same_amount(data["total_amount"], order.total_price):
                raise self._reject("total_amount mismatch", data)

            previous_status = order.status
            order.apply_gateway_status(str(data["status"]), data.get("ref_id") or None, adopt_gateway=True)
            saved = await uow.order_repository.save(order)

        if str(data["status"]).upper() == GATEWAY_COMPLETE and previous_status in INACTIVE_STATUSES:
            logger.warning(
                "gateway_complete_on_inactive_order",
                order_id=saved.id,
                order_status=saved.status.value,
            )
        logger.info(
            "esewa_callback_applied",
            order_id=saved.id,
            gateway_status=str(data["status"]),
            order_status=saved.status.value,
            version=saved.version,
        )
        success = saved.payment_reference is not None and saved.payment_reference.completed_at is not None
        return CallbackResult(
            success=success,
            message="Payment verified successfully" if success else "Payment not completed",
            order=OrderResponseDTO.from_entity(saved),
        )

    async def poll_status(self, order_id: str) -> StatusPollResult:
        """向网关查询支付状态；网关不可达时在任何修改之前抛出"""
        async with self._uow_factory(readonly=True) as uow:
            order = await OrderDomainService(uow.order_repository).load(order_id)
            order.ensure_gateway_tracked()
            total_amount = format_amount(order.total_price)

        gateway = await self.status_client.check_status(GatewayStatusQuery(
            product_code=self.config.merchant_code,
            transaction_uuid=order_id,
            total_amount=total_amount,
        ))

        async with self._uow_factory() as uow:
            order = await OrderDomainService(uow.order_repository).load(order_id)
            order.apply_gateway_status(gateway.status, gateway.ref_id)
            saved = await uow.order_repository.save(order)
        logger.info(
            "esewa_status_polled",
            order_id=saved.id,
            gateway_status=gateway.status,
            order_status=saved.status.value,
            version=saved.version,
        )
        return StatusPollResult(payment_status=gateway, order=OrderResponseDTO.from_entity(saved))

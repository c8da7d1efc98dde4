"""
API依赖项 - 认证与应用服务组装（组合根）
"""
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.dtos.orders import Principal
from application.ports.catalog import BookCatalog
from application.ports.payment_gateway import GatewayStatusClient
from application.services.order_service import OrderApplicationService
from application.services.payment_service import ReconciliationService
from core.config import settings
from core.exceptions import UnauthorizedException
from core.logging_config import get_logger
from core.settings import build_gateway_config
from domain.common.exceptions import PermissionDeniedException
from infrastructure.external.catalog import HttpBookCatalog
from infrastructure.external.payments import get_status_client
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)

# HTTP Bearer：令牌由认证服务签发
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token issued by the auth service",
    auto_error=False,
)

_catalog: Optional[HttpBookCatalog] = None
_status_client: Optional[GatewayStatusClient] = None


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """从 Authorization: Bearer 中提取令牌"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials
    raise UnauthorizedException("Unauthorized: No token provided")


def principal_from_claims(claims: dict) -> Principal:
    """把认证服务的令牌声明转换为 Principal（兼容 isAdmin / role=admin 两种写法）"""
    user_id = claims.get("sub") or claims.get("id")
    if not user_id:
        raise UnauthorizedException("Unauthorized: token has no subject")
    is_admin = bool(
        claims.get("is_admin")
        or claims.get("isAdmin")
        or claims.get("is_superuser")
        or claims.get("role") == "admin"
    )
    return Principal(user_id=str(user_id), email=claims.get("email"), is_admin=is_admin)


async def get_current_principal(token: str = Depends(get_token)) -> Principal:
    """校验令牌签名并返回已认证身份；核心层从不接触凭据"""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("Unauthorized: Token expired")
    except jwt.PyJWTError as e:
        logger.warning("invalid_access_token", error=type(e).__name__)
        raise UnauthorizedException("Unauthorized: Invalid token")
    return principal_from_claims(claims)


async def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise PermissionDeniedException("Forbidden: Admin access required")
    return principal


def get_book_catalog() -> BookCatalog:
    global _catalog
    if _catalog is None:
        _catalog = HttpBookCatalog(
            settings.catalog.base_url,
            timeout=settings.catalog.timeout,
            max_retries=settings.catalog.max_retries,
        )
    return _catalog


def get_gateway_status_client() -> GatewayStatusClient:
    global _status_client
    if _status_client is None:
        _status_client = get_status_client("esewa")
    return _status_client


async def close_clients() -> None:
    """应用关闭时释放 HTTP 连接池"""
    global _catalog, _status_client
    if _catalog is not None:
        await _catalog.aclose()
        _catalog = None
    if _status_client is not None:
        await _status_client.aclose()
        _status_client = None


async def get_order_service(catalog: BookCatalog = Depends(get_book_catalog)) -> OrderApplicationService:
    return OrderApplicationService(uow_factory=SQLAlchemyUnitOfWork, catalog=catalog)


async def get_reconciliation_service(
    status_client: GatewayStatusClient = Depends(get_gateway_status_client),
) -> ReconciliationService:
    return ReconciliationService(
        uow_factory=SQLAlchemyUnitOfWork,
        config=build_gateway_config(),
        status_client=status_client,
        frontend_url=settings.FRONTEND_URL,
    )

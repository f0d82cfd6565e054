# services/admin_auth.py
import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from services.errors import Unauthorized

logger = logging.getLogger(__name__)


def is_valid_admin_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """설정된 관리자 키와 비교 (timing-safe). 키가 설정되지 않으면 항상 거부"""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_admin_key(
    request: Request,
    x_admin_key: Optional[str] = Header(None),
) -> None:
    """x-admin-key 헤더를 확인하는 의존성 함수"""
    expected = request.app.state.settings.admin_api_key
    if not is_valid_admin_key(x_admin_key, expected):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"rejected admin request from {client} to {request.url.path}")
        raise Unauthorized("Unauthorized")

import base64
import logging
from typing import Any, Dict, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from services.errors import GatewayError

logger = logging.getLogger(__name__)

# one retry for transient network failures only
_TRANSIENT = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


class GatewayService:
    """Razorpay Orders API 호출"""

    def __init__(self, key_id: Optional[str], key_secret: Optional[str], api_url: str = "https://api.razorpay.com/v1", timeout: float = 30):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        # 인증 헤더 생성
        auth_string = base64.b64encode(f"{self.key_id}:{self.key_secret}".encode()).decode()
        return {
            "Authorization": f"Basic {auth_string}",
            "Content-Type": "application/json",
        }

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.5),
        retry=retry_if_exception_type(_TRANSIENT),
        reraise=True,
    )
    def _post(self, path: str, data: Dict[str, Any]) -> requests.Response:
        return requests.post(
            f"{self.api_url}{path}",
            headers=self._headers(),
            json=data,
            timeout=self.timeout,
        )

    def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """게이트웨이 주문 생성. 성공 시 게이트웨이 주문 객체 반환"""
        if not self.key_id or not self.key_secret:
            raise GatewayError("gateway keys not configured")

        data = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
            "notes": notes or {},
        }

        try:
            response = self._post("/orders", data)
        except requests.exceptions.RequestException as e:
            logger.exception(f"gateway order request failed for receipt {receipt}")
            raise GatewayError("gateway request failed", e)

        if response.status_code != 200:
            error_data = {}
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                pass
            error = error_data.get("error") if isinstance(error_data, dict) else None
            description = (error or {}).get("description") or response.text
            logger.error(f"gateway rejected order for receipt {receipt}: {response.status_code} {description}")
            raise GatewayError(f"gateway returned {response.status_code}: {description}")

        try:
            order = response.json()
        except ValueError as e:
            raise GatewayError("gateway returned a non-JSON response", e)

        if not order.get("id"):
            raise GatewayError("gateway response is missing the order id")

        logger.info(f"gateway order {order['id']} created (amount={order.get('amount')} {order.get('currency')})")
        return order

import os
import logging
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv(os.path.join(os.path.dirname(__file__), 'config', '.env'))

logger = logging.getLogger(__name__)

ORPHAN_POLICY_RECORD = "record"
ORPHAN_POLICY_REJECT = "reject"


class Settings(BaseModel):
    """Runtime configuration, read once from the environment at process start"""

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_webhook_secret: Optional[str] = None
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    gateway_timeout: float = 30.0
    admin_api_key: Optional[str] = None
    cors_origins: List[str] = ["http://localhost:3000"]
    database_url: str = "sqlite:///./ebookiez.db"
    host: str = "0.0.0.0"
    port: int = 4000
    debug: bool = False
    log_level: str = "INFO"
    orphan_payment_policy: str = ORPHAN_POLICY_RECORD
    default_currency: str = "INR"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("FRONTEND_URL", "http://localhost:3000")
        policy = os.getenv("ORPHAN_PAYMENT_POLICY", ORPHAN_POLICY_RECORD).strip().lower()
        if policy not in (ORPHAN_POLICY_RECORD, ORPHAN_POLICY_REJECT):
            raise RuntimeError(f"ORPHAN_PAYMENT_POLICY must be 'record' or 'reject', got {policy!r}")

        return cls(
            razorpay_key_id=os.getenv("RAZORPAY_KEY_ID") or None,
            razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET") or None,
            razorpay_webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET") or os.getenv("WEBHOOK_SECRET") or None,
            razorpay_api_url=os.getenv("RAZORPAY_API_URL", "https://api.razorpay.com/v1").rstrip("/"),
            gateway_timeout=float(os.getenv("GATEWAY_TIMEOUT", "30")),
            admin_api_key=os.getenv("ADMIN_API_KEY") or None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            database_url=os.getenv("DATABASE_URL", "sqlite:///./ebookiez.db"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "4000")),
            debug=os.getenv("DEBUG", "false").lower() in ("true", "1", "yes"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            orphan_payment_policy=policy,
            default_currency=os.getenv("DEFAULT_CURRENCY", "INR"),
        )

    @property
    def webhook_signing_secret(self) -> str:
        """Dedicated webhook secret, falling back to the gateway key secret"""
        return self.razorpay_webhook_secret or self.razorpay_key_secret or ""

    @property
    def webhook_secret_source(self) -> str:
        if self.razorpay_webhook_secret:
            return "RAZORPAY_WEBHOOK_SECRET"
        if self.razorpay_key_secret:
            return "RAZORPAY_KEY_SECRET"
        return "unset"

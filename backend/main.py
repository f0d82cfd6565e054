import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import Database
from routers import admin, orders, webhook
from services.errors import StorefrontError, Unauthorized
from services.gateway_service import GatewayService
from services.order_service import OrderService
from settings import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)8s | %(name)s : %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    gateway: Optional[GatewayService] = None,
) -> FastAPI:
    """설정, DB 핸들, 게이트웨이를 주입받아 FastAPI 앱 생성"""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)
    database = database or Database(settings.database_url)
    gateway = gateway or GatewayService(
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        api_url=settings.razorpay_api_url,
        timeout=settings.gateway_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.create_all()
        logger.info(f"webhook signatures verified with {settings.webhook_secret_source}")
        if not settings.admin_api_key:
            logger.warning("ADMIN_API_KEY not set; admin endpoints will reject every request")
        yield
        database.dispose()

    # FastAPI 앱 초기화
    app = FastAPI(
        title="ebookiez storefront API",
        version="1.0.0",
        description="Razorpay 주문 생성, 결제 검증, 웹훅 처리",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.order_service = OrderService(settings, gateway)

    # CORS 미들웨어 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        logger.error(f"unhandled {type(exc).__name__} on {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "details": str(exc)})

    # 라우터 등록
    app.include_router(orders.router, prefix="/api", tags=["orders"])
    app.include_router(webhook.router, prefix="/api", tags=["webhook"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

    @app.get("/api/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=app.state.settings.host, port=app.state.settings.port, reload=app.state.settings.debug)

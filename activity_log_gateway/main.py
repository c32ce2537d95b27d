# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/main.py
# 목적   : FastAPI 엔트리포인트로 /api/v1/logs, /health, /metrics API 를 구성
# 설명   : lifespan 에서 Kafka 프로듀서를 1회 생성해 app.state.gateway 로 공유하고,
#         종료 시 poll 스레드 정지 + flush 수행.
#         수집 엔드포인트는 클라이언트 IP 기준 분당 요청 수 제한(slowapi)을 받는다.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.routing import Match

from .api import ingest
from .core.logger import configure_logging, get_logger
from .core.metrics import GatewayMetrics
from .producer import LogProducer
from .settings import GatewaySettings, load_settings
from .state import GatewayState

logger = get_logger("activity_log_gateway.main")

MSG_RATE_LIMITED = "Ingestion rate limit exceeded."
UNMATCHED_ROUTE = "unmatched"


def _route_template(request: Request) -> str:
    # 지표 라벨은 경로 템플릿으로만 (원시 경로는 카디널리티가 무한)
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # SlowAPIMiddleware 가 동기 호출하므로 async 가 아니어야 한다.
    logger.warning("Rate limit exceeded: client=%s limit=%s", get_remote_address(request), exc.detail)
    return JSONResponse(status_code=429, content={"success": False, "error": MSG_RATE_LIMITED})


def create_app(
    settings: Optional[GatewaySettings] = None,
    producer: Optional[LogProducer] = None,
) -> FastAPI:
    """
    앱을 만든다.

    Args:
        settings: None 이면 load_settings() 로 읽는다. (요청 제한값이 필요해 앱 생성 시점에 읽음)
        producer: None 이면 기동 시 settings 로 confluent-kafka 프로듀서를 만든다. (테스트 주입용)
    """
    resolved = settings or load_settings()
    metrics = GatewayMetrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(resolved.log_level)
        handle = producer or LogProducer.from_settings(resolved)

        logger.info("Starting activity log gateway...")
        logger.info("Kafka brokers: %s", resolved.kafka_brokers)
        logger.info("Kafka topic: %s", resolved.kafka_topic)
        logger.info(
            "Kafka client id: %s (wait_for_ack=%s)",
            resolved.kafka_client_id,
            handle.wait_for_ack,
        )
        if resolved.rate_limit_enabled:
            logger.info("Ingest rate limit: %s per client", resolved.ingest_rate_limit)

        handle.start()
        app.state.gateway = GatewayState(settings=resolved, producer=handle, metrics=metrics)
        try:
            yield
        finally:
            logger.info("Shutting down, flushing producer...")
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, handle.close)

    app = FastAPI(title="Activity Log Gateway", lifespan=lifespan)
    app.state.metrics = metrics

    # 앱마다 별도 limiter (메모리 저장소). 제한은 라우트별로 따로 센다.
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[resolved.ingest_rate_limit],
        enabled=resolved.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(ingest.router)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        # 브로커 연결 상태와 무관하게 프로세스 생존만 알린다.
        return "OK"

    @app.get("/metrics")
    async def prometheus_metrics() -> Response:
        body, content_type = metrics.render()
        return Response(content=body, media_type=content_type)

    # exempt 는 이름만 등록하면 되므로 반환값(래퍼)은 쓰지 않는다.
    limiter.exempt(health)
    limiter.exempt(prometheus_metrics)

    # 마지막에 등록 = 가장 바깥. 429 응답도 지표에 잡힌다.
    @app.middleware("http")
    async def observe_http(request: Request, call_next):
        route = _route_template(request)
        started = time.perf_counter()
        response = await call_next(request)
        metrics.observe_request(request.method, route, response.status_code, time.perf_counter() - started)
        return response

    return app


app = create_app()

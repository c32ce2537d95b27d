# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/state.py
# 목적   : 기동 시 1회 생성되어 모든 요청 핸들러가 공유하는 애플리케이션 상태
# 설명   : settings, 프로듀서 핸들, 지표 묶음만 보관. 핸들러는 읽기만 한다.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Request

from .core.metrics import GatewayMetrics
from .producer import LogProducer
from .settings import GatewaySettings


@dataclass(frozen=True)
class GatewayState:
    settings: GatewaySettings
    producer: LogProducer
    metrics: GatewayMetrics = field(default_factory=GatewayMetrics)


def get_state(request: Request) -> GatewayState:
    """FastAPI 의존성: lifespan 에서 app.state.gateway 에 넣어 둔 상태를 꺼낸다."""
    return request.app.state.gateway

# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/core/metrics.py
# 목적   : 수집 경로의 Prometheus 지표(적재 건수, Kafka 발행 건수, HTTP 요청 수/지연) 정의
# 설명   : 앱마다 별도 CollectorRegistry 를 써서 테스트/다중 앱에서 이름 충돌이 없게 한다.
#         카운터의 동시 갱신 안전성은 prometheus_client 가 보장한다.
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

HTTP_DURATION_BUCKETS = (0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5)


class GatewayMetrics:
    """게이트웨이 지표 묶음"""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.logs_ingested = Counter(
            "logs_ingested_total",
            "Total number of logs ingested",
            ["service", "severity"],
            registry=self.registry,
        )
        self.kafka_messages_produced = Counter(
            "kafka_messages_produced_total",
            "Total number of messages produced to Kafka",
            registry=self.registry,
        )
        self.http_requests = Counter(
            "http_requests_total",
            "Total number of HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )
        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            ["method", "route", "status_code"],
            buckets=HTTP_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_ingested(self, service: str, severity: str) -> None:
        """브로커가 받아들인 로그 1건"""
        self.logs_ingested.labels(service=service, severity=severity).inc()
        self.kafka_messages_produced.inc()

    def observe_request(self, method: str, route: str, status_code: int, duration_sec: float) -> None:
        labels = {"method": method, "route": route, "status_code": str(status_code)}
        self.http_requests.labels(**labels).inc()
        self.http_request_duration.labels(**labels).observe(duration_sec)

    def render(self) -> Tuple[bytes, str]:
        """/metrics 응답 본문과 content-type"""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

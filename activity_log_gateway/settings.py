# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/settings.py
# 목적   : 게이트웨이/카프카 프로듀서 파라미터의 단일 진실(SSOT)
# 설명   : 기본값 ← (선택) YAML 설정 파일 ← 환경변수 순으로 덮어써서 GatewaySettings 생성
# -----------------------------------------------------------------------------

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

CONFIG_PATH_ENV = "GATEWAY_CONFIG"

_TRUE_VALUES = ("1", "true", "yes", "y", "on")
_FALSE_VALUES = ("0", "false", "no", "n", "off")


@dataclass(frozen=True)
class GatewaySettings:
    # ===== HTTP =====
    host: str = "0.0.0.0"
    port: int = 3001

    # ===== Kafka =====
    kafka_brokers: str = "localhost:9092"
    kafka_topic: str = "activity-logs"
    kafka_client_id: str = "activity-log-rust"

    # 배치/지연 → 100ms 동안 모아서 전송
    linger_ms: int = 100
    # 전달 확인까지의 상한. 넘으면 실패로 보고된다.
    message_timeout_ms: int = 5000
    acks: str = "all"
    compression_type: str = "none"
    queue_max_messages: int = 100000
    # True: 브로커 ack까지 대기 / False: 로컬 큐 적재만 확인
    wait_for_ack: bool = True

    # ===== 요청 검증 =====
    strict_validation: bool = False
    max_batch_size: int = 100

    # ===== 요청 제한 (클라이언트 IP 기준, 1분 창) =====
    rate_limit_enabled: bool = True
    ingest_rate_limit_per_minute: int = 2000

    log_level: str = "INFO"

    @property
    def ingest_rate_limit(self) -> str:
        """slowapi 제한 문자열"""
        return f"{self.ingest_rate_limit_per_minute}/minute"

    def producer_config(self) -> Dict[str, Any]:
        """confluent-kafka Producer 생성 설정을 만든다."""
        return {
            "bootstrap.servers": self.kafka_brokers,  # 접속할 브로커 목록
            "client.id": self.kafka_client_id,        # 모니터링용 프로듀서 ID
            "acks": self.acks,
            "compression.type": self.compression_type,
            "linger.ms": self.linger_ms,
            "message.timeout.ms": self.message_timeout_ms,
            "queue.buffering.max.messages": self.queue_max_messages,
        }


# 필드명 → 환경변수명
ENV_VARS: Dict[str, str] = {
    "host": "HOST",
    "port": "PORT",
    "kafka_brokers": "KAFKA_BROKERS",
    "kafka_topic": "KAFKA_TOPIC",
    "kafka_client_id": "KAFKA_CLIENT_ID",
    "linger_ms": "KAFKA_LINGER_MS",
    "message_timeout_ms": "KAFKA_MESSAGE_TIMEOUT_MS",
    "acks": "KAFKA_ACKS",
    "compression_type": "KAFKA_COMPRESSION",
    "queue_max_messages": "KAFKA_QUEUE_MAX_MESSAGES",
    "wait_for_ack": "KAFKA_WAIT_FOR_ACK",
    "strict_validation": "STRICT_VALIDATION",
    "max_batch_size": "MAX_BATCH_SIZE",
    "rate_limit_enabled": "RATE_LIMIT_ENABLED",
    "ingest_rate_limit_per_minute": "INGEST_RATE_LIMIT_PER_MINUTE",
    "log_level": "LOG_LEVEL",
}

# uvicorn 이 받는 로그 레벨 이름. WARN/FATAL 은 logging 별칭이라 정식 이름으로 바꾼다.
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def normalize_log_level(raw: str) -> str:
    """
    로그 레벨 이름을 정식 대문자 이름으로 맞춘다.

    Raises:
        ValueError: logging/uvicorn 둘 다 아는 이름이 아닐 때
    """
    level = str(raw).strip().upper()
    level = _LOG_LEVEL_ALIASES.get(level, level)
    if level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {raw!r}")
    return level


def _parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _coerce(name: str, target: Any, raw: Any) -> Any:
    if target is bool:
        return _parse_bool(name, raw)
    if target is int:
        try:
            value = int(str(raw).strip())
        except ValueError as e:
            raise ValueError(f"{name} must be an integer, got {raw!r}") from e
        if value < 0:
            raise ValueError(f"{name} must not be negative, got {value}")
        return value
    return str(raw).strip()


def _field_types() -> Dict[str, Any]:
    # from __future__ annotations 때문에 f.type 은 문자열이다.
    builtins = {"str": str, "int": int, "bool": bool}
    return {f.name: builtins[f.type] for f in fields(GatewaySettings)}


def load_config_file(path: str | Path) -> Dict[str, Any]:
    """
    YAML 설정 파일을 로드한다.

    Args:
        path: 설정 파일 경로. 최상위는 GatewaySettings 필드명을 키로 갖는 매핑이어야 한다.

    Returns:
        Dict[str, Any]: 필드명 → 원본 값

    Raises:
        ValueError: 매핑이 아니거나 알 수 없는 키가 있을 때
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    unknown = set(data) - set(ENV_VARS)
    if unknown:
        raise ValueError(f"{path}: unknown settings {sorted(unknown)}")
    return data


def load_settings(
    path: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GatewaySettings:
    """
    기본값 → YAML 파일 → 환경변수 순으로 설정을 합쳐 GatewaySettings 를 만든다.

    Args:
        path: YAML 설정 파일. None 이면 GATEWAY_CONFIG 환경변수를 확인한다.
        environ: 테스트용 환경변수 맵. None 이면 os.environ

    Raises:
        ValueError: 값 변환 실패 시 (잘못된 설정으로는 기동하지 않는다)
    """
    env = os.environ if environ is None else environ
    types = _field_types()

    raw: Dict[str, Any] = {}
    config_path = path or env.get(CONFIG_PATH_ENV)
    if config_path:
        raw.update(load_config_file(config_path))

    for name, var in ENV_VARS.items():
        value = env.get(var)
        if value is not None and value != "":
            raw[name] = value

    overrides = {name: _coerce(name, types[name], value) for name, value in raw.items()}
    if "log_level" in overrides:
        overrides["log_level"] = normalize_log_level(overrides["log_level"])
    settings = replace(GatewaySettings(), **overrides)

    if settings.max_batch_size < 1:
        raise ValueError("max_batch_size must be at least 1")
    if settings.ingest_rate_limit_per_minute < 1:
        raise ValueError("ingest_rate_limit_per_minute must be at least 1")
    return settings

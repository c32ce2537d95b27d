# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/run.py
# 목적   : CLI → 설정 로드 → 로깅 설정 → uvicorn 으로 게이트웨이 실행
# 사용   :
#   python -m activity_log_gateway
#   python -m activity_log_gateway --config gateway.yaml --port 3001 --log-level debug
# -----------------------------------------------------------------------------

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import List, Optional

import uvicorn

from .core.logger import configure_logging
from .main import create_app
from .settings import GatewaySettings, load_settings, normalize_log_level


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Activity log gateway: HTTP → Kafka")
    p.add_argument("--config", default=None, help="YAML settings file (overrides GATEWAY_CONFIG)")
    p.add_argument("--host", default=None, help="listen address")
    p.add_argument("--port", type=int, default=None, help="listen port")
    p.add_argument("--log-level", default=None, help="DEBUG / INFO / WARNING (WARN) / ERROR / CRITICAL")
    return p


def resolve_settings(argv: Optional[List[str]] = None) -> GatewaySettings:
    """설정 파일/환경변수로 만든 설정 위에 CLI 인자를 덮어쓴다."""
    ns = build_parser().parse_args(argv)
    settings = load_settings(ns.config)

    overrides = {}
    if ns.host is not None:
        overrides["host"] = ns.host
    if ns.port is not None:
        overrides["port"] = ns.port
    if ns.log_level is not None:
        overrides["log_level"] = normalize_log_level(ns.log_level)
    return replace(settings, **overrides)


def main(argv: Optional[List[str]] = None) -> None:
    settings = resolve_settings(argv)
    configure_logging(settings.log_level)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

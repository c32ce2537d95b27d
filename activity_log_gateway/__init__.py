# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/__init__.py
# 목적   : 활동 로그 HTTP 수집 → Kafka 전달 게이트웨이
# -----------------------------------------------------------------------------

__version__ = "0.1.0"

# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/api/__init__.py
# 목적   : FastAPI 서브모듈(ingest) 라우터 노출
# -----------------------------------------------------------------------------

from . import ingest

__all__ = ["ingest"]

# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/schema.py
# 목적   : 활동 로그 요청/저장 레코드/응답 모델과 카프카 전송용 JSON 직렬화
# 설명   : 와이어 필드명(_id, userId, createdAt)은 기존 컨슈머와의 호환 계약이므로 그대로 유지.
#         선택 필드는 "없음"이면 JSON 에서 키 자체를 생략한다(null 미사용).
# -----------------------------------------------------------------------------

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

# 값이 없으면 레코드에서 키를 생략하는 선택 필드(와이어 이름 기준)
OPTIONAL_WIRE_FIELDS = ("userId", "metadata")

MAX_SERVICE_LEN = 100
MAX_ACTION_LEN = 200
MAX_USER_ID_LEN = 100


class Severity(str, Enum):
    """엄격 검증 모드에서 허용되는 severity 값"""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    CRITICAL = "critical"


class IngestionRequest(BaseModel):
    """클라이언트가 POST 하는 활동 로그 (와이어 이름으로만 받는다: userId 는 되고 user_id 는 무시)"""

    service: str = Field(..., description="로그를 발생시킨 서비스명")
    action: str = Field(..., description="수행된 동작")
    user_id: Optional[str] = Field(None, alias="userId", description="사용자 ID")
    metadata: Optional[Any] = Field(None, description="자유 형식 부가 정보")
    severity: str = Field(..., description="심각도 (기본 모드에서는 값 제한 없음)")
    timestamp: Optional[str] = Field(None, description="이벤트 발생 시각(ISO-8601), 검증 없이 그대로 전달")


class LogRecord(BaseModel):
    """카프카로 전달되는 단위 레코드 (요청 + 서버 생성 필드)"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    service: str
    action: str
    user_id: Optional[str] = Field(None, alias="userId")
    metadata: Optional[Any] = None
    severity: str
    timestamp: str
    created_at: str = Field(..., alias="createdAt")

    @classmethod
    def build(
        cls,
        request: IngestionRequest,
        log_id: Optional[str] = None,
        created_at: Optional[str] = None,
    ) -> "LogRecord":
        """
        요청으로부터 레코드를 만든다.

        - id 는 매 호출마다 새 uuid4 (테스트에서만 주입)
        - timestamp 가 없으면 createdAt 과 같은 값을 쓴다
        """
        now = created_at or now_iso()
        return cls(
            id=log_id or new_log_id(),
            service=request.service,
            action=request.action,
            user_id=request.user_id,
            metadata=request.metadata,
            severity=request.severity,
            timestamp=request.timestamp if request.timestamp is not None else now,
            created_at=now,
        )

    def to_wire(self) -> Dict[str, Any]:
        # 값이 없는 userId/metadata 는 null 로 싣지 않고 키 자체를 뺀다.
        data = self.model_dump(by_alias=True)
        for key in OPTIONAL_WIRE_FIELDS:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def to_json_bytes(self) -> bytes:
        """
        정규 JSON(UTF-8, 공백 없는 구분자) 바이트로 직렬화한다.

        Raises:
            ValueError, TypeError: JSON 으로 표현할 수 없는 값(NaN 등)이 있을 때
        """
        return json.dumps(
            self.to_wire(),
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
        ).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, data: bytes | str) -> "LogRecord":
        return cls.model_validate_json(data)

    def key_bytes(self) -> bytes:
        """파티셔닝 키 = 로그 id 원문 바이트"""
        return self.id.encode("utf-8")


class IngestionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    log_id: str = Field(..., alias="logId")
    message: str


class BatchIngestionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    log_ids: List[str] = Field(default_factory=list, alias="logIds")
    count: int = 0
    message: str


# ---------- 공통 유틸 ----------

def new_log_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    """현재 UTC 시각을 ISO-8601(+00:00) 문자열로 반환."""
    return datetime.now(timezone.utc).isoformat()


def _is_iso8601(ts: str) -> bool:
    try:
        # 3.11 미만의 fromisoformat 은 'Z' 접미사를 받지 않는다.
        datetime.fromisoformat(ts[:-1] + "+00:00" if ts.endswith("Z") else ts)
        return True
    except ValueError:
        return False


def _error(loc: Sequence[Any], msg: str, value: Any, kind: str = "value_error") -> Dict[str, Any]:
    return {"type": kind, "loc": tuple(loc), "msg": msg, "input": value}


def strict_errors(request: IngestionRequest, loc: Sequence[Any] = ("body",)) -> List[Dict[str, Any]]:
    """
    엄격 검증 모드의 추가 규칙을 검사한다. 기본 모드에서는 호출되지 않는다.

    Returns:
        List[dict]: FastAPI 검증 오류와 같은 모양의 에러 목록 (비어 있으면 통과)
    """
    errors: List[Dict[str, Any]] = []
    loc = tuple(loc)

    if not 1 <= len(request.service) <= MAX_SERVICE_LEN:
        errors.append(_error(loc + ("service",), f"service must be 1..{MAX_SERVICE_LEN} characters", request.service))
    if not 1 <= len(request.action) <= MAX_ACTION_LEN:
        errors.append(_error(loc + ("action",), f"action must be 1..{MAX_ACTION_LEN} characters", request.action))
    if request.user_id is not None and len(request.user_id) > MAX_USER_ID_LEN:
        errors.append(_error(loc + ("userId",), f"userId must be at most {MAX_USER_ID_LEN} characters", request.user_id))
    if request.metadata is not None and not isinstance(request.metadata, dict):
        errors.append(_error(loc + ("metadata",), "metadata must be an object", request.metadata))

    allowed = [s.value for s in Severity]
    if request.severity not in allowed:
        errors.append(_error(
            loc + ("severity",),
            f"severity must be one of {', '.join(allowed)}",
            request.severity,
            kind="enum",
        ))
    if request.timestamp is not None and not _is_iso8601(request.timestamp):
        errors.append(_error(loc + ("timestamp",), "timestamp must be an ISO-8601 date", request.timestamp))
    return errors

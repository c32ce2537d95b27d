# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/api/ingest.py
# 목적   : 외부에서 POST 된 활동 로그를 레코드로 만들어 Kafka 토픽으로 전달하는 REST 엔드포인트
# 설명   : /api/v1/logs (1건), /api/v1/logs/batch (여러 건).
#         요청 1건 = 레코드 1건, 재시도 없음. 실패는 모두 HTTP 응답으로 변환되고 밖으로 새지 않는다.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
from typing import List, Tuple

from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.logger import get_logger
from ..producer import DeliveryError
from ..schema import (
    BatchIngestionResponse,
    IngestionRequest,
    IngestionResponse,
    LogRecord,
    strict_errors,
)
from ..state import GatewayState, get_state

logger = get_logger("activity_log_gateway.api.ingest")

MSG_ACCEPTED = "Log accepted for processing"
MSG_BATCH_ACCEPTED = "Logs accepted for processing"
MSG_PROCESS_FAILED = "Failed to process log"
MSG_QUEUE_FAILED = "Failed to queue log"

router = APIRouter(prefix="/api/v1", tags=["logs"])


async def handle(state: GatewayState, request: IngestionRequest) -> Tuple[int, IngestionResponse]:
    """
    검증된 요청 1건을 레코드로 만들어 발행하고 (HTTP 상태, 응답)을 돌려준다.

    - 직렬화 실패: 500, logId=""  (발행 시도 없음)
    - 발행 실패  : 500, logId=id  (id 가 돌아가도 저장이 보장되지는 않음)
    - 성공       : 202, logId=id
    """
    record = LogRecord.build(request)

    try:
        value = record.to_json_bytes()
    except (TypeError, ValueError) as e:
        # pydantic 직렬화 오류(PydanticSerializationError)도 ValueError 계열
        logger.error("Failed to serialize log: %s", e)
        return 500, IngestionResponse(success=False, log_id="", message=MSG_PROCESS_FAILED)

    try:
        await state.producer.produce(
            state.settings.kafka_topic,
            key=record.key_bytes(),
            value=value,
        )
    except DeliveryError as e:
        logger.error("Failed to produce to Kafka: log_id=%s error=%s", record.id, e)
        return 500, IngestionResponse(success=False, log_id=record.id, message=MSG_QUEUE_FAILED)

    state.metrics.record_ingested(record.service, record.severity)
    logger.debug("Log queued: log_id=%s service=%s action=%s", record.id, record.service, record.action)
    return 202, IngestionResponse(success=True, log_id=record.id, message=MSG_ACCEPTED)


@router.post("/logs", status_code=202, response_model=IngestionResponse)
async def ingest_log(
    body: IngestionRequest,
    state: GatewayState = Depends(get_state),
) -> JSONResponse:
    """활동 로그 1건 → Kafka 레코드 1건"""
    if state.settings.strict_validation:
        errors = strict_errors(body)
        if errors:
            raise RequestValidationError(errors)

    status_code, response = await handle(state, body)
    return JSONResponse(status_code=status_code, content=response.model_dump(by_alias=True))


@router.post("/logs/batch", status_code=202, response_model=BatchIngestionResponse)
async def ingest_logs_batch(
    body: List[IngestionRequest] = Body(..., description="활동 로그 배열"),
    state: GatewayState = Depends(get_state),
) -> JSONResponse:
    """
    활동 로그 여러 건을 동시에 발행한다.

    하나라도 실패하면 500 이고, logIds 에는 발행에 성공한 id 만 요청 순서대로 담긴다.
    """
    max_size = state.settings.max_batch_size
    if not 1 <= len(body) <= max_size:
        raise RequestValidationError([{
            "type": "value_error",
            "loc": ("body",),
            "msg": f"batch must contain 1..{max_size} logs",
            "input": len(body),
        }])

    if state.settings.strict_validation:
        errors = []
        for idx, item in enumerate(body):
            errors.extend(strict_errors(item, loc=("body", idx)))
        if errors:
            raise RequestValidationError(errors)

    results = await asyncio.gather(*(handle(state, item) for item in body))
    accepted = [resp.log_id for _, resp in results if resp.success]
    failed = len(body) - len(accepted)

    if failed:
        logger.error("Batch partially failed: failed=%d total=%d", failed, len(body))
        response = BatchIngestionResponse(
            success=False,
            log_ids=accepted,
            count=len(accepted),
            message=f"Failed to queue {failed} of {len(body)} logs",
        )
        return JSONResponse(status_code=500, content=response.model_dump(by_alias=True))

    logger.info("Batch of %d logs queued", len(accepted))
    response = BatchIngestionResponse(
        success=True,
        log_ids=accepted,
        count=len(accepted),
        message=MSG_BATCH_ACCEPTED,
    )
    return JSONResponse(status_code=202, content=response.model_dump(by_alias=True))

# -----------------------------------------------------------------------------
# 파일명 : activity_log_gateway/producer.py
# 목적   : confluent-kafka Producer 를 감싸 모든 요청 핸들러가 공유하는 asyncio-friendly 발행 래퍼
# 설명   : 프로듀서 1개 + 백그라운드 poll 스레드. produce() 는 키 지정 1건 발행 후
#         (wait_for_ack=True) 브로커 ack 까지 / (False) 로컬 큐 적재까지만 기다린다.
#         동시 호출 안전성은 confluent-kafka(librdkafka) 계약에 맡기고 별도 락은 두지 않는다.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import threading
from typing import Any, Optional

from confluent_kafka import KafkaError, KafkaException, Producer

from .core.logger import get_logger
from .settings import GatewaySettings

logger = get_logger("activity_log_gateway.producer")

POLL_TIMEOUT_SEC = 0.1
# message.timeout.ms 이후에도 콜백이 오지 않을 때의 여유분
ACK_GRACE_SEC = 1.0


class DeliveryError(Exception):
    """레코드가 큐에 적재되지 못했거나 브로커 전달이 확인되지 않음"""

    def __init__(self, message: str, kafka_error: Optional[KafkaError] = None):
        super().__init__(message)
        self.kafka_error = kafka_error


def _settle(future: "asyncio.Future[Any]", error: Optional[BaseException], result: Any) -> None:
    # 클라이언트 연결 종료 등으로 이미 취소된 future 는 건드리지 않는다.
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _delivery_report(err, msg) -> None:
    if err is not None:
        logger.warning(
            "Kafka delivery failed: topic=%s key=%s error=%s",
            msg.topic(),
            msg.key(),
            err,
        )


class LogProducer:
    """
    프로세스 전역에서 재사용하는 단일 Kafka 프로듀서 핸들.

    사용:
        producer = LogProducer.from_settings(settings)
        producer.start()
        await producer.produce(topic, key=b"...", value=b"...")
        producer.close()
    """

    def __init__(
        self,
        producer: Producer,
        *,
        wait_for_ack: bool = True,
        ack_timeout_sec: Optional[float] = None,
        poll_timeout_sec: float = POLL_TIMEOUT_SEC,
    ) -> None:
        self._producer = producer
        self.wait_for_ack = wait_for_ack
        self._ack_timeout_sec = ack_timeout_sec
        self._poll_timeout_sec = poll_timeout_sec
        self._poll_thread: Optional[threading.Thread] = None
        self._shutdown = threading.Event()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "LogProducer":
        return cls(
            Producer(settings.producer_config()),
            wait_for_ack=settings.wait_for_ack,
            ack_timeout_sec=settings.message_timeout_ms / 1000 + ACK_GRACE_SEC,
        )

    @property
    def running(self) -> bool:
        return self._poll_thread is not None and self._poll_thread.is_alive()

    def start(self) -> None:
        """전달 콜백을 처리할 poll 스레드를 시작한다. (중복 호출은 무시)"""
        if self._closed:
            raise RuntimeError("producer is closed")
        if self._poll_thread is not None:
            return

        def _poll_loop() -> None:
            while not self._shutdown.is_set():
                self._producer.poll(self._poll_timeout_sec)

        self._poll_thread = threading.Thread(target=_poll_loop, name="alg-producer-poll", daemon=True)
        self._poll_thread.start()

    def close(self, timeout: float = 10.0) -> int:
        """
        poll 스레드를 멈추고 남은 레코드를 flush 한다.

        Returns:
            int: flush 후에도 전달되지 못하고 남은 레코드 수
        """
        if self._closed:
            return 0
        self._closed = True
        self._shutdown.set()
        if self._poll_thread is not None:
            self._poll_thread.join(timeout)
        remaining = self._producer.flush(timeout)
        if remaining:
            logger.warning("Producer closed with %d undelivered record(s)", remaining)
        return remaining

    def _enqueue(self, topic: str, key: bytes, value: bytes, on_delivery) -> None:
        try:
            self._producer.produce(topic, value=value, key=key, on_delivery=on_delivery)
        except BufferError as e:
            # 로컬 송신 큐 포화
            raise DeliveryError(f"local producer queue is full: {e}") from e
        except KafkaException as e:
            err = e.args[0] if e.args else None
            raise DeliveryError(f"produce rejected: {e}", err if isinstance(err, KafkaError) else None) from e

    async def produce(self, topic: str, key: bytes, value: bytes) -> None:
        """
        레코드 1건을 발행한다.

        Raises:
            DeliveryError: 큐 적재 실패, 전달 타임아웃, 브로커 거부, 종료된 프로듀서
        """
        if self._closed:
            raise DeliveryError("producer is closed")
        self.start()

        if not self.wait_for_ack:
            # 로컬 큐 적재 = 성공. 늦게 도착하는 실패는 로그로만 남는다.
            self._enqueue(topic, key, value, _delivery_report)
            return

        loop = asyncio.get_running_loop()
        result: "asyncio.Future[Any]" = loop.create_future()

        def _ack(err, msg) -> None:
            # poll 스레드에서 호출된다.
            if err is not None:
                outcome = (DeliveryError(f"delivery failed: {err}", err), None)
            else:
                outcome = (None, msg)
            try:
                loop.call_soon_threadsafe(_settle, result, *outcome)
            except RuntimeError:
                # 요청을 처리하던 이벤트 루프가 이미 닫힘
                logger.debug("Dropped delivery report for closed loop: key=%s", key)

        self._enqueue(topic, key, value, _ack)

        if self._ack_timeout_sec is None:
            await result
            return
        try:
            await asyncio.wait_for(result, timeout=self._ack_timeout_sec)
        except asyncio.TimeoutError as e:
            raise DeliveryError(f"no delivery report within {self._ack_timeout_sec:.1f}s") from e

from __future__ import annotations

import asyncio
import logging
import time

import pytest
from confluent_kafka import KafkaError, KafkaException, Producer

from activity_log_gateway.producer import DeliveryError, LogProducer
from activity_log_gateway.settings import GatewaySettings

from fakes import FakeKafkaProducer


def _run(coro):
    return asyncio.run(coro)


def _producer(fake, **kwargs) -> LogProducer:
    kwargs.setdefault("ack_timeout_sec", 2.0)
    return LogProducer(fake, poll_timeout_sec=0.01, **kwargs)


def test_ack_waited_produce_delivers_keyed_record():
    fake = FakeKafkaProducer()
    producer = _producer(fake)
    try:
        _run(producer.produce("topic-a", key=b"id-1", value=b'{"x":1}'))
    finally:
        producer.close()

    [msg] = fake.records
    assert msg.topic() == "topic-a"
    assert msg.key() == b"id-1"
    assert msg.value() == b'{"x":1}'


def test_delivery_report_error_is_raised():
    err = KafkaError(KafkaError._MSG_TIMED_OUT)
    producer = _producer(FakeKafkaProducer(fail_with=err))
    try:
        with pytest.raises(DeliveryError) as exc_info:
            _run(producer.produce("t", key=b"k", value=b"v"))
    finally:
        producer.close()
    assert exc_info.value.kafka_error is err


def test_full_local_queue_is_reported():
    producer = _producer(FakeKafkaProducer(raise_on_produce=BufferError("Local: Queue full")))
    try:
        with pytest.raises(DeliveryError, match="queue is full"):
            _run(producer.produce("t", key=b"k", value=b"v"))
    finally:
        producer.close()


def test_produce_rejection_is_reported():
    exc = KafkaException(KafkaError(KafkaError._UNKNOWN_TOPIC))
    producer = _producer(FakeKafkaProducer(raise_on_produce=exc))
    try:
        with pytest.raises(DeliveryError) as exc_info:
            _run(producer.produce("t", key=b"k", value=b"v"))
    finally:
        producer.close()
    assert exc_info.value.kafka_error is not None
    assert exc_info.value.kafka_error.code() == KafkaError._UNKNOWN_TOPIC


def test_missing_ack_times_out():
    producer = _producer(FakeKafkaProducer(hold=True), ack_timeout_sec=0.2)
    started = time.monotonic()
    try:
        with pytest.raises(DeliveryError, match="no delivery report"):
            _run(producer.produce("t", key=b"k", value=b"v"))
    finally:
        producer.close(timeout=0.1)
    assert time.monotonic() - started < 2.0


def test_enqueue_only_mode_succeeds_before_delivery(caplog):
    fake = FakeKafkaProducer(fail_with="broker down")
    producer = _producer(fake, wait_for_ack=False)
    with caplog.at_level(logging.WARNING, logger="activity_log_gateway.producer"):
        # 로컬 큐 적재만으로 성공. 실패는 나중에 로그로만 보인다.
        _run(producer.produce("t", key=b"k", value=b"v"))
        producer.close()

    assert fake.records == []
    assert "Kafka delivery failed" in caplog.text


def test_closed_producer_refuses_records():
    fake = FakeKafkaProducer()
    producer = _producer(fake)
    producer.start()
    assert producer.close() == 0
    assert not producer.running

    with pytest.raises(DeliveryError, match="closed"):
        _run(producer.produce("t", key=b"k", value=b"v"))
    assert fake.produce_calls == 0


def test_close_reports_undelivered_records():
    fake = FakeKafkaProducer(hold=True)
    producer = _producer(fake, wait_for_ack=False)
    _run(producer.produce("t", key=b"k", value=b"v"))
    assert producer.close(timeout=0.1) == 1


def test_shared_handle_serves_concurrent_producers():
    fake = FakeKafkaProducer()
    producer = _producer(fake)

    async def main():
        await asyncio.gather(*(
            producer.produce("t", key=f"k-{i}".encode(), value=f"v-{i}".encode())
            for i in range(200)
        ))

    try:
        _run(main())
    finally:
        producer.close()

    assert sorted(m.key() for m in fake.records) == sorted(f"k-{i}".encode() for i in range(200))
    assert all(m.value() == m.key().replace(b"k-", b"v-") for m in fake.records)


def test_from_settings_builds_confluent_producer():
    producer = LogProducer.from_settings(GatewaySettings(kafka_brokers="127.0.0.1:1", wait_for_ack=False))
    try:
        assert producer.wait_for_ack is False
    finally:
        producer.close(timeout=0.5)


def test_real_client_unreachable_broker_fails_every_concurrent_send():
    # confluent-kafka 프로듀서는 락 없이 여러 태스크에서 동시에 써도 된다.
    client = Producer({
        "bootstrap.servers": "127.0.0.1:1",
        "client.id": "activity-log-test",
        "message.timeout.ms": 1000,
        "linger.ms": 10,
    })
    producer = LogProducer(client, wait_for_ack=True, ack_timeout_sec=15.0)

    async def main():
        return await asyncio.gather(
            *(producer.produce("activity-logs", key=f"k-{i}".encode(), value=b"{}") for i in range(20)),
            return_exceptions=True,
        )

    try:
        results = _run(main())
    finally:
        producer.close(timeout=1.0)

    assert len(results) == 20
    assert all(isinstance(r, DeliveryError) for r in results)

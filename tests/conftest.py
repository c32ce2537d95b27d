from __future__ import annotations

import pytest
from faker import Faker
from fastapi.testclient import TestClient

from activity_log_gateway.main import create_app
from activity_log_gateway.producer import LogProducer
from activity_log_gateway.settings import GatewaySettings

from fakes import TEST_TOPIC, FakeKafkaProducer


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(kafka_topic=TEST_TOPIC, kafka_client_id="activity-log-test")


@pytest.fixture
def fake_kafka() -> FakeKafkaProducer:
    return FakeKafkaProducer()


@pytest.fixture
def log_producer(fake_kafka) -> LogProducer:
    return LogProducer(fake_kafka, wait_for_ack=True, ack_timeout_sec=2.0, poll_timeout_sec=0.01)


@pytest.fixture
def client(settings, log_producer):
    app = create_app(settings, log_producer)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fake() -> Faker:
    Faker.seed(1234)
    return Faker()


@pytest.fixture
def make_body(fake):
    """Faker 로 그럴듯한 요청 바디를 만든다."""

    def _make(**overrides):
        body = {
            "service": fake.random_element(["auth", "order", "payment", "notify"]),
            "action": fake.random_element(["login", "logout", "create", "update", "delete"]),
            "userId": fake.uuid4(),
            "metadata": {"ip": fake.ipv4(), "path": fake.uri_path(), "agent": fake.user_agent()},
            "severity": fake.random_element(["info", "warn", "error", "critical"]),
        }
        body.update(overrides)
        return {k: v for k, v in body.items() if v is not ...}

    return _make

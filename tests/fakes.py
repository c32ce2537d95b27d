# -----------------------------------------------------------------------------
# 파일명 : tests/fakes.py
# 목적   : confluent_kafka.Producer 와 같은 produce()/poll()/flush() 시그니처를 가진 인메모리 프로듀서
# 설명   : produce 는 큐에 쌓기만 하고, poll/flush 가 전달 콜백(err, msg)을 호출한다.
# -----------------------------------------------------------------------------

from __future__ import annotations

import json
import threading
from typing import Any, Callable, List, Optional, Tuple

TEST_TOPIC = "activity-logs-test"


class FakeMessage:
    def __init__(self, topic: str, key: Optional[bytes], value: Optional[bytes]):
        self._topic = topic
        self._key = key
        self._value = value

    def topic(self) -> str:
        return self._topic

    def key(self) -> Optional[bytes]:
        return self._key

    def value(self) -> Optional[bytes]:
        return self._value

    def json(self) -> Any:
        return json.loads(self._value.decode("utf-8"))


class FakeKafkaProducer:
    """
    Args:
        fail_with: 모든 전달 보고에 넘길 에러(KafkaError 등). None 이면 성공
        fail_when: msg → bool. True 인 메시지만 fail_with(또는 기본 에러)로 실패
        raise_on_produce: produce() 호출 시 그대로 던질 예외 (BufferError 등)
        hold: True 면 poll 이 전달 보고를 하지 않는다 (ack 가 오지 않는 브로커)
    """

    def __init__(
        self,
        fail_with: Any = None,
        fail_when: Optional[Callable[[FakeMessage], bool]] = None,
        raise_on_produce: Optional[BaseException] = None,
        hold: bool = False,
    ) -> None:
        self.fail_with = fail_with
        self.fail_when = fail_when
        self.raise_on_produce = raise_on_produce
        self.hold = hold
        self.produce_calls = 0
        self._cond = threading.Condition()
        self._pending: List[Tuple[FakeMessage, Optional[Callable]]] = []
        self._delivered: List[FakeMessage] = []

    @property
    def records(self) -> List[FakeMessage]:
        with self._cond:
            return list(self._delivered)

    def produce(self, topic, value=None, key=None, on_delivery=None, **kwargs) -> None:
        with self._cond:
            self.produce_calls += 1
        if self.raise_on_produce is not None:
            raise self.raise_on_produce
        msg = FakeMessage(topic, key, value)
        with self._cond:
            self._pending.append((msg, on_delivery))
            self._cond.notify_all()

    def _error_for(self, msg: FakeMessage) -> Any:
        if self.fail_when is not None:
            return (self.fail_with or "simulated broker failure") if self.fail_when(msg) else None
        return self.fail_with

    def poll(self, timeout: Optional[float] = None) -> int:
        with self._cond:
            if not self._pending or self.hold:
                self._cond.wait(timeout or 0)
            if self.hold:
                return 0
            batch, self._pending = self._pending, []

        for msg, callback in batch:
            err = self._error_for(msg)
            if err is None:
                with self._cond:
                    self._delivered.append(msg)
            if callback is not None:
                callback(err, msg)
        return len(batch)

    def flush(self, timeout: Optional[float] = None) -> int:
        if self.hold:
            with self._cond:
                return len(self._pending)
        self.poll(0)
        return 0

    def __len__(self) -> int:
        with self._cond:
            return len(self._pending)

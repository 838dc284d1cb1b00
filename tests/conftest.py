import json
import threading
from unittest.mock import Mock

import pytest
import requests


SESSION_CLASS = requests.Session
VALID_KEY = "sk-test-0123456789abcdefghij"


class FakeResponse:
    """Stand-in for a streamed requests.Response."""

    def __init__(self, status_code=200, body=b"", headers=None, encoding="utf-8", read_error=None):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.encoding = encoding
        self.read_error = read_error
        self.closed = False

    def iter_content(self, chunk_size=1):
        if self.read_error is not None:
            raise self.read_error
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        self.closed = True


class BlockingResponse(FakeResponse):
    """Response whose body read blocks until the response is closed."""

    def __init__(self):
        super().__init__(200, b"")
        self.started = threading.Event()
        self.released = threading.Event()

    def iter_content(self, chunk_size=1):
        self.started.set()
        if self.released.wait(5):
            raise requests.exceptions.ConnectionError("connection closed")
        yield b""

    def close(self):
        self.closed = True
        self.released.set()


def _session(side_effect):
    session = Mock(spec=SESSION_CLASS)
    session.headers = {}
    session.request = Mock(side_effect=side_effect)
    return session


@pytest.fixture
def make_session():
    """Session answering requests in order; exceptions in the list are raised."""
    def _make(*outcomes):
        return _session(list(outcomes))
    return _make


@pytest.fixture
def routed_session():
    """Session answering by endpoint suffix, safe for concurrent probes."""
    def _make(routes):
        def _request(method, url, **kwargs):
            for suffix, outcome in routes.items():
                if url.endswith(suffix):
                    if isinstance(outcome, BaseException):
                        raise outcome
                    if callable(outcome):
                        return outcome()
                    return outcome
            raise AssertionError(f"unexpected url {url}")
        return _session(_request)
    return _make


@pytest.fixture
def chat_ok():
    return FakeResponse(200, {"choices": [{"message": {"role": "assistant", "content": "OK"}}]})


@pytest.fixture
def speech_ok():
    return FakeResponse(200, b"\x00\x01" * 2048, headers={"Content-Type": "audio/pcm"}, encoding=None)

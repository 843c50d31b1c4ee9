import asyncio

import pytest

from chatrelay.clients.gateway import EventStream, GatewayAPI
from chatrelay.shared.exceptions import APIConnectionError, ClientConnectorError


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def test_events_url_carries_access_token():
    url, safe_url = GatewayAPI("https://gateway.test/api/", "secret").events_url()
    assert url == "wss://gateway.test/api/events?access_token=secret"
    assert safe_url == "wss://gateway.test/api/events"


def test_events_url_without_scheme_or_token():
    url, safe_url = GatewayAPI("127.0.0.1:8080").events_url()
    assert url == safe_url == "ws://127.0.0.1:8080/events"


def test_events_url_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        GatewayAPI("ftp://gateway.test").events_url()


def test_authorization_header():
    assert GatewayAPI("http://gateway.test", "secret").headers["Authorization"] == "Bearer secret"
    assert "Authorization" not in GatewayAPI("http://gateway.test").headers


def _scripted_post(calls, *errors):
    pending = list(errors)

    async def post(endpoint, payload=None):
        calls.append(endpoint)
        if pending:
            raise pending.pop(0)
        return {}

    return post


def test_send_is_not_retried_once_the_request_went_out(monkeypatch):
    calls = []
    gateway = GatewayAPI("http://gateway.test")
    monkeypatch.setattr(gateway, "post", _scripted_post(calls, APIConnectionError("read timeout")))
    with pytest.raises(APIConnectionError):
        asyncio.run(gateway.reply_text("m1", "hi"))
    assert calls == ["send"]


def test_send_is_retried_when_gateway_is_unreachable(monkeypatch):
    calls = []
    gateway = GatewayAPI("http://gateway.test")
    monkeypatch.setattr(gateway, "post", _scripted_post(calls, ClientConnectorError("refused")))
    assert asyncio.run(gateway.reply_text("m1", "hi")) == {}
    assert calls == ["send", "send"]


def test_self_is_retried_on_connection_error(monkeypatch):
    calls = []
    gateway = GatewayAPI("http://gateway.test")
    monkeypatch.setattr(gateway, "post", _scripted_post(calls, APIConnectionError("reset")))
    assert asyncio.run(gateway.get_current_user()) == {}
    assert calls == ["self", "self"]


def test_refused_connection_raises_client_connector_error():
    gateway = GatewayAPI("http://127.0.0.1:1")

    async def run():
        try:
            await gateway.post("send", {"reply_to": "m1", "text": "hi"})
        finally:
            await gateway.close()

    with pytest.raises(ClientConnectorError):
        asyncio.run(run())


def _run_stream(handler, *events, until):
    async def run():
        stream = EventStream(GatewayAPI("http://gateway.test"))
        stream.on_message(handler)
        stream.start_workers()
        for event in events:
            await stream.process_event(event)
        await _wait_for(until)
        await stream.close()

    asyncio.run(run())


def test_duplicate_events_are_delivered_once():
    received: list[str] = []

    async def handler(event):
        received.append(event["id"])

    _run_stream(
        handler,
        {"id": "1", "content": "a"},
        {"id": "1", "content": "a"},
        {"id": "2", "content": "b"},
        ["not", "an", "event"],
        until=lambda: len(received) == 2,
    )
    assert sorted(received) == ["1", "2"]


def test_failing_handler_does_not_stop_workers():
    received: list[str] = []

    def handler(event):
        if event["id"] == "bad":
            raise RuntimeError("boom")
        received.append(event["id"])

    _run_stream(handler, {"id": "bad"}, {"id": "good"}, until=lambda: received == ["good"])


def test_slow_handlers_run_concurrently():
    started: list[str] = []
    release = None

    async def handler(event):
        started.append(event["id"])
        await release.wait()

    def all_started():
        if len(started) == 3:
            release.set()
            return True
        return False

    async def run():
        nonlocal release
        release = asyncio.Event()
        stream = EventStream(GatewayAPI("http://gateway.test"))
        stream.on_message(handler)
        stream.start_workers()
        for i in range(3):
            await stream.process_event({"id": str(i)})
        await _wait_for(all_started)
        await stream.close()

    asyncio.run(run())
    assert sorted(started) == ["0", "1", "2"]

import asyncio
import json

import httpx
import pytest

from chat_service.core.ollama_gateway import OllamaGateway
from chat_service.core.stream_decoder import FALLBACK_REPLY
from chat_service.monitoring.service_monitor import ServiceMonitor
from chat_service.utils.error_handler import (
    BackendError,
    ConnectivityError,
    ExchangeTimeoutError,
    LLMServiceError,
)

REPLY_LINE = '{"message":{"role":"assistant","content":"Hello! How can I help you?"},"done":true}'
MESSAGES = [{"role": "user", "content": "Hello"}]


def _gateway(handler, **kwargs):
    return OllamaGateway(
        base_url="http://ollama.test:11434/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _run(gateway, coro_factory):
    async def scenario():
        try:
            return await coro_factory(gateway)
        finally:
            await gateway.close()

    return asyncio.run(scenario())


def test_chat_sends_expected_payload_and_returns_text():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, text=REPLY_LINE + "\n")

    gateway = _gateway(handler)
    text = _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES, "Be nice."))

    assert text == "Hello! How can I help you?"
    assert seen["method"] == "POST"
    assert seen["url"] == "http://ollama.test:11434/api/chat"
    assert seen["payload"] == {
        "model": "llama3.1:8b",
        "messages": [{"role": "user", "content": "Hello"}],
        "stream": False,
        "system": "Be nice.",
    }


def test_chat_includes_keep_alive_when_configured():
    seen = {}

    def handler(request):
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, text=REPLY_LINE)

    gateway = _gateway(handler, keep_alive="5m")
    _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))

    assert seen["payload"]["keep_alive"] == "5m"
    assert seen["payload"]["system"] is None


def test_chat_non_success_status_raises_backend_error():
    gateway = _gateway(lambda request: httpx.Response(500, text="model exploded"))

    with pytest.raises(BackendError) as exc_info:
        _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "model exploded"
    assert "500" in exc_info.value.message
    assert "model exploded" in exc_info.value.message


def test_unreachable_backend_raises_connectivity_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _gateway(handler)
    with pytest.raises(ConnectivityError):
        _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))


def test_connect_timeout_is_connectivity_not_timeout():
    def handler(request):
        raise httpx.ConnectTimeout("connect timed out", request=request)

    gateway = _gateway(handler)
    with pytest.raises(ConnectivityError):
        _run(gateway, lambda g: g.list_models())


def test_read_timeout_raises_exchange_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    gateway = _gateway(handler, read_timeout=12.0)
    with pytest.raises(ExchangeTimeoutError) as exc_info:
        _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))
    assert exc_info.value.timeout == 12.0


def test_degraded_decode_is_reported_to_monitor():
    monitor = ServiceMonitor()
    gateway = _gateway(lambda request: httpx.Response(200, text="not json at all"), monitor=monitor)

    text = _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))

    assert text == FALLBACK_REPLY
    assert monitor.get_metrics()["degraded_decodes"] == 1


def test_clean_decode_is_not_reported_as_degraded():
    monitor = ServiceMonitor()
    gateway = _gateway(lambda request: httpx.Response(200, text=REPLY_LINE), monitor=monitor)
    _run(gateway, lambda g: g.chat("llama3.1:8b", MESSAGES))
    assert monitor.get_metrics()["degraded_decodes"] == 0


def test_list_models_returns_names():
    body = {
        "models": [
            {"name": "llama3.1:8b", "model": "llama3.1:8b", "size": 4661224676},
            {"name": "mistral:7b", "model": "mistral:7b"},
        ]
    }

    def handler(request):
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json=body)

    gateway = _gateway(handler)
    assert _run(gateway, lambda g: g.list_models()) == ["llama3.1:8b", "mistral:7b"]


def test_list_models_non_success_raises_backend_error():
    gateway = _gateway(lambda request: httpx.Response(503, text="busy"))
    with pytest.raises(BackendError) as exc_info:
        _run(gateway, lambda g: g.list_models())
    assert exc_info.value.status_code == 503


def test_list_models_invalid_body_raises_service_error():
    gateway = _gateway(lambda request: httpx.Response(200, json={"unexpected": True}))
    with pytest.raises(LLMServiceError):
        _run(gateway, lambda g: g.list_models())


def test_check_connection():
    up = _gateway(lambda request: httpx.Response(200, text="Ollama is running"))
    assert _run(up, lambda g: g.check_connection()) is True

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    down = _gateway(refuse)
    assert _run(down, lambda g: g.check_connection()) is False

import asyncio

import pytest

from chat_service.core.conversation_log import ConversationLog, Role, Turn
from chat_service.core.gateway import EchoGateway
from chat_service.core.orchestrator import ConversationOrchestrator
from chat_service.monitoring.service_monitor import ServiceMonitor
from chat_service.utils.error_handler import (
    BackendError,
    ConnectivityError,
    ExchangeTimeoutError,
)


def _orchestrator(gateway, log=None, **kwargs):
    kwargs.setdefault("system_prompt", "You are a helpful AI assistant.")
    return ConversationOrchestrator(gateway=gateway, conversation_log=log or ConversationLog(), **kwargs)


def test_successful_exchange_appends_user_then_assistant():
    gateway = EchoGateway(replies=["Hello! How can I help you?"])
    orchestrator = _orchestrator(gateway)

    reply = asyncio.run(orchestrator.send_message("Hello", "llama3.1:8b"))

    assert reply == "Hello! How can I help you?"
    history = orchestrator.history()
    assert [(t.role, t.content, t.model) for t in history] == [
        (Role.USER, "Hello", "llama3.1:8b"),
        (Role.ASSISTANT, "Hello! How can I help you?", "llama3.1:8b"),
    ]
    assert history[0].created_at <= history[1].created_at
    assert orchestrator.history_size() == 2


def test_sends_recent_context_followed_by_new_message():
    log = ConversationLog()
    for i in range(6):
        log.append(Turn(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"t{i}"))
    gateway = EchoGateway()
    orchestrator = _orchestrator(gateway, log, context_window_size=4)

    asyncio.run(orchestrator.send_message("new", "mistral:7b"))

    call = gateway.calls[0]
    assert call["model"] == "mistral:7b"
    assert call["system_prompt"] == "You are a helpful AI assistant."
    assert call["messages"] == [
        {"role": "user", "content": "t2"},
        {"role": "assistant", "content": "t3"},
        {"role": "user", "content": "t4"},
        {"role": "assistant", "content": "t5"},
        {"role": "user", "content": "new"},
    ]


def test_zero_context_window_sends_only_new_message():
    log = ConversationLog()
    log.append(Turn(role=Role.USER, content="old"))
    gateway = EchoGateway()
    orchestrator = _orchestrator(gateway, log, context_window_size=0)

    asyncio.run(orchestrator.send_message("only me", "llama3.1:8b"))

    assert gateway.calls[0]["messages"] == [{"role": "user", "content": "only me"}]


@pytest.mark.parametrize("error", [
    BackendError(500, "Internal Server Error"),
    ConnectivityError("Cannot reach Ollama"),
    ExchangeTimeoutError("read timed out", timeout=1.0),
])
def test_failed_exchange_appends_nothing(error):
    log = ConversationLog()
    log.append(Turn(role=Role.USER, content="before"))
    monitor = ServiceMonitor()
    orchestrator = _orchestrator(EchoGateway(error=error), log, monitor=monitor)

    with pytest.raises(type(error)):
        asyncio.run(orchestrator.send_message("Hello", "llama3.1:8b"))

    assert orchestrator.history_size() == 1
    assert monitor.get_metrics()["errors"] == 1


def test_deadline_expiry_raises_timeout_and_appends_nothing():
    monitor = ServiceMonitor()
    orchestrator = _orchestrator(EchoGateway(delay=1.0), monitor=monitor)

    with pytest.raises(ExchangeTimeoutError) as exc_info:
        asyncio.run(orchestrator.send_message("Hello", "llama3.1:8b", timeout=0.05))

    assert exc_info.value.timeout == 0.05
    assert orchestrator.history_size() == 0
    metrics = monitor.get_metrics()
    assert metrics["timeouts"] == 1
    assert metrics["exchanges"] == 0


def test_default_deadline_comes_from_request_timeout():
    orchestrator = _orchestrator(EchoGateway(delay=1.0), request_timeout=0.05)

    with pytest.raises(ExchangeTimeoutError):
        asyncio.run(orchestrator.send_message("Hello", "llama3.1:8b"))


def test_concurrent_exchanges_keep_their_pairs_contiguous():
    orchestrator = _orchestrator(EchoGateway(delay=0.01))

    async def run_many():
        return await asyncio.gather(*[
            orchestrator.send_message(f"msg-{i}", "llama3.1:8b") for i in range(10)
        ])

    replies = asyncio.run(run_many())

    assert replies == [f"Echo: msg-{i}" for i in range(10)]
    turns = orchestrator.history()
    assert len(turns) == 20
    for user, assistant in zip(turns[::2], turns[1::2]):
        assert user.role is Role.USER
        assert assistant.role is Role.ASSISTANT
        assert assistant.content == f"Echo: {user.content}"


def test_clear_and_history_size():
    orchestrator = _orchestrator(EchoGateway())
    asyncio.run(orchestrator.send_message("one", "llama3.1:8b"))
    asyncio.run(orchestrator.send_message("two", "llama3.1:8b"))
    assert orchestrator.history_size() == 4

    orchestrator.clear()

    assert orchestrator.history_size() == 0
    assert orchestrator.history() == []


def test_successful_exchange_is_recorded_in_monitor():
    monitor = ServiceMonitor()
    orchestrator = _orchestrator(EchoGateway(), monitor=monitor)
    asyncio.run(orchestrator.send_message("hi", "llama3.1:8b"))
    metrics = monitor.get_metrics()
    assert metrics["exchanges"] == 1
    assert metrics["errors"] == 0

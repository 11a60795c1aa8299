"""
Core components of the chat service.

Contains:
- Reply stream decoder
- Conversation log
- Inference gateways (Ollama and in-memory)
- Conversation orchestrator
"""

from chat_service.core.stream_decoder import DecodedReply, decode
from chat_service.core.conversation_log import ConversationLog, Role, Turn
from chat_service.core.gateway import EchoGateway, InferenceGateway
from chat_service.core.ollama_gateway import OllamaGateway
from chat_service.core.orchestrator import ConversationOrchestrator

__all__ = [
    "DecodedReply",
    "decode",
    "ConversationLog",
    "Role",
    "Turn",
    "EchoGateway",
    "InferenceGateway",
    "OllamaGateway",
    "ConversationOrchestrator",
]

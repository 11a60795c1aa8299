"""
Configuration management for the chat service.

Handles environment-based configuration with sensible defaults.
"""

import os
import logging
from typing import Dict, Any
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.1:8b"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
SUPPORTED_PROVIDERS = ("ollama", "echo")


@dataclass
class Config:
    """
    Configuration settings for the chat service.

    All settings can be overridden via environment variables.
    """

    # ============================================================================
    # Model Configuration
    # ============================================================================
    llm_provider: str = field(default_factory=lambda: os.getenv("LLM_PROVIDER", "ollama"))
    model_name: str = field(default_factory=lambda: os.getenv("LLM_MODEL", DEFAULT_MODEL))
    system_prompt: str = field(default_factory=lambda: os.getenv("SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT))

    # ============================================================================
    # Ollama Configuration
    # ============================================================================
    ollama_base_url: str = field(default_factory=lambda: os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"))
    ollama_connect_timeout: float = field(default_factory=lambda: float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "30.0")))
    ollama_read_timeout: float = field(default_factory=lambda: float(os.getenv("OLLAMA_READ_TIMEOUT", "300.0")))
    ollama_keep_alive: str = field(default_factory=lambda: os.getenv("OLLAMA_KEEP_ALIVE", ""))

    # ============================================================================
    # Conversation Configuration
    # ============================================================================
    request_timeout: float = field(default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "300.0")))  # 5 minutes
    context_window_size: int = field(default_factory=lambda: int(os.getenv("MAX_MEMORY_SIZE", "10")))
    max_stored_turns: int = field(default_factory=lambda: int(os.getenv("MAX_STORED_TURNS", "0")))  # 0 = unbounded
    max_message_length: int = field(default_factory=lambda: int(os.getenv("MAX_MESSAGE_LENGTH", "10000")))

    # ============================================================================
    # Server Configuration
    # ============================================================================
    host: str = field(default_factory=lambda: os.getenv("CHAT_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("CHAT_PORT", "8080")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("LOG_FILE", ""))
    startup_retries: int = field(default_factory=lambda: int(os.getenv("STARTUP_RETRIES", "3")))

    # ============================================================================
    # Monitoring Configuration
    # ============================================================================
    monitoring_host: str = field(default_factory=lambda: os.getenv("CHAT_MONITORING_HOST", "0.0.0.0"))
    monitoring_port: int = field(default_factory=lambda: int(os.getenv("CHAT_MONITORING_PORT", "9092")))

    def __post_init__(self):
        """Validate and log configuration after initialization."""
        self._validate()
        self._log_config()

    def _validate(self):
        """Validate configuration values."""
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"llm_provider must be one of {SUPPORTED_PROVIDERS}, got {self.llm_provider!r}")

        if self.ollama_connect_timeout <= 0 or self.ollama_read_timeout <= 0:
            raise ValueError("Ollama timeouts must be > 0")

        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")

        if self.request_timeout > self.ollama_read_timeout:
            logger.warning(
                f"Request timeout ({self.request_timeout}s) exceeds Ollama read timeout ({self.ollama_read_timeout}s)"
            )

        if self.context_window_size < 0:
            raise ValueError(f"context_window_size must be >= 0, got {self.context_window_size}")

        if self.max_stored_turns < 0:
            raise ValueError(f"max_stored_turns must be >= 0, got {self.max_stored_turns}")

        if 0 < self.max_stored_turns < self.context_window_size:
            logger.warning(
                f"max_stored_turns ({self.max_stored_turns}) is smaller than the context window "
                f"({self.context_window_size})"
            )

        if self.max_message_length < 1:
            raise ValueError(f"max_message_length must be >= 1, got {self.max_message_length}")

        if not 1024 <= self.port <= 65535:
            raise ValueError(f"Port must be between 1024 and 65535, got {self.port}")
        if not 1024 <= self.monitoring_port <= 65535:
            raise ValueError(f"Monitoring port must be between 1024 and 65535, got {self.monitoring_port}")

        if self.startup_retries < 1:
            raise ValueError(f"startup_retries must be >= 1, got {self.startup_retries}")

    def _log_config(self):
        """Log current configuration."""
        logger.info("=" * 60)
        logger.info("Chat Service Configuration")
        logger.info("=" * 60)
        logger.info(f"Provider: {self.llm_provider}")
        logger.info(f"Model: {self.model_name}")
        logger.info(f"Ollama URL: {self.ollama_base_url}")
        logger.info(f"Server: {self.host}:{self.port}")
        logger.info(f"Monitoring: {self.monitoring_host}:{self.monitoring_port}")
        logger.info(f"Request Timeout: {self.request_timeout}s")
        logger.info(f"Context Window: {self.context_window_size} turns")
        logger.info(f"Stored Turns Cap: {self.max_stored_turns or 'unbounded'}")
        logger.info(f"Log Level: {self.log_level}")
        logger.info("=" * 60)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "llm_provider": self.llm_provider,
            "model_name": self.model_name,
            "system_prompt": self.system_prompt,
            "ollama_base_url": self.ollama_base_url,
            "ollama_connect_timeout": self.ollama_connect_timeout,
            "ollama_read_timeout": self.ollama_read_timeout,
            "ollama_keep_alive": self.ollama_keep_alive,
            "request_timeout": self.request_timeout,
            "context_window_size": self.context_window_size,
            "max_stored_turns": self.max_stored_turns,
            "max_message_length": self.max_message_length,
            "host": self.host,
            "port": self.port,
            "monitoring_host": self.monitoring_host,
            "monitoring_port": self.monitoring_port,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "startup_retries": self.startup_retries,
        }


def get_config() -> Config:
    """
    Get a configuration instance built from the environment.

    Returns:
        Config instance
    """
    return Config()

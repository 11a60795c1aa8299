"""
Main entry point for the chat service.

Provides CLI interface for different operating modes.
"""

import sys
import asyncio
import argparse
import logging

from chat_service.utils.config import Config
from chat_service.utils.logger import configure_logging, get_logger
from chat_service.core.server_launcher import ServerLauncher
from chat_service.monitoring.service_monitor import MonitoringServer, ServiceMonitor

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Command line parser."""
    parser = argparse.ArgumentParser(description="Local LLM Chat Service")
    parser.add_argument(
        "mode",
        choices=["serve", "config", "test"],
        help="Operating mode",
    )
    parser.add_argument("--port", type=int, help="Server port")
    parser.add_argument("--host", type=str, help="Server host")
    parser.add_argument("--model", type=str, help="Default LLM model name")
    parser.add_argument("--provider", type=str, choices=["ollama", "echo"],
                        help="Inference provider (ollama, or echo for offline runs)")
    parser.add_argument("--log-level", type=str, help="Logging level")
    parser.add_argument("--log-file", type=str, help="Write JSON logs to this file")
    parser.add_argument("--show", action="store_true", help="Show configuration")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Override configuration with CLI arguments."""
    if args.port:
        config.port = args.port
    if args.host:
        config.host = args.host
    if args.model:
        config.model_name = args.model
    if args.provider:
        config.llm_provider = args.provider
    if args.log_file:
        config.log_file = args.log_file
    if args.log_level:
        config.log_level = args.log_level
    return config


def main():
    """Main entry point."""
    args = build_parser().parse_args()
    config = apply_overrides(Config(), args)
    configure_logging(config.log_level, config.log_file or None)

    if args.mode == "config":
        if args.show:
            print("\n" + "=" * 60)
            print("Chat Service Configuration")
            print("=" * 60)
            for key, value in config.to_dict().items():
                print(f"{key:30s}: {value}")
            print("=" * 60)
        return

    elif args.mode == "test":
        _run_connection_test(config)
        return

    elif args.mode == "serve":
        logger.info(f"Starting chat service (provider: {config.llm_provider})")

        monitor = ServiceMonitor()
        launcher = ServerLauncher(config, monitor=monitor)
        server = launcher.create_server()

        monitoring = MonitoringServer(
            host=config.monitoring_host,
            port=config.monitoring_port,
            monitor=monitor,
            history_size=server.orchestrator.history_size,
        )
        monitoring.start()

        launcher.start()


def _run_connection_test(config: Config):
    """Check the backend connection and list its models."""
    print(f"\nTest mode - checking {config.llm_provider.upper()} connection...")
    print("=" * 50)
    print(f"Base URL: {config.ollama_base_url}")
    print(f"Model: {config.model_name}")
    print("-" * 50)

    from chat_service.api.server import create_gateway

    gateway = create_gateway(config)

    async def probe():
        try:
            if not await gateway.check_connection():
                return None
            return await gateway.list_models()
        finally:
            await gateway.close()

    try:
        models = asyncio.run(probe())
    except Exception as e:
        print(f"✗ Connection error: {e}")
        sys.exit(1)

    if models is None:
        print("✗ Backend connection failed")
        sys.exit(1)

    print("✓ Backend connection successful")
    print(f"✓ Installed models: {', '.join(models) or '(none)'}")
    if config.model_name not in models:
        print(f"⚠ Default model {config.model_name} is not installed")

    print("=" * 50)
    print("Connection test completed successfully!")


if __name__ == "__main__":
    main()

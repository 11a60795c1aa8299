#!/usr/bin/env python3
"""
Interactive terminal client for the chat service.
Checks the service health, then sends each prompt to /api/chat.
"""

import asyncio
import argparse
import sys

import aiohttp

COMMANDS = "/clear (forget conversation), /size (memory size), /models, /exit"


async def check_health(session: aiohttp.ClientSession, base_url: str) -> bool:
    """Check if the chat service is healthy."""
    try:
        async with session.get(f"{base_url}/health") as response:
            data = await response.json()
            if response.status == 200:
                print("✓ Chat service is healthy")
                print(f"  Model: {data.get('model')}")
                return True
            print(f"✗ Health check returned {response.status} ({data.get('status')})")
            return False
    except aiohttp.ClientError as e:
        print(f"✗ Cannot connect to chat service: {e}")
        print(f"  Make sure the service is running on {base_url}")
        return False


async def send_message(session: aiohttp.ClientSession, base_url: str, message: str, model: str) -> None:
    """Send one message and print the reply or the error."""
    payload = {"message": message}
    if model:
        payload["model"] = model

    async with session.post(f"{base_url}/api/chat", json=payload) as response:
        data = await response.json()
        if response.status == 200:
            print(f"\n\033[92m{data['response']}\033[0m\n")
        else:
            print(f"\n✗ Error ({response.status}): {data.get('error')}\n")


async def run_command(session: aiohttp.ClientSession, base_url: str, command: str) -> None:
    """Handle a slash command."""
    if command == "/clear":
        async with session.delete(f"{base_url}/api/memory") as response:
            data = await response.json()
            print(f"✓ Conversation cleared (size: {data.get('size')})")
    elif command == "/size":
        async with session.get(f"{base_url}/api/memory") as response:
            data = await response.json()
            print(f"Conversation memory: {data.get('size')} turns")
    elif command == "/models":
        async with session.get(f"{base_url}/api/models") as response:
            data = await response.json()
            if response.status == 200:
                print("Models: " + ", ".join(data))
            else:
                print(f"✗ Error ({response.status}): {data.get('error')}")
    else:
        print(f"Unknown command. Available: {COMMANDS}")


async def chat_loop(base_url: str, model: str, timeout: float) -> None:
    """Read prompts until the user exits."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        print("\nChecking service health...")
        if not await check_health(session, base_url):
            print("\n⚠️  Service not available. Please start the chat service first.")
            sys.exit(1)

        print(f"\nCommands: {COMMANDS}\n")
        while True:
            prompt = (await asyncio.to_thread(input, "You: ")).strip()
            if not prompt:
                continue
            if prompt == "/exit":
                break
            if prompt.startswith("/"):
                await run_command(session, base_url, prompt)
                continue
            await send_message(session, base_url, prompt, model)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Chat service terminal client")
    parser.add_argument("--url", default="http://localhost:8080", help="Chat service base URL")
    parser.add_argument("--model", default="", help="Model to request (server default when empty)")
    parser.add_argument("--timeout", type=float, default=330.0, help="Per-request timeout in seconds")
    args = parser.parse_args()

    print("=" * 60)
    print("Chat Service Terminal Client")
    print("=" * 60)

    try:
        asyncio.run(chat_loop(args.url.rstrip("/"), args.model, args.timeout))
    except (KeyboardInterrupt, EOFError):
        print("\n\n✓ Goodbye")
    except aiohttp.ClientError as e:
        print(f"\n✗ Connection error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Main entry point for ShellGPT.

Can be called with: python -m shellgpt, or the ``shellgpt`` console script.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from .config import ConfigManager, load_settings
from .exceptions import ConfigurationError, ShellGPTError
from .plugins.console_plugin import ConsoleLogHandler
from .llm_client import ChatCompletionClient
from .search_provider import SearchAPIProvider, build_search_provider
from .shell import InteractiveSession, create_agent


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellgpt",
        description="A ChatGPT gateway CLI with streaming support and web search capabilities",
    )
    parser.add_argument("-m", "--model", help="Model to use (default: gpt-4o-mini)")
    parser.add_argument("-t", "--temperature", type=float, help="Sampling temperature, 0-2 (default: 0.7)")
    parser.add_argument("--max-tokens", type=int, help="Maximum tokens per answer (default: 1000)")
    parser.add_argument(
        "--no-search", action="store_true", help="Disable web search functionality"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging for tool calls and API interactions"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("chat", help="Start an interactive chat session")

    send = subparsers.add_parser("send", help="Send a single message")
    send.add_argument("message", help="The message to send")

    search = subparsers.add_parser("search", help="Test web search functionality")
    search.add_argument("query", nargs="?", default="test", help="Search query to test")

    config = subparsers.add_parser("config", help="Manage configuration")
    group = config.add_mutually_exclusive_group()
    group.add_argument("--show", action="store_true", help="Show current configuration")
    group.add_argument("--clear", action="store_true", help="Clear saved configuration")
    group.add_argument("--clear-search", action="store_true", help="Clear only search configuration")
    group.add_argument("--set-key", metavar="KEY", help="Save an OpenAI API key")
    group.add_argument("--set-search-key", metavar="KEY", help="Save a SearchAPI key")

    return parser


def setup_logging(debug: bool) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    level = logging.DEBUG if debug else logging.WARNING
    handler = ConsoleLogHandler(level=level)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    if not debug:
        # Keep HTTP client chatter out of the terminal
        for noisy in ("httpx", "openai", "googleapiclient"):
            logging.getLogger(noisy).setLevel(logging.ERROR)


def settings_overrides(args) -> dict:
    return {
        "model": args.model,
        "temperature": args.temperature,
        "max_tokens": args.max_tokens,
        "enable_search": False if args.no_search else None,
        "debug": args.debug or None,
    }


async def run_chat(settings) -> int:
    agent = create_agent(settings)
    try:
        await InteractiveSession(agent).start()
    finally:
        await agent.close()
    return 0


async def run_send(settings, message: str) -> int:
    agent = create_agent(settings)
    try:
        await agent.run(message)
    except ShellGPTError:
        return 1
    finally:
        await agent.close()
    return 0


async def validate_api_key(api_key: str, base_url: str = None) -> bool:
    """Check an OpenAI key against the models endpoint."""
    client = ChatCompletionClient(api_key=api_key, base_url=base_url)
    try:
        return await client.validate()
    finally:
        await client.close()


async def validate_search_key(search_api_key: str) -> bool:
    """Check a SearchAPI key with a one-result test query."""
    provider = SearchAPIProvider(search_api_key)
    try:
        return await provider.validate()
    finally:
        await provider.close()


async def run_search(settings, query: str) -> int:
    provider = build_search_provider(settings)
    if provider is None:
        print("❌ No search configuration found")
        print("Set SEARCHAPI_API_KEY or run 'shellgpt config --set-search-key <key>'")
        return 1
    print(f"🔍 Testing web search with query: {query!r}")
    try:
        if not await provider.validate():
            print(f"❌ No valid {provider.name} configuration found")
            return 1
        results = await provider.search(query, max_results=settings.max_results)
    except ShellGPTError as e:
        print(f"❌ Web search test failed: {e}")
        return 1
    finally:
        await provider.close()

    if not results:
        print("❌ Web search returned no results")
        return 1
    print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
    print("✅ Web search functionality is working")
    return 0


async def run_config(args, config_manager: ConfigManager) -> int:
    if args.show:
        settings = load_settings(config_manager=config_manager, validate=False)
        print(f"📁 Config directory: {config_manager.get_config_dir()}")
        print("✅ OpenAI API key found" if settings.openai_api_key else "❌ No OpenAI API key found")
        print("✅ Search configuration found" if settings.has_search_config else "❌ No search configuration found")
        print(f"🧠 Model: {settings.model}")
    elif args.clear:
        if config_manager.clear_config():
            print("✅ Configuration cleared successfully")
        else:
            print("ℹ️  No configuration file found")
    elif args.clear_search:
        if config_manager.clear_search_config():
            print("✅ Search configuration cleared successfully")
        else:
            print("ℹ️  No configuration file found")
    elif args.set_key:
        api_key = args.set_key.strip()
        if not await validate_api_key(api_key, os.getenv("OPENAI_BASE_URL")):
            print("❌ Invalid API key. Please check your key and try again.")
            return 1
        config_manager.save_api_key(api_key)
        print("✅ API key is valid")
        print("✅ OpenAI API key saved successfully")
    elif args.set_search_key:
        search_api_key = args.set_search_key.strip()
        if not await validate_search_key(search_api_key):
            print("❌ Invalid SearchAPI key. Please check your key and try again.")
            return 1
        config_manager.save_search_api_key(search_api_key)
        print("✅ SearchAPI key is valid")
        print("✅ SearchAPI key saved successfully")
    else:
        print(
            "Use --show to view configuration, --clear to remove all config, "
            "or --clear-search to remove only search config"
        )
    return 0


def main(argv=None) -> int:
    """Main entry point for ShellGPT."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    config_manager = ConfigManager()
    command = args.command or "chat"

    if command == "config":
        return asyncio.run(run_config(args, config_manager))

    try:
        settings = load_settings(
            settings_overrides(args),
            config_manager=config_manager,
            validate=command != "search",
        )
        if command == "send":
            return asyncio.run(run_send(settings, args.message))
        if command == "search":
            return asyncio.run(run_search(settings, args.query))
        return asyncio.run(run_chat(settings))
    except ConfigurationError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())

"""CLI entry point for flowsense-agent."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from flowsense_agent.ai.factory import create_default_tool_registry
from flowsense_agent.app import FlowSenseApp
from flowsense_agent.config import AppConfig, load_config
from flowsense_agent.core.errors import AgentError
from flowsense_agent.core.intent import is_transaction_intent
from flowsense_agent.core.models import to_jsonable
from flowsense_agent.core.validation import flow_address_error
from flowsense_agent.log import setup_logging

EXIT_COMMANDS = frozenset({"exit", "quit", ":q"})


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="flowsense-agent",
        description="Natural-language wallet assistant for the Flow blockchain",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat session")
    _add_config_args(chat_parser)
    chat_parser.add_argument("-w", "--wallet", required=True, help="Flow wallet address (0x + 16 hex)")
    chat_parser.add_argument("--chat-id", default=None, help="Resume an existing chat")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    subparsers.add_parser("tools", help="List the tools offered to the model")

    args = parser.parse_args()

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "tools":
        _list_tools()
    elif args.command == "chat":
        _chat(args.config, args.env, args.wallet, args.chat_id)
    else:
        parser.print_help()


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  LLM       : {config.llm.provider} / {config.llm.model}")
    print(f"  API key   : {'set' if config.llm.api_key else 'MISSING'}")
    print(f"  Timeout   : {config.llm.timeout}s, retries {config.llm.max_retries}")
    print(f"  Agent     : max_iterations={config.agent.max_iterations}, cache={config.agent.enable_cache}")
    print(
        f"  Context   : max_messages={config.context.max_messages}, "
        f"expiry={config.context.expiry_seconds}s, max_contexts={config.context.max_contexts}"
    )
    print(f"  Storage   : {config.storage.db_path}")


def _list_tools() -> None:
    registry = create_default_tool_registry()
    print("Transaction tools (always available)")
    print("=" * 50)
    for definition in registry.get_definitions():
        print(f"\n  {definition.name}  -> intent: {definition.intent_type}")
        for param in definition.parameters:
            flag = "required" if param.required else "optional"
            print(f"    - {param.name} ({param.type}, {flag}): {param.description}")
    print("\nRead tools check_balance, get_price and view_portfolio need a ledger client.")


def _chat(config_path: str, env_path: str, wallet: str, chat_id: str | None) -> None:
    address_error = flow_address_error(wallet)
    if address_error:
        print(f"Error: {address_error}", file=sys.stderr)
        sys.exit(1)

    config = _load(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    async def _session() -> None:
        app = FlowSenseApp(config)
        await app.start()
        current_chat = chat_id
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "you> ")
                except EOFError:
                    break
                if line.strip().lower() in EXIT_COMMANDS:
                    break
                try:
                    turn = await app.handle_message(line, wallet, current_chat)
                except AgentError as e:
                    print(f"error> {e.message}", file=sys.stderr)
                    continue
                current_chat = turn.chat_id
                print(f"flowsense> {turn.result.response}")
                if is_transaction_intent(turn.result.intent):
                    print(json.dumps(to_jsonable(turn.result.intent), indent=2))
        finally:
            await app.stop()

    try:
        asyncio.run(_session())
    except AgentError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

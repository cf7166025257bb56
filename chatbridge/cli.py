"""CLI entry point for probing and exercising vendor adapters."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from . import capabilities
from .errors import ChatBridgeError, UnsupportedOperationError
from .models import EXT_USE_STATEFUL_API, ChatMessage, Role, ServiceConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatbridge",
        description="Uniform chat access to OpenAI, Claude, Gemini, Grok, Qwen and Ollama",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print machine-readable JSON",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("vendors", help="List registered vendors")

    defaults = sub.add_parser("defaults", help="Show default settings for a vendor")
    defaults.add_argument("vendor")

    for name, help_text in (
        ("validate", "Check a config without calling the vendor"),
        ("probe", "Test reachability and credentials"),
        ("models", "List the vendor's models"),
        ("chat", "Send a prompt"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("vendor")
        if name == "chat":
            cmd.add_argument("prompt", help="User message; '-' reads stdin")
            cmd.add_argument("--system", default=None, help="System prompt")
            cmd.add_argument("--stream", action="store_true", help="Print the reply as it arrives")
        _add_config_args(cmd)
    return parser


def _add_config_args(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument(
        "--api-key",
        default=None,
        help="Vendor API key (default: $CHATBRIDGE_API_KEY)",
    )
    cmd.add_argument("--model", default=None, help="Model id (default: vendor default)")
    cmd.add_argument("--endpoint", default=None, metavar="URL", help="Override the vendor base URL")
    cmd.add_argument("--temperature", type=float, default=None)
    cmd.add_argument("--top-p", type=float, default=None)
    cmd.add_argument("--max-tokens", type=int, default=None)
    cmd.add_argument(
        "--stateful",
        action="store_true",
        help="Use the stateful Responses API (openai only)",
    )


def build_config(args: argparse.Namespace) -> ServiceConfig:
    """Vendor defaults overlaid with command-line overrides."""
    config = ServiceConfig(vendor_id=args.vendor, **capabilities.get_defaults(args.vendor))
    overrides = {
        "credential": args.api_key or os.environ.get("CHATBRIDGE_API_KEY", ""),
        "model_id": args.model,
        "endpoint_override": args.endpoint,
        "temperature": args.temperature,
        "top_p": args.top_p,
        "max_output_tokens": args.max_tokens,
    }
    update = {k: v for k, v in overrides.items() if v is not None}
    if args.stateful:
        update["extensions"] = {EXT_USE_STATEFUL_API: True}
    return config.model_copy(update=update)


def _emit(args: argparse.Namespace, payload, text: str) -> None:
    if args.json_output:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


async def run_command(args: argparse.Namespace) -> int:
    from .providers.manager import ServiceManager

    if args.command == "vendors":
        vendors = capabilities.registered_vendors()
        _emit(
            args,
            vendors,
            "\n".join(f"{v:18} {capabilities.get_capability(v).display_name}" for v in vendors),
        )
        return 0

    if not capabilities.is_registered(args.vendor):
        print(f"Error: unsupported vendor '{args.vendor}'", file=sys.stderr)
        return 1

    if args.command == "defaults":
        cap = capabilities.get_capability(args.vendor)
        defaults = capabilities.get_defaults(args.vendor)
        lines = [f"{k:18} {v}" for k, v in defaults.items()]
        lines.append(f"{'temperature range':18} {cap.temperature}")
        lines.append(f"{'top_p range':18} {cap.top_p}")
        lines.append(f"{'max tokens range':18} {cap.max_output_tokens}")
        lines.extend(f"note: {n}" for n in cap.notes)
        _emit(args, defaults, "\n".join(lines))
        return 0

    config = build_config(args)

    async with ServiceManager() as manager:
        if args.command == "validate":
            result = manager.validate(manager.resolve(args.vendor, config).vendor_id, config)
            _emit(args, result.model_dump(), "OK" if result.valid else "\n".join(result.errors))
            return 0 if result.valid else 1

        if args.command == "probe":
            ok = await manager.test_connection(args.vendor, config)
            _emit(args, {"vendor": args.vendor, "ok": ok}, "OK" if ok else "FAILED")
            return 0 if ok else 1

        if args.command == "models":
            models = await manager.get_available_models(args.vendor, config)
            _emit(args, [m.model_dump() for m in models], "\n".join(m.id for m in models))
            return 0

        prompt = sys.stdin.read().strip() if args.prompt == "-" else args.prompt
        if not prompt:
            print("Error: empty prompt", file=sys.stderr)
            return 1
        messages = []
        if args.system:
            messages.append(ChatMessage(role=Role.SYSTEM, content=args.system))
        messages.append(ChatMessage(role=Role.USER, content=prompt))

        if args.stream:
            try:
                return await _stream(manager, args, messages, config)
            except UnsupportedOperationError:
                logger.info("%s cannot stream; falling back to chat", args.vendor)

        result = await manager.chat(args.vendor, messages, config)
        _emit(args, result.model_dump(), result.text)
        return 0


async def _stream(manager, args: argparse.Namespace, messages: list[ChatMessage], config: ServiceConfig) -> int:
    error = None
    async for chunk in manager.stream_chat(args.vendor, messages, config):
        if args.json_output:
            print(chunk.model_dump_json())
        elif chunk.text_delta:
            print(chunk.text_delta, end="", flush=True)
        if chunk.is_final:
            error = chunk.error
    if not args.json_output:
        print()
    if error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s: %(message)s")

    try:
        code = asyncio.run(run_command(args))
    except ChatBridgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()

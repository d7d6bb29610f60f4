"""Interactive terminal client.

Usage:
    omo --model gpt-5.2-codex --cwd ~/projects/app --max-rounds 25
"""

import argparse
import asyncio
import logging
import os
import sys

from openai import OpenAIError

from omo.auth import AuthData, clear_auth, is_expired, load_auth
from omo.coding_tools import default_tools
from omo.config import Settings, configure_logging
from omo.errors import AuthError, OmoError
from omo.events import ThinkingEvent, TokenEvent, ToolEndEvent, ToolStartEvent
from omo.prompt import FileInstructionsLoader
from omo.provider import CodexProvider
from omo.runner import Runner

logger = logging.getLogger(__name__)

LABEL = "Omo: "
PREVIEW_CHARS = 100
HELP_TEXT = """
Commands:
  /reset   - Start a new conversation
  /logout  - Clear saved credentials
  /exit    - Quit
  /help    - Show this help
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="omo", description="OMO coding agent")
    parser.add_argument("--model", help="Model identifier")
    parser.add_argument("--cwd", help="Working directory for tools and memory files")
    parser.add_argument("--max-rounds", type=int, help="Cap on tool rounds per message")
    parser.add_argument(
        "--read-timeout", type=float,
        help="Seconds to wait for each chunk of a response",
    )
    parser.add_argument("--log-level", help="Logging level (default WARNING)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {
        "model": args.model,
        "cwd": args.cwd,
        "max_rounds": args.max_rounds,
        "read_timeout": args.read_timeout,
        "log_level": args.log_level,
    }
    return settings.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )


def resolve_credentials(settings: Settings) -> AuthData | None:
    token = os.getenv("OMO_ACCESS_TOKEN")
    if token:
        return AuthData(access=token, account_id=os.getenv("OMO_ACCOUNT_ID", ""))
    auth = load_auth(settings.auth_path)
    if auth is not None and auth.expires and is_expired(auth):
        logger.warning("Saved access token has expired; log in again")
    return auth


class TerminalView:
    """Renders runner notifications to a text stream."""

    def __init__(self, out=sys.stdout):
        self.out = out
        self.printed_label = False

    def attach(self, runner: Runner) -> None:
        runner.on("thinking", self.on_thinking)
        runner.on("token", self.on_token)
        runner.on("tool_start", self.on_tool_start)
        runner.on("tool_end", self.on_tool_end)
        runner.on("response_end", self.on_response_end)

    def on_thinking(self, event: ThinkingEvent) -> None:
        if event.status:
            self.out.write("Thinking...\r")
        else:
            self.out.write(" " * len("Thinking...") + "\r")
        self.out.flush()

    def on_token(self, event: TokenEvent) -> None:
        if not self.printed_label:
            self.out.write(LABEL)
            self.printed_label = True
        self.out.write(event.text)
        self.out.flush()

    def on_tool_start(self, event: ToolStartEvent) -> None:
        self.out.write(f"\n[Tool: {event.name}]\n")

    def on_tool_end(self, event: ToolEndEvent) -> None:
        if event.error is not None:
            self.out.write(f"[Error: {event.error}]\n")
            return
        preview = event.result[:PREVIEW_CHARS]
        if len(event.result) > PREVIEW_CHARS:
            preview += "..."
        self.out.write(f"[Result: {preview}]\n")

    def on_response_end(self, event) -> None:
        self.out.write("\n\n")
        self.out.flush()
        self.printed_label = False


def make_runner(settings: Settings, auth: AuthData) -> Runner:
    provider = CodexProvider(
        access_token=auth.access, account_id=auth.account_id or None,
    )
    return Runner(
        provider=provider,
        tools=default_tools(),
        instructions=FileInstructionsLoader(),
        model=settings.model,
        cwd=settings.working_directory(),
        max_rounds=settings.max_rounds,
        read_timeout=settings.read_timeout,
    )


async def chat_loop(settings: Settings) -> None:
    print("\nOMO Agent\n")
    runner = None
    auth = resolve_credentials(settings)
    if auth is None:
        print("Not logged in. Set OMO_ACCESS_TOKEN or log in to create "
              f"{settings.auth_path}.\n")
    else:
        try:
            runner = make_runner(settings, auth)
        except AuthError as e:
            print(f"Could not use saved credentials: {e}\n")
        else:
            TerminalView().attach(runner)
            print("Logged in. Type a message or /help for commands.\n")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "You: ")
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            return

        if not user_input.strip():
            continue

        if user_input.startswith("/"):
            command = user_input.strip().lower()
            if command == "/exit":
                print("Goodbye!")
                return
            if command == "/logout":
                clear_auth(settings.auth_path)
                runner = None
                print("Logged out.\n")
            elif command == "/reset":
                if runner is not None:
                    runner.reset()
                print("Started a new conversation.\n")
            else:
                print(HELP_TEXT)
            continue

        if runner is None:
            print("Not logged in.\n")
            continue

        try:
            await runner.chat(user_input)
        except (OmoError, OpenAIError) as e:
            print(f"\nError: {e}\n")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = build_settings(args)
    configure_logging(settings.log_level, args.log_file)
    try:
        asyncio.run(chat_loop(settings))
    except KeyboardInterrupt:
        print("\nFarewell!")


if __name__ == "__main__":
    main()

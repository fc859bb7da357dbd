"""CLI interface: trial-search chat loop with /help /new /history /sources /toggle /health /clear /quit."""

import asyncio
import shutil
import textwrap

from nextrial.conversations.models import Conversation, Message, MessageRole, SearchMetadata
from nextrial.core.bootstrap import build_session
from nextrial.core.config import config
from nextrial.core.errors import CircuitOpenError, NexTrialError, UpstreamError
from nextrial.core.logger import logger
from nextrial.observability import flush
from nextrial.orchestrators.outcomes import (
    QueryOutcome,
    SearchFailed,
    SearchSucceededPersistenceFailed,
)
from nextrial.orchestrators.session import SessionOrchestrator


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def colorize(text: str, *colors: str) -> str:
    color_codes = "".join(colors)
    return f"{color_codes}{text}{Colors.RESET}"


def print_help():
    help_text = """
    ╭──────────────────────────────────────────╮
    │  Commands                                │
    ├──────────────────────────────────────────┤
    │  /help         - Show this help          │
    │  /new          - Start a new conversation│
    │  /history      - List conversations      │
    │  /sources      - Show data sources       │
    │  /toggle <id>  - Enable/disable a source │
    │  /health       - Check search backend    │
    │  /clear        - Clear this conversation │
    │  /quit         - Exit                    │
    ╰──────────────────────────────────────────╯
    """
    print(colorize(help_text, Colors.CYAN))


def format_response(text: str) -> str:
    prefix = colorize("┃ ", Colors.BLUE)
    try:
        terminal_width = shutil.get_terminal_size().columns
    except OSError:
        terminal_width = 80
    wrap_width = max(terminal_width - 4, 40)
    formatted_lines = []
    for line in text.split("\n"):
        if not line.strip():
            formatted_lines.append(prefix)
            continue
        for w_line in textwrap.wrap(line, width=wrap_width):
            formatted_lines.append(f"{prefix}{w_line}")
    return "\n".join(formatted_lines)


def format_metadata(metadata: SearchMetadata) -> str:
    parts = [
        f"confidence: {metadata.confidence.value}",
        f"{metadata.total_results} results",
        f"{metadata.processing_time_ms / 1000:.2f}s",
    ]
    if metadata.sources:
        parts.append("sources: " + ", ".join(s.id for s in metadata.sources[:5]))
    return "  " + " · ".join(parts)


def render_outcome(outcome: QueryOutcome) -> None:
    if isinstance(outcome, SearchFailed):
        print(colorize(f"  Search backend unreachable: {outcome.error}", Colors.RED))
        print(colorize("  Your question was saved. Try again in a moment.", Colors.DIM))
        return
    print(format_response(outcome.answer))
    print(colorize(format_metadata(SearchMetadata.from_result(outcome.result)), Colors.DIM))
    if isinstance(outcome, SearchSucceededPersistenceFailed):
        print(colorize("  Note: this answer could not be saved to your history.", Colors.YELLOW))


def render_history(conversations: list[Conversation], current_id: str | None) -> None:
    if not conversations:
        print(colorize("  No conversations yet.", Colors.DIM))
        return
    for c in conversations:
        marker = "●" if c.id == current_id else " "
        stamp = c.last_message_at.strftime("%Y-%m-%d %H:%M")
        print(f"  {marker} {colorize(stamp, Colors.DIM)}  {c.title}")


def render_messages(messages: list[Message]) -> None:
    for m in messages:
        who = "you" if m.role == MessageRole.USER else "nextrial"
        print(colorize(f"  {who}:", Colors.BOLD), m.content[:200])


async def run_cli():
    session: SessionOrchestrator = build_session()
    owner_id = config.owner_id
    conversation: Conversation | None = None
    print(colorize("\n  NexTrial · clinical trial search", Colors.BLUE, Colors.BOLD))
    print(colorize("  Type /help for commands\n", Colors.DIM))
    try:
        while True:
            try:
                user_input = await asyncio.to_thread(
                    input, colorize("\n❯ ", Colors.GREEN, Colors.BOLD)
                )
            except EOFError:
                break
            text = user_input.strip()
            if not text:
                continue
            command, _, arg = text.partition(" ")
            command = command.lower()

            if command == "/help":
                print_help()
                continue
            if command in ("/quit", "/exit", "/q"):
                break
            if command == "/new":
                conversation = None
                print(colorize("  New conversation ✨", Colors.YELLOW))
                continue
            if command == "/history":
                conversations = await session.store.list_conversations(owner_id)
                render_history(conversations, conversation.id if conversation else None)
                if conversation is not None:
                    render_messages(await session.store.list_messages(conversation.id))
                continue
            if command == "/sources":
                for t in session.registry.toggles():
                    state = colorize("on ", Colors.GREEN) if t.enabled else colorize("off", Colors.DIM)
                    print(f"  [{state}] {t.id:<16} {t.display_name}")
                continue
            if command == "/toggle":
                try:
                    toggled = session.registry.toggle(arg.strip())
                except NexTrialError as e:
                    print(colorize(f"  {e}", Colors.RED))
                    continue
                state = "enabled" if toggled.enabled else "disabled"
                print(colorize(f"  {toggled.display_name} {state}", Colors.YELLOW))
                continue
            if command == "/health":
                try:
                    health = await session.refresh_health()
                except NexTrialError as e:
                    print(colorize(f"  Health check failed: {e}", Colors.RED))
                    continue
                color = Colors.YELLOW if health.is_degraded else Colors.GREEN
                print(colorize(
                    f"  {health.status.value} (pipeline ready: {health.pipeline_ready})", color
                ))
                continue
            if command == "/clear":
                if conversation is None:
                    print(colorize("  Nothing to clear.", Colors.DIM))
                    continue
                try:
                    await session.clear_conversation(conversation.id)
                except NexTrialError as e:
                    print(colorize(f"  Clear failed: {e}", Colors.RED))
                    continue
                print(colorize("  Conversation cleared ✨", Colors.YELLOW))
                continue

            print()
            try:
                if conversation is None:
                    conversation, outcome = await session.start_conversation(owner_id, text)
                else:
                    outcome = await session.submit_query(conversation.id, text)
            except CircuitOpenError as e:
                print(colorize(f"  {e}", Colors.YELLOW))
                continue
            except UpstreamError as e:
                print(colorize(f"  Search failed ({e.status}): {e.message}", Colors.RED))
                continue
            except NexTrialError as e:
                logger.error(f"Query failed: {e}")
                print(colorize(f"  Error: {e}", Colors.RED))
                continue
            render_outcome(outcome)
    except KeyboardInterrupt:
        pass
    finally:
        print(colorize("\n  Goodbye ✨\n", Colors.BLUE))
        await session.close()
        flush()


def main():
    try:
        asyncio.run(run_cli())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

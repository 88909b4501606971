"""
User command channel.

Parses console input into ``UserCommand`` values and feeds them into the
queue the session reads from. ``None`` on the queue means the channel is
closed (end of input).
"""

import asyncio
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TextIO

from market_stream.core import get_logger
from market_stream.core.exceptions import ValidationError
from market_stream.core.models import Topic, normalize_topics

logger = get_logger(__name__)


class CommandKind(str, Enum):
    """Console commands understood by the session."""

    ADD = "addsub"
    DELETE = "delsub"
    LIST = "list"
    LIST_SERVER = "listserver"
    HELP = "help"
    QUIT = "quit"


HELP_TEXT = """Available commands:
  addsub <topic> [topic ...]  Subscribe to topics, e.g. addsub btcusdt@trade
  delsub <topic> [topic ...]  Unsubscribe from topics
  list                        Show desired and active topics
  listserver                  Ask the server for its subscription list
  help                        Show this help
  quit                        Close the connection and exit"""


@dataclass(frozen=True)
class UserCommand:
    """One parsed console command."""

    kind: CommandKind
    topics: tuple[Topic, ...] = ()

    @classmethod
    def add(cls, *topics: str) -> "UserCommand":
        return cls(CommandKind.ADD, normalize_topics(topics))

    @classmethod
    def delete(cls, *topics: str) -> "UserCommand":
        return cls(CommandKind.DELETE, normalize_topics(topics))

    @classmethod
    def quit(cls) -> "UserCommand":
        return cls(CommandKind.QUIT)


def parse_user_command(line: str) -> Optional[UserCommand]:
    """
    Parse one line of console input.

    Args:
        line: Raw input line

    Returns:
        The parsed command, or ``None`` for a blank line

    Raises:
        ValidationError: Unknown command, missing topic, or invalid topic
    """
    parts = line.split()
    if not parts:
        return None

    word, args = parts[0].lower(), parts[1:]
    try:
        kind = CommandKind(word)
    except ValueError:
        raise ValidationError(f"Unknown command: {word!r}", details={"help": HELP_TEXT}) from None

    if kind in (CommandKind.ADD, CommandKind.DELETE):
        if not args:
            raise ValidationError(f"Usage: {kind.value} <topic> [topic ...]")
        return UserCommand(kind, normalize_topics(args))

    if args:
        raise ValidationError(f"{kind.value} takes no arguments")
    return UserCommand(kind)


def start_console_reader(
    queue: "asyncio.Queue[Optional[UserCommand]]",
    loop: asyncio.AbstractEventLoop,
    stream: TextIO = sys.stdin,
) -> threading.Thread:
    """
    Read commands from a text stream on a daemon thread.

    Parsed commands are handed to ``queue`` on ``loop``; ``None`` is queued
    at end of input. The thread exits after ``quit``. Invalid input is
    reported with the help text and skipped.

    Returns:
        The started reader thread
    """

    def deliver(item: Optional[UserCommand]) -> bool:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed
            return False
        return True

    def reader() -> None:
        for line in iter(stream.readline, ""):
            try:
                command = parse_user_command(line)
            except ValidationError as e:
                logger.warning(e.message)
                print(HELP_TEXT)
                continue
            if command is None:
                continue
            if not deliver(command) or command.kind is CommandKind.QUIT:
                return
        logger.info("Command input closed")
        deliver(None)

    thread = threading.Thread(target=reader, name="console-reader", daemon=True)
    thread.start()
    return thread

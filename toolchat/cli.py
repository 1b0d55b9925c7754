"""Interactive command-line front end."""
import argparse
import asyncio
import json
import logging
import sys
import threading
from typing import Callable

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .agent import Agent
from .config import get_settings
from .errors import ConfigurationError
from .protocol import FinalEvent, TextEvent, ToolCallEvent, ToolResultEvent
from .tools.registry import build_registry

logger = logging.getLogger(__name__)

console = Console()

PROMPT = "[bold cyan]What would you like to do?[/bold cyan] "
EXIT_WORDS = ("quit", "exit")


def setup_logging(debug: bool = False):
    """Route logs through rich so they don't clobber the prompt."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    if debug:
        logging.getLogger("toolchat").setLevel(logging.DEBUG)


def render(event):
    if isinstance(event, ToolCallEvent):
        console.print(f"[dim]Calling {escape(event.name)}({escape(json.dumps(event.arguments))})[/dim]", highlight=False)
    elif isinstance(event, ToolResultEvent):
        if event.is_error:
            console.print(f"[yellow]{escape(event.text)}[/yellow]", highlight=False)
    elif isinstance(event, TextEvent):
        console.print(event.text, markup=False, style="dim")
    elif isinstance(event, FinalEvent):
        console.print(event.text, markup=False)


def _settle(future: asyncio.Future, result, error):
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def read_line(read: Callable[[str], str], prompt: str) -> str:
    """Run the blocking `read` on a daemon thread; an unanswered prompt never blocks exit."""
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def worker():
        try:
            line = read(prompt)
        except Exception as e:
            loop.call_soon_threadsafe(_settle, future, None, e)
        else:
            loop.call_soon_threadsafe(_settle, future, line, None)

    threading.Thread(target=worker, name="prompt-reader", daemon=True).start()
    return await future


async def prompt_loop(agent: Agent, read: Callable[[str], str] = console.input) -> int:
    """Read requests until quit/exit or EOF. Agent errors are logged, never fatal."""
    while True:
        try:
            text = (await read_line(read, PROMPT)).strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\nOk, bye!")
            return 0

        if text.lower() in EXIT_WORDS:
            console.print("Ok, bye!")
            return 0
        if not text:
            continue

        try:
            async for event in agent.stream(text):
                render(event)
        except Exception as e:
            logger.error(f"Error communicating with the model: {e}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="toolchat", description="Chat with a model that can call tools.")
    parser.add_argument("--list-tools", action="store_true", help="print the tool catalogue and exit")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    args = parser.parse_args(argv)

    setup_logging(args.debug)

    try:
        registry = build_registry()
        if args.list_tools:
            console.print(registry.describe(), markup=False)
            return 0
        settings = get_settings()
        settings.require("openai_api_key")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}", highlight=False)
        return 1

    agent = Agent(registry, settings)
    try:
        return asyncio.run(prompt_loop(agent))
    except KeyboardInterrupt:
        console.print("\nOk, bye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())

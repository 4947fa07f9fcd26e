"""
Main CLI entry point for the SuperTeacher grading assistant.

Usage:
    python src/main.py chat
    python src/main.py chat --workflow simple --demo
    python src/main.py api --port 8000

In the chat console, send an image with ``/image <path>``, ``/reset`` to
start over and ``/quit`` to leave.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt

from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from core.exceptions import ConfigurationError
from core.models import generate_user_id

console = Console()


def load_settings(args) -> Settings:
    """Settings from the environment, with command-line overrides."""
    overrides = {}
    if getattr(args, "workflow", None):
        overrides["workflow"] = args.workflow
    if getattr(args, "demo", False):
        overrides["demo_mode"] = True
    return Settings(**overrides) if overrides else get_settings()


def show_reply(reply: str, step: str) -> None:
    console.print(Panel(Markdown(reply), title="[bold cyan]SuperTeacher[/bold cyan]",
                        subtitle=f"[dim]{step}[/dim]", border_style="cyan", padding=(0, 1)))


async def chat_loop(settings: Settings, user_id: str) -> int:
    """Interactive conversation driving the same engine as the API."""
    from conversation.factory import build_engine

    engine = build_engine(settings)
    reply = await engine.greet(user_id)
    show_reply(reply, (await engine.get_session(user_id)).step.value)

    while True:
        try:
            message = Prompt.ask("[bold green]You[/bold green]")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        message = message.strip()
        if message in ("/quit", "/exit"):
            break
        if message == "/reset":
            reply = await engine.greet(user_id)
        elif message.startswith("/image"):
            path = Path(message[len("/image"):].strip()).expanduser()
            if not path.is_file():
                console.print(f"[red]No such file: {path}[/red]")
                continue
            reply = await engine.handle_image(user_id, path.read_bytes(), filename=path.name)
        else:
            reply = await engine.handle_text(user_id, message)

        show_reply(reply, (await engine.get_session(user_id)).step.value)

    console.print("[dim]Goodbye![/dim]")
    return 0


def command_chat(args) -> int:
    """Start a console conversation."""
    settings = load_settings(args)
    setup_logging(level=args.log_level or "WARNING", log_file=settings.log_file)
    return asyncio.run(chat_loop(settings, args.user or generate_user_id()))


def command_api(args) -> int:
    """Start the API server."""
    import uvicorn

    from api.app import create_app

    app = create_app(settings=load_settings(args))

    console.print("[bold green]Starting API server[/bold green]")
    console.print(f"Host: {args.host}")
    console.print(f"Port: {args.port}")
    console.print(f"Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SuperTeacher - conversational grading assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s chat
  %(prog)s chat --workflow simple --demo
  %(prog)s api --port 8000
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--workflow", choices=["cbse", "simple"], help="Conversation workflow")
    common.add_argument("--demo", action="store_true", help="Canned OCR output and local grading, no API key needed")

    # Chat command
    chat_parser = subparsers.add_parser("chat", parents=[common], help="Chat in the console")
    chat_parser.add_argument("--user", help="User id (default: a new one)")
    chat_parser.add_argument("--log-level", help="Log level (default: WARNING)")

    # API command
    api_parser = subparsers.add_parser("api", aliases=["serve"], parents=[common], help="Start API server")
    api_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to"
    )
    api_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    # Configuration errors are fatal before any conversation starts
    try:
        if args.command == "chat":
            return command_chat(args)
        elif args.command in ("api", "serve"):
            return command_api(args)
    except (ValidationError, ConfigurationError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

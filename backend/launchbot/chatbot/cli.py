#!/usr/bin/env python3
"""
Local chat simulator.

Talks to the same ChatbotProcessor the webhook uses, backed by the configured
database, so the whole login and navigation flow can be tried without a
WhatsApp number:

    python -m launchbot.chatbot.cli --seed
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt

from launchbot.chatbot.processor import ChatbotProcessor
from launchbot.core.auth import DirectoryCredentialVerifier
from launchbot.core.state import InMemorySessionStore
from launchbot.db.base import Base
from launchbot.db.seed import DEMO_PASSWORD, DEMO_USERNAME, seed_demo_data
from launchbot.db.session import db_transaction, get_engine
from launchbot.services.project_directory import SqlProjectDirectory
from launchbot.services.rate_limiter import InMemoryRateLimiterBackend, LoginAttemptLimiter
from launchbot.settings import get_settings

console = Console()

EXIT_WORDS = {"exit", "quit", "sair"}


def build_processor() -> tuple[ChatbotProcessor, InMemorySessionStore]:
    settings = get_settings()
    store = InMemorySessionStore(timeout=timedelta(minutes=settings.chat_session_timeout_minutes))
    directory = SqlProjectDirectory()
    limiter = LoginAttemptLimiter(
        InMemoryRateLimiterBackend(),
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    processor = ChatbotProcessor(
        store,
        directory,
        DirectoryCredentialVerifier(directory),
        limiter,
        timezone=settings.display_timezone,
    )
    return processor, store


async def run_interactive(phone: str) -> None:
    processor, store = build_processor()
    console.print(Panel(f"Simulating WhatsApp chat from [bold]{escape(phone)}[/bold]", border_style="green"))
    console.print("[dim]Type 'sair' to quit.[/dim]")

    while True:
        text = Prompt.ask("[bold cyan]Você[/bold cyan]")
        if text.strip().lower() in EXIT_WORDS:
            console.print("[yellow]Até logo![/yellow]")
            break
        if not text.strip():
            continue

        reply = await processor.handle_message(phone, text)
        console.print(Panel(escape(reply), title="LaunchRocket", border_style="cyan"))
        session = store.get(phone)
        if session is not None:
            console.print(f"[dim]state={session.conversation_state.value}[/dim]")


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the LaunchRocket bot locally")
    parser.add_argument("--phone", default="5511999990000", help="Sender phone number")
    parser.add_argument("--seed", action="store_true", help="Create tables and demo data first")
    args = parser.parse_args()

    if args.seed:
        Base.metadata.create_all(bind=get_engine())
        with db_transaction() as session:
            seed_demo_data(session)
        console.print(
            f"[green]Demo data ready. Log in with {DEMO_USERNAME} / {DEMO_PASSWORD}[/green]"
        )

    asyncio.run(run_interactive(args.phone))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")

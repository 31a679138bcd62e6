"""Typer-based CLI: one-shot venue requests and an interactive shell."""

from __future__ import annotations

import json
import logging
import shlex
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .api.requests import DEFAULT_BOOK_DEPTH, PRICED_ORDER_TYPES
from .console import ConsoleHandlers

if TYPE_CHECKING:
    from .api.requests import EncodedRequest
    from .di import AppContainer
    from .session import DeribitSession


# Import with local function so tests can patch them
def _load_settings(config_path: Optional[Path] = None):
    from .config import load_settings
    return load_settings(config_path)


def _build_container(settings, handlers):
    from .di import build_container
    return build_container(settings, handlers)


app = typer.Typer(help="Deribit WebSocket session CLI")
console = Console()
logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 15.0


def run_cli(argv: list[str] | None = None) -> None:
    """Run CLI with optional argv parameter."""
    app(argv)


@contextmanager
def open_session(config: Optional[Path], *, private: bool = True) -> Iterator["AppContainer"]:
    """Connect (and authenticate for private methods), close on exit."""
    settings = _load_settings(config)
    container = _build_container(settings, ConsoleHandlers(console))
    session = container.session

    if private and settings.credentials is None:
        raise RuntimeError("credentials.client_id / credentials.client_secret are not configured")

    try:
        session.connect()
        if not session.wait_until_open(CONNECT_TIMEOUT):
            raise RuntimeError(f"Could not connect to {settings.connection.uri}")
        if private and not session.wait_until_authenticated(settings.session.auth_timeout):
            raise RuntimeError("Authentication did not complete")
        yield container
    finally:
        session.close()


def _run_request(config: Optional[Path], build: Callable[["DeribitSession"], "EncodedRequest"], *, private: bool = True) -> None:
    with open_session(config, private=private) as container:
        session = container.session
        request = build(session)
        if not session.call(request, container.settings.session.response_timeout):
            raise RuntimeError(f"No reply to {request.method}")


def _fail(action: str, exc: Exception) -> None:
    logger.error("Failed to %s: %s", action, exc, exc_info=True)
    console.print(f"[red]Error:[/red] {exc}")


@app.command()
def summary(
    currency: str = typer.Option("BTC", help="Currency (BTC, ETH, USDC, ...)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show the account summary for a currency."""
    try:
        _run_request(config, lambda s: s.encoder.account_summary(currency))
    except Exception as e:
        _fail("get account summary", e)
        raise typer.Exit(1)


@app.command()
def buy(
    instrument: str = typer.Option(..., help="Instrument name, e.g. BTC-PERPETUAL"),
    amount: float = typer.Option(..., help="Order amount"),
    order_type: str = typer.Option("limit", "--type", help="limit, market, stop_limit, ..."),
    price: Optional[float] = typer.Option(None, help="Price for limit and stop_limit orders"),
    time_in_force: str = typer.Option("good_til_cancelled", help="good_til_cancelled, fill_or_kill, ..."),
    label: str = typer.Option("", help="Custom order label"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Place a buy order."""
    if order_type in PRICED_ORDER_TYPES and price is None:
        console.print(f"[red]Error:[/red] --price is required for {order_type} orders")
        raise typer.Exit(1)
    try:
        _run_request(
            config,
            lambda s: s.encoder.buy(
                instrument,
                amount,
                order_type,
                price,
                time_in_force,
                label,
                s.access_token,
            ),
        )
    except Exception as e:
        _fail("place buy order", e)
        raise typer.Exit(1)


@app.command()
def cancel(
    order_id: str = typer.Argument(..., help="Order ID to cancel"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Cancel an open order."""
    try:
        _run_request(config, lambda s: s.encoder.cancel(order_id))
    except Exception as e:
        _fail("cancel order", e)
        raise typer.Exit(1)


@app.command()
def book(
    instrument: str = typer.Argument(..., help="Instrument name, e.g. BTC-PERPETUAL"),
    depth: int = typer.Option(20, help="Book depth (0 for the default of 20)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show the order book for an instrument."""
    try:
        _run_request(config, lambda s: s.encoder.order_book(instrument, depth), private=False)
    except Exception as e:
        _fail("get order book", e)
        raise typer.Exit(1)


@app.command()
def modify(
    order_id: str = typer.Argument(..., help="Order ID to modify"),
    amount: float = typer.Option(..., help="New amount"),
    price: float = typer.Option(..., help="New price"),
    time_in_force: str = typer.Option("good_til_cancelled", help="New time in force"),
    post_only: bool = typer.Option(False, help="Post-only order"),
    reduce_only: bool = typer.Option(False, help="Reduce-only order"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Modify an open order."""
    try:
        _run_request(
            config,
            lambda s: s.encoder.modify(
                order_id,
                amount,
                price,
                time_in_force,
                post_only=post_only,
                reduce_only=reduce_only,
            ),
        )
    except Exception as e:
        _fail("modify order", e)
        raise typer.Exit(1)


@app.command()
def positions(
    currency: str = typer.Option("BTC", help="Currency"),
    kind: str = typer.Option("future", help="future, option, spot, ..."),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """List open positions."""
    try:
        _run_request(config, lambda s: s.encoder.positions(currency, kind))
    except Exception as e:
        _fail("get positions", e)
        raise typer.Exit(1)


@app.command()
def watch(
    channels: List[str] = typer.Argument(..., help="Channels, e.g. ticker.BTC-PERPETUAL.100ms"),
    seconds: float = typer.Option(10.0, help="How long to stream before unsubscribing"),
    private: bool = typer.Option(False, help="Authenticate first (needed for user.* channels)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Stream channel updates for a while, printing only changed payloads."""
    try:
        with open_session(config, private=private) as container:
            session = container.session
            for channel in channels:
                session.subscribe(channel)
            time.sleep(seconds)
            for channel in channels:
                session.unsubscribe(channel)
    except Exception as e:
        _fail("watch channels", e)
        raise typer.Exit(1)


SHELL_COMMANDS = {
    "summary": "summary [CURRENCY]",
    "buy": "buy INSTRUMENT AMOUNT [TYPE] [PRICE]",
    "cancel": "cancel ORDER_ID",
    "book": "book INSTRUMENT [DEPTH]",
    "modify": "modify ORDER_ID AMOUNT PRICE [TIME_IN_FORCE]",
    "positions": "positions [CURRENCY] [KIND]",
    "subscribe": "subscribe CHANNEL",
    "unsubscribe": "unsubscribe CHANNEL",
    "help": "help",
    "exit": "exit",
}


def _shell_request(session: "DeribitSession", command: str, args: list[str]) -> "EncodedRequest":
    encoder = session.encoder
    if command == "summary":
        return encoder.account_summary(args[0] if args else "BTC")
    if command == "buy":
        order_type = args[2] if len(args) > 2 else "limit"
        price = float(args[3]) if len(args) > 3 else None
        return encoder.buy(args[0], float(args[1]), order_type, price, access_token=session.access_token)
    if command == "cancel":
        return encoder.cancel(args[0])
    if command == "book":
        return encoder.order_book(args[0], int(args[1]) if len(args) > 1 else DEFAULT_BOOK_DEPTH)
    if command == "modify":
        time_in_force = args[3] if len(args) > 3 else "good_til_cancelled"
        return encoder.modify(args[0], float(args[1]), float(args[2]), time_in_force)
    if command == "positions":
        return encoder.positions(args[0] if args else "BTC", args[1] if len(args) > 1 else "future")
    raise ValueError(f"Unknown command {command!r}, type 'help'")


def _print_shell_help() -> None:
    table = Table(title="Commands")
    table.add_column("Usage", style="cyan")
    for usage in SHELL_COMMANDS.values():
        table.add_row(usage)
    console.print(table)


def _shell_loop(container: "AppContainer") -> None:
    session = container.session
    timeout = container.settings.session.response_timeout
    _print_shell_help()

    while True:
        try:
            line = typer.prompt("deriws", prompt_suffix="> ")
        except typer.Abort:
            break

        try:
            words = shlex.split(line)
            if not words:
                continue
            command, args = words[0].lower(), words[1:]
            if command in {"exit", "quit"}:
                break
            if command == "help":
                _print_shell_help()
            elif command == "subscribe":
                session.subscribe(args[0])
            elif command == "unsubscribe":
                session.unsubscribe(args[0])
            else:
                request = _shell_request(session, command, args)
                if not session.call(request, timeout):
                    console.print(f"[yellow]No reply to {request.method}[/yellow]")
        except IndexError:
            console.print(f"[red]Error:[/red] missing argument (usage: {SHELL_COMMANDS[command]})")
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")

        if not session.is_connected:
            console.print("[red]Connection lost[/red]")
            break


@app.command()
def shell(
    private: bool = typer.Option(True, help="Authenticate on connect"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Interactive session reusing one connection for requests and subscriptions."""
    try:
        with open_session(config, private=private) as container:
            _shell_loop(container)
    except Exception as e:
        _fail("run shell", e)
        raise typer.Exit(1)
    console.print("Bye.")


@app.command()
def config_show(
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Print the effective configuration with secrets redacted."""
    try:
        settings = _load_settings(config)
    except Exception as e:
        _fail("load configuration", e)
        raise typer.Exit(1)
    console.print_json(json.dumps(settings.redacted()))

"""Handlers that render replies and channel updates with rich."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.models import AccountSummary, Order, OrderBook, Position
from .api.requests import ReplyKind
from .errors import DeriwsError, RemoteError
from .session.handlers import BaseHandlers


def _kv_table(title: str, rows: list[tuple[str, Any]]) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, str(value))
    return table


class ConsoleHandlers(BaseHandlers):
    """Prints every routed reply and channel update to a rich console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def on_auth(self, result: dict[str, Any]) -> None:
        self.console.print("[green]Authentication successful![/green]")

    def on_account_summary(self, result: dict[str, Any]) -> None:
        summary = AccountSummary.from_result(result)
        self.console.print(_kv_table("Account Summary", [
            ("Balance", summary.balance),
            ("Currency", summary.currency),
            ("Equity", summary.equity),
            ("Initial Margin", summary.initial_margin),
            ("Maintenance Margin", summary.maintenance_margin),
            ("Available Funds", summary.available_funds),
            ("Margin Balance", summary.margin_balance),
        ]))

    def on_buy(self, order: dict[str, Any]) -> None:
        o = Order.from_result(order)
        self.console.print(_kv_table("Buy Order Placed", [
            ("Order ID", o.order_id),
            ("Instrument", o.instrument_name),
            ("Direction", o.direction),
            ("Amount", o.amount),
            ("Price", o.price),
            ("Order Type", o.order_type),
            ("Order State", o.order_state),
            ("Filled Amount", o.filled_amount),
            ("Average Price", o.average_price),
            ("Creation Timestamp", o.creation_timestamp),
            ("Last Update Timestamp", o.last_update_timestamp),
        ]))

    def on_cancel(self, result: dict[str, Any]) -> None:
        o = Order.from_result(result)
        self.console.print(_kv_table("Order Cancelled", [
            ("Order ID", o.order_id),
            ("Time in Force", o.time_in_force),
            ("Order Type", o.order_type),
        ]))

    def on_modify(self, result: dict[str, Any]) -> None:
        o = Order.from_result(result)
        self.console.print(_kv_table("Order Modified", [
            ("Order ID", o.order_id),
            ("New Amount", o.amount),
            ("New Price", o.price),
            ("Order State", o.order_state),
        ]))

    def on_order_book(self, result: dict[str, Any]) -> None:
        book = OrderBook.from_result(result)
        self.console.print(_kv_table(f"Order Book {book.instrument_name}", [
            ("Timestamp", book.timestamp),
            ("Last Price", book.last_price),
            ("Mark Price", book.mark_price),
            ("Open Interest", book.open_interest),
            ("Funding Rate (8h)", book.funding_8h),
        ]))

        levels = Table(title="Depth")
        levels.add_column("Bid Amount", justify="right")
        levels.add_column("Bid", justify="right", style="green")
        levels.add_column("Ask", justify="right", style="red")
        levels.add_column("Ask Amount", justify="right")
        for i in range(max(len(book.bids), len(book.asks))):
            bid = book.bids[i] if i < len(book.bids) else None
            ask = book.asks[i] if i < len(book.asks) else None
            levels.add_row(
                str(bid.amount) if bid else "",
                str(bid.price) if bid else "",
                str(ask.price) if ask else "",
                str(ask.amount) if ask else "",
            )
        self.console.print(levels)

    def on_positions(self, result: list[Any]) -> None:
        if not result:
            self.console.print("No positions found.")
            return

        table = Table(title="Current Positions")
        for column in ("Instrument", "Size", "Direction", "Avg Price", "Mark Price", "Total PnL", "Leverage", "Est. Liq. Price"):
            table.add_column(column)
        for raw in result:
            if not isinstance(raw, dict):
                # subscribe acknowledgements look like this in legacy routing
                table.add_row(str(raw), "", "", "", "", "", "", "")
                continue
            p = Position.from_result(raw)
            table.add_row(
                p.instrument_name,
                str(p.size),
                p.direction,
                str(p.average_price),
                str(p.mark_price),
                str(p.total_profit_loss),
                str(p.leverage),
                str(p.estimated_liquidation_price),
            )
        self.console.print(table)

    def on_subscription_ack(self, kind: ReplyKind, channels: list[Any]) -> None:
        verb = "Subscribed to" if kind is ReplyKind.SUBSCRIBE else "Unsubscribed from"
        self.console.print(f"[cyan]{verb}[/cyan] {', '.join(str(c) for c in channels)}")

    def on_ticker(self, channel: str, data: Any) -> None:
        self._update("Ticker Update", channel, data)

    def on_trades(self, channel: str, data: list[Any]) -> None:
        self._update("Trade Update", channel, data)

    def on_book(self, channel: str, data: dict[str, Any]) -> None:
        self._update("Order Book Update", channel, data)

    def on_update(self, channel: str, data: Any) -> None:
        self._update("Update", channel, data)

    def on_error(self, error: DeriwsError) -> None:
        label = "Error" if isinstance(error, RemoteError) else type(error).__name__
        self.console.print(f"[red]{label}:[/red] {error}")

    def _update(self, title: str, channel: str, data: Any) -> None:
        self.console.print(Panel(json.dumps(data, indent=2), title=f"{title} ({channel})"))

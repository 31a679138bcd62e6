"""Reply models for the RPC results the session knows how to route."""

from __future__ import annotations

from typing import Any


def _num(data: dict[str, Any], key: str, default: float = 0.0) -> float:
    value = data.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _str(data: dict[str, Any], key: str, default: str = "N/A") -> str:
    value = data.get(key)
    return default if value is None else str(value)


class AccountSummary:
    """Represents ``private/get_account_summary`` for one currency."""

    def __init__(
        self,
        currency: str,
        balance: float,
        equity: float,
        initial_margin: float,
        maintenance_margin: float,
        available_funds: float,
        margin_balance: float,
    ):
        self.currency = currency
        self.balance = balance
        self.equity = equity
        self.initial_margin = initial_margin
        self.maintenance_margin = maintenance_margin
        self.available_funds = available_funds
        self.margin_balance = margin_balance

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> "AccountSummary":
        return cls(
            currency=_str(result, "currency"),
            balance=_num(result, "balance"),
            equity=_num(result, "equity"),
            initial_margin=_num(result, "initial_margin"),
            maintenance_margin=_num(result, "maintenance_margin"),
            available_funds=_num(result, "available_funds"),
            margin_balance=_num(result, "margin_balance"),
        )


class Order:
    """Represents an order as returned by buy, edit and cancel."""

    def __init__(
        self,
        order_id: str,
        instrument_name: str,
        direction: str,
        amount: float,
        price: float,
        order_type: str,
        order_state: str,
        time_in_force: str = "N/A",
        filled_amount: float = 0.0,
        average_price: float = 0.0,
        creation_timestamp: int = 0,
        last_update_timestamp: int = 0,
    ):
        self.order_id = order_id
        self.instrument_name = instrument_name
        self.direction = direction
        self.amount = amount
        self.price = price
        self.order_type = order_type
        self.order_state = order_state
        self.time_in_force = time_in_force
        self.filled_amount = filled_amount
        self.average_price = average_price
        self.creation_timestamp = creation_timestamp
        self.last_update_timestamp = last_update_timestamp

    @classmethod
    def from_result(cls, order: dict[str, Any]) -> "Order":
        return cls(
            order_id=_str(order, "order_id"),
            instrument_name=_str(order, "instrument_name"),
            direction=_str(order, "direction"),
            amount=_num(order, "amount"),
            # market orders report price as the string "market_price"
            price=_num(order, "price"),
            order_type=_str(order, "order_type"),
            order_state=_str(order, "order_state"),
            time_in_force=_str(order, "time_in_force"),
            filled_amount=_num(order, "filled_amount"),
            average_price=_num(order, "average_price"),
            creation_timestamp=int(_num(order, "creation_timestamp")),
            last_update_timestamp=int(_num(order, "last_update_timestamp")),
        )


class BookLevel:
    def __init__(self, price: float, amount: float):
        self.price = price
        self.amount = amount


class OrderBook:
    """Represents a ``public/get_order_book`` snapshot."""

    def __init__(
        self,
        instrument_name: str,
        timestamp: int,
        bids: list[BookLevel],
        asks: list[BookLevel],
        *,
        last_price: float = 0.0,
        mark_price: float = 0.0,
        open_interest: float = 0.0,
        funding_8h: float = 0.0,
    ):
        self.instrument_name = instrument_name
        self.timestamp = timestamp
        self.bids = bids
        self.asks = asks
        self.last_price = last_price
        self.mark_price = mark_price
        self.open_interest = open_interest
        self.funding_8h = funding_8h

    @property
    def best_bid(self) -> BookLevel | None:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> BookLevel | None:
        return self.asks[0] if self.asks else None

    @staticmethod
    def _levels(raw: Any) -> list[BookLevel]:
        levels: list[BookLevel] = []
        if not isinstance(raw, list):
            return levels
        for entry in raw:
            # [price, amount] or, on book channels, [action, price, amount]
            if isinstance(entry, list) and len(entry) >= 2:
                if isinstance(entry[0], str) and len(entry) >= 3:
                    levels.append(BookLevel(float(entry[1]), float(entry[2])))
                else:
                    levels.append(BookLevel(float(entry[0]), float(entry[1])))
        return levels

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> "OrderBook":
        return cls(
            instrument_name=_str(result, "instrument_name"),
            timestamp=int(_num(result, "timestamp")),
            bids=cls._levels(result.get("bids")),
            asks=cls._levels(result.get("asks")),
            last_price=_num(result, "last_price"),
            mark_price=_num(result, "mark_price"),
            open_interest=_num(result, "open_interest"),
            funding_8h=_num(result, "funding_8h"),
        )


class Position:
    """Represents one entry of ``private/get_positions``."""

    def __init__(
        self,
        instrument_name: str,
        size: float,
        direction: str,
        average_price: float,
        mark_price: float,
        total_profit_loss: float,
        floating_profit_loss: float = 0.0,
        realized_profit_loss: float = 0.0,
        initial_margin: float = 0.0,
        maintenance_margin: float = 0.0,
        leverage: float = 0.0,
        estimated_liquidation_price: float = 0.0,
    ):
        self.instrument_name = instrument_name
        self.size = size
        self.direction = direction
        self.average_price = average_price
        self.mark_price = mark_price
        self.total_profit_loss = total_profit_loss
        self.floating_profit_loss = floating_profit_loss
        self.realized_profit_loss = realized_profit_loss
        self.initial_margin = initial_margin
        self.maintenance_margin = maintenance_margin
        self.leverage = leverage
        self.estimated_liquidation_price = estimated_liquidation_price

    @classmethod
    def from_result(cls, position: dict[str, Any]) -> "Position":
        return cls(
            instrument_name=_str(position, "instrument_name"),
            size=_num(position, "size"),
            direction=_str(position, "direction"),
            average_price=_num(position, "average_price"),
            mark_price=_num(position, "mark_price"),
            total_profit_loss=_num(position, "total_profit_loss"),
            floating_profit_loss=_num(position, "floating_profit_loss"),
            realized_profit_loss=_num(position, "realized_profit_loss"),
            initial_margin=_num(position, "initial_margin"),
            maintenance_margin=_num(position, "maintenance_margin"),
            leverage=_num(position, "leverage"),
            estimated_liquidation_price=_num(position, "estimated_liquidation_price"),
        )

"""Tests for reply routing in legacy and tagged modes."""

import pytest

from deriws.api.requests import ReplyKind, RequestEncoder
from deriws.errors import ParseError, RemoteError
from deriws.session.router import ResponseRouter, classify_result


class TestClassifyResult:
    """Tests for the shape rules."""

    def test_precedence_order(self):
        assert classify_result({"access_token": "t", "balance": 1}) is ReplyKind.AUTH
        assert classify_result({"balance": 1, "order": {}}) is ReplyKind.ACCOUNT_SUMMARY
        assert classify_result({"order": {}, "order_id": "X"}) is ReplyKind.BUY
        assert classify_result({"order_id": "X", "bids": [], "asks": []}) is ReplyKind.CANCEL
        assert classify_result({"bids": [], "asks": []}) is ReplyKind.ORDER_BOOK
        assert classify_result([]) is ReplyKind.POSITIONS

    def test_unroutable_shapes(self):
        assert classify_result({"bids": []}) is None
        assert classify_result({"something": "else"}) is None
        assert classify_result("ok") is None
        assert classify_result(None) is None


class TestLegacyRouting:
    """Tests for shape-based routing."""

    @pytest.fixture
    def router(self, handlers, state):
        return ResponseRouter(handlers, state, legacy_routing=True)

    def test_auth_reply_authenticates(self, router, handlers, state):
        kind = router.route({"id": 1, "result": {"access_token": "tok1"}})

        assert kind is ReplyKind.AUTH
        assert state.authenticated is True
        assert state.access_token == "tok1"
        handlers.on_auth.assert_called_once_with({"access_token": "tok1"})

    def test_empty_token_still_authenticates(self, router, handlers, state):
        assert router.route({"id": 1, "result": {"access_token": ""}}) is ReplyKind.AUTH

        assert state.authenticated is True
        assert state.access_token == ""
        handlers.on_error.assert_not_called()

    def test_reauthentication_overwrites_token(self, router, state):
        router.route({"result": {"access_token": "tok1"}})
        router.route({"result": {"access_token": "tok2"}})

        assert state.access_token == "tok2"

    def test_account_summary(self, router, handlers):
        result = {"balance": 1.5, "currency": "BTC"}
        assert router.route({"result": result}) is ReplyKind.ACCOUNT_SUMMARY
        handlers.on_account_summary.assert_called_once_with(result)

    def test_buy_receives_inner_order(self, router, handlers):
        order = {"order_id": "O1", "instrument_name": "BTC-PERPETUAL"}
        router.route({"result": {"order": order, "trades": []}})

        handlers.on_buy.assert_called_once_with(order)

    def test_buy_wins_over_cancel(self, router, handlers):
        router.route({"result": {"order": {"order_id": "O1"}, "order_id": "O1"}})

        handlers.on_buy.assert_called_once()
        handlers.on_cancel.assert_not_called()

    def test_modify_reply_hits_cancel_handler(self, router, handlers):
        encoder = RequestEncoder()
        request = encoder.modify("X", 10, 43000.0, "good_til_cancelled")
        router.track(request)

        router.route({"id": request.id, "result": {"order_id": "X", "time_in_force": "gtc"}})

        handlers.on_cancel.assert_called_once_with({"order_id": "X", "time_in_force": "gtc"})
        handlers.on_modify.assert_not_called()

    def test_order_book(self, router, handlers, sample_book_result):
        assert router.route({"result": sample_book_result}) is ReplyKind.ORDER_BOOK
        handlers.on_order_book.assert_called_once_with(sample_book_result)

    def test_positions(self, router, handlers):
        positions = [{"instrument_name": "BTC-PERPETUAL", "size": 1.0}]
        router.route({"result": positions})

        handlers.on_positions.assert_called_once_with(positions)

    def test_subscribe_ack_lands_on_positions(self, router, handlers):
        router.route({"id": 8, "result": ["ticker.BTC-PERPETUAL.100ms"]})

        handlers.on_positions.assert_called_once_with(["ticker.BTC-PERPETUAL.100ms"])
        handlers.on_subscription_ack.assert_not_called()

    def test_unmatched_reply_is_dropped(self, router, handlers):
        assert router.route({"result": {"unknown": 1}}) is None
        assert handlers.method_calls == []

    def test_track_is_noop(self, router):
        router.track(RequestEncoder().cancel("X"))
        assert router.pending == {}


class TestTaggedRouting:
    """Tests for id-based routing."""

    @pytest.fixture
    def router(self, handlers, state):
        return ResponseRouter(handlers, state)

    @pytest.fixture
    def encoder(self):
        return RequestEncoder()

    def test_modify_reply_reaches_modify_handler(self, router, handlers, encoder):
        request = encoder.modify("X", 10, 43000.0)
        router.track(request)

        kind = router.route({"id": request.id, "result": {"order_id": "X", "time_in_force": "gtc"}})

        assert kind is ReplyKind.MODIFY
        handlers.on_modify.assert_called_once_with({"order_id": "X", "time_in_force": "gtc"})
        handlers.on_cancel.assert_not_called()

    def test_modify_reply_with_order_envelope(self, router, handlers, encoder):
        request = encoder.modify("X", 10, 43000.0)
        router.track(request)

        router.route({"id": request.id, "result": {"order": {"order_id": "X"}, "trades": []}})

        handlers.on_modify.assert_called_once_with({"order_id": "X"})
        handlers.on_buy.assert_not_called()

    def test_cancel_still_routes_to_cancel(self, router, handlers, encoder):
        request = encoder.cancel("X")
        router.track(request)

        assert router.route({"id": request.id, "result": {"order_id": "X"}}) is ReplyKind.CANCEL
        handlers.on_cancel.assert_called_once()

    def test_subscribe_ack(self, router, handlers, encoder):
        request = encoder.subscribe("book.BTC-PERPETUAL.100ms")
        router.track(request)

        router.route({"id": request.id, "result": ["book.BTC-PERPETUAL.100ms"]})

        handlers.on_subscription_ack.assert_called_once_with(
            ReplyKind.SUBSCRIBE, ["book.BTC-PERPETUAL.100ms"]
        )
        handlers.on_positions.assert_not_called()

    def test_entry_is_consumed(self, router, encoder):
        request = encoder.positions("btc")
        router.track(request)
        assert router.pending == {request.id: ReplyKind.POSITIONS}

        router.route({"id": request.id, "result": []})
        assert router.pending == {}

    def test_unknown_id_falls_back_to_shape(self, router, handlers):
        router.route({"id": 999, "result": {"order": {"order_id": "O1"}, "order_id": "O1"}})

        handlers.on_buy.assert_called_once_with({"order_id": "O1"})

    def test_auth_reply_without_token_is_parse_error(self, router, handlers, state, encoder):
        request = encoder.encode("public/auth", {})
        router.track(request)

        assert router.route({"id": request.id, "result": {"token_type": "bearer"}}) is None

        assert state.authenticated is False
        error = handlers.on_error.call_args.args[0]
        assert isinstance(error, ParseError)

    def test_wrong_shape_for_kind(self, router, handlers, encoder):
        request = encoder.account_summary("btc")
        router.track(request)

        router.route({"id": request.id, "result": []})

        handlers.on_account_summary.assert_not_called()
        assert isinstance(handlers.on_error.call_args.args[0], ParseError)

    def test_error_reply_pops_entry(self, router, handlers, encoder):
        request = encoder.buy("BTC-PERPETUAL", 10, "market")
        router.track(request)

        router.route({"id": request.id, "error": {"code": 13009, "message": "unauthorized"}})

        assert router.pending == {}
        error = handlers.on_error.call_args.args[0]
        assert isinstance(error, RemoteError)
        assert error.message == "unauthorized"
        assert error.code == 13009


class TestErrors:
    """Tests for error replies."""

    def test_missing_message_defaults(self, handlers, state):
        router = ResponseRouter(handlers, state, legacy_routing=True)
        router.route({"error": {"code": 10000}})

        error = handlers.on_error.call_args.args[0]
        assert error.message == "Unknown error"
        assert str(error) == "Unknown error (code 10000)"

    def test_message_without_result_or_error(self, handlers, state):
        router = ResponseRouter(handlers, state)
        assert router.route({"method": "heartbeat", "params": {"type": "heartbeat"}}) is None
        assert handlers.method_calls == []

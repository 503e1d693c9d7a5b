import asyncio
import unittest
from unittest.mock import MagicMock, patch

from figgie_client.errors import ChannelClosedError, MissingSessionError, SessionAlreadyActiveError
from figgie_client.events import parse_event
from figgie_client.lifecycle import Phase
from figgie_client.session import GameSession
from figgie_client.models import Suit

from helpers import (
    FakeWebSocket, ME, ROOM_ID, bootstrap, connector, game_ended_msg, hand, player, quote_msg,
    round_ended_msg, round_started_msg, trade_msg,
)

T = 1_700_000_000


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.now = T
        self.ws = FakeWebSocket()
        # long tick interval: tests drive the countdown by calling tick()
        self.session = GameSession(bootstrap(), url="ws://test", connect=connector(self.ws),
                                   clock=lambda: self.now, tick_interval=3600, round_duration=240)

    async def asyncTearDown(self):
        await self.session.close()

    def end_rounds(self):
        return [m for m in self.ws.sent_json if m["type"] == "EndRound"]


class TestSessionLifecycle(SessionTestCase):
    async def test_requires_bootstrap(self):
        with self.assertRaises(MissingSessionError):
            GameSession(None)

    async def test_context_manager_opens_and_closes(self):
        async with self.session as s:
            self.assertTrue(s.is_open)
            self.assertTrue(s.channel.is_open)
            self.assertIsNotNone(s._ticker)
        self.assertFalse(self.session.is_open)
        self.assertTrue(self.ws.closed)
        self.assertIsNone(self.session._ticker)

    async def test_close_on_error_exit(self):
        with self.assertRaises(RuntimeError):
            async with self.session:
                raise RuntimeError("boom")
        self.assertTrue(self.ws.closed)
        self.assertFalse(self.session.is_open)

    async def test_single_session_per_room_and_player(self):
        other = GameSession(bootstrap(), url="ws://test", connect=connector(FakeWebSocket()),
                            clock=lambda: self.now, tick_interval=3600)
        async with self.session:
            with self.assertRaises(SessionAlreadyActiveError):
                await other.open()
        # once the first one is gone the pair is free again
        await other.open()
        self.assertTrue(other.is_open)
        await other.close()

    async def test_failed_connect_releases_pair(self):
        async def refuse(url):
            raise ConnectionRefusedError(url)
        session = GameSession(bootstrap(), url="ws://test", connect=refuse, tick_interval=3600)
        with self.assertRaises(ConnectionRefusedError):
            await session.open()
        self.assertFalse(session.is_open)
        async with self.session:
            self.assertTrue(self.session.is_open)


class TestCountdown(SessionTestCase):
    async def test_expiry_sends_exactly_one_end_round(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
            for t in range(T, T + 241):
                self.now = t
                await self.session.tick()
            # by T+241 exactly one EndRound has gone out
            self.assertEqual(self.end_rounds(), [{"type": "EndRound", "payload": {"round_id": 1, "room_id": ROOM_ID}}])
            self.assertEqual(self.session.state.phase, Phase.ENDING)
            for t in range(T + 241, T + 260):
                self.now = t
                await self.session.tick()
            self.assertEqual(len(self.end_rounds()), 1)

    async def test_late_start_converges_to_deadline(self):
        async with self.session:
            self.now = T + 200
            self.session.apply(parse_event(round_started_msg(1, T)))
            self.assertEqual(await self.session.tick(), 40)
            self.assertEqual(self.session.remaining, 40)

    async def test_server_end_before_timer(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
            self.now = T + 100
            self.session.apply(parse_event(round_ended_msg(1, T + 100, "Heart", [player(ME, "Alex", 360)])))
            for t in range(T + 100, T + 300):
                self.now = t
                await self.session.tick()
            self.assertEqual(self.end_rounds(), [])
            self.assertEqual(self.session.state.phase, Phase.ENDED)

    async def test_timer_then_server_end(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
            self.now = T + 240
            await self.session.tick()
            self.session.apply(parse_event(round_ended_msg(1, T + 240, "Heart", [player(ME, "Alex", 360)])))
            self.now = T + 241
            await self.session.tick()
            self.assertEqual(len(self.end_rounds()), 1)
            self.assertEqual(self.session.state.phase, Phase.ENDED)

    async def test_countdown_survives_closed_channel(self):
        ticks = MagicMock()
        self.session.on_tick(ticks)
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
        # channel is gone; the countdown still ticks and the dropped EndRound is reported
        self.now = T + 240
        self.assertEqual(await self.session.tick(), 0)
        self.assertEqual(self.session.state.phase, Phase.ENDING)
        self.assertIsNotNone(self.session.dispatcher.last_error)
        ticks.assert_called_with(0)

    async def test_no_countdown_before_first_round(self):
        async with self.session:
            self.assertIsNone(await self.session.tick())
            self.assertIsNone(self.session.remaining)


class TestSessionActions(SessionTestCase):
    async def test_manual_end_round_blocks_timer(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
            self.now = T + 30
            self.assertTrue(await self.session.end_round())
            self.now = T + 240
            await self.session.tick()
            self.assertEqual(len(self.end_rounds()), 1)

    async def test_start_next_round_is_optimistic(self):
        started = MagicMock()
        self.session.on_round_start(started)
        async with self.session:
            s = self.session
            s.apply(parse_event(round_started_msg(1, T)))
            s.apply(parse_event(trade_msg("robot_1", ME, "Heart", 20)))
            # not allowed while the round is running
            self.assertFalse(await s.start_next_round())
            s.apply(parse_event(round_ended_msg(1, T + 240, "Heart", [player(ME, "Alex", 370)])))
            self.now = T + 260
            self.assertTrue(await s.start_next_round())
            self.assertEqual(self.ws.sent_json[-1],
                             {"type": "StartRound", "payload": {"round_id": 2, "room_id": ROOM_ID}})
            self.assertEqual(s.state.round_id, 2)
            self.assertTrue(s.state.lifecycle.provisional)
            self.assertEqual(s.state.phase, Phase.ACTIVE)
            self.assertEqual(len(s.state.trades), 0)
            self.assertEqual(s.state.me.suit_deltas, [0, 0, 0, 0])
            self.assertEqual(s.remaining, 240)
            s.apply(parse_event(round_started_msg(2, T + 262, cash=370, player_hand=hand(1, 1, 4, 4))))
            self.assertFalse(s.state.lifecycle.provisional)
            self.assertEqual(s.state.lifecycle.start_timestamp, T + 262)
            self.assertEqual(s.state.current_hand()[Suit.HEART], 4)
            self.assertEqual(started.call_count, 3)

    async def test_start_next_round_on_closed_channel_restores_state(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(1, T)))
            self.session.apply(parse_event(round_ended_msg(1, T + 240, "Club", [player(ME, "Alex", 300)])))
        ended = self.session.state
        self.assertFalse(await self.session.start_next_round())
        self.assertIs(self.session.state, ended)

    async def test_end_game_leaves_without_waiting(self):
        async with self.session:
            self.session.apply(parse_event(round_started_msg(3, T)))
            self.assertTrue(await self.session.end_game())
            self.assertFalse(self.session.is_open)
        self.assertEqual(self.ws.sent_json[-1],
                         {"type": "EndGame", "payload": {"room_id": ROOM_ID, "round_id": 3, "player_id": ME}})
        self.assertTrue(self.ws.closed)

    async def test_quotes_pass_through(self):
        async with self.session:
            self.assertTrue(await self.session.place_quote("Club", "Bid", 4))
            self.assertTrue(await self.session.cancel_quote(Suit.CLUB, "Bid", 4))
        self.assertEqual([m["type"] for m in self.ws.sent_json], ["PlaceQuote", "CancelQuote"])


class TestSessionRun(SessionTestCase):
    async def test_run_consumes_until_game_end(self):
        trades, round_ends, game_ends = MagicMock(), MagicMock(), MagicMock()
        self.session.on_trade(trades)
        self.session.on_round_end(round_ends)
        self.session.on_game_end(game_ends)
        final_players = [player(ME, "Alex", 380), player("robot_1", "Robot 1", 320)]
        for m in [
            round_started_msg(1, T),
            quote_msg("QuotePlaced", "robot_1", "Heart", "Bid", 20),
            "garbage",
            trade_msg("robot_1", ME, "Heart", 20),
            round_ended_msg(1, T + 240, "Heart", final_players),
            game_ended_msg(final_players),
            trade_msg("robot_1", ME, "Heart", 99),
        ]:
            self.ws.push(m)
        async with self.session:
            state = await self.session.run()
        self.assertTrue(state.game_over)
        self.assertEqual(len(state.trades), 1)
        self.assertTrue(state.book.is_empty())
        self.assertEqual([r.info.id for r in state.final_standings], [ME, "robot_1"])
        trades.assert_called_once()
        round_ends.assert_called_once_with(state.round_results, Suit.HEART)
        game_ends.assert_called_once_with(state.final_standings)
        self.assertTrue(self.ws.closed)
        self.assertFalse(self.session.is_open)

    async def test_run_stops_when_server_hangs_up(self):
        self.ws.push(round_started_msg(1, T))
        self.ws.finish()
        async with self.session:
            state = await self.session.run()
        self.assertEqual(state.round_id, 1)
        self.assertFalse(state.game_over)
        self.assertFalse(self.session.is_open)

    async def test_handler_errors_do_not_break_the_stream(self):
        def explode(*_):
            raise ValueError("handler bug")
        self.session.on_event(explode)
        async with self.session:
            with self.assertLogs("figgie_client.session", level="ERROR"):
                self.session.apply(parse_event(round_started_msg(1, T)))
            self.session.apply(parse_event(trade_msg("robot_1", ME, "Spade", 5)))
        self.assertEqual(self.session.state.me.cash, 305)

    async def test_discarded_event_fires_nothing(self):
        handler = MagicMock()
        self.session.on_event(handler)
        self.session.apply(parse_event(round_started_msg(1, T, pid="robot_2")))
        handler.assert_not_called()


class RelayWebSocket(FakeWebSocket):
    """Runs a callback while a send is in flight, like a reply racing the request."""

    def __init__(self, on_send):
        super().__init__()
        self.on_send = on_send

    async def send(self, message):
        await super().send(message)
        await asyncio.sleep(0)
        self.on_send(message)


class BrokenWebSocket(FakeWebSocket):
    async def send(self, message):
        raise ConnectionResetError("transport gone")


class TestSessionRaces(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.now = T

    def make_session(self, ws, tick_interval=3600):
        return GameSession(bootstrap(), url="ws://test", connect=connector(ws),
                           clock=lambda: self.now, tick_interval=tick_interval, round_duration=240)

    async def test_confirmed_round_during_send_is_last_round_start(self):
        def confirm(message):
            if '"StartRound"' in message:
                session.apply(parse_event(round_started_msg(2, T + 262)))

        seen = []
        session = self.make_session(RelayWebSocket(confirm))
        session.on_round_start(lambda lc: seen.append((lc.round_id, lc.provisional)))
        async with session:
            session.apply(parse_event(round_started_msg(1, T)))
            session.apply(parse_event(round_ended_msg(1, T + 240, "Heart", [player(ME, "Alex", 300)])))
            self.now = T + 260
            self.assertTrue(await session.start_next_round())
            self.assertFalse(session.state.lifecycle.provisional)
            self.assertEqual(session.state.lifecycle.start_timestamp, T + 262)
        self.assertEqual(seen, [(1, False), (2, False)])

    async def test_countdown_survives_transport_error(self):
        session = self.make_session(BrokenWebSocket(), tick_interval=0.01)
        async with session:
            session.apply(parse_event(round_started_msg(1, T)))
            self.now = T + 240
            with self.assertLogs("figgie_client.dispatcher", level="WARNING"):
                await asyncio.sleep(0.05)
            ticker = session._ticker
            self.assertFalse(ticker.done())
            self.assertEqual(session.state.phase, Phase.ENDING)
            self.assertIsInstance(session.dispatcher.last_error, ChannelClosedError)

    async def test_tick_loop_logs_and_keeps_going(self):
        session = self.make_session(FakeWebSocket(), tick_interval=0.01)
        with patch.object(session, "tick", side_effect=RuntimeError("boom")) as tick:
            async with session:
                with self.assertLogs("figgie_client.session", level="ERROR"):
                    await asyncio.sleep(0.05)
                self.assertFalse(session._ticker.done())
        self.assertGreater(tick.call_count, 1)

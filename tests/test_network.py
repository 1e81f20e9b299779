from __future__ import annotations

import asyncio
import json
import logging

from race_client.config import RaceConfig
from race_client.core import ConnectionSession, ReconciliationEngine, SessionState
from race_client.core.reconciler import SAVE_LOADED_MESSAGE
from race_shared.protocol import ErrorCode, PacketType, ResetPacket, ServerMessagePacket, TransportError

CONFIG = RaceConfig(room="room-1", seed="S", hostname="127.0.0.1", port=43384)


class FakeWriter:
    """Minimal asyncio.StreamWriter stand-in that records written bytes."""

    def __init__(self, fail: bool = False, fail_close: bool = False) -> None:
        self.data = bytearray()
        self.fail = fail
        self.fail_close = fail_close
        self.close_calls = 0

    def write(self, data: bytes) -> None:
        if self.fail:
            raise BrokenPipeError("broken pipe")
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise OSError("already closed")

    async def wait_closed(self) -> None:
        pass

    def packets(self):
        return [json.loads(line) for line in bytes(self.data).splitlines()]


async def _run_session(chunks, writer=None, connection_id=7, setup=None):
    session = ConnectionSession(CONFIG, connection_id=connection_id)
    if setup:
        setup(session)
    reader = asyncio.StreamReader()
    writer = writer or FakeWriter()
    session.attach(reader, writer)
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    await session.wait_until_closed()
    return session, writer


def test_packets_dispatched_in_arrival_order():
    seen = []

    async def handler(packet):
        seen.append((packet.message, packet.client_id))

    def setup(session):
        session.register_handler(PacketType.SERVER_MESSAGE, handler)

    session, writer = asyncio.run(
        _run_session(
            [
                b'{"type":"SERVER_MESSAGE","message":"a"}\n{"type":"SERVER_MES',
                b'SAGE","message":"b","clientId":99}\n{"type":"SERVER_MESSAGE","message":"c"}\n',
            ],
            setup=setup,
        )
    )

    assert seen == [("a", 7), ("b", 7), ("c", 7)]
    assert session.state is SessionState.CLOSED
    assert writer.close_calls == 1


def test_malformed_payloads_are_dropped_and_loop_continues(caplog):
    seen = []

    async def handler(packet):
        seen.append(packet.message)

    def setup(session):
        session.register_handler(PacketType.SERVER_MESSAGE, handler)

    with caplog.at_level(logging.WARNING):
        asyncio.run(
            _run_session(
                [b'garbage\n{"no":"type"}\n{"type":"SERVER_MESSAGE","message":"ok"}\n'],
                setup=setup,
            )
        )

    assert seen == ["ok"]
    assert "[Host Client]: Error handling packet" in caplog.text


def test_deeply_nested_payload_is_dropped_and_loop_continues(caplog):
    seen = []

    async def handler(packet):
        seen.append(packet.message)

    def setup(session):
        session.register_handler(PacketType.SERVER_MESSAGE, handler)

    with caplog.at_level(logging.WARNING):
        session, _ = asyncio.run(
            _run_session(
                [b"[" * 200000 + b"\n", b'{"type":"SERVER_MESSAGE","message":"ok"}\n'],
                setup=setup,
            )
        )

    assert seen == ["ok"]
    assert session.state is SessionState.CLOSED
    assert "[Host Client]: Error handling packet" in caplog.text


def test_handler_failure_does_not_stop_loop():
    seen = []

    async def broken(packet):
        raise RuntimeError("boom")

    async def handler(packet):
        seen.append(packet.message)

    def setup(session):
        session.register_handler(PacketType.RESET, broken)
        session.register_handler(PacketType.SERVER_MESSAGE, handler)

    asyncio.run(_run_session([b'{"type":"RESET"}\n{"type":"SERVER_MESSAGE","message":"after"}\n'], setup=setup))

    assert seen == ["after"]


def test_new_participant_with_save_gets_message_then_reset():
    engines = []

    def setup(session):
        engines.append(ReconciliationEngine(session, CONFIG))

    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=7)
        setup(session)
        reader = asyncio.StreamReader()
        writer = FakeWriter()
        session.attach(reader, writer)
        reader.feed_data(b'{"type":"UPDATE_CLIENT_DATA","data":{"fileNum":3,"seed":"X"}}\n')
        while len(writer.packets()) < 2:
            await asyncio.sleep(0)
        await session.close()
        return writer

    writer = asyncio.run(scenario())

    assert writer.packets() == [
        {"type": "SERVER_MESSAGE", "message": SAVE_LOADED_MESSAGE, "targetClientId": 7, "roomId": "room-1"},
        {"type": "RESET", "targetClientId": 7, "roomId": "room-1"},
    ]
    assert engines[0].registry.get(7) == {"fileNum": 3, "seed": "X"}


def test_malformed_payload_leaves_registry_untouched():
    engines = []

    def setup(session):
        engines.append(ReconciliationEngine(session, CONFIG))

    asyncio.run(_run_session([b'{"type":"UPDATE_CLIENT_DATA","data":\n{"data":{"fileNum":255}}\n'], setup=setup))

    assert len(engines[0].registry) == 0


def test_send_stamps_room_and_keeps_explicit_room():
    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=1)
        writer = FakeWriter()
        session.attach(asyncio.StreamReader(), writer)
        await session.send(ResetPacket())
        await session.send(ResetPacket(room_id="other"))
        await session.close()
        return writer

    writer = asyncio.run(scenario())

    assert writer.packets() == [
        {"type": "RESET", "roomId": "room-1"},
        {"type": "RESET", "roomId": "other"},
    ]


def test_quiet_packets_are_not_logged(caplog):
    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=1)
        session.attach(asyncio.StreamReader(), FakeWriter())
        await session.send(ServerMessagePacket(message="hush", quiet=True))
        await session.send(ResetPacket())
        await session.close()

    with caplog.at_level(logging.INFO):
        asyncio.run(scenario())

    assert "<- SERVER_MESSAGE packet" not in caplog.text
    assert "[Host Client]: <- RESET packet" in caplog.text


def test_write_failure_closes_session_and_drops_later_sends():
    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=1)
        writer = FakeWriter(fail=True)
        session.attach(asyncio.StreamReader(), writer)
        await session.send(ServerMessagePacket(message="first"))
        state_after_failure = session.state
        writer.fail = False
        await session.send(ResetPacket())
        await session.close()
        return state_after_failure, writer

    state, writer = asyncio.run(scenario())

    assert state is SessionState.CLOSED
    assert writer.data == b""
    assert writer.close_calls == 1


def test_read_error_closes_session():
    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=1)
        reader = asyncio.StreamReader()
        writer = FakeWriter()
        session.attach(reader, writer)
        reader.set_exception(ConnectionResetError("reset by peer"))
        await session.wait_until_closed()
        return session, writer

    session, writer = asyncio.run(scenario())

    assert session.state is SessionState.CLOSED
    assert writer.close_calls == 1


def test_disconnect_is_idempotent_and_close_errors_are_logged(caplog):
    async def scenario():
        session = ConnectionSession(CONFIG, connection_id=1)
        writer = FakeWriter(fail_close=True)
        session.attach(asyncio.StreamReader(), writer)
        session.disconnect()
        session.disconnect()
        await session.close()
        return session, writer

    with caplog.at_level(logging.INFO):
        session, writer = asyncio.run(scenario())

    assert session.state is SessionState.CLOSED
    assert writer.close_calls == 1
    assert "[Host Client]: Error disconnecting: already closed" in caplog.text
    assert caplog.text.count("Disconnected") == 1


def test_connect_failure_raises_transport_error():
    async def scenario():
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        session = ConnectionSession(RaceConfig(room="r", seed="s", hostname="127.0.0.1", port=port))
        try:
            await session.connect()
        except TransportError as exc:
            return session, exc
        return session, None

    session, exc = asyncio.run(scenario())

    assert exc is not None
    assert exc.code == ErrorCode.CONNECT_FAILED
    assert session.state is SessionState.CLOSED


def test_connect_round_trip_against_local_relay():
    async def scenario():
        received = []
        done = asyncio.Event()

        async def relay(reader, writer):
            line = await reader.readline()
            received.append(json.loads(line))
            writer.write(b'{"type":"SERVER_MESSAGE","message":"welcome"}\n')
            await writer.drain()
            writer.close()
            done.set()

        server = await asyncio.start_server(relay, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        messages = []

        async def on_message(packet):
            messages.append(packet.message)

        session = ConnectionSession(RaceConfig(room="r", seed="s", hostname="127.0.0.1", port=port))
        session.register_handler(PacketType.SERVER_MESSAGE, on_message)
        await session.connect()
        assert session.is_open
        await session.send(ResetPacket())
        await done.wait()
        await session.wait_until_closed()
        await session.close()
        server.close()
        await server.wait_closed()
        return received, messages, session

    received, messages, session = asyncio.run(scenario())

    assert received == [{"type": "RESET", "roomId": "r"}]
    assert messages == ["welcome"]
    assert session.state is SessionState.CLOSED

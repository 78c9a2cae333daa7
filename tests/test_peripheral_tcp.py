"""Tests for the TCP peripheral emulation (wire format, server, client)."""

import asyncio
import struct
from pathlib import Path

import pytest
import pytest_asyncio

from blobcast.config import Config
from blobcast.node import PeripheralNode
from blobcast.peripheral import (
    READ_BANNER,
    PeripheralConnection,
    PeripheralMessage,
    PeripheralMessageType,
    connect_to_peripheral,
    fetch_blob,
)
from blobcast.transfer import SessionState


def reader_for(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


def raw_message(header: bytes, data: bytes = b"") -> bytes:
    total = len(header) + len(data)
    return struct.pack(">I", total) + struct.pack(">I", len(header)) + header + data


class TestPeripheralMessage:

    @pytest.mark.asyncio
    async def test_notify_keeps_binary_data(self) -> None:
        """NOTIFY data passes through the wire format unchanged."""
        message = PeripheralMessage(type=PeripheralMessageType.NOTIFY, data=b"\x00\xff\x10")
        parsed = await PeripheralMessage.from_reader(reader_for(message.to_bytes()))
        assert parsed.type == PeripheralMessageType.NOTIFY
        assert parsed.data == b"\x00\xff\x10"
        assert parsed.headers == {}

    @pytest.mark.asyncio
    async def test_headers_survive(self) -> None:
        """Extra header fields are parsed back."""
        message = PeripheralMessage(
            type=PeripheralMessageType.SUBSCRIBE,
            headers={"max_payload_size": 185},
        )
        parsed = await PeripheralMessage.from_reader(reader_for(message.to_bytes()))
        assert parsed.headers == {"max_payload_size": 185}

    @pytest.mark.asyncio
    async def test_eof_returns_none(self) -> None:
        """A closed or truncated stream yields None."""
        assert await PeripheralMessage.from_reader(reader_for(b"")) is None
        assert await PeripheralMessage.from_reader(reader_for(b"\x00\x00")) is None

    @pytest.mark.asyncio
    async def test_oversized_message_rejected(self) -> None:
        """A length prefix over the limit is refused."""
        with pytest.raises(ValueError):
            await PeripheralMessage.from_reader(reader_for(struct.pack(">I", 0xFFFFFFFF)))

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self) -> None:
        """An unknown message type is a ValueError."""
        with pytest.raises(ValueError):
            await PeripheralMessage.from_reader(reader_for(raw_message(b'{"type": "BOGUS"}')))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [b'[1, 2]', b'"x"', b'5', b'null', b'{}'])
    async def test_header_must_be_object_with_type(self, header: bytes) -> None:
        """A header that is not a JSON object with a type is a ValueError."""
        with pytest.raises(ValueError):
            await PeripheralMessage.from_reader(reader_for(raw_message(header)))


@pytest_asyncio.fixture
async def node(tmp_path: Path):
    blob = tmp_path / "served.bin"
    blob.write_bytes(bytes(range(256)) * 4)
    config = Config(file_path=blob, host="127.0.0.1", port=0)
    node = PeripheralNode(config)
    await node.start()
    yield node
    await node.stop()


async def raw_connection(port: int) -> PeripheralConnection:
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    return PeripheralConnection(reader, writer)


async def wait_for_peer_gone(node: PeripheralNode) -> None:
    for _ in range(200):
        if not node.server.has_peer:
            return
        await asyncio.sleep(0.01)


class TestPeripheralServer:

    @pytest.mark.asyncio
    async def test_fetch_blob(self, node: PeripheralNode) -> None:
        """A full fetch returns the served file and leaves the source idle."""
        data = await fetch_blob("127.0.0.1", node.port, 20, timeout=5.0)
        assert data == bytes(range(256)) * 4
        await wait_for_peer_gone(node)
        assert node.source.state == SessionState.IDLE
        assert node.source.stats.sessions_completed == 1

    @pytest.mark.asyncio
    async def test_fetch_empty_blob(self, node: PeripheralNode) -> None:
        """An empty file is fetched as empty bytes."""
        node.config.file_path.write_bytes(b"")
        data = await fetch_blob("127.0.0.1", node.port, 20, timeout=5.0)
        assert data == b""

    @pytest.mark.asyncio
    async def test_sequential_fetches(self, node: PeripheralNode) -> None:
        """A second fetch sees a fresh load of the file."""
        first = await fetch_blob("127.0.0.1", node.port, 50, timeout=5.0)
        node.config.file_path.write_bytes(b"changed")
        await wait_for_peer_gone(node)
        second = await fetch_blob("127.0.0.1", node.port, 50, timeout=5.0)
        assert first == bytes(range(256)) * 4
        assert second == b"changed"

    @pytest.mark.asyncio
    async def test_progress_callback(self, node: PeripheralNode) -> None:
        """The progress callback fires once per frame."""
        seen = []
        await fetch_blob("127.0.0.1", node.port, 101, timeout=5.0,
                         progress_callback=lambda a: seen.append(a.frames_received))
        # 1 length frame + ceil(1024 / 100) data frames
        assert seen == list(range(1, 13))

    @pytest.mark.asyncio
    async def test_read_banner(self, node: PeripheralNode) -> None:
        """A read returns the banner text."""
        client = await connect_to_peripheral("127.0.0.1", node.port)
        try:
            assert await client.read() == READ_BANNER
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_write_with_offset_rejected(self, node: PeripheralNode) -> None:
        """An offset write is answered with attr_not_long."""
        conn = await raw_connection(node.port)
        try:
            await conn.send(PeripheralMessage(
                type=PeripheralMessageType.WRITE, headers={"offset": 2}, data=b"ACK"
            ))
            response = await asyncio.wait_for(conn.receive(), timeout=5.0)
            assert response.type == PeripheralMessageType.WRITE_RESPONSE
            assert response.headers["result"] == "attr_not_long"
        finally:
            await conn.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [b'[1, 2]', b'"x"', b'5'])
    async def test_malformed_header_drops_peer(self, node: PeripheralNode,
                                               header: bytes) -> None:
        """A non-object header closes that connection and the server keeps serving."""
        reader, writer = await asyncio.open_connection("127.0.0.1", node.port)
        try:
            writer.write(raw_message(header))
            await writer.drain()
            assert await asyncio.wait_for(reader.read(), timeout=5.0) == b""
        finally:
            writer.close()
            await writer.wait_closed()

        await wait_for_peer_gone(node)
        data = await fetch_blob("127.0.0.1", node.port, 20, timeout=5.0)
        assert data == bytes(range(256)) * 4

    @pytest.mark.asyncio
    async def test_read_with_bad_offset(self, node: PeripheralNode) -> None:
        """A read offset that is not a non-negative integer reads from 0."""
        conn = await raw_connection(node.port)
        try:
            await conn.send(PeripheralMessage(
                type=PeripheralMessageType.READ, headers={"offset": "2"}
            ))
            response = await asyncio.wait_for(conn.receive(), timeout=5.0)
            assert response.type == PeripheralMessageType.READ_RESPONSE
            assert response.data == READ_BANNER
        finally:
            await conn.close()

    @pytest.mark.asyncio
    async def test_second_peer_refused(self, node: PeripheralNode) -> None:
        """A second central is refused while one is connected."""
        first = await raw_connection(node.port)
        try:
            await first.send(PeripheralMessage(
                type=PeripheralMessageType.SUBSCRIBE, headers={"max_payload_size": 20}
            ))
            notify = await asyncio.wait_for(first.receive(), timeout=5.0)
            assert notify.data == b"1024"

            second = await raw_connection(node.port)
            try:
                refusal = await asyncio.wait_for(second.receive(), timeout=5.0)
                assert refusal.type == PeripheralMessageType.ERROR
                assert refusal.headers["reason"] == "busy"
            finally:
                await second.close()

            # The first peer's session is untouched
            assert node.source.cursor == 1
        finally:
            await first.close()

    @pytest.mark.asyncio
    async def test_disconnect_mid_stream_resets(self, node: PeripheralNode) -> None:
        """Dropping the connection mid-transfer resets the session."""
        conn = await raw_connection(node.port)
        await conn.send(PeripheralMessage(
            type=PeripheralMessageType.SUBSCRIBE, headers={"max_payload_size": 20}
        ))
        await asyncio.wait_for(conn.receive(), timeout=5.0)
        assert node.source.state == SessionState.ANNOUNCING

        await conn.close()
        await wait_for_peer_gone(node)
        assert node.source.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_invalid_payload_size_sends_nothing(self, node: PeripheralNode) -> None:
        """MTU 1 starts no session and emits no frame."""
        with pytest.raises(asyncio.TimeoutError):
            await fetch_blob("127.0.0.1", node.port, 1, timeout=0.3)
        assert node.source.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_get_stats(self, node: PeripheralNode) -> None:
        """Node stats reflect a completed transfer."""
        await fetch_blob("127.0.0.1", node.port, 20, timeout=5.0)
        stats = node.get_stats()
        assert stats["running"] is True
        assert stats["session"]["sessions_completed"] == 1
        assert stats["gate"]["acks_received"] == stats["session"]["frames_sent"]


class TestConnectFailure:

    @pytest.mark.asyncio
    async def test_connect_refused_returns_none(self) -> None:
        """A refused connection gives None."""
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        assert await connect_to_peripheral("127.0.0.1", port, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_fetch_blob_raises_connection_error(self) -> None:
        """fetch_blob raises ConnectionError when it cannot connect."""
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        with pytest.raises(ConnectionError):
            await fetch_blob("127.0.0.1", port, 20, timeout=1.0)

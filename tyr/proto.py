"""BitTorrent peer wire protocol messages."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Protocol

from tyr.bitmap import Bitmap
from tyr.conv import as_uint16, as_uint32
from tyr.readonly import ReadOnly


class _Writer(Protocol):
    def write(self, data: bytes) -> object: ...


class _Reader(Protocol):
    def read(self, size: int) -> bytes: ...


class Message(enum.IntEnum):
    """Peer wire message ids."""

    CHOKE = 0
    UNCHOKE = 1
    INTERESTED = 2
    NOT_INTERESTED = 3
    HAVE = 4
    BITFIELD = 5
    REQUEST = 6
    PIECE = 7
    CANCEL = 8
    # BEP 5, DHT
    PORT = 9
    # BEP 6, fast extension
    SUGGEST = 0x0D
    HAVE_ALL = 0x0E
    HAVE_NONE = 0x0F
    REJECT = 0x10
    ALLOWED_FAST = 0x11
    # BEP 10, extension protocol
    EXTENDED = 20
    BITCOMET_EXTENSION = 0xFF


class HandshakeMismatchError(ValueError):
    """The peer did not open with the BitTorrent v1 protocol string."""

    def __init__(self) -> None:
        super().__init__("handshake string mismatch")


def _reserved_flag(index: int, value: int) -> int:
    b = bytearray(8)
    b[index] = value
    return int.from_bytes(b, "big")


_PSTR_V1 = ReadOnly(b"\x13BitTorrent protocol")

# BEP 6: reserved_byte[7] & 0x04
FAST_EXTENSION_ENABLED = _reserved_flag(7, 0x04)
# BEP 10: reserved_byte[5] & 0x10
EXCHANGE_EXTENSION_ENABLED = _reserved_flag(5, 0x10)

_RESERVED = ReadOnly((EXCHANGE_EXTENSION_ENABLED | FAST_EXTENSION_ENABLED).to_bytes(8, "big"))

_KEEP_ALIVE = b"\x00\x00\x00\x00"


def _read_full(conn: _Reader, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = conn.read(size - len(buf))
        if not chunk:
            if buf:
                raise EOFError(f"unexpected EOF: read {len(buf)} of {size} bytes")
            raise EOFError("EOF")
        buf += chunk
    return bytes(buf)


def _frame(message: Message, payload: bytes = b"") -> bytes:
    return struct.pack(">IB", as_uint32(1 + len(payload)), message) + payload


@dataclass(frozen=True)
class ChunkRequest:
    piece_index: int
    begin: int
    length: int


@dataclass(frozen=True)
class ChunkResponse:
    data: bytes
    begin: int
    piece_index: int

    def request(self) -> ChunkRequest:
        """The request this response answers."""
        return ChunkRequest(
            piece_index=self.piece_index,
            begin=self.begin,
            length=as_uint32(len(self.data)),
        )


@dataclass(frozen=True, repr=False)
class Handshake:
    info_hash: bytes
    peer_id: bytes
    fast_extension: bool = False
    exchange_extensions: bool = False

    def __repr__(self) -> str:
        peer = self.peer_id.decode("utf-8", errors="replace")
        return f"Handshake{{InfoHash='{self.info_hash.hex()}', PeerID='{peer}'}}"


def send_no_payload(conn: _Writer, message: Message) -> None:
    conn.write(_frame(message))


def send_index_only(conn: _Writer, message: Message, index: int) -> None:
    """Send a message whose payload is a single piece index."""
    conn.write(_frame(message, struct.pack(">I", as_uint32(index))))


def send_bitfield(conn: _Writer, bitmap: Bitmap) -> None:
    conn.write(_frame(Message.BITFIELD, bitmap.bitfield()))


def send_choke(w: _Writer) -> None:
    send_no_payload(w, Message.CHOKE)


def send_unchoke(w: _Writer) -> None:
    send_no_payload(w, Message.UNCHOKE)


def send_interested(w: _Writer) -> None:
    send_no_payload(w, Message.INTERESTED)


def send_not_interested(w: _Writer) -> None:
    send_no_payload(w, Message.NOT_INTERESTED)


def send_keep_alive(w: _Writer) -> None:
    w.write(_KEEP_ALIVE)


def send_have(conn: _Writer, piece_index: int) -> None:
    send_index_only(conn, Message.HAVE, piece_index)


def send_suggest(conn: _Writer, index: int) -> None:
    send_index_only(conn, Message.SUGGEST, index)


def send_port(conn: _Writer, port: int) -> None:
    conn.write(_frame(Message.PORT, struct.pack(">H", as_uint16(port))))


def send_handshake(conn: _Writer, info_hash: bytes, peer_id: bytes) -> None:
    """Send ``<pstrlen><pstr><reserved><info_hash><peer_id>`` (68 bytes)."""
    if len(info_hash) != 20:
        raise ValueError(f"info hash must be 20 bytes, got {len(info_hash)}")
    if len(peer_id) != 20:
        raise ValueError(f"peer id must be 20 bytes, got {len(peer_id)}")
    _PSTR_V1.write_to(conn)
    _RESERVED.write_to(conn)
    conn.write(bytes(info_hash))
    conn.write(bytes(peer_id))


def read_handshake(conn: _Reader) -> Handshake:
    """Read a peer's handshake; raise HandshakeMismatchError on a foreign protocol."""
    if not _PSTR_V1.equal_bytes(_read_full(conn, len(_PSTR_V1))):
        raise HandshakeMismatchError()
    reserved = int.from_bytes(_read_full(conn, 8), "big")
    info_hash = _read_full(conn, 20)
    peer_id = _read_full(conn, 20)
    return Handshake(
        info_hash=info_hash,
        peer_id=peer_id,
        fast_extension=bool(reserved & FAST_EXTENSION_ENABLED),
        exchange_extensions=bool(reserved & EXCHANGE_EXTENSION_ENABLED),
    )


def send_piece(conn: _Writer, response: ChunkResponse) -> None:
    header = struct.pack(
        ">IBII",
        as_uint32(len(response.data) + 9),
        Message.PIECE,
        as_uint32(response.piece_index),
        as_uint32(response.begin),
    )
    conn.write(header)
    conn.write(bytes(response.data))


def read_piece_payload(conn: _Reader, size: int) -> ChunkResponse:
    """Read a piece payload of ``size`` bytes (index, begin and block data)."""
    if size < 8:
        raise ValueError(f"piece payload must be at least 8 bytes, got {size}")
    piece_index, begin = struct.unpack(">II", _read_full(conn, 8))
    data = _read_full(conn, size - 8)
    return ChunkResponse(data=data, begin=begin, piece_index=piece_index)


def _send_request_payload(conn: _Writer, message: Message, request: ChunkRequest) -> None:
    payload = struct.pack(
        ">III",
        as_uint32(request.piece_index),
        as_uint32(request.begin),
        as_uint32(request.length),
    )
    conn.write(_frame(message, payload))


def send_request(conn: _Writer, request: ChunkRequest) -> None:
    _send_request_payload(conn, Message.REQUEST, request)


def send_cancel(conn: _Writer, request: ChunkRequest) -> None:
    _send_request_payload(conn, Message.CANCEL, request)


def send_reject(conn: _Writer, request: ChunkRequest) -> None:
    _send_request_payload(conn, Message.REJECT, request)


def read_request_payload(conn: _Reader) -> ChunkRequest:
    piece_index, begin, length = struct.unpack(">III", _read_full(conn, 12))
    return ChunkRequest(piece_index=piece_index, begin=begin, length=length)
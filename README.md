# tyr

Building blocks for a BitTorrent client, each usable on its own:

- `tyr.proto` – peer wire protocol messages: `send_handshake` / `read_handshake`,
  choke, unchoke, interested, not interested, keep-alive, have, bitfield,
  request / cancel / reject, piece, port and suggest. Messages are written to
  any object with a `write(bytes)` method and read from any object with
  `read(size)`.
- `tyr.bitmap` – `Bitmap`, a thread-safe set of piece indexes that renders
  the protocol's bitfield.
- `tyr.flowrate` – `Monitor` for measuring and limiting transfer rates, and
  rate-limited `Reader` and `Writer` wrappers.
- `tyr.fsutil` – cancellable `copy`, `smart_copy` (hard link, falling back to
  a copy across devices), `copy_reader_at`, `fallocate` and `open_pooled`, a
  pool of open file descriptors.
- `tyr.jsonrpc` – a JSON-RPC 2.0 `Handler` that is also a WSGI application,
  and `OpenAPI`, which documents the registered methods.
- Smaller helpers: `tyr.heap` (`Heap`, a min-heap), `tyr.null` (`Null`, an
  optional value with JSON and bencode decoding), `tyr.randstr`
  (`url_safe_str`, `random_bytes`), `tyr.checksum` (`crc32c`), `tyr.pool`
  (object pools and a background `submit`), `tyr.conv` (overflow-checked
  integer conversions), `tyr.readonly` (`ReadOnly` bytes), `tyr.netaddr`
  (public interface addresses) and `tyr.version` (build information and
  `peer_id_prefix`).

## Installation

```
pip install .
```

## Examples

Writing peer wire messages to a binary stream:

```python
import io
from tyr.proto import ChunkResponse, send_have, send_piece

buf = io.BytesIO()
send_piece(buf, ChunkResponse(data=b"hello world", begin=20, piece_index=5))
send_have(buf, 7)
```

Tracking which pieces are present:

```python
from tyr.bitmap import Bitmap

have = Bitmap(10)
have.set(3)
have.set(9)
print(have.count(), have.bitfield())  # 2 b'\x10@'
```

Limiting the rate of writes:

```python
from tyr.flowrate import Writer

with open("out.bin", "wb") as raw, Writer(raw, 1024 * 1024) as limited:
    limited.write(b"x" * 4096)
```

Serving JSON-RPC methods with any WSGI server:

```python
from dataclasses import dataclass, field
from tyr.jsonrpc import Handler, OpenAPI

@dataclass
class EchoIn:
    text: str = field(default="", metadata={"json": "text", "validate": "required"})

@dataclass
class EchoOut:
    text: str = field(default="", metadata={"json": "text"})

def echo(params: EchoIn) -> EchoOut:
    return EchoOut(text=params.text)

handler = Handler(OpenAPI("JSON-RPC", "0.0.1", ""), True, [])
handler.add("echo", echo, EchoIn, EchoOut, "Echo", "Returns its input.")

print(handler.handle('{"jsonrpc": "2.0", "method": "echo", "params": {"text": "hi"}, "id": 1}'))
# {'jsonrpc': '2.0', 'result': {'text': 'hi'}, 'id': 1}
```

`handler` can be passed to a WSGI server to answer POST bodies, and the
`OpenAPI` instance is itself a WSGI application serving the document.

## What this package does not do

It is a set of components, not a client. There is no command to run, no
torrent file parsing, no download or upload engine, no tracker or DHT
support and no web server of its own; `Handler` and `OpenAPI` need a WSGI
server to be reachable over HTTP, and no torrent-management methods are
registered on them.

## Tests

```
pip install .[test]
pytest
```
"""Building blocks for a BitTorrent client: wire protocol, bitmaps, rate limiting, file helpers and JSON-RPC."""

__version__ = "0.1.0"
"""toolhost — a singleton local tool server over loopback JSON-RPC."""

from __future__ import annotations

__version__ = "0.1.0"

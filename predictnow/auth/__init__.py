from __future__ import annotations

from predictnow.auth.access_gate import AccessGate, roster_identities

__all__ = [
    "AccessGate",
    "roster_identities",
]

"""
Network backend interface.

The wire client itself (Electrum/Fulcrum) lives outside the wallet core and
is plugged in by implementing NetworkBackend.
"""

from cashwallet.backends.base import NetworkBackend, NetworkUTXO

__all__ = [
    "NetworkBackend",
    "NetworkUTXO",
]

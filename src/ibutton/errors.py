"""Exceptions raised by the 1-Wire transport and the DS1922 protocol."""
from __future__ import annotations


class IButtonError(Exception):
    """Base class for every failure surfaced by this package."""


class TransportError(IButtonError):
    """The USB session is not open, the bridge reported an error or timed out."""


class IntegrityError(IButtonError):
    """Data read back from the bus does not match what was expected."""


class StateError(IButtonError):
    """An operation was called before the state it depends on was established."""

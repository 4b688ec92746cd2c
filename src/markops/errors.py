"""Error taxonomy shared by the store, the parsing bridge, the CLI and the dashboard.

Each class subclasses the builtin that older call sites already catch, so
``except KeyError`` keeps working for lookups and ``except ValueError`` for
validation.
"""

from __future__ import annotations


class NotFoundError(KeyError):
    """An item, tag, doc, tool or association id does not exist."""

    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind} not found: {ident}")

    def __str__(self) -> str:
        # KeyError.__str__ repr()s its argument; keep messages readable.
        return str(self.args[0])


class InvalidInputError(ValueError):
    """Rejected caller input: blank names, unknown lanes, bad enum values."""


class UpstreamError(RuntimeError):
    """The document parsing bridge could not produce records."""

    def __init__(self, message: str, *, detail: str = "") -> None:
        self.detail = detail
        super().__init__(message)


class TransportError(ConnectionError):
    """The store or the network is unavailable. Never retried at this layer."""

from __future__ import annotations


class CommandRejected(Exception):
    """Raised by a handler before it mutates anything.

    ``code`` is a stable machine-readable reason; ``notice`` is an optional
    human-readable message sent only to the originating client.
    """

    def __init__(self, code: str, notice: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.notice = notice


class RoomNotFound(CommandRejected):
    def __init__(self, code: str = "room_not_found") -> None:
        super().__init__(code, "Sala não encontrada.")


class UnknownVariant(ValueError):
    pass

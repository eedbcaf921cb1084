"""Cooperative cancellation shared by every load session."""

from __future__ import annotations

from .errors import OperationCancelled


class CancellationToken:
    """Flag checked at each suspension point before state is committed."""

    __slots__ = ("session", "_cancelled")

    def __init__(self, session: int = 0) -> None:
        self.session = session
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self.session)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken session={self.session} {state}>"


class SessionCounter:
    """Issue monotonically numbered tokens, invalidating the previous one."""

    def __init__(self) -> None:
        self._session = 0
        self._current: CancellationToken | None = None

    @property
    def session(self) -> int:
        return self._session

    @property
    def current(self) -> CancellationToken | None:
        return self._current

    def begin(self) -> CancellationToken:
        """Cancel the running session and start a new one."""

        if self._current is not None:
            self._current.cancel()
        self._session += 1
        self._current = CancellationToken(self._session)
        return self._current

    def is_current(self, token: CancellationToken) -> bool:
        return (
            token is self._current
            and token.session == self._session
            and not token.cancelled
        )

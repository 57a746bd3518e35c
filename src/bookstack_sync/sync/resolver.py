"""Conflict resolution strategies for the sync engine.

A conflict is a page changed both locally and remotely since it was last
synced, or a remote page whose expected local path is taken by a file that
was never linked to it.  Content is never merged automatically; a resolver
only picks a side or defers:

- ``PreserveLocalResolver``: Always defers and emits a notice, leaving both
  sides untouched.
- ``InteractiveResolver``: Hands a ``PendingDecision`` to a caller-supplied
  handler and waits for the caller to choose.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Protocol

from bookstack_sync.sync.models import ConflictDecision, ConflictInfo

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]

# Seconds an interactive conflict waits for the caller before deferring.
DEFAULT_DECISION_TIMEOUT = 600.0


def log_notice(message: str) -> None:
    logger.warning(message)


def conflict_notice(conflict: ConflictInfo) -> str:
    """User-facing text describing *conflict*."""
    if conflict.collision:
        return (
            f'"{conflict.local_path}" is in the place of remote page '
            f'"{conflict.page_name}" but is not linked to it. '
            "Both were left untouched."
        )
    return (
        f'Conflict on "{conflict.page_name}": changed locally and remotely '
        "since the last sync. Local copy kept; the remote page was not "
        "updated."
    )


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: ConflictInfo) -> ConflictDecision:
        """Decide the outcome for one conflicting page.

        Args:
            conflict: Details about the conflicting file/page pair.

        Returns:
            ``KEEP_LOCAL`` to push, ``KEEP_REMOTE`` to pull, or ``DEFER``
            to leave both sides untouched for this run.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Preserve-local resolver
# ---------------------------------------------------------------------------


class PreserveLocalResolver:
    """Never overwrite either side; tell the user instead."""

    def __init__(self, notify: Notify | None = None) -> None:
        self.notify = notify or log_notice

    def resolve(self, conflict: ConflictInfo) -> ConflictDecision:
        self.notify(conflict_notice(conflict))
        return ConflictDecision.DEFER


# ---------------------------------------------------------------------------
# Interactive resolver
# ---------------------------------------------------------------------------


class PendingDecision:
    """A conflict awaiting the caller's choice.

    The handler may call ``resolve()`` before returning, or keep the object
    and resolve it later from another thread.  Only the first resolution
    counts.
    """

    def __init__(self, conflict: ConflictInfo) -> None:
        self.conflict = conflict
        self._future: Future[ConflictDecision] = Future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, decision: ConflictDecision | str) -> bool:
        """Record the caller's choice.

        Returns:
            False if the decision had already been made.

        Raises:
            ValueError: If *decision* is not a known decision string.
        """
        decision = ConflictDecision(decision)
        if self._future.done():
            return False
        try:
            self._future.set_result(decision)
        except InvalidStateError:
            return False
        return True

    def defer(self) -> bool:
        return self.resolve(ConflictDecision.DEFER)

    def wait(self, timeout: float | None = None) -> ConflictDecision:
        """Block until resolved; ``DEFER`` on timeout or cancellation."""
        try:
            return self._future.result(timeout=timeout)
        except (FutureTimeoutError, CancelledError):
            return ConflictDecision.DEFER


class InteractiveResolver:
    """Ask the caller to decide each conflict.

    Args:
        on_conflict: Called with a ``PendingDecision`` for every conflict.
        timeout: Seconds to wait for an unresolved decision; ``None``
            waits indefinitely.
    """

    def __init__(
        self,
        on_conflict: Callable[[PendingDecision], None],
        timeout: float | None = DEFAULT_DECISION_TIMEOUT,
    ) -> None:
        self.on_conflict = on_conflict
        self.timeout = timeout

    def resolve(self, conflict: ConflictInfo) -> ConflictDecision:
        pending = PendingDecision(conflict)
        try:
            self.on_conflict(pending)
        except Exception as exc:
            logger.warning(
                "Conflict handler failed for %s: %s", conflict.local_path, exc
            )
            pending.defer()

        decision = pending.wait(self.timeout)
        logger.info(
            "Conflict on %s resolved as %s", conflict.local_path, decision.value
        )
        return decision


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGIES = ("preserve-local", "interactive")


def create_resolver(
    strategy: str,
    on_conflict: Callable[[PendingDecision], None] | None = None,
    notify: Notify | None = None,
) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: ``"preserve-local"`` or ``"interactive"``.
        on_conflict: Decision handler; required for ``"interactive"``.
        notify: Sink for user-facing notices.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised, or
            ``"interactive"`` is requested without a handler.
    """
    if strategy == "preserve-local":
        return PreserveLocalResolver(notify=notify)
    if strategy == "interactive":
        if on_conflict is None:
            raise ValueError(
                "The 'interactive' conflict strategy needs a decision handler"
            )
        return InteractiveResolver(on_conflict)
    raise ValueError(
        f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGIES)}"
    )

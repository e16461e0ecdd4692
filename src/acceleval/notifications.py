"""Notification collaborator contract and the engine-side trigger."""

from __future__ import annotations

from typing import Any, Literal, Protocol, runtime_checkable

import structlog

NotificationKind = Literal["advanced", "rejected", "admitted", "interview_booked"]


@runtime_checkable
class Notifier(Protocol):
    """Outbound delivery collaborator (email, in-app, ...)."""

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        """Deliver one notification. May raise; callers do not depend on it."""


class LoggingNotifier:
    """Default notifier that only records what would be delivered."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self._logger.info("notification.sent", kind=kind, payload=payload)


class NotificationTrigger:
    """Fire-and-forget wrapper: failures are logged and never re-raised."""

    def __init__(self, notifier: Notifier | None = None, *, enabled: bool = True) -> None:
        self._notifier = notifier or LoggingNotifier()
        self._enabled = enabled
        self._logger = structlog.get_logger(__name__)

    def fire(self, kind: NotificationKind, payload: dict[str, Any]) -> bool:
        if not self._enabled:
            return False
        try:
            self._notifier.notify(kind, payload)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "notification.failed",
                kind=kind,
                payload=payload,
                error=str(exc),
                exc_info=True,
            )
            return False
        return True

    def advanced(self, submission_id: str, new_step: int) -> bool:
        return self.fire("advanced", {"submission_id": submission_id, "new_step": new_step})

    def rejected(self, submission_id: str, step: int) -> bool:
        return self.fire("rejected", {"submission_id": submission_id, "step": step, "decision": "rejected"})

    def admitted(self, submission_id: str, step: int) -> bool:
        return self.fire("admitted", {"submission_id": submission_id, "step": step, "decision": "admitted"})

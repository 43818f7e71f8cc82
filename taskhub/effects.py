"""
Best-effort side effects.

Mirror writes (a user's pending-task list, a task's denormalized
assignee) are secondary to the write the request addresses. They are
attempted once, their failure is logged and never raised, and nothing
retries them. ``SideEffects`` runs such writes and records the outcome
of each attempt so callers and tests can see what was tried.

Writes run inline, in order, before the response is sent. The app is a
synchronous WSGI service with one session per request, so the response
does wait for them; only their outcome is ignored. Moving them off the
request would need a task queue this service does not run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from taskhub.errors import ApiError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectOutcome:
    """Result of one secondary write attempt."""

    label: str
    ok: bool
    error: ApiError | None = None


class SideEffects:
    """Runs secondary writes, swallowing and logging store failures."""

    def __init__(self) -> None:
        self.outcomes: list[EffectOutcome] = []

    def run(self, label: str, func: Callable[..., Any], *args: Any) -> EffectOutcome:
        """
        Attempt ``func(*args)``.

        Args:
            label: Human-readable description used in logs and outcomes.
            func: The store call performing the write.

        Returns:
            The recorded outcome.
        """
        try:
            func(*args)
        except ApiError as exc:
            logger.error("Error during %s: %s", label, exc.detail)
            outcome = EffectOutcome(label, ok=False, error=exc)
        else:
            outcome = EffectOutcome(label, ok=True)
        self.outcomes.append(outcome)
        return outcome

    @property
    def failures(self) -> list[EffectOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def labels(self) -> list[str]:
        return [outcome.label for outcome in self.outcomes]

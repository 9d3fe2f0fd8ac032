"""Registry of mutation hooks run over desired objects before they are applied."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from . import metrics
from .models import ArgoCD

logger = logging.getLogger(__name__)

Hook = Callable[[ArgoCD, dict[str, Any], str], None]


class HookRegistry:
    """Ordered list of hooks shared by every reconcile worker.

    A hook receives the instance, the desired manifest (which it may mutate
    in place) and a free-form hint naming the object. Raising aborts the
    apply of that object.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hooks: list[Hook] = []

    def register(self, *hooks: Hook) -> None:
        with self._lock:
            self._hooks.extend(hooks)

    def apply(self, instance: ArgoCD, obj: dict[str, Any], hint: str = "") -> None:
        """Run every hook in registration order, stopping at the first error.

        The lock is held for the whole pass so hooks never observe a
        registration in progress.
        """
        with self._lock:
            for hook in self._hooks:
                try:
                    hook(instance, obj, hint)
                except Exception:
                    metrics.hook_failures_total.labels(resource_kind=obj.get("kind", "unknown")).inc()
                    raise

    def __len__(self) -> int:
        with self._lock:
            return len(self._hooks)

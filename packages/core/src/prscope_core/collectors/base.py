"""Base collector implementing the Template Method pattern.

Every collector shares the same run algorithm:
    run() → should_collect()   ← cheap precondition, no I/O
          → collect()          ← fetch evidence and write it into the bag
          → CollectorResult    ← completed / skipped / failed

Subclasses implement ``should_collect`` and ``collect`` only. ``run`` is the
failure boundary: whatever ``collect`` raises is turned into a failed
``CollectorResult`` here, so the engine never sees an exception and one
broken data source cannot abort the pipeline.

Expected absence (404, empty PR body, no code index) is not a failure.
Collectors handle it themselves as a debug-logged no-op.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams

logger = logging.getLogger(__name__)

COMPLETED = "completed"
SKIPPED = "skipped"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass
class CollectorError:
    collector: str
    category: str  # exception class name, e.g. "Timeout" or "KeyError"
    message: str


@dataclass
class CollectorResult:
    name: str
    status: str
    error: CollectorError | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != FAILED


class BaseCollector(ABC):
    #: Stable identifier used in logs, diagnostics and the CLI.
    name: str = ""
    #: Higher runs earlier. A collector may rely on every collector with a
    #: higher priority having finished, and on nothing else.
    priority: int = 0
    #: Collectors whose output this one reads. Only consulted when the engine
    #: groups collectors into concurrent tiers.
    depends_on: tuple[str, ...] = ()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def run(self, bag: ContextBag, params: ContextParams) -> CollectorResult:
        started = time.monotonic()
        try:
            if not self.should_collect(params):
                logger.debug("Skipping collector %s: preconditions not met.", self.name)
                return CollectorResult(self.name, SKIPPED)
            self.collect(bag, params)
        except Exception as e:
            logger.warning("Collector %s failed (%s): %s", self.name, type(e).__name__, e)
            return CollectorResult(
                self.name,
                FAILED,
                error=CollectorError(collector=self.name, category=type(e).__name__, message=str(e)),
                duration=time.monotonic() - started,
            )
        return CollectorResult(self.name, COMPLETED, duration=time.monotonic() - started)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each collector                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def should_collect(self, params: ContextParams) -> bool:
        """Cheap check against the invocation context. Must not do I/O."""

    @abstractmethod
    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        """Fetch evidence and write it into ``bag``."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} priority={self.priority}>"

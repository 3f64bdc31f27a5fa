"""Context engine: run every collector, then every filter, over one bag.

    build(params)
      → collectors, highest priority first   (each isolated by BaseCollector.run)
      → filters, lowest order first          (each isolated here)
      → ContextBag

Collectors run sequentially by default. With ``parallel=True`` they are
grouped into dependency tiers: a collector's tier is one more than the
highest tier among the collectors it ``depends_on``. Each tier runs on a
thread pool and is joined before the next starts, so a collector still sees
everything its dependencies wrote.

``should_cancel`` is polled between collectors (or tiers). Once it returns
True the remaining collectors are recorded as cancelled and the filters run
over whatever was collected.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable

from prscope_core.bag import ContextBag
from prscope_core.collectors.base import CANCELLED, COMPLETED, FAILED, CollectorResult

if TYPE_CHECKING:
    from prscope_core.bag import ContextParams
    from prscope_core.collectors.base import BaseCollector
    from prscope_core.filters.base import BaseFilter

logger = logging.getLogger(__name__)


def dependency_tiers(collectors: list[BaseCollector]) -> list[list[BaseCollector]]:
    """Group collectors into tiers that can run concurrently.

    Dependencies on collectors that are not registered are ignored. Within a
    tier, collectors keep priority order.
    """
    ordered = sorted(collectors, key=lambda c: c.priority, reverse=True)
    by_name = {c.name: c for c in ordered}
    tier_of: dict[str, int] = {}

    def tier(collector: BaseCollector, visiting: frozenset[str] = frozenset()) -> int:
        if collector.name in tier_of:
            return tier_of[collector.name]
        if collector.name in visiting:
            raise ValueError(f"Collector dependency cycle involving {collector.name!r}")
        deps = [by_name[d] for d in collector.depends_on if d in by_name]
        level = 1 + max((tier(d, visiting | {collector.name}) for d in deps), default=-1)
        tier_of[collector.name] = level
        return level

    tiers: list[list[BaseCollector]] = []
    for collector in ordered:
        level = tier(collector)
        while len(tiers) <= level:
            tiers.append([])
        tiers[level].append(collector)
    return [t for t in tiers if t]


class ContextEngine:
    def __init__(
        self,
        collectors: list[BaseCollector],
        filters: list[BaseFilter],
        parallel: bool = False,
        max_workers: int = 4,
    ):
        self.collectors = sorted(collectors, key=lambda c: c.priority, reverse=True)
        self.filters = sorted(filters, key=lambda f: f.order)
        self.parallel = parallel
        self.max_workers = max_workers

    def build(self, params: ContextParams, should_cancel: Callable[[], bool] | None = None) -> ContextBag:
        bag = ContextBag()

        if self.parallel:
            results = self._collect_in_tiers(bag, params, should_cancel)
        else:
            results = self._collect_sequentially(bag, params, should_cancel)
        bag.collector_results = results

        self.apply_filters(bag)
        self._log_summary(bag)
        return bag

    def apply_filters(self, bag: ContextBag) -> None:
        for f in self.filters:
            try:
                f.apply(bag)
            except Exception as e:
                logger.warning("Filter %s failed (%s): %s", f.name, type(e).__name__, e)

    # ------------------------------------------------------------------ #
    # Collection strategies                                                #
    # ------------------------------------------------------------------ #

    def _collect_sequentially(self, bag, params, should_cancel) -> list[CollectorResult]:
        results = []
        for i, collector in enumerate(self.collectors):
            if should_cancel is not None and should_cancel():
                logger.info("Context build cancelled before collector %s.", collector.name)
                results.extend(CollectorResult(c.name, CANCELLED) for c in self.collectors[i:])
                break
            results.append(collector.run(bag, params))
        return results

    def _collect_in_tiers(self, bag, params, should_cancel) -> list[CollectorResult]:
        by_name: dict[str, CollectorResult] = {}
        tiers = dependency_tiers(self.collectors)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for i, tier in enumerate(tiers):
                if should_cancel is not None and should_cancel():
                    logger.info("Context build cancelled before tier %d.", i)
                    for remaining in tiers[i:]:
                        for c in remaining:
                            by_name[c.name] = CollectorResult(c.name, CANCELLED)
                    break
                futures = {c.name: pool.submit(c.run, bag, params) for c in tier}
                for name, future in futures.items():
                    by_name[name] = future.result()

        return [by_name[c.name] for c in self.collectors]

    @staticmethod
    def _log_summary(bag: ContextBag) -> None:
        results = bag.collector_results
        completed = sum(1 for r in results if r.status == COMPLETED)
        failed = [r.name for r in results if r.status == FAILED]
        logger.info(
            "Context built: %d token(s), %d file(s), %d issue(s); %d collector(s) completed%s.",
            bag.estimate_tokens(),
            len(bag.files),
            len(bag.linked_issues),
            completed,
            f", failed: {', '.join(failed)}" if failed else "",
        )
        if bag.is_empty():
            logger.warning("No evidence was collected for this run.")

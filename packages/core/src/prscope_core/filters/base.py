"""Filter contract.

Filters run after every collector has finished, in ascending ``order``.
They may narrow, reorder or rewrite what is already in the bag but never
fetch anything new. Running the whole filter chain a second time must not
change the bag again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag


class BaseFilter(ABC):
    name: str = ""
    #: Lower runs earlier.
    order: int = 0

    @abstractmethod
    def apply(self, bag: ContextBag) -> None:
        """Transform ``bag`` in place. Must tolerate an empty bag."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} order={self.order}>"

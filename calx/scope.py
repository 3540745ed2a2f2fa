"""
Lexical scopes.

A scope maps names to definitions and carries the assumptions and resource
limits in effect while it is current. Scopes form a chain through ``parent``;
lookup walks from the current scope to the root.
"""

import logging
import math
from typing import Dict, Iterator, Optional

from .definitions import BaseDefinition

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT = 2.0          # seconds
DEFAULT_MEMORY_LIMIT = math.inf   # megabytes, checked while tracemalloc is tracing
DEFAULT_RECURSION_LIMIT = 1024
DEFAULT_ITERATION_LIMIT = math.inf


class Scope:
    """
    One level of the scope chain.

    Examples:
        root = Scope(name="system")
        inner = Scope(parent=root, recursion_limit=64)
        inner.lookup("Pi")   # found through root
    """

    def __init__(self, parent: Optional["Scope"] = None, name: Optional[str] = None,
                 time_limit: Optional[float] = None, memory_limit: Optional[float] = None,
                 recursion_limit: Optional[int] = None, iteration_limit: Optional[float] = None):
        self.parent = parent
        self.name = name
        self.ids: Dict[str, BaseDefinition] = {}
        # predicate -> True; inherited from the enclosing scope
        self.assumptions: Dict = dict(parent.assumptions) if parent is not None else {}
        # name -> definition given a value by an Equal assumption made in this scope
        self.assumed_values: Dict[str, BaseDefinition] = {}
        self.time_limit = _inherit(time_limit, parent, "time_limit", DEFAULT_TIME_LIMIT)
        self.memory_limit = _inherit(memory_limit, parent, "memory_limit", DEFAULT_MEMORY_LIMIT)
        self.recursion_limit = _inherit(recursion_limit, parent, "recursion_limit", DEFAULT_RECURSION_LIMIT)
        self.iteration_limit = _inherit(iteration_limit, parent, "iteration_limit", DEFAULT_ITERATION_LIMIT)

    def define(self, definition: BaseDefinition) -> BaseDefinition:
        """
        Add a definition owned by this scope.

        Raises:
            ValueError: if the name is already defined in this scope
        """
        if definition.name in self.ids:
            raise ValueError(f'"{definition.name}" is already defined in this scope')
        definition.scope = self
        self.ids[definition.name] = definition
        return definition

    def lookup(self, name: str) -> Optional[BaseDefinition]:
        scope = self
        while scope is not None:
            definition = scope.ids.get(name)
            if definition is not None:
                return definition
            scope = scope.parent
        return None

    def chain(self) -> Iterator["Scope"]:
        scope = self
        while scope is not None:
            yield scope
            scope = scope.parent

    @property
    def depth(self) -> int:
        return sum(1 for _ in self.chain()) - 1

    def release(self):
        """Mark every owned definition dead."""
        for definition in self.ids.values():
            definition.dead = True
        logger.debug("Released scope %s (%d definitions)", self.name or "<anonymous>", len(self.ids))

    def __contains__(self, name: str) -> bool:
        return name in self.ids

    def __repr__(self) -> str:
        return f"Scope({self.name or '<anonymous>'}, {len(self.ids)} ids, depth={self.depth})"


def _inherit(value, parent, attr, default):
    if value is not None:
        return value
    if parent is not None:
        return getattr(parent, attr)
    return default

"""
Single-flight fact memoization.

`FactCache` is the only shared mutable state of an evaluator: every fact is
computed at most once per cache, whatever the call order or thread.
"""

from credfacts.core.facts.cache import FactCache
from credfacts.core.facts.models import FactName, FactResult, SlotState

__all__ = ["FactCache", "FactName", "FactResult", "SlotState"]

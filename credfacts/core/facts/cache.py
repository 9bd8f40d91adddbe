from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from credfacts.core.errors import FactCycleError, normalize_exception
from credfacts.core.facts.models import FactResult, SlotState
from credfacts.core.logger import SessionLogAdapter, get_logger


SlotKey = Tuple[str, str]


@dataclass
class _Slot:
    state: SlotState = SlotState.EMPTY
    owner: Optional[int] = None
    result: Optional[FactResult] = None
    done: threading.Event = field(default_factory=threading.Event)
    computations: int = 0
    elapsed_ms: float = 0.0


class FactCache:
    """
    Single-flight memoization keyed by (identity key, fact name).

    - the first caller for a slot computes it; everyone else gets the stored result
    - callers on other threads block until the slot resolves
    - a thread re-requesting a slot it is still computing gets a FactCycleError,
      as does a thread whose wait would close a cross-thread waits-for loop
    - failures are stored and replayed like values; nothing is ever evicted
    """

    def __init__(self, *, logger=None):
        self.logger = logger or SessionLogAdapter(get_logger("facts"), {})
        self._lock = threading.Lock()
        self._slots: Dict[SlotKey, _Slot] = {}
        # thread ident -> slot it is currently blocked on
        self._waiting: Dict[int, SlotKey] = {}
        self._local = threading.local()

    # ---------- public API ----------
    def resolve(self, key: str, fact: str, compute: Callable[[], Any]) -> FactResult:
        slot_key: SlotKey = (str(key), str(fact))
        me = threading.get_ident()
        with self._lock:
            slot = self._slots.get(slot_key)
            if slot is None:
                slot = _Slot()
                self._slots[slot_key] = slot
            if slot.state == SlotState.RESOLVED:
                assert slot.result is not None
                return slot.result
            if slot.state == SlotState.COMPUTING:
                if slot.owner == me or self._leads_back_locked(slot.owner, me):
                    return FactResult(error=self._cycle_error(slot_key))
                self._waiting[me] = slot_key
                is_owner = False
            else:
                slot.state = SlotState.COMPUTING
                slot.owner = me
                is_owner = True

        if is_owner:
            return self._compute(slot_key, slot, compute)

        try:
            slot.done.wait()
        finally:
            with self._lock:
                self._waiting.pop(me, None)
        assert slot.result is not None
        return slot.result

    def get(self, key: str, fact: str, compute: Callable[[], Any]) -> Any:
        return self.resolve(key, fact, compute).unwrap()

    def peek(self, key: str, fact: str) -> Optional[FactResult]:
        with self._lock:
            slot = self._slots.get((str(key), str(fact)))
            if slot is None or slot.state != SlotState.RESOLVED:
                return None
            return slot.result

    def state(self, key: str, fact: str) -> SlotState:
        with self._lock:
            slot = self._slots.get((str(key), str(fact)))
            return slot.state if slot is not None else SlotState.EMPTY

    def snapshot(self) -> Dict[str, Dict[str, str]]:
        out: Dict[str, Dict[str, str]] = {}
        with self._lock:
            for (key, fact), slot in self._slots.items():
                if slot.state != SlotState.RESOLVED or slot.result is None:
                    status = slot.state.value.lower()
                elif slot.result.ok:
                    status = "resolved"
                else:
                    status = f"failed:{slot.result.error.code}"
                out.setdefault(key, {})[fact] = status
        return out

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            per_fact = {f"{k}/{f}": s.computations for (k, f), s in self._slots.items()}
            elapsed = {f"{k}/{f}": round(s.elapsed_ms, 3) for (k, f), s in self._slots.items() if s.state == SlotState.RESOLVED}
            return {
                "slots": len(self._slots),
                "computations": sum(per_fact.values()),
                "per_fact": per_fact,
                "elapsed_ms": elapsed,
                "waiting_threads": len(self._waiting),
            }

    # ---------- internals ----------
    def _stack(self) -> List[SlotKey]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack

    def _compute(self, slot_key: SlotKey, slot: _Slot, compute: Callable[[], Any]) -> FactResult:
        stack = self._stack()
        stack.append(slot_key)
        started = time.perf_counter()
        interrupt: Optional[BaseException] = None
        try:
            result = FactResult(value=compute())
        except Exception as e:  # noqa: BLE001
            result = FactResult(error=normalize_exception(e, fact=slot_key[1], context={"key": slot_key[0]}))
        except BaseException as e:  # noqa: BLE001
            result = FactResult(error=normalize_exception(e, fact=slot_key[1], context={"key": slot_key[0]}))
            interrupt = e
        finally:
            stack.pop()
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        with self._lock:
            slot.result = result
            slot.state = SlotState.RESOLVED
            slot.owner = None
            slot.computations += 1
            slot.elapsed_ms = elapsed_ms
        slot.done.set()

        if result.ok:
            self.logger.debug(f"fact {slot_key[1]} resolved for {slot_key[0]} ({elapsed_ms:.1f}ms)")
        else:
            self.logger.debug(f"fact {slot_key[1]} failed for {slot_key[0]}: {result.error}")
        if interrupt is not None:
            raise interrupt
        return result

    def _leads_back_locked(self, owner: Optional[int], me: int) -> bool:
        seen = set()
        t = owner
        while t is not None and t not in seen:
            if t == me:
                return True
            seen.add(t)
            blocked_on = self._waiting.get(t)
            if blocked_on is None:
                return False
            nxt = self._slots.get(blocked_on)
            t = nxt.owner if nxt is not None and nxt.state == SlotState.COMPUTING else None
        return False

    def _cycle_error(self, slot_key: SlotKey) -> FactCycleError:
        path = [f for _, f in self._stack()] + [slot_key[1]]
        self.logger.error(f"fact dependency cycle for {slot_key[0]}: {' -> '.join(path)}")
        return FactCycleError(
            f"Fact {slot_key[1]} was requested again before it resolved.",
            key=slot_key[0],
            fact=slot_key[1],
            path=path,
        )

"""Per-function name bindings for locals, upvalues and loop variables.

Compiled chunks keep no usable names for locals, so names are minted on
demand from the slot index: parameters become ``arg1``..``argN``, other
slots ``loc1``, ``loc2``... in first-seen order of their slot numbers, and
numeric loop variables ``for0``, ``for1``... in the order the loops appear.
The scheme only depends on the slot numbers and the parameter count, so the
same input always produces the same names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .chunk import Prototype
from .errors import UnboundLocalReferenceError, UnsupportedPatternError

GENERIC_LOOP_NAMES: Tuple[str, str, str] = ("_t", "index", "value")


@dataclass
class FuncInfo:
    """Scope information for one function body (main chunk or closure)."""

    proto: Prototype
    is_main: bool = False
    locals: Dict[int, str] = field(default_factory=dict)
    upvalues: Dict[int, str] = field(default_factory=dict)
    for_loop_counter: int = 0
    for_loop_depth: int = 0
    local_count: int = 0
    _open_loops: List[Tuple[str, Tuple[int, ...]]] = field(default_factory=list)

    @property
    def num_params(self) -> int:
        return self.proto.num_params

    # ------------------------------------------------------------------
    # locals
    # ------------------------------------------------------------------
    def bind_parameters(self) -> List[str]:
        names = []
        for index in range(self.num_params):
            name = f"arg{index + 1}"
            self.locals[index] = name
            names.append(name)
        return names

    def bind_vararg(self) -> str:
        # the implicit ``arg`` table sits right after the fixed parameters
        self.locals[self.num_params] = "arg"
        return "arg"

    def is_bound(self, index: int) -> bool:
        return index in self.locals

    def local_name(self, index: int) -> str:
        try:
            return self.locals[index]
        except KeyError:
            raise UnboundLocalReferenceError(f"local slot {index} has no name") from None

    def declare_local(self, index: int) -> str:
        """Mint and register the name for a slot seen for the first time."""

        name = f"loc{index - self.num_params + 1}"
        self.locals[index] = name
        self.local_count += 1
        return name

    def release_from(self, depth: int) -> None:
        """Forget the names of locals at or above ``depth`` once their slots are popped.

        Parameters, the vararg table and the slots of open loops keep their
        names; everything else is minted again when the slot is reused.
        """

        first = max(depth, self.num_params + (1 if self.proto.is_vararg else 0))
        held = {slot for _, slots in self._open_loops for slot in slots}
        for index in [index for index in self.locals if index >= first and index not in held]:
            del self.locals[index]

    # ------------------------------------------------------------------
    # upvalues
    # ------------------------------------------------------------------
    def bind_upvalue(self, index: int, name: str) -> None:
        self.upvalues[index] = name

    def upvalue_reference(self, index: int) -> str:
        try:
            return "%" + self.upvalues[index]
        except KeyError:
            raise UnboundLocalReferenceError(f"upvalue {index} was never captured") from None

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------
    def open_numeric_loop(self, slot: int) -> str:
        name = f"for{self.for_loop_counter}"
        self.for_loop_counter += 1
        self.for_loop_depth += 1
        self.locals[slot] = name
        self._open_loops.append(("numeric", (slot,)))
        return name

    def close_numeric_loop(self) -> None:
        self._close_loop("numeric")
        self.for_loop_depth -= 1

    def open_generic_loop(self, base: int) -> Tuple[str, str, str]:
        slots = tuple(range(base, base + len(GENERIC_LOOP_NAMES)))
        for slot, name in zip(slots, GENERIC_LOOP_NAMES):
            self.locals[slot] = name
        self._open_loops.append(("generic", slots))
        return GENERIC_LOOP_NAMES

    def close_generic_loop(self) -> None:
        self._close_loop("generic")

    def _close_loop(self, kind: str) -> None:
        if not self._open_loops or self._open_loops[-1][0] != kind:
            raise UnsupportedPatternError(f"{kind} loop end without a matching loop start")
        _, slots = self._open_loops.pop()
        for slot in slots:
            self.locals.pop(slot, None)


__all__ = ["FuncInfo", "GENERIC_LOOP_NAMES"]

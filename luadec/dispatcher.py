"""Symbolic replay of Lua 4.0 function bodies.

The :class:`Decompiler` walks the instruction list of a prototype once, in
order.  Each opcode handler manipulates the symbolic :class:`ValueStack` and
appends statements to the body's :class:`OutputBuffer`; conditional jumps are
handed to the :class:`ControlFlowReconstructor` which later splices block
headers into the buffer.  Nested function literals are decompiled
recursively with a scope of their own and come back as a single closure
value on the enclosing stack.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from .chunk import Prototype
from .control_flow import ControlFlowReconstructor, OutputBuffer
from .errors import (
    DecodeWarning,
    RecoverableDecodeError,
    StackUnderflowError,
    UnsupportedPatternError,
)
from .instruction import InstructionWord
from .literals import format_number, quote_string
from .opcodes import COMPARISON_JUMPS, CONDITIONAL_JUMPS, Opcode
from .options import DecompileOptions
from .scope import FuncInfo
from .stack import StackValue, ValueKind, ValueStack, binary_expression
from .tables import TableAccumulator

logger = logging.getLogger(__name__)

T = TypeVar("T")

# CALL result count meaning "keep every result"
MULT_RET = 255

# SETTABLE shape where table, key and value are the three topmost slots
_SETTABLE_SUPPORTED = (3, 3)

_FUNCTION_KEYWORD = "function "


@dataclass
class _FunctionState:
    """Everything that belongs to the body currently being replayed."""

    proto: Prototype
    info: FuncInfo
    stack: ValueStack
    buffer: OutputBuffer
    flow: ControlFlowReconstructor
    tables: TableAccumulator
    depth: int
    line: int = 0

    def emit(self, text: str) -> None:
        self.buffer.append(text)


Handler = Callable[[_FunctionState, InstructionWord], None]


def _constant(pool: Sequence[T], index: int, what: str) -> T:
    if not 0 <= index < len(pool):
        raise UnsupportedPatternError(
            f"{what} constant {index} out of range ({len(pool)} available)"
        )
    return pool[index]


class Decompiler:
    """Best-effort reconstruction of Lua source from a main prototype."""

    def __init__(self, options: Optional[DecompileOptions] = None) -> None:
        self.options = options or DecompileOptions()
        self.warnings: List[DecodeWarning] = []
        self._handlers = self._build_handlers()

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def decompile(self, proto: Prototype) -> str:
        """Return the raw (unformatted) source text of the main chunk."""

        self.warnings = []
        return self._decompile_function(proto, FuncInfo(proto, is_main=True), depth=0)

    @property
    def succeeded(self) -> bool:
        return not self.warnings

    # ------------------------------------------------------------------
    # function bodies
    # ------------------------------------------------------------------
    def _decompile_function(self, proto: Prototype, info: FuncInfo, depth: int) -> str:
        buffer = OutputBuffer()
        stack = ValueStack()
        flow = ControlFlowReconstructor(buffer, placeholder=self.options.condition_placeholder)

        def report(message: str) -> None:
            self._warn(state, UnsupportedPatternError.kind, message)

        state = _FunctionState(
            proto=proto,
            info=info,
            stack=stack,
            buffer=buffer,
            flow=flow,
            tables=TableAccumulator(stack, report=report),
            depth=depth,
        )

        params = info.bind_parameters()
        for name in params:
            stack.push_text(name, ValueKind.STRING_LOCAL)
        if proto.is_vararg:
            stack.push_text(info.bind_vararg(), ValueKind.STRING_LOCAL)
            params = params + ["..."]
        if not info.is_main:
            state.emit(f"{_FUNCTION_KEYWORD}({', '.join(params)})\n")

        reached_end = False
        for word in proto.code:
            state.line = word.line
            flow.close_pending(word.line)
            self._step(state, word)
            if word.opcode is Opcode.END:
                reached_end = True
                break

        if not reached_end:
            logger.debug("function at depth %d has no END instruction", depth)
            flow.close_pending(len(proto.code) + 1)
        flow.finish()

        if not info.is_main:
            state.emit("end\n")
        return buffer.getvalue()

    def _step(self, state: _FunctionState, word: InstructionWord) -> None:
        opcode = word.opcode
        try:
            if opcode is None:
                raise UnsupportedPatternError(f"unknown opcode {word.opcode_value}")
            self._handlers[opcode](state, word)
        except RecoverableDecodeError as exc:
            self._warn(state, exc.kind, str(exc))

    def _warn(self, state: _FunctionState, kind: str, message: str) -> None:
        warning = DecodeWarning(kind=kind, line=state.line, depth=state.depth, message=message)
        self.warnings.append(warning)
        logger.warning(
            "%s at function depth %d, line %d: %s", kind, state.depth, state.line, message
        )

    # ------------------------------------------------------------------
    # dispatch table
    # ------------------------------------------------------------------
    def _build_handlers(self) -> Dict[Opcode, Handler]:
        handlers: Dict[Opcode, Handler] = {
            Opcode.END: self._op_end,
            Opcode.RETURN: self._op_return,
            Opcode.CALL: self._op_call,
            Opcode.TAILCALL: self._op_tailcall,
            Opcode.PUSHNIL: self._op_pushnil,
            Opcode.POP: self._op_pop,
            Opcode.PUSHINT: self._op_pushint,
            Opcode.PUSHSTRING: self._op_pushstring,
            Opcode.PUSHNUM: self._op_pushnum,
            Opcode.PUSHNEGNUM: self._op_pushnegnum,
            Opcode.PUSHUPVALUE: self._op_pushupvalue,
            Opcode.GETLOCAL: self._op_getlocal,
            Opcode.GETGLOBAL: self._op_getglobal,
            Opcode.GETTABLE: self._op_gettable,
            Opcode.GETDOTTED: self._op_getdotted,
            Opcode.GETINDEXED: self._op_getindexed,
            Opcode.PUSHSELF: self._op_pushself,
            Opcode.CREATETABLE: self._op_createtable,
            Opcode.SETLOCAL: self._op_setlocal,
            Opcode.SETGLOBAL: self._op_setglobal,
            Opcode.SETTABLE: self._op_settable,
            Opcode.SETLIST: self._op_setlist,
            Opcode.SETMAP: self._op_setmap,
            Opcode.ADD: self._binary("+"),
            Opcode.ADDI: self._op_addi,
            Opcode.SUB: self._binary("-"),
            Opcode.MULT: self._binary("*", wrap=True),
            Opcode.DIV: self._binary("/", wrap=True),
            Opcode.POW: self._binary("^", wrap=True),
            Opcode.CONCAT: self._op_concat,
            Opcode.MINUS: self._op_minus,
            Opcode.NOT: self._op_not,
            Opcode.JMP: self._op_jmp,
            Opcode.PUSHNILJMP: self._op_pushniljmp,
            Opcode.FORPREP: self._op_forprep,
            Opcode.FORLOOP: self._op_forloop,
            Opcode.LFORPREP: self._op_lforprep,
            Opcode.LFORLOOP: self._op_lforloop,
            Opcode.CLOSURE: self._op_closure,
        }
        for opcode in CONDITIONAL_JUMPS:
            handlers[opcode] = self._op_conditional_jump

        missing = [opcode.name for opcode in Opcode if opcode not in handlers]
        if missing:
            raise RuntimeError(f"no handler for opcode(s): {', '.join(missing)}")
        return handlers

    # ------------------------------------------------------------------
    # function exits and calls
    # ------------------------------------------------------------------
    def _op_end(self, state: _FunctionState, word: InstructionWord) -> None:
        pass

    def _op_return(self, state: _FunctionState, word: InstructionWord) -> None:
        values = state.stack.pop_many(state.stack.depth() - word.u)
        if not values:
            state.emit("return\n")
            return
        state.emit("return " + ", ".join(value.render() for value in values) + "\n")

    def _op_call(self, state: _FunctionState, word: InstructionWord) -> None:
        text = self._call_text(state, word.a)
        results = word.b
        if results == 0:
            state.emit(text + "\n")
            return
        count = 1 if results == MULT_RET else results
        for _ in range(count):
            state.stack.push(StackValue(text, ValueKind.STRING_GLOBAL))

    def _op_tailcall(self, state: _FunctionState, word: InstructionWord) -> None:
        state.emit("return " + self._call_text(state, word.a) + "\n")

    def _call_text(self, state: _FunctionState, base: int) -> str:
        stack = state.stack
        items = stack.depth() - base
        if items < 1:
            raise StackUnderflowError(f"call base {base} is above the stack top {stack.depth()}")

        args: List[StackValue] = []
        for _ in range(items - 1):
            value = stack.pop()
            if value.kind is ValueKind.STRING_PUSHSELF:
                # method call: fuse ``obj`` and ``:name`` into the callee
                target = stack.pop()
                stack.push(StackValue(target.render() + value.text, ValueKind.STRING_GLOBAL))
                break
            args.append(value)
        callee = stack.pop()
        args.reverse()
        return f"{callee.render()}({', '.join(arg.render() for arg in args)})"

    # ------------------------------------------------------------------
    # literal pushes
    # ------------------------------------------------------------------
    def _op_pushnil(self, state: _FunctionState, word: InstructionWord) -> None:
        for _ in range(word.u):
            state.stack.push_text("nil", ValueKind.NIL)

    def _op_pop(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.pop_many(word.u)
        state.info.release_from(state.stack.depth())

    def _op_pushint(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.push_text(str(word.s), ValueKind.INT)

    def _op_pushstring(self, state: _FunctionState, word: InstructionWord) -> None:
        text = _constant(state.proto.strings, word.u, "string")
        state.stack.push_text(quote_string(text), ValueKind.STRING)

    def _op_pushnum(self, state: _FunctionState, word: InstructionWord) -> None:
        number = _constant(state.proto.numbers, word.u, "number")
        state.stack.push_text(format_number(number), ValueKind.INT)

    def _op_pushnegnum(self, state: _FunctionState, word: InstructionWord) -> None:
        number = _constant(state.proto.numbers, word.u, "number")
        state.stack.push_text("-" + format_number(number), ValueKind.INT)

    def _op_pushupvalue(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.push_text(state.info.upvalue_reference(word.u), ValueKind.STRING_GLOBAL)

    def _op_pushniljmp(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.push_text("nil", ValueKind.NIL)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def _bind_local(self, state: _FunctionState, index: int) -> str:
        """Return the name of local slot ``index``, declaring it on first use."""

        info = state.info
        if not info.is_bound(index):
            current = state.stack.slot(index)
            name = info.declare_local(index)
            state.emit(f"local {name} = {current.render()}\n")
            state.stack.set_slot(index, StackValue(name, ValueKind.STRING_LOCAL))
        return info.local_name(index)

    def _op_getlocal(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.push_text(self._bind_local(state, word.u), ValueKind.STRING_LOCAL)

    def _op_getglobal(self, state: _FunctionState, word: InstructionWord) -> None:
        name = _constant(state.proto.strings, word.u, "string")
        state.stack.push_text(name, ValueKind.STRING_GLOBAL)

    def _op_gettable(self, state: _FunctionState, word: InstructionWord) -> None:
        key = state.stack.pop()
        table = state.stack.pop()
        state.stack.push_text(f"{table.render()}[{key.render()}]", ValueKind.STRING_GLOBAL)

    def _op_getdotted(self, state: _FunctionState, word: InstructionWord) -> None:
        name = _constant(state.proto.strings, word.u, "string")
        table = state.stack.pop()
        state.stack.push_text(f"{table.render()}.{name}", ValueKind.STRING_GLOBAL)

    def _op_getindexed(self, state: _FunctionState, word: InstructionWord) -> None:
        key = state.info.local_name(word.u)
        table = state.stack.pop()
        state.stack.push_text(f"{table.render()}[{key}]", ValueKind.STRING_GLOBAL)

    def _op_pushself(self, state: _FunctionState, word: InstructionWord) -> None:
        # the object stays in place; CALL fuses the two slots
        name = _constant(state.proto.strings, word.u, "string")
        state.stack.push_text(":" + name, ValueKind.STRING_PUSHSELF)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def _op_setlocal(self, state: _FunctionState, word: InstructionWord) -> None:
        value = state.stack.pop()
        name = self._bind_local(state, word.u)
        state.emit(f"{name} = {value.render()}\n")

    def _op_setglobal(self, state: _FunctionState, word: InstructionWord) -> None:
        name = _constant(state.proto.strings, word.u, "string")
        value = state.stack.pop()
        if (
            value.kind is ValueKind.CLOSURE_TEXT
            and self.options.name_functions
            and value.text.startswith(_FUNCTION_KEYWORD)
        ):
            split = len(_FUNCTION_KEYWORD)
            state.emit(value.text[:split] + name + value.text[split:])
            return
        state.emit(f"{name} = {value.render()}\n")

    def _op_settable(self, state: _FunctionState, word: InstructionWord) -> None:
        if (word.a, word.b) != _SETTABLE_SUPPORTED:
            state.stack.pop_many(word.b)
            raise UnsupportedPatternError(
                f"SETTABLE {word.a} {word.b} is not supported (only {_SETTABLE_SUPPORTED[0]} "
                f"{_SETTABLE_SUPPORTED[1]})"
            )
        value = state.stack.pop()
        key = state.stack.pop()
        table = state.stack.pop()
        state.emit(f"{table.render()}[{key.render()}] = {value.render()}\n")

    # ------------------------------------------------------------------
    # tables
    # ------------------------------------------------------------------
    def _op_createtable(self, state: _FunctionState, word: InstructionWord) -> None:
        state.tables.create(word.u)

    def _op_setlist(self, state: _FunctionState, word: InstructionWord) -> None:
        state.tables.set_list(word.a, word.b)

    def _op_setmap(self, state: _FunctionState, word: InstructionWord) -> None:
        state.tables.set_map(word.u)

    # ------------------------------------------------------------------
    # expressions
    # ------------------------------------------------------------------
    def _binary(self, operator: str, *, wrap: bool = False) -> Handler:
        def handler(state: _FunctionState, word: InstructionWord) -> None:
            right = state.stack.pop()
            left = state.stack.pop()
            state.stack.push(binary_expression(left, operator, right, wrap=wrap))

        return handler

    def _op_addi(self, state: _FunctionState, word: InstructionWord) -> None:
        operand = state.stack.pop()
        amount = word.s
        if amount < 0:
            text = f"{operand.render()} - {-amount}"
        else:
            text = f"{operand.render()} + {amount}"
        state.stack.push_text(text, ValueKind.STRING_GLOBAL)

    def _op_concat(self, state: _FunctionState, word: InstructionWord) -> None:
        values = state.stack.pop_many(word.u)
        state.stack.push_text(" .. ".join(value.render() for value in values), ValueKind.STRING_GLOBAL)

    def _op_minus(self, state: _FunctionState, word: InstructionWord) -> None:
        operand = state.stack.pop()
        state.stack.push_text("-" + operand.render(), ValueKind.STRING_GLOBAL)

    def _op_not(self, state: _FunctionState, word: InstructionWord) -> None:
        operand = state.stack.pop()
        state.stack.push_text("not " + operand.render(), ValueKind.STRING_GLOBAL)

    # ------------------------------------------------------------------
    # jumps
    # ------------------------------------------------------------------
    def _op_conditional_jump(self, state: _FunctionState, word: InstructionWord) -> None:
        opcode = word.opcode
        count = 2 if opcode in COMPARISON_JUMPS else 1
        operands = tuple(value.render() for value in state.stack.pop_many(count))
        state.flow.conditional_jump(opcode, word.s, word.line, operands)

    def _op_jmp(self, state: _FunctionState, word: InstructionWord) -> None:
        state.flow.unconditional_jump(word.s, word.line)

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------
    def _op_forprep(self, state: _FunctionState, word: InstructionWord) -> None:
        stack = state.stack
        if stack.depth() < 3:
            raise StackUnderflowError("numeric for loop needs start, limit and step on the stack")
        start, limit, step = stack.peek(2), stack.peek(1), stack.peek(0)
        name = state.info.open_numeric_loop(stack.depth() - 3)
        state.emit(f"for {name} = {start.render()}, {limit.render()}, {step.render()}\ndo\n")

    def _op_forloop(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.pop_many(3)
        state.info.close_numeric_loop()
        state.emit("end\n")

    def _op_lforprep(self, state: _FunctionState, word: InstructionWord) -> None:
        iterable = state.stack.pop()
        names = state.info.open_generic_loop(state.stack.depth())
        for name in names:
            state.stack.push_text(name, ValueKind.STRING_LOCAL)
        state.emit(f"for {names[1]}, {names[2]} in {iterable.render()}\ndo\n")

    def _op_lforloop(self, state: _FunctionState, word: InstructionWord) -> None:
        state.stack.pop_many(3)
        state.info.close_generic_loop()
        state.emit("end\n")

    # ------------------------------------------------------------------
    # closures
    # ------------------------------------------------------------------
    def _op_closure(self, state: _FunctionState, word: InstructionWord) -> None:
        child = _constant(state.proto.prototypes, word.a, "function")
        captured = state.stack.pop_many(word.b)
        info = FuncInfo(child, is_main=False)
        for index, value in enumerate(captured):
            info.bind_upvalue(index, value.render())
        text = self._decompile_function(child, info, depth=state.depth + 1)
        state.stack.push(StackValue(text, ValueKind.CLOSURE_TEXT))


def decompile(proto: Prototype, options: Optional[DecompileOptions] = None) -> str:
    """Convenience wrapper returning the raw source of ``proto``."""

    return Decompiler(options).decompile(proto)


__all__ = ["Decompiler", "MULT_RET", "decompile"]

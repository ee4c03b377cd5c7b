"""Loader for compiled Lua 4.0 chunks (``luac`` output).

A chunk starts with a small header describing the platform it was compiled
on, followed by the main function prototype.  Prototypes nest: every function
literal inside a body is stored as a child prototype of the body that
contains it.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .errors import InvalidChunkError
from .instruction import SIZE_B, SIZE_OP, WORD_SIZE, InstructionWord, read_instructions

logger = logging.getLogger(__name__)


ID_CHUNK = 0x1B
SIGNATURE = b"Lua"
VERSION = 0x40
SIZE_INSTRUCTION = 32
NUMBER_SIZE = 8
TEST_NUMBER = 3.14159265358979323846e8


@dataclass(frozen=True)
class LocalVariable:
    name: Optional[str]
    startpc: int
    endpc: int


@dataclass(frozen=True)
class ChunkHeader:
    version: int
    little_endian: bool
    int_size: int
    size_t_size: int
    instruction_size: int
    size_instruction: int
    size_op: int
    size_b: int
    number_size: int
    test_number: float

    @property
    def byteorder(self) -> str:
        return "little" if self.little_endian else "big"


@dataclass
class Prototype:
    """A decoded function body."""

    source: Optional[str] = None
    line_defined: int = 0
    num_params: int = 0
    is_vararg: bool = False
    max_stack_size: int = 0
    local_names: List[LocalVariable] = field(default_factory=list)
    line_info: List[int] = field(default_factory=list)
    strings: List[str] = field(default_factory=list)
    numbers: List[float] = field(default_factory=list)
    prototypes: List["Prototype"] = field(default_factory=list)
    code: List[InstructionWord] = field(default_factory=list)

    def iter_prototypes(self) -> Iterator[Tuple[int, "Prototype"]]:
        """Yield ``(depth, prototype)`` for this body and every nested one."""

        stack: List[Tuple[int, Prototype]] = [(0, self)]
        while stack:
            depth, proto = stack.pop()
            yield depth, proto
            for child in reversed(proto.prototypes):
                stack.append((depth + 1, child))


class _ChunkReader:
    """Cursor over the raw chunk bytes."""

    def __init__(self, data: bytes, encoding: str) -> None:
        self._data = data
        self._pos = 0
        self._encoding = encoding
        self._endian = "<"
        self._int_format = "i"
        self._size_t_format = "I"

    @property
    def position(self) -> int:
        return self._pos

    def remaining(self) -> int:
        return len(self._data) - self._pos

    def configure(self, header: ChunkHeader) -> None:
        self._endian = "<" if header.little_endian else ">"
        self._int_format = {4: "i", 8: "q"}[header.int_size]
        self._size_t_format = {4: "I", 8: "Q"}[header.size_t_size]

    def read_bytes(self, count: int) -> bytes:
        if count < 0 or self._pos + count > len(self._data):
            raise InvalidChunkError(
                f"unexpected end of chunk at offset {self._pos} (wanted {count} bytes)"
            )
        chunk = self._data[self._pos : self._pos + count]
        self._pos += count
        return chunk

    def read_byte(self) -> int:
        return self.read_bytes(1)[0]

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        return struct.unpack(self._endian + fmt, self.read_bytes(size))[0]

    def read_int(self) -> int:
        return self._unpack(self._int_format)

    def read_size(self) -> int:
        return self._unpack(self._size_t_format)

    def read_number(self) -> float:
        return self._unpack("d")

    def read_count(self) -> int:
        count = self.read_int()
        if count < 0:
            raise InvalidChunkError(f"negative element count {count} at offset {self._pos}")
        return count

    def read_string(self) -> Optional[str]:
        size = self.read_size()
        if size == 0:
            return None
        raw = self.read_bytes(size)
        # the stored length includes the terminating NUL
        return raw[:-1].decode(self._encoding)


def _read_header(reader: _ChunkReader) -> ChunkHeader:
    if reader.read_byte() != ID_CHUNK:
        raise InvalidChunkError("missing binary chunk marker")
    if reader.read_bytes(len(SIGNATURE)) != SIGNATURE:
        raise InvalidChunkError("bad signature")
    version = reader.read_byte()
    if version != VERSION:
        raise InvalidChunkError(f"unsupported chunk version 0x{version:02X}")
    little_endian = reader.read_byte() == 1
    sizes = [reader.read_byte() for _ in range(7)]
    int_size, size_t_size, instruction_size, size_instruction, size_op, size_b, number_size = sizes

    if int_size not in (4, 8) or size_t_size not in (4, 8):
        raise InvalidChunkError(f"unsupported int/size_t widths {int_size}/{size_t_size}")
    if instruction_size != WORD_SIZE or size_instruction != SIZE_INSTRUCTION:
        raise InvalidChunkError(f"unsupported instruction size {instruction_size}")
    if size_op != SIZE_OP or size_b != SIZE_B:
        raise InvalidChunkError(f"unsupported instruction layout op={size_op} b={size_b}")
    if number_size != NUMBER_SIZE:
        raise InvalidChunkError(f"unsupported number size {number_size}")

    header = ChunkHeader(
        version=version,
        little_endian=little_endian,
        int_size=int_size,
        size_t_size=size_t_size,
        instruction_size=instruction_size,
        size_instruction=size_instruction,
        size_op=size_op,
        size_b=size_b,
        number_size=number_size,
        test_number=0.0,
    )
    reader.configure(header)
    test_number = reader.read_number()
    if int(test_number) != int(TEST_NUMBER):
        raise InvalidChunkError("number format mismatch (test number differs)")
    return replace(header, test_number=test_number)


def _read_function(reader: _ChunkReader, header: ChunkHeader) -> Prototype:
    proto = Prototype()
    proto.source = reader.read_string()
    proto.line_defined = reader.read_int()
    proto.num_params = reader.read_int()
    proto.is_vararg = reader.read_byte() != 0
    proto.max_stack_size = reader.read_int()

    for _ in range(reader.read_count()):
        name = reader.read_string()
        startpc = reader.read_int()
        endpc = reader.read_int()
        proto.local_names.append(LocalVariable(name, startpc, endpc))

    proto.line_info = [reader.read_int() for _ in range(reader.read_count())]
    proto.strings = [reader.read_string() or "" for _ in range(reader.read_count())]
    proto.numbers = [reader.read_number() for _ in range(reader.read_count())]
    proto.prototypes = [_read_function(reader, header) for _ in range(reader.read_count())]

    count = reader.read_count()
    code = reader.read_bytes(count * WORD_SIZE)
    proto.code, _ = read_instructions(code, header.byteorder)
    return proto


def parse_chunk(data: bytes, *, encoding: str = "latin-1") -> Prototype:
    """Decode ``data`` into the main :class:`Prototype` of the chunk."""

    reader = _ChunkReader(data, encoding)
    header = _read_header(reader)
    proto = _read_function(reader, header)
    if reader.remaining():
        logger.debug("ignoring %d trailing byte(s) after main function", reader.remaining())
    return proto


def load_prototype(path: Path, *, encoding: str = "latin-1") -> Prototype:
    return parse_chunk(Path(path).read_bytes(), encoding=encoding)


__all__ = [
    "ChunkHeader",
    "LocalVariable",
    "Prototype",
    "load_prototype",
    "parse_chunk",
]

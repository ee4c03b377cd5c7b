"""Helpers that assemble prototypes and binary Lua 4.0 chunks for tests."""

from __future__ import annotations

import struct
from typing import Iterable, Optional, Sequence, Tuple

from luadec.chunk import ID_CHUNK, SIGNATURE, TEST_NUMBER, VERSION, Prototype
from luadec.instruction import InstructionWord, encode
from luadec.opcodes import Opcode


def make_word(opcode: Opcode, *operands: int, offset: int = 0) -> InstructionWord:
    return InstructionWord(offset, encode(opcode, *operands))


def assemble(*instructions: Tuple) -> list:
    """Turn ``(opcode, operand...)`` tuples into consecutive instruction words."""

    return [
        InstructionWord(index, encode(opcode, *operands))
        for index, (opcode, *operands) in enumerate(instructions)
    ]


def make_proto(
    *instructions: Tuple,
    num_params: int = 0,
    is_vararg: bool = False,
    strings: Sequence[str] = (),
    numbers: Sequence[float] = (),
    prototypes: Sequence[Prototype] = (),
    source: Optional[str] = None,
) -> Prototype:
    return Prototype(
        source=source,
        num_params=num_params,
        is_vararg=is_vararg,
        max_stack_size=8,
        strings=list(strings),
        numbers=list(numbers),
        prototypes=list(prototypes),
        code=assemble(*instructions),
    )


class ChunkWriter:
    """Serialise prototypes the way ``luac`` 4.0 lays them out."""

    def __init__(self, *, little_endian: bool = True, int_size: int = 4, size_t_size: int = 4) -> None:
        self.endian = "<" if little_endian else ">"
        self.little_endian = little_endian
        self.int_format = {4: "i", 8: "q"}[int_size]
        self.size_t_format = {4: "I", 8: "Q"}[size_t_size]
        self.int_size = int_size
        self.size_t_size = size_t_size

    def header(self, *, version: int = VERSION, signature: bytes = SIGNATURE) -> bytes:
        sizes = bytes(
            [
                version,
                1 if self.little_endian else 0,
                self.int_size,
                self.size_t_size,
                4,
                32,
                6,
                9,
                8,
            ]
        )
        return bytes([ID_CHUNK]) + signature + sizes + struct.pack(self.endian + "d", TEST_NUMBER)

    def integer(self, value: int) -> bytes:
        return struct.pack(self.endian + self.int_format, value)

    def string(self, text: Optional[str]) -> bytes:
        if text is None:
            return struct.pack(self.endian + self.size_t_format, 0)
        raw = text.encode("latin-1") + b"\x00"
        return struct.pack(self.endian + self.size_t_format, len(raw)) + raw

    def counted(self, items: Iterable[bytes]) -> bytes:
        items = list(items)
        return self.integer(len(items)) + b"".join(items)

    def function(self, proto: Prototype) -> bytes:
        parts = [
            self.string(proto.source),
            self.integer(proto.line_defined),
            self.integer(proto.num_params),
            bytes([1 if proto.is_vararg else 0]),
            self.integer(proto.max_stack_size),
            self.counted(
                self.string(local.name) + self.integer(local.startpc) + self.integer(local.endpc)
                for local in proto.local_names
            ),
            self.counted(self.integer(line) for line in proto.line_info),
            self.counted(self.string(text) for text in proto.strings),
            self.counted(struct.pack(self.endian + "d", number) for number in proto.numbers),
            self.counted(self.function(child) for child in proto.prototypes),
            self.counted(struct.pack(self.endian + "I", word.raw) for word in proto.code),
        ]
        return b"".join(parts)

    def chunk(self, proto: Prototype, **header_options) -> bytes:
        return self.header(**header_options) + self.function(proto)


def build_chunk(proto: Prototype, **options) -> bytes:
    header_options = {key: options.pop(key) for key in ("version", "signature") if key in options}
    return ChunkWriter(**options).chunk(proto, **header_options)

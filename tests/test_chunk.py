from pathlib import Path

import pytest

from chunk_builder import ChunkWriter, build_chunk, make_proto
from luadec.chunk import LocalVariable, load_prototype, parse_chunk
from luadec.errors import InvalidChunkError
from luadec.opcodes import Opcode


def sample_proto():
    child = make_proto((Opcode.PUSHINT, 1), (Opcode.RETURN, 0), (Opcode.END,), num_params=1)
    proto = make_proto(
        (Opcode.CLOSURE, 0, 0),
        (Opcode.SETGLOBAL, 0),
        (Opcode.PUSHNUM, 0),
        (Opcode.END,),
        strings=["f", "line\nbreak"],
        numbers=[2.5],
        prototypes=[child],
        source="@sample.lua",
    )
    proto.line_info = [1, 1, 2, 2]
    proto.local_names = [LocalVariable("x", 0, 3)]
    return proto


def test_parse_chunk_reads_main_function() -> None:
    proto = parse_chunk(build_chunk(sample_proto()))

    assert proto.source == "@sample.lua"
    assert proto.strings == ["f", "line\nbreak"]
    assert proto.numbers == [2.5]
    assert proto.line_info == [1, 1, 2, 2]
    assert proto.local_names == [LocalVariable("x", 0, 3)]
    assert [word.opcode for word in proto.code] == [
        Opcode.CLOSURE,
        Opcode.SETGLOBAL,
        Opcode.PUSHNUM,
        Opcode.END,
    ]


def test_parse_chunk_reads_nested_functions() -> None:
    proto = parse_chunk(build_chunk(sample_proto()))

    assert len(proto.prototypes) == 1
    child = proto.prototypes[0]
    assert child.source is None
    assert child.num_params == 1
    assert child.code[0].s == 1
    assert [depth for depth, _ in proto.iter_prototypes()] == [0, 1]


def test_parse_chunk_big_endian_and_wide_sizes() -> None:
    data = build_chunk(sample_proto(), little_endian=False, int_size=8, size_t_size=8)
    proto = parse_chunk(data)

    assert proto.strings[0] == "f"
    assert proto.code[1].opcode is Opcode.SETGLOBAL


@pytest.mark.parametrize(
    "data, message",
    [
        (b"", "unexpected end"),
        (b"\x1bLuz", "bad signature"),
        (b"#!/usr/bin/lua\n", "marker"),
    ],
)
def test_parse_chunk_rejects_garbage(data, message):
    with pytest.raises(InvalidChunkError, match=message):
        parse_chunk(data)


def test_parse_chunk_rejects_other_versions() -> None:
    with pytest.raises(InvalidChunkError, match="version 0x50"):
        parse_chunk(build_chunk(sample_proto(), version=0x50))


def test_parse_chunk_rejects_truncated_data() -> None:
    data = build_chunk(sample_proto())
    with pytest.raises(InvalidChunkError, match="unexpected end"):
        parse_chunk(data[:-3])


def test_parse_chunk_rejects_bad_test_number() -> None:
    writer = ChunkWriter()
    data = bytearray(writer.chunk(sample_proto()))
    # the test number occupies the 8 bytes after the 13 byte header prefix
    data[13:21] = b"\x00" * 8
    with pytest.raises(InvalidChunkError, match="test number"):
        parse_chunk(bytes(data))


def test_load_prototype_from_file(tmp_path: Path) -> None:
    path = tmp_path / "script.lua"
    path.write_bytes(build_chunk(sample_proto()))

    proto = load_prototype(path)

    assert proto.source == "@sample.lua"

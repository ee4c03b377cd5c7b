import logging
from pathlib import Path

import pytest

from chunk_builder import build_chunk, make_proto
from lua_decompile import build_options, main, parse_args
from luadec.opcodes import Opcode


def write_chunk(path: Path) -> None:
    proto = make_proto(
        (Opcode.CREATETABLE, 2),
        (Opcode.PUSHINT, 1),
        (Opcode.PUSHINT, 2),
        (Opcode.SETLIST, 0, 2),
        (Opcode.SETGLOBAL, 0),
        (Opcode.END,),
        strings=["t"],
    )
    path.write_bytes(build_chunk(proto))


def test_main_decompiles_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "table.lua"
    write_chunk(path)

    assert main([str(path)]) == 0

    out = capsys.readouterr().out
    assert "File table.lua successfully decompiled!" in out
    assert (tmp_path / "table_d.lua").read_text() == "t = {\n\t1,\n\t2\n}\n"


def test_main_raw_output_with_suffix(tmp_path: Path) -> None:
    path = tmp_path / "table.lua"
    write_chunk(path)

    assert main(["--raw", "--suffix", "_raw", str(path)]) == 0
    assert (tmp_path / "table_raw.lua").read_text() == "t = { 1, 2 }\n"


def test_main_listing(tmp_path: Path) -> None:
    path = tmp_path / "table.lua"
    write_chunk(path)

    assert main(["--listing", str(path)]) == 0
    listing = (tmp_path / "table_d.lst").read_text()
    assert "CREATETABLE" in listing
    assert "SETLIST" in listing


def test_main_reports_invalid_input(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "plain.lua"
    path.write_text("x = 1\n")

    assert main([str(path)]) == 1
    assert "Error: file plain.lua is not a compiled lua file!" in capsys.readouterr().out


def test_main_output_dir(tmp_path: Path) -> None:
    path = tmp_path / "table.lua"
    write_chunk(path)
    out_dir = tmp_path / "out"

    assert main(["--output-dir", str(out_dir), str(path)]) == 0
    assert (out_dir / "table.lua").exists()


def test_build_options_from_flags() -> None:
    options = build_options(parse_args(["--indent-spaces", "2", "--raw", "x.lua"]))

    assert options.indent == "  "
    assert options.format_output is False
    assert options.output_suffix == "_d"


def test_negative_indent_is_rejected() -> None:
    with pytest.raises(SystemExit, match="must not be negative"):
        build_options(parse_args(["--indent-spaces", "-1", "x.lua"]))


def test_verbose_and_quiet_are_exclusive(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        parse_args(["--verbose", "--quiet", "x.lua"])


def test_quiet_sets_error_level(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
    path = tmp_path / "table.lua"
    write_chunk(path)

    main(["--quiet", str(path)])

    assert calls["level"] == logging.ERROR

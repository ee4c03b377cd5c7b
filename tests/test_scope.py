import pytest

from chunk_builder import make_proto
from luadec.errors import UnboundLocalReferenceError, UnsupportedPatternError
from luadec.opcodes import Opcode
from luadec.scope import GENERIC_LOOP_NAMES, FuncInfo


def make_info(num_params=0):
    return FuncInfo(make_proto((Opcode.END,), num_params=num_params))


def test_parameters_are_named_from_one() -> None:
    info = make_info(num_params=3)

    assert info.bind_parameters() == ["arg1", "arg2", "arg3"]
    assert info.local_name(2) == "arg3"


def test_locals_are_offset_by_parameter_count() -> None:
    info = make_info(num_params=2)
    info.bind_parameters()

    assert info.declare_local(2) == "loc1"
    assert info.declare_local(4) == "loc3"
    assert info.local_count == 2
    assert info.is_bound(4)


def test_unbound_local_raises() -> None:
    with pytest.raises(UnboundLocalReferenceError, match="slot 7"):
        make_info().local_name(7)


def test_vararg_table_follows_parameters() -> None:
    info = make_info(num_params=1)
    info.bind_parameters()

    assert info.bind_vararg() == "arg"
    assert info.local_name(1) == "arg"


def test_upvalue_references_use_percent_prefix() -> None:
    info = make_info()
    info.bind_upvalue(0, "loc1")

    assert info.upvalue_reference(0) == "%loc1"
    with pytest.raises(UnboundLocalReferenceError, match="upvalue 1"):
        info.upvalue_reference(1)


def test_numeric_loops_get_running_counter() -> None:
    info = make_info()

    assert info.open_numeric_loop(0) == "for0"
    assert info.local_name(0) == "for0"
    assert info.for_loop_depth == 1
    info.close_numeric_loop()
    assert not info.is_bound(0)
    assert info.for_loop_depth == 0
    assert info.open_numeric_loop(0) == "for1"


def test_generic_loop_binds_three_slots() -> None:
    info = make_info()

    assert info.open_generic_loop(2) == GENERIC_LOOP_NAMES
    assert [info.local_name(slot) for slot in (2, 3, 4)] == ["_t", "index", "value"]
    info.close_generic_loop()
    assert not any(info.is_bound(slot) for slot in (2, 3, 4))


def test_mismatched_loop_end_is_unsupported() -> None:
    info = make_info()
    info.open_generic_loop(0)

    with pytest.raises(UnsupportedPatternError, match="numeric loop end"):
        info.close_numeric_loop()


def test_release_from_keeps_parameters_and_open_loop_slots() -> None:
    info = make_info(num_params=1)
    info.bind_parameters()
    info.declare_local(1)
    info.open_numeric_loop(2)
    info.declare_local(3)

    info.release_from(0)

    assert info.is_bound(0)
    assert not info.is_bound(1)
    assert info.is_bound(2)
    assert not info.is_bound(3)
    assert info.declare_local(1) == "loc1"

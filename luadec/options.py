"""Configuration shared by the decompiler, the formatter and the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from .control_flow import DEFAULT_CONDITION


@dataclass
class DecompileOptions:
    """Customisation knobs that influence decompilation and output."""

    output_suffix: str = "_d"
    indent: str = "\t"
    format_output: bool = True
    condition_placeholder: str = DEFAULT_CONDITION
    # turn ``name = function ... end`` into ``function name ... end``
    name_functions: bool = True
    encoding: str = "latin-1"


__all__ = ["DecompileOptions"]

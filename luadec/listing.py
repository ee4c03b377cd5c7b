"""Instruction listing utilities."""

from __future__ import annotations

from typing import List, Optional

from .chunk import Prototype


def render_listing(proto: Prototype, *, max_instructions: Optional[int] = None) -> str:
    """Render a disassembly of ``proto`` and every nested function.

    Nested functions follow their parent in definition order and are
    indented by their nesting depth.
    """

    lines: List[str] = []
    for index, (depth, function) in enumerate(proto.iter_prototypes()):
        pad = "  " * depth
        vararg = " vararg" if function.is_vararg else ""
        lines.append(
            f"{pad}; function {index} depth={depth} line={function.line_defined} "
            f"params={function.num_params}{vararg} stack={function.max_stack_size} "
            f"strings={len(function.strings)} numbers={len(function.numbers)} "
            f"functions={len(function.prototypes)} instructions={len(function.code)}"
        )
        for position, word in enumerate(function.code):
            if max_instructions is not None and position >= max_instructions:
                lines.append(f"{pad}; ... truncated ...")
                break
            lines.append(pad + word.format())
        lines.append("")
    return "\n".join(lines)


__all__ = ["render_listing"]

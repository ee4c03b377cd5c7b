"""Public package exports for the Lua 4.0 bytecode decompiler."""

from .chunk import Prototype, load_prototype, parse_chunk
from .dispatcher import Decompiler, decompile
from .errors import DecodeWarning, DecompileError, InvalidChunkError
from .formatter import Formatter
from .instruction import InstructionWord
from .listing import render_listing
from .opcodes import Opcode
from .options import DecompileOptions
from .pipeline import FileResult, decompile_file, process_path, status_line

__all__ = [
    "Prototype",
    "load_prototype",
    "parse_chunk",
    "Decompiler",
    "decompile",
    "DecodeWarning",
    "DecompileError",
    "InvalidChunkError",
    "Formatter",
    "InstructionWord",
    "render_listing",
    "Opcode",
    "DecompileOptions",
    "FileResult",
    "decompile_file",
    "process_path",
    "status_line",
]

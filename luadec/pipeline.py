"""File and directory driver around the decompiler.

Every input file is handled on its own: a file that is not a compiled chunk
or that fails to decompile is reported and the batch moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .chunk import load_prototype
from .dispatcher import Decompiler
from .errors import DecodeWarning, DecompileError, InvalidChunkError
from .formatter import Formatter
from .listing import render_listing
from .options import DecompileOptions

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_WARNINGS = "warnings"
STATUS_INVALID = "invalid"
STATUS_FAILED = "failed"

LISTING_EXTENSION = ".lst"


@dataclass
class FileResult:
    """Outcome of processing one input file."""

    path: Path
    status: str
    source: Optional[str] = None
    warnings: List[DecodeWarning] = field(default_factory=list)
    error: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def has_output(self) -> bool:
        return self.status in (STATUS_OK, STATUS_WARNINGS) and self.source is not None


def decompile_file(
    path: Path,
    options: Optional[DecompileOptions] = None,
    *,
    formatter: Optional[Formatter] = None,
    listing: bool = False,
) -> FileResult:
    """Load and decompile ``path`` without writing anything."""

    options = options or DecompileOptions()
    path = Path(path)
    try:
        proto = load_prototype(path, encoding=options.encoding)
    except InvalidChunkError as exc:
        logger.info("%s is not a compiled chunk: %s", path, exc)
        return FileResult(path, STATUS_INVALID, error=str(exc))
    except OSError as exc:
        return FileResult(path, STATUS_FAILED, error=str(exc))

    if listing:
        return FileResult(path, STATUS_OK, source=render_listing(proto))

    decompiler = Decompiler(options)
    try:
        raw = decompiler.decompile(proto)
    except DecompileError as exc:
        logger.error("failed to decompile %s: %s", path, exc)
        return FileResult(path, STATUS_FAILED, warnings=list(decompiler.warnings), error=str(exc))

    source = raw
    if options.format_output:
        formatter = formatter or Formatter(options.indent)
        formatter.reset()
        source = formatter.format(raw)

    status = STATUS_OK if decompiler.succeeded else STATUS_WARNINGS
    return FileResult(path, status, source=source, warnings=list(decompiler.warnings))


def output_path_for(path: Path, options: DecompileOptions) -> Path:
    """``dir/name.ext`` becomes ``dir/name<suffix>.ext``."""

    return path.with_name(f"{path.stem}{options.output_suffix}{path.suffix}")


def process_path(
    path: Path,
    options: Optional[DecompileOptions] = None,
    *,
    output_dir: Optional[Path] = None,
    listing: bool = False,
) -> List[FileResult]:
    """Decompile a file or every file below a directory and write the results."""

    options = options or DecompileOptions()
    path = Path(path)
    if not path.exists():
        logger.error("path %s does not exist", path)
        return [FileResult(path, STATUS_INVALID, error=f"path {path} does not exist")]

    formatter = Formatter(options.indent)

    if path.is_file():
        if output_dir is not None:
            target = Path(output_dir) / path.name
        else:
            target = output_path_for(path, options)
        result = decompile_file(path, options, formatter=formatter, listing=listing)
        _write_result(result, target, options, listing)
        return [result]

    output_root = Path(output_dir) if output_dir is not None else path.parent / f"{path.name}{options.output_suffix}"
    sources = sorted(candidate for candidate in path.rglob("*") if candidate.is_file())
    results: List[FileResult] = []
    for source_path in sources:
        result = decompile_file(source_path, options, formatter=formatter, listing=listing)
        _write_result(result, output_root / source_path.relative_to(path), options, listing)
        results.append(result)
    return results


def _write_result(result: FileResult, target: Path, options: DecompileOptions, listing: bool) -> None:
    if not result.has_output:
        return
    if listing:
        target = target.with_suffix(LISTING_EXTENSION)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding=options.encoding, errors="replace", newline="\n") as handle:
            handle.write(result.source or "")
    except OSError as exc:
        logger.error("could not write %s: %s", target, exc)
        result.status = STATUS_FAILED
        result.error = f"could not write {target}: {exc}"
        return
    result.output_path = target
    logger.debug("wrote %s", target)


def status_line(result: FileResult) -> str:
    name = result.path.name
    if result.status == STATUS_OK:
        return f"File {name} successfully decompiled!"
    if result.status == STATUS_WARNINGS:
        return f"File {name} decompiled with errors!"
    if result.status == STATUS_INVALID:
        return f"Error: file {name} is not a compiled lua file!"
    return f"Error: file {name} failed to decompile: {result.error}"


__all__ = [
    "FileResult",
    "STATUS_FAILED",
    "STATUS_INVALID",
    "STATUS_OK",
    "STATUS_WARNINGS",
    "decompile_file",
    "output_path_for",
    "process_path",
    "status_line",
]

import shutil
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from dtsnarrow.emitter import emit
from dtsnarrow.errors import ScanError
from dtsnarrow.logger import logger
from dtsnarrow.models import GenerationResult, GenerationStatus, SourceUnit
from dtsnarrow.scanner import scan
from dtsnarrow.settings import OutputStructure

DEFAULT_IMPORT_ORDER = ("bun",)

_DECLARATION_SUFFIXES = {
    ".ts": ".d.ts",
    ".tsx": ".d.ts",
    ".mts": ".d.mts",
    ".cts": ".d.cts",
}


def generate_declaration(
    source_text: str,
    file_path: str = "",
    keep_comments: bool = True,
    preferred_import_sources: Sequence[str] = DEFAULT_IMPORT_ORDER,
) -> str:
    """
    Produce declaration file text for one module.

    Raises ScanError (carrying *file_path*) when the source cannot be
    segmented; every other construct degrades gracefully.
    """
    try:
        result = scan(source_text)
    except ScanError as exc:
        if file_path:
            exc.with_file(file_path)
        raise
    return emit(
        result.declarations,
        result.imports,
        keep_comments=keep_comments,
        preferred_sources=preferred_import_sources,
        directives=result.directives,
    )


@dataclass
class GenerateFileParams:
    source: SourceUnit
    keep_comments: bool
    preferred_import_sources: Sequence[str]


def _generate_file(params: GenerateFileParams) -> GenerationResult:
    start = time.perf_counter()
    p = params
    try:
        output = generate_declaration(
            p.source.text,
            p.source.file_path,
            keep_comments=p.keep_comments,
            preferred_import_sources=p.preferred_import_sources,
        )
    except Exception as exc:
        duration = time.perf_counter() - start
        logger.error(
            "Failed to generate declarations", path=p.source.file_path, error=str(exc)
        )
        return GenerationResult(
            file_path=p.source.file_path,
            status=GenerationStatus.ERROR,
            error=str(exc),
            duration=duration,
        )

    duration = time.perf_counter() - start
    logger.debug(
        "Generated declarations", path=p.source.file_path, duration=f"{duration:.4f}"
    )
    return GenerationResult(
        file_path=p.source.file_path,
        status=GenerationStatus.GENERATED,
        output=output,
        duration=duration,
    )


def generate_files(
    sources: Sequence[SourceUnit],
    keep_comments: bool = True,
    preferred_import_sources: Sequence[str] = DEFAULT_IMPORT_ORDER,
    num_workers: Optional[int] = None,
) -> List[GenerationResult]:
    """
    Generate declarations for many modules on a thread pool.

    Results are returned in the order of *sources*. A failing file yields an
    error result and never affects its siblings.
    """
    if not sources:
        return []
    params = [
        GenerateFileParams(
            source=source,
            keep_comments=keep_comments,
            preferred_import_sources=tuple(preferred_import_sources),
        )
        for source in sources
    ]
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        return list(executor.map(_generate_file, params))


def declaration_path(
    file_path: str,
    outdir: Path,
    structure: OutputStructure = OutputStructure.MIRROR,
) -> Path:
    rel = Path(file_path)
    suffix = _DECLARATION_SUFFIXES.get(rel.suffix, ".d.ts")
    name = rel.stem + suffix
    if structure is OutputStructure.FLAT:
        return outdir / name
    return outdir / rel.parent / name


def write_results(
    results: Sequence[GenerationResult],
    outdir: Path,
    structure: OutputStructure = OutputStructure.MIRROR,
    clean: bool = False,
) -> List[Path]:
    """
    Write every successful result below *outdir*; returns the written paths.
    """
    if clean and outdir.exists():
        shutil.rmtree(outdir)

    written: List[Path] = []
    seen = set()
    for result in results:
        if result.status is not GenerationStatus.GENERATED or result.output is None:
            continue
        target = declaration_path(result.file_path, outdir, structure)
        if target in seen:
            logger.warning(
                "Overwriting declaration file from another source",
                path=str(target),
                source=result.file_path,
            )
        seen.add(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.output, encoding="utf-8")
        written.append(target)
    return written

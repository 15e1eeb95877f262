import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from dtsnarrow.discovery import collect_sources
from dtsnarrow.generator import declaration_path, generate_files, write_results
from dtsnarrow.logger import logger
from dtsnarrow.models import GenerationStatus
from dtsnarrow.settings import OutputStructure, load_settings


def _setup_logging(debug: bool) -> None:
    # Ensure stdlib logger emits records so structlog output is visible
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        # structlog renders the final message; keep stdlib formatter simple.
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            handler.setLevel(level)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--root", type=str, default=None, help="Source root (default: ./src).")
@click.option(
    "--outdir", type=str, default=None, help="Output directory (default: ./dist)."
)
@click.option(
    "--entrypoint",
    "entrypoints",
    multiple=True,
    help="gitwildmatch pattern selecting sources; may be repeated.",
)
@click.option(
    "--exclude",
    "excludes",
    multiple=True,
    help="gitwildmatch pattern of sources to skip; may be repeated.",
)
@click.option(
    "--keep-comments/--no-keep-comments",
    default=None,
    help="Carry doc comments over to the output.",
)
@click.option(
    "--import-order",
    "import_order",
    multiple=True,
    help="Module prefix whose imports are listed first; may be repeated.",
)
@click.option(
    "--output-structure",
    type=click.Choice([s.value for s in OutputStructure]),
    default=None,
    help="Mirror the source tree or write all files flat into the output directory.",
)
@click.option("--clean/--no-clean", default=None, help="Empty outdir first.")
@click.option("--workers", type=int, default=None, help="Worker thread count.")
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with generator settings.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print generated declarations instead of writing them.",
)
@click.option("--debug/--no-debug", default=False, help="Enable debug logging.")
def main(
    root: Optional[str],
    outdir: Optional[str],
    entrypoints: Tuple[str, ...],
    excludes: Tuple[str, ...],
    keep_comments: Optional[bool],
    import_order: Tuple[str, ...],
    output_structure: Optional[str],
    clean: Optional[bool],
    workers: Optional[int],
    config: Optional[Path],
    dry_run: bool,
    debug: bool,
) -> None:
    """
    Generate narrowly typed declaration files for TypeScript sources.
    """
    overrides: Dict[str, Any] = {
        "root": root,
        "outdir": outdir,
        "entrypoints": list(entrypoints) or None,
        "exclude": list(excludes) or None,
        "keep_comments": keep_comments,
        "import_order": list(import_order) or None,
        "output_structure": output_structure,
        "clean": clean,
        "num_workers": workers,
    }
    settings = load_settings(
        toml_file=str(config) if config else None,
        **{k: v for k, v in overrides.items() if v is not None},
    )
    _setup_logging(debug or settings.verbose)

    started = time.perf_counter()
    root_path = Path(settings.root)
    if not root_path.is_dir():
        raise click.BadParameter(
            f"{root_path} is not a directory", param_hint="--root"
        )

    sources = collect_sources(root_path, settings.entrypoints, settings.exclude)
    results = generate_files(
        sources,
        keep_comments=settings.keep_comments,
        preferred_import_sources=settings.import_order,
        num_workers=settings.worker_count,
    )
    failed = [r for r in results if r.status is GenerationStatus.ERROR]

    outdir_path = Path(settings.outdir)
    if dry_run:
        for result in results:
            if result.output is None:
                continue
            target = declaration_path(
                result.file_path, outdir_path, settings.output_structure
            )
            click.echo(f"// {target}")
            click.echo(result.output)
    elif not failed or settings.continue_on_error:
        written = write_results(
            results, outdir_path, settings.output_structure, clean=settings.clean
        )
        logger.info(
            "Wrote declaration files",
            count=len(written),
            outdir=str(outdir_path),
            elapsed=f"{time.perf_counter() - started:.2f}s",
        )

    for result in failed:
        click.echo(f"{result.file_path} failed to generate: {result.error}", err=True)
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()

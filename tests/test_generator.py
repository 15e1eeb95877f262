from pathlib import Path

import pytest

from dtsnarrow.errors import ScanError
from dtsnarrow.generator import (
    declaration_path,
    generate_declaration,
    generate_files,
    write_results,
)
from dtsnarrow.models import GenerationStatus, SourceUnit
from dtsnarrow.settings import OutputStructure

SAMPLES = Path(__file__).parent / "samples"


def test_generate_sample_module():
    source = (SAMPLES / "widgets.ts").read_text()
    expected = (SAMPLES / "widgets.d.ts").read_text()
    assert generate_declaration(source, "widgets.ts") == expected


def test_generation_is_deterministic():
    source = (SAMPLES / "widgets.ts").read_text()
    assert generate_declaration(source) == generate_declaration(source)


def test_literal_const_round_trip():
    out = generate_declaration("export const X = 'hi'\n")
    assert out == "export declare const X: 'hi';\n"


def test_keyword_property_access_keeps_following_declarations():
    out = generate_declaration(
        "import mod from './m'\nexport const x = mod.default\nexport const y = 2\n"
    )
    assert "export declare const x: unknown;" in out.splitlines()
    assert "export declare const y: 2;" in out.splitlines()


def test_const_array_becomes_readonly_tuple():
    out = generate_declaration("export const A = [1, 2, 3]\n")
    assert out == "export declare const A: readonly [1, 2, 3];\n"


def test_unused_imports_are_removed():
    out = generate_declaration(
        "import { A, B } from './types'\n"
        "export function f(a: A): A\n"
        "export function f(a: A) { return a }\n"
    )
    assert out == (
        "import { A } from './types';\n"
        "\n"
        "export declare function f(a: A): A;\n"
        "export declare function f(a: A): void;\n"
    )


def test_overloads_emit_one_line_each():
    out = generate_declaration(
        "export function f(a: string): string\n"
        "export function f(a: number): number\n"
        "export function f(a: unknown): unknown { return a }\n"
    )
    assert out.splitlines() == [
        "export declare function f(a: string): string;",
        "export declare function f(a: number): number;",
        "export declare function f(a: unknown): unknown;",
    ]


def test_preferred_import_sources_come_first():
    out = generate_declaration(
        "import { a } from './a'\n"
        "import { serve } from 'bun'\n"
        "export const x: typeof a | typeof serve = a\n",
        preferred_import_sources=("bun",),
    )
    assert out.splitlines()[:2] == [
        "import { serve } from 'bun';",
        "import { a } from './a';",
    ]


def test_scan_errors_carry_the_file_path():
    with pytest.raises(ScanError) as exc_info:
        generate_declaration("export const s = 'abc\n", "src/bad.ts")
    assert str(exc_info.value) == "src/bad.ts:1:18: unterminated string literal"


def test_generate_files_isolates_failures():
    sources = [
        SourceUnit(text="export const a = 1\n", file_path="a.ts"),
        SourceUnit(text="export const b = `oops\n", file_path="b.ts"),
        SourceUnit(text="export const c = 'c'\n", file_path="c.ts"),
    ]
    results = generate_files(sources, num_workers=2)
    assert [r.file_path for r in results] == ["a.ts", "b.ts", "c.ts"]
    assert [r.status for r in results] == [
        GenerationStatus.GENERATED,
        GenerationStatus.ERROR,
        GenerationStatus.GENERATED,
    ]
    assert results[0].output == "export declare const a: 1;\n"
    assert results[1].output is None
    assert "b.ts" in results[1].error
    assert "unterminated template literal" in results[1].error


def test_generate_files_empty():
    assert generate_files([]) == []


@pytest.mark.parametrize(
    "file_path, structure, expected",
    [
        ("src/a.ts", OutputStructure.MIRROR, "out/src/a.d.ts"),
        ("src/a.ts", OutputStructure.FLAT, "out/a.d.ts"),
        ("view.tsx", OutputStructure.MIRROR, "out/view.d.ts"),
        ("lib/mod.mts", OutputStructure.MIRROR, "out/lib/mod.d.mts"),
        ("lib/mod.cts", OutputStructure.FLAT, "out/mod.d.cts"),
    ],
)
def test_declaration_path(file_path, structure, expected):
    assert declaration_path(file_path, Path("out"), structure) == Path(expected)


def test_write_results(tmp_path: Path):
    outdir = tmp_path / "dist"
    stale = outdir / "stale.d.ts"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")

    results = generate_files(
        [
            SourceUnit(text="export const a = 1\n", file_path="pkg/a.ts"),
            SourceUnit(text="export const b = 'x\n", file_path="pkg/b.ts"),
        ]
    )
    written = write_results(results, outdir, clean=True)

    assert written == [outdir / "pkg" / "a.d.ts"]
    assert written[0].read_text() == "export declare const a: 1;\n"
    assert not stale.exists()
    assert not (outdir / "pkg" / "b.d.ts").exists()

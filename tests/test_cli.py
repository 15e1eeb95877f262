from pathlib import Path

from click.testing import CliRunner

from dtsnarrow.cli import main


def _project(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    (src / "nested").mkdir(parents=True)
    (src / "index.ts").write_text("export const name = 'app'\n")
    (src / "nested" / "math.ts").write_text(
        "export function add(a: number, b: number): number { return a + b }\n"
    )
    (src / "index.test.ts").write_text("export const skipped = true\n")
    return src


def test_cli_writes_declarations(tmp_path: Path):
    src = _project(tmp_path)
    out = tmp_path / "types"
    result = CliRunner().invoke(main, ["--root", str(src), "--outdir", str(out)])

    assert result.exit_code == 0, result.output
    assert (out / "index.d.ts").read_text() == "export declare const name: 'app';\n"
    assert (out / "nested" / "math.d.ts").read_text() == (
        "export declare function add(a: number, b: number): number;\n"
    )
    assert not (out / "index.test.d.ts").exists()


def test_cli_flat_output(tmp_path: Path):
    src = _project(tmp_path)
    out = tmp_path / "types"
    result = CliRunner().invoke(
        main,
        ["--root", str(src), "--outdir", str(out), "--output-structure", "flat"],
    )
    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in out.iterdir()) == ["index.d.ts", "math.d.ts"]


def test_cli_dry_run_prints_instead_of_writing(tmp_path: Path):
    src = _project(tmp_path)
    out = tmp_path / "types"
    result = CliRunner().invoke(
        main, ["--root", str(src), "--outdir", str(out), "--dry-run"]
    )
    assert result.exit_code == 0, result.output
    assert "export declare const name: 'app';" in result.output
    assert not out.exists()


def test_cli_reports_failures(tmp_path: Path):
    src = _project(tmp_path)
    (src / "broken.ts").write_text("export const s = 'open\n")
    out = tmp_path / "types"
    result = CliRunner().invoke(main, ["--root", str(src), "--outdir", str(out)])

    assert result.exit_code == 1
    assert "broken.ts" in result.output
    # the other files are still written
    assert (out / "index.d.ts").exists()
    assert not (out / "broken.d.ts").exists()


def test_cli_rejects_missing_root(tmp_path: Path):
    result = CliRunner().invoke(main, ["--root", str(tmp_path / "missing")])
    assert result.exit_code == 2

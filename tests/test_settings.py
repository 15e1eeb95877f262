from pathlib import Path

from dtsnarrow.settings import GeneratorSettings, OutputStructure, load_settings


def test_defaults():
    settings = GeneratorSettings()
    assert settings.root == "./src"
    assert settings.outdir == "./dist"
    assert settings.keep_comments is True
    assert settings.import_order == ["bun"]
    assert settings.output_structure is OutputStructure.MIRROR
    assert "**/*.d.ts" in settings.exclude
    assert settings.worker_count >= 1


def test_worker_count_uses_explicit_value():
    assert GeneratorSettings(num_workers=3).worker_count == 3


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DTSNARROW_OUTDIR", "build/types")
    monkeypatch.setenv("DTSNARROW_KEEP_COMMENTS", "false")
    settings = GeneratorSettings()
    assert settings.outdir == "build/types"
    assert settings.keep_comments is False


def test_load_settings_from_toml(tmp_path: Path):
    config = tmp_path / "dtsnarrow.toml"
    config.write_text(
        'root = "lib"\n'
        'output_structure = "flat"\n'
        'import_order = ["node:", "bun"]\n'
    )
    settings = load_settings(toml_file=str(config))
    assert settings.root == "lib"
    assert settings.output_structure is OutputStructure.FLAT
    assert settings.import_order == ["node:", "bun"]


def test_keyword_arguments_win_over_toml(tmp_path: Path):
    config = tmp_path / "dtsnarrow.toml"
    config.write_text('outdir = "from-file"\n')
    settings = load_settings(toml_file=str(config), outdir="from-args")
    assert settings.outdir == "from-args"

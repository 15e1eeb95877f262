import os
from enum import Enum
from typing import List, Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)


class OutputStructure(str, Enum):
    MIRROR = "mirror"
    FLAT = "flat"


class GeneratorSettings(BaseSettings):
    """Settings for a declaration generation run."""

    model_config = SettingsConfigDict(env_prefix="DTSNARROW_")

    root: str = Field(
        default="./src",
        description="Directory that source files are discovered under.",
    )
    entrypoints: List[str] = Field(
        default_factory=lambda: ["**/*.ts"],
        description=(
            "gitwildmatch patterns, relative to `root`, selecting the files "
            "to generate declarations for."
        ),
    )
    exclude: List[str] = Field(
        default_factory=lambda: [
            "**/*.d.ts",
            "**/*.test.ts",
            "**/*.spec.ts",
            "node_modules/",
        ],
        description="gitwildmatch patterns, relative to `root`, of files to skip.",
    )
    outdir: str = Field(
        default="./dist",
        description="Directory the generated declaration files are written to.",
    )
    keep_comments: bool = Field(
        default=True,
        description="If True, doc comments are carried over to the output.",
    )
    import_order: List[str] = Field(
        default_factory=lambda: ["bun"],
        description=(
            "Module specifier prefixes whose imports are listed first, in this "
            "order; remaining imports are sorted alphabetically."
        ),
    )
    output_structure: OutputStructure = Field(
        default=OutputStructure.MIRROR,
        description=(
            'Output layout: "mirror" keeps the source directory structure, '
            '"flat" writes every file directly into `outdir`.'
        ),
    )
    clean: bool = Field(
        default=False,
        description="If True, `outdir` is emptied before writing.",
    )
    num_workers: Optional[int] = Field(
        default=None,
        description=(
            "Number of worker threads. If None, uses one less than the CPU count."
        ),
    )
    continue_on_error: bool = Field(
        default=True,
        description=(
            "If True, files that fail to generate are reported and the rest are "
            "still written."
        ),
    )
    verbose: bool = Field(default=False, description="Enable verbose logging.")

    @property
    def worker_count(self) -> int:
        if self.num_workers:
            return max(1, self.num_workers)
        return max(1, (os.cpu_count() or 2) - 1)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(
    env_prefix: Optional[str] = None,
    env_file: Optional[str] = None,
    toml_file: Optional[str] = None,
    json_file: Optional[str] = None,
    **kwargs,
) -> GeneratorSettings:
    config_dict = SettingsConfigDict(
        env_prefix=env_prefix or "DTSNARROW_",
        env_file=env_file,
        toml_file=toml_file,
        json_file=json_file,
    )

    class Settings(GeneratorSettings):
        model_config = config_dict

    return Settings(**kwargs)

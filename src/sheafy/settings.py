from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tomlkit.exceptions import TOMLKitError

from sheafy.config import CONFIG_FILENAME, CONFIG_TABLE, DEFAULT_BUNDLE_NAME, DEFAULT_FILTERS
from sheafy.exceptions import ConfigError, ConfigExistsError, ConflictingFlagsError, MissingFiltersError
from sheafy.file_manipulation import normalize_extensions


class ProjectConfig(BaseModel):
    """Content of the `[sheafy]` table of a project's `sheafy.toml`.

    Every key is optional; command line flags override them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    bundle_name: str | None = Field(default=None, description="Bundle file name.")
    filters: list[str] | None = Field(default=None, description="Extensions to bundle.")
    use_gitignore: bool | None = Field(default=None, description="Apply hidden-file and VCS ignore rules.")
    ignore_patterns: str | None = Field(default=None, description="Extra gitignore-style patterns.")
    prologue: str | None = Field(default=None, description="Text written before the first block.")
    epilogue: str | None = Field(default=None, description="Text written after the last block.")
    working_dir: str | None = Field(default=None, description="Directory to bundle, relative to the config.")

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def _join_pattern_lines(cls, value: object) -> object:
        if isinstance(value, list):
            return "\n".join(str(v) for v in value)
        return value


def load_project_config(path: Path) -> ProjectConfig:
    """Load a project configuration file.

    A missing file yields the defaults.

    Args:
        path (Path): the `sheafy.toml` file.

    Raises:
        ConfigError: if the file cannot be read, parsed or validated.

    Returns:
        ProjectConfig: the parsed configuration.
    """
    if not path.exists():
        return ProjectConfig()
    try:
        data = tomlkit.parse(path.read_text(encoding="utf-8")).unwrap()
    except (OSError, UnicodeDecodeError, TOMLKitError) as e:
        raise ConfigError(path=path, reason=str(e)) from e
    table = data.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(path=path, reason=f"[{CONFIG_TABLE}] must be a table")
    try:
        return ProjectConfig.model_validate(table)
    except ValidationError as e:
        raise ConfigError(path=path, reason=str(e)) from e


def render_default_config() -> str:
    """Render the commented `sheafy.toml` written by `sheafy init`.

    Returns:
        str: TOML text.
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("sheafy configuration. Command line flags override these values."))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    table.add("bundle_name", DEFAULT_BUNDLE_NAME)
    filters = tomlkit.array()
    for ext in DEFAULT_FILTERS:
        filters.append(ext)
    filters.comment("extensions to bundle, without the dot")
    table.add("filters", filters)
    use_gitignore = tomlkit.item(True)  # noqa: FBT003
    use_gitignore.comment("hidden files, .gitignore/.ignore and global git excludes")
    table.add("use_gitignore", use_gitignore)
    table.add(tomlkit.comment('ignore_patterns = """'))
    table.add(tomlkit.comment("target/"))
    table.add(tomlkit.comment("*.log"))
    table.add(tomlkit.comment("!keep.log"))
    table.add(tomlkit.comment('"""'))
    table.add(tomlkit.comment('prologue = "Project files:"'))
    table.add(tomlkit.comment('epilogue = "End of project files."'))
    table.add(tomlkit.comment('working_dir = "."'))
    doc.add(CONFIG_TABLE, table)
    return tomlkit.dumps(doc)


def init_config(path: Path) -> Path:
    """Write a default configuration file.

    Args:
        path (Path): where to create `sheafy.toml`.

    Raises:
        ConfigExistsError: if the file already exists.

    Returns:
        Path: the created file.
    """
    if path.exists():
        raise ConfigExistsError(path=path)
    path.write_text(render_default_config(), encoding="utf-8")
    return path


class BundleSettings(BaseModel):
    """Effective settings of a `bundle` run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: Path = Field(..., description="Directory to bundle.")
    output: Path = Field(..., description="Bundle file to write.")
    config_path: Path = Field(..., description="Project configuration file.")
    filters: frozenset[str] = Field(..., description="Normalized extensions to bundle.")
    use_standard_filters: bool = Field(default=True, description="Hidden-file and VCS ignore rules.")
    ignore_patterns: str | None = Field(default=None, description="Extra gitignore-style patterns.")
    prologue: str | None = None
    epilogue: str | None = None


class RestoreSettings(BaseModel):
    """Effective settings of a `restore` run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: Path = Field(..., description="Directory to restore into.")
    input: Path = Field(..., description="Bundle file to read.")


def working_root(repo: Path, config: ProjectConfig) -> Path:
    """Directory the run operates on: `working_dir` from the config, relative to `repo`."""
    root = repo / config.working_dir if config.working_dir else repo
    return root.resolve()


def effective_standard_filters(config: ProjectConfig, *, use_gitignore: bool, no_gitignore: bool) -> bool:
    """Merge the ignore-rule flags with the configuration.

    Raises:
        ConflictingFlagsError: if both flags are set.
    """
    if use_gitignore and no_gitignore:
        raise ConflictingFlagsError
    if use_gitignore:
        return True
    if no_gitignore:
        return False
    return True if config.use_gitignore is None else config.use_gitignore


def resolve_bundle_settings(  # noqa: PLR0913
    repo: Path,
    config: ProjectConfig,
    *,
    config_path: Path,
    filters: list[str] | None = None,
    output: str | None = None,
    use_gitignore: bool = False,
    no_gitignore: bool = False,
) -> BundleSettings:
    """Merge command line values, configuration and defaults for `bundle`.

    Args:
        repo (Path): directory holding the configuration.
        config (ProjectConfig): loaded configuration.
        config_path (Path): the configuration file, always excluded from bundles.
        filters (list[str] | None): `--filters` values.
        output (str | None): `--output` value.
        use_gitignore (bool): `--use-gitignore` flag.
        no_gitignore (bool): `--no-gitignore` flag.

    Raises:
        ConflictingFlagsError: if `--use-gitignore` and `--no-gitignore` are both set.
        MissingFiltersError: if no extension filter is configured.

    Returns:
        BundleSettings: the effective settings.
    """
    standard = effective_standard_filters(config, use_gitignore=use_gitignore, no_gitignore=no_gitignore)
    extensions = normalize_extensions(filters if filters is not None else config.filters)
    if not extensions:
        raise MissingFiltersError
    root = working_root(repo, config)
    name = output or config.bundle_name or DEFAULT_BUNDLE_NAME
    return BundleSettings(
        root=root,
        output=root / name,
        config_path=config_path,
        filters=extensions,
        use_standard_filters=standard,
        ignore_patterns=config.ignore_patterns,
        prologue=config.prologue,
        epilogue=config.epilogue,
    )


def resolve_restore_settings(repo: Path, config: ProjectConfig, *, input_file: str | None = None) -> RestoreSettings:
    """Merge command line values, configuration and defaults for `restore`."""
    root = working_root(repo, config)
    name = input_file or config.bundle_name or DEFAULT_BUNDLE_NAME
    return RestoreSettings(root=root, input=root / name)


def default_config_path(repo: Path) -> Path:
    return repo / CONFIG_FILENAME

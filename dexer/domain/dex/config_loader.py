"""YAML loader for module dexing descriptions.

A modules file lists the modules to dex together with the collaborator data
the core consumes (classpaths, proguard-raise header jars, extra flag
files). Schema validation is strict: unknown fields are errors rather than
silently ignored properties.

Example:
    modules:
      - name: Settings
        type: android_app
        dir: packages/apps/Settings
        min_sdk_version: "30"
        classes_jar: out/Settings/classes.jar
        boot_classpath: [out/framework.jar]
        optimize:
          shrink: true
          proguard_flags_files: [proguard.flags]

Key functions:
- load_modules: Load and validate a modules file
- parse_modules: Validate already-parsed YAML data
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from dexer.core.models import Classpath, DexClasspaths
from dexer.domain.dex.builder import DexRequest
from dexer.domain.dex.config import (
    DEX_FIELDS,
    ConfigError,
    ModuleDexConfig,
    ModuleType,
    PropertyError,
)
from dexer.domain.dex.flags import PROGUARD_RAISE_TAG

if TYPE_CHECKING:
    from dexer.domain.dex.sdk import PlatformSdk


class ModulesFileMissingError(ConfigError):
    """Raised when the modules file does not exist."""

    path: Path

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Modules file not found: {path}")


_ALLOWED_TOP_LEVEL_FIELDS = frozenset({"modules"})

_ALLOWED_MODULE_FIELDS = frozenset(
    {
        "name",
        "type",
        "dir",
        "namespace",
        "min_sdk_version",
        "classes_jar",
        "jar_name",
        "installable",
        "boot_classpath",
        "classpath",
        "proguard_raise",
        "aapt_proguard_flags_file",
        "extra_proguard_flags_files",
    }
) | DEX_FIELDS


@dataclass(frozen=True)
class ModuleSpec:
    """One module from a modules file.

    Implements ClasspathProvider and TaggedDependencyResolver from the
    statically declared lists, so a ModuleSpec can be handed straight to
    compile_dex.

    Attributes:
        name: Module name.
        module_type: Kind of module.
        dex: Parsed dexing properties.
        classes_jar: Compiled classes archive.
        jar_name: File name of the dexed archive.
        min_sdk_version: Declared minimum SDK spec string.
        module_dir: Module source directory.
        namespace: Module namespace.
        installable: Whether the module is installed on device.
        boot_classpath: Boot classpath jars.
        classpath: Extra dex classpath jars.
        proguard_raise: Header jars of proguard-raise dependencies.
        aapt_proguard_flags_file: aapt-generated keep rules, if any.
        extra_proguard_flags_files: Other collaborator-supplied flag files.
    """

    name: str
    module_type: ModuleType
    dex: ModuleDexConfig
    classes_jar: Path
    jar_name: str
    min_sdk_version: str = ""
    module_dir: Path = Path()
    namespace: str = ""
    installable: bool = True
    boot_classpath: Classpath = field(default_factory=Classpath)
    classpath: Classpath = field(default_factory=Classpath)
    proguard_raise: tuple[Path, ...] = ()
    aapt_proguard_flags_file: Path | None = None
    extra_proguard_flags_files: tuple[Path, ...] = ()

    def dex_classpaths(self) -> DexClasspaths:
        return DexClasspaths(boot=self.boot_classpath, dex=self.classpath)

    def resolve_tagged_dependencies(self, tag: str) -> list[Path]:
        if tag == PROGUARD_RAISE_TAG:
            return list(self.proguard_raise)
        return []

    def module_out(self, out_root: Path) -> Path:
        return out_root / self.module_dir / self.name

    def to_request(self, sdk: PlatformSdk, out_root: Path) -> DexRequest:
        """Build the DexRequest for this module under `out_root`."""
        return DexRequest(
            name=self.name,
            config=self.dex,
            classes_jar=self.classes_jar,
            jar_name=self.jar_name,
            min_sdk_version=sdk.parse_spec(self.min_sdk_version),
            module_out=self.module_out(out_root),
            module_dir=self.module_dir,
            namespace=self.namespace,
            aapt_flags_file=self.aapt_proguard_flags_file,
            extra_flag_files=self.extra_proguard_flags_files,
        )


def load_modules(path: Path) -> list[ModuleSpec]:
    """Load and validate a modules file.

    Raises:
        ConfigError: If the file is missing, has invalid YAML syntax,
            contains unknown fields or wrongly typed values.
    """
    if not path.exists():
        raise ModulesFileMissingError(path)

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"Failed to decode {path}: {e}") from e
    return parse_modules(_parse_yaml(content, path.name))


def _parse_yaml(content: str, filename: str) -> dict[str, Any]:
    """Parse YAML content into a dictionary.

    Raises:
        ConfigError: If YAML syntax is invalid or the root is not a mapping.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {filename}: {e}") from e

    # Empty file or only comments
    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(
            f"{filename} must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def parse_modules(data: dict[str, Any]) -> list[ModuleSpec]:
    """Validate parsed YAML and build ModuleSpecs, in file order.

    Raises:
        ConfigError: On unknown fields, bad types or duplicate module names.
    """
    unknown = set(data.keys()) - _ALLOWED_TOP_LEVEL_FIELDS
    if unknown:
        first_unknown = sorted(str(k) for k in unknown)[0]
        raise ConfigError(f"Unknown field '{first_unknown}' in modules file")

    raw_modules = data.get("modules")
    if raw_modules is None:
        return []
    if not isinstance(raw_modules, list):
        raise ConfigError(
            f"modules must be a list, got {type(raw_modules).__name__}"
        )

    modules: list[ModuleSpec] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_modules):
        module = _parse_module(raw, i)
        if module.name in seen:
            raise ConfigError(f"Duplicate module name '{module.name}'")
        seen.add(module.name)
        modules.append(module)
    return modules


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{where}: '{key}' must be a non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, where: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(
            f"{where}: '{key}' must be a string, got {type(value).__name__}"
        )
    return value


def _path_list(data: dict[str, Any], key: str, where: str) -> list[Path]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(
            f"{where}: '{key}' must be a list, got {type(value).__name__}"
        )
    paths: list[Path] = []
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ConfigError(
                f"{where}: '{key}[{i}]' must be a string, got {type(item).__name__}"
            )
        paths.append(Path(item))
    return paths


def _min_sdk_string(value: object, where: str) -> str:
    # YAML reads `min_sdk_version: 30` as an int
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigError(
            f"{where}: 'min_sdk_version' must be a string or integer, "
            f"got {type(value).__name__}"
        )
    return str(value)


def _module_dir(data: dict[str, Any], where: str) -> Path:
    # Module outputs live under out_root/dir, which must not escape it
    module_dir = Path(_optional_str(data, "dir", where) or "")
    if module_dir.is_absolute() or ".." in module_dir.parts:
        raise ConfigError(
            f"{where}: 'dir' must be a relative path inside the source tree"
        )
    return module_dir


def _parse_module(raw: object, index: int) -> ModuleSpec:
    where = f"modules[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where} must be an object, got {type(raw).__name__}")

    unknown = set(raw.keys()) - _ALLOWED_MODULE_FIELDS
    if unknown:
        first_unknown = sorted(str(k) for k in unknown)[0]
        raise ConfigError(f"Unknown field '{first_unknown}' in {where}")

    name = _require_str(raw, "name", where)
    where = f"module '{name}'"
    try:
        module_type = ModuleType.from_value(
            raw.get("type", ModuleType.JAVA_LIBRARY.value)
        )
        dex = ModuleDexConfig.from_dict(raw, module_type)
    except PropertyError as e:
        raise ConfigError(f"{where}: {e}") from e

    installable = raw.get("installable", True)
    if not isinstance(installable, bool):
        raise ConfigError(f"{where}: 'installable' must be a boolean")

    aapt_file = _optional_str(raw, "aapt_proguard_flags_file", where)

    return ModuleSpec(
        name=name,
        module_type=module_type,
        dex=dex,
        classes_jar=Path(_require_str(raw, "classes_jar", where)),
        jar_name=_optional_str(raw, "jar_name", where) or f"{name}.jar",
        min_sdk_version=_min_sdk_string(raw.get("min_sdk_version"), where),
        module_dir=_module_dir(raw, where),
        namespace=_optional_str(raw, "namespace", where) or "",
        installable=installable,
        boot_classpath=Classpath(_path_list(raw, "boot_classpath", where)),
        classpath=Classpath(_path_list(raw, "classpath", where)),
        proguard_raise=tuple(_path_list(raw, "proguard_raise", where)),
        aapt_proguard_flags_file=Path(aapt_file) if aapt_file else None,
        extra_proguard_flags_files=tuple(
            _path_list(raw, "extra_proguard_flags_files", where)
        ),
    )

"""Configuration dataclasses for per-module dexing properties.

Module properties are parsed and validated once, then frozen into these
dataclasses; nothing downstream mutates them while actions are built.

Tri-state toggles are modelled as `bool | None`: None means "unset" and each
consumer applies the documented default for that toggle.

Key types:
- ModuleType: Kind of module, which decides the default for optimize.enabled
- OptimizeConfig: The `optimize` block (shrink/optimize/obfuscate and friends)
- ModuleDexConfig: Everything the dexing core reads from one module
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Fields allowed in the `optimize` block
OPTIMIZE_FIELDS = frozenset(
    {
        "enabled",
        "ignore_warnings",
        "proguard_compatibility",
        "shrink",
        "optimize",
        "obfuscate",
        "no_aapt_flags",
        "proguard_flags",
        "proguard_flags_files",
    }
)

# Module fields read by ModuleDexConfig
DEX_FIELDS = frozenset(
    {
        "dxflags",
        "main_dex_rules",
        "optimize",
        "uncompress_dex",
        "exclude_kotlinc_generated_files",
        "compile_dex",
    }
)


class ConfigError(Exception):
    """Base exception for configuration errors.

    Raised when module properties have invalid content, cannot be resolved,
    or contradict each other.
    """

    pass


class PropertyError(ConfigError):
    """Raised when a single module property is invalid.

    Example:
        >>> raise PropertyError("min_sdk_version", 'invalid sdk version "foo"')
        PropertyError: min_sdk_version: invalid sdk version "foo"
    """

    property_name: str

    def __init__(self, property_name: str, message: str) -> None:
        self.property_name = property_name
        super().__init__(f"{property_name}: {message}")


class ModuleType(Enum):
    """Kind of module being dexed."""

    ANDROID_APP = "android_app"
    ANDROID_TEST_HELPER_APP = "android_test_helper_app"
    ANDROID_TEST = "android_test"
    JAVA_LIBRARY = "java_library"
    JAVA_TEST = "java_test"

    @property
    def optimize_enabled_by_default(self) -> bool:
        """Apps are optimized unless they opt out; libraries and tests are not."""
        return self in (ModuleType.ANDROID_APP, ModuleType.ANDROID_TEST_HELPER_APP)

    @classmethod
    def from_value(cls, value: object) -> ModuleType:
        if not isinstance(value, str):
            raise PropertyError(
                "type", f"must be a string, got {type(value).__name__}"
            )
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise PropertyError(
                "type", f"unknown module type '{value}'. Allowed: {allowed}"
            ) from None


def _optional_bool(data: dict[str, Any], key: str, where: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise PropertyError(
            f"{where}{key}", f"must be a boolean, got {type(value).__name__}"
        )
    return value


def _string_tuple(data: dict[str, Any], key: str, where: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise PropertyError(
            f"{where}{key}", f"must be a list, got {type(value).__name__}"
        )
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise PropertyError(
                f"{where}{key}[{i}]",
                f"must be a string, got {type(item).__name__}",
            )
    return tuple(value)


def _reject_unknown(data: dict[str, Any], known: frozenset[str], where: str) -> None:
    unknown = set(data.keys()) - known
    if unknown:
        # str() handles non-string YAML keys
        first_unknown = sorted(str(k) for k in unknown)[0]
        raise ConfigError(f"Unknown field '{where}{first_unknown}'")


@dataclass(frozen=True)
class OptimizeConfig:
    """The `optimize` block of a module.

    Attributes:
        enabled: Run the optimizer (r8) instead of the plain dexer (d8).
            Unset means the module type's default.
        enabled_by_default: Default for `enabled`, derived from module type.
        ignore_warnings: Keep building when the optimizer warns. Defaults to
            True.
        proguard_compatibility: Run the optimizer in proguard compatibility
            mode. Defaults to True; False selects full mode.
        shrink: Remove unused code. Unset counts as False.
        optimize: Optimize bytecode. Unset counts as False.
        obfuscate: Rename symbols. Unset counts as False.
        no_aapt_flags: Skip the aapt-generated keep rules for classes
            referenced from the manifest. Defaults to False.
        proguard_flags: Raw optimizer flags, appended verbatim.
        proguard_flags_files: Module-local optimizer flag files.
    """

    enabled: bool | None = None
    enabled_by_default: bool = False
    ignore_warnings: bool | None = None
    proguard_compatibility: bool | None = None
    shrink: bool | None = None
    optimize: bool | None = None
    obfuscate: bool | None = None
    no_aapt_flags: bool | None = None
    proguard_flags: tuple[str, ...] = ()
    proguard_flags_files: tuple[str, ...] = ()

    @classmethod
    def from_dict(
        cls, data: dict[str, Any] | None, *, enabled_by_default: bool = False
    ) -> OptimizeConfig:
        """Create OptimizeConfig from a parsed `optimize` mapping.

        Args:
            data: The mapping, or None when the block is absent.
            enabled_by_default: Module-type default for `enabled`.

        Raises:
            ConfigError: On unknown fields or wrongly typed values.
        """
        if data is None:
            return cls(enabled_by_default=enabled_by_default)
        if not isinstance(data, dict):
            raise PropertyError(
                "optimize", f"must be an object, got {type(data).__name__}"
            )
        _reject_unknown(data, OPTIMIZE_FIELDS, "optimize.")
        where = "optimize."
        return cls(
            enabled=_optional_bool(data, "enabled", where),
            enabled_by_default=enabled_by_default,
            ignore_warnings=_optional_bool(data, "ignore_warnings", where),
            proguard_compatibility=_optional_bool(
                data, "proguard_compatibility", where
            ),
            shrink=_optional_bool(data, "shrink", where),
            optimize=_optional_bool(data, "optimize", where),
            obfuscate=_optional_bool(data, "obfuscate", where),
            no_aapt_flags=_optional_bool(data, "no_aapt_flags", where),
            proguard_flags=_string_tuple(data, "proguard_flags", where),
            proguard_flags_files=_string_tuple(data, "proguard_flags_files", where),
        )


@dataclass(frozen=True)
class ModuleDexConfig:
    """Dexing properties of one module.

    Attributes:
        dxflags: Module-specific flags for every dex compile.
        main_dex_rules: Files with rules for classes kept in the main dex.
        optimize: The optimizer block.
        uncompress_dex: Store dex entries uncompressed and page-align the
            final archive.
        exclude_kotlinc_generated_files: Drop *.kotlin_module and
            *.kotlin_builtins from the final archive.
        compile_dex: Dex even when the module is not installable.
    """

    dxflags: tuple[str, ...] = ()
    main_dex_rules: tuple[str, ...] = ()
    optimize: OptimizeConfig = field(default_factory=OptimizeConfig)
    uncompress_dex: bool | None = None
    exclude_kotlinc_generated_files: bool | None = None
    compile_dex: bool | None = None

    def effective_optimize_enabled(self) -> bool:
        """Explicit optimize.enabled if set, else the module-type default."""
        if self.optimize.enabled is None:
            return self.optimize.enabled_by_default
        return self.optimize.enabled

    def should_compile_dex(self, installable: bool) -> bool:
        return installable or bool(self.compile_dex)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], module_type: ModuleType
    ) -> ModuleDexConfig:
        """Create ModuleDexConfig from the dexing subset of a module mapping.

        Keys other than the dexing properties are ignored here; the module
        loader owns the full schema.
        """
        dex_data = {k: v for k, v in data.items() if k in DEX_FIELDS}
        return cls(
            dxflags=_string_tuple(dex_data, "dxflags", ""),
            main_dex_rules=_string_tuple(dex_data, "main_dex_rules", ""),
            optimize=OptimizeConfig.from_dict(
                dex_data.get("optimize"),
                enabled_by_default=module_type.optimize_enabled_by_default,
            ),
            uncompress_dex=_optional_bool(dex_data, "uncompress_dex", ""),
            exclude_kotlinc_generated_files=_optional_bool(
                dex_data, "exclude_kotlinc_generated_files", ""
            ),
            compile_dex=_optional_bool(dex_data, "compile_dex", ""),
        )

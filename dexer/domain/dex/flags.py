"""Flag translation for the dexer and the optimizer.

Translates module properties, classpaths and environment overrides into the
ordered flag list each tool receives, together with every file those flags
make the tool read.

Flag order is part of the contract: both tools parse flags left to right and
later flags may override earlier ones, so every list here is built by
appending in a fixed order from ordered inputs. Nothing is ever sorted,
deduplicated through a set, or read from an unordered mapping.

Entry points:
- common_flags: flags shared by d8 and r8 (dxflags, main dex rules, debug,
  --min-api)
- d8_flags: classpath flags for the plain dexer
- r8_flags: classpath, flag-file and toggle flags for the optimizer
- tool_flags: dispatch to d8_flags or r8_flags for a pipeline
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from dexer.core.models import Classpath
from dexer.domain.dex.config import PropertyError
from dexer.domain.dex.selector import Pipeline

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from dexer.core.models import DexClasspaths
    from dexer.core.protocols import SdkResolver
    from dexer.domain.dex.config import ModuleDexConfig
    from dexer.domain.dex.sdk import SdkSpec
    from dexer.infra.config import ToolchainConfig
    from dexer.infra.env import BuildEnv

# Dependency tag of modules whose header jars raise the SDK seen by the
# optimizer (APIs added by support libraries or desugaring runtimes).
PROGUARD_RAISE_TAG = "proguard_raise"

# dx flags that d8 replaced; dropped from user-declared dxflags.
OBSOLETE_DX_FLAGS = ("--core-library", "--dex", "--multi-dex")


@dataclass(frozen=True)
class DexFlags:
    """Ordered flags plus the files they make the tool read.

    Attributes:
        flags: Flags in the order the tool must see them.
        deps: Files to declare as implicit inputs of the action.
    """

    flags: tuple[str, ...] = ()
    deps: tuple[Path, ...] = ()


def combine_flags(common: DexFlags, specific: DexFlags) -> DexFlags:
    """Full flag set of an action: common flags first, tool deps first."""
    return DexFlags(common.flags + specific.flags, specific.deps + common.deps)


def remove_list_from_list(items: Iterable[str], remove: Iterable[str]) -> list[str]:
    """Drop every occurrence of `remove` entries, keeping survivors in order."""
    removed = frozenset(remove)
    return [item for item in items if item not in removed]


def module_src_paths(paths: Iterable[str], module_dir: Path) -> list[Path]:
    """Resolve module-relative source paths against the module directory."""
    return [module_dir / p for p in paths]


def common_flags(
    config: ModuleDexConfig,
    min_sdk_version: SdkSpec,
    env: BuildEnv,
    sdk: SdkResolver,
    *,
    module_dir: Path = Path(),
) -> DexFlags:
    """Flags passed to both d8 and r8.

    Args:
        config: The module's dexing properties.
        min_sdk_version: The module's declared minimum SDK.
        env: Environment overrides.
        sdk: Resolver for the SDK spec.
        module_dir: Directory module-relative paths are resolved against.

    Raises:
        PropertyError: If min_sdk_version cannot be resolved.
    """
    flags = remove_list_from_list(config.dxflags, OBSOLETE_DX_FLAGS)
    deps: list[Path] = []

    for rules in module_src_paths(config.main_dex_rules, module_dir):
        flags.extend(["--main-dex-rules", str(rules)])
        deps.append(rules)

    if env.no_optimize_dx:
        flags.append("--debug")

    if env.generate_dex_debug:
        flags.extend(["--debug", "--verbose"])

    try:
        effective = sdk.effective_version(min_sdk_version)
    except ValueError as e:
        raise PropertyError("min_sdk_version", str(e)) from e

    flags.append(f"--min-api {effective.final_or_future_int()}")
    return DexFlags(tuple(flags), tuple(deps))


def d8_flags(classpaths: DexClasspaths) -> DexFlags:
    """Classpath flags for the plain dexer: boot classpath first, then dex classpath."""
    flags = [
        *classpaths.boot.form_repeated_classpath("--lib "),
        *classpaths.dex.form_repeated_classpath("--lib "),
    ]
    deps = [*classpaths.boot, *classpaths.dex]
    return DexFlags(tuple(flags), tuple(deps))


def extra_proguard_flag_files(
    config: ModuleDexConfig,
    aapt_flags_file: Path | None,
    others: Sequence[Path] = (),
) -> list[Path]:
    """Flag files supplied by collaborators rather than the module itself.

    The aapt-generated keep rules come first unless the module opts out with
    optimize.no_aapt_flags.
    """
    files: list[Path] = []
    if aapt_flags_file is not None and not config.optimize.no_aapt_flags:
        files.append(aapt_flags_file)
    files.extend(others)
    return files


def check_flag_files(flag_files: Sequence[Path]) -> None:
    """Reject a flag file reachable through more than one reference.

    Raises:
        PropertyError: Naming the first repeated file.
    """
    seen: set[Path] = set()
    for path in flag_files:
        if path in seen:
            raise PropertyError(
                "optimize.proguard_flags_files",
                f"flag file {path} is included more than once",
            )
        seen.add(path)


def r8_flags(
    config: ModuleDexConfig,
    classpaths: DexClasspaths,
    env: BuildEnv,
    toolchain: ToolchainConfig,
    *,
    proguard_raise: Sequence[Path] = (),
    extra_flag_files: Sequence[Path] = (),
    module_dir: Path = Path(),
) -> DexFlags:
    """Flags for the optimizer.

    Args:
        config: The module's dexing properties.
        classpaths: Boot and dex classpath.
        env: Environment overrides.
        toolchain: Provides the platform flag files and retrace prefix.
        proguard_raise: Header jars of proguard-raise dependencies.
        extra_flag_files: Flag files supplied by collaborators.
        module_dir: Directory module-relative paths are resolved against.

    Raises:
        PropertyError: If a flag file is referenced more than once.
    """
    opt = config.optimize
    flags: list[str] = []
    deps: list[Path] = []

    # Library jars. The proguard-raise jars suppress warnings about symbols
    # missing from the module's SDK and keep subclasses of newer classes.
    raise_deps = Classpath(proguard_raise)
    for source in (raise_deps, classpaths.boot, classpaths.dex):
        entry = source.form_java_classpath("-libraryjars")
        if entry:
            flags.append(entry)
    deps.extend(raise_deps)
    deps.extend(classpaths.boot)
    deps.extend(classpaths.dex)

    flag_files = [
        Path(toolchain.default_proguard_flags),
        *extra_flag_files,
        *module_src_paths(opt.proguard_flags_files, module_dir),
    ]
    check_flag_files(flag_files)
    flags.extend(f"-include {f}" for f in flag_files)
    deps.extend(flag_files)

    # Included by the default flag file, never referenced directly.
    deps.append(Path(toolchain.proguard_basic_keeps))

    flags.extend(opt.proguard_flags)

    if opt.proguard_compatibility is None or opt.proguard_compatibility:
        flags.append("--force-proguard-compatibility")
    elif opt.optimize or opt.obfuscate:
        source_file_template = f'"{toolchain.retrace_prefix}%MAP_ID"'
        flags.extend(["--map-id-template", "%MAP_HASH"])
        flags.extend(["--source-file-template", source_file_template])

    if not opt.shrink:
        flags.append("-dontshrink")

    if not opt.optimize:
        flags.append("-dontoptimize")

    if not opt.obfuscate:
        flags.append("-dontobfuscate")

    # Keep line numbers and locals for eng builds.
    if env.eng:
        flags.append("--debug")

    # TODO: default ignore_warnings to False once missing classes are added
    # to the platform builds that rely on it.
    if opt.ignore_warnings is None or opt.ignore_warnings:
        flags.append("-ignorewarnings")

    return DexFlags(tuple(flags), tuple(deps))


def tool_flags(
    pipeline: Pipeline,
    config: ModuleDexConfig,
    classpaths: DexClasspaths,
    env: BuildEnv,
    toolchain: ToolchainConfig,
    *,
    proguard_raise: Sequence[Path] = (),
    extra_flag_files: Sequence[Path] = (),
    module_dir: Path = Path(),
) -> DexFlags:
    """Tool-specific flags for `pipeline`."""
    if pipeline is Pipeline.R8:
        return r8_flags(
            config,
            classpaths,
            env,
            toolchain,
            proguard_raise=proguard_raise,
            extra_flag_files=extra_flag_files,
            module_dir=module_dir,
        )
    return d8_flags(classpaths)

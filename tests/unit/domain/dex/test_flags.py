"""Tests for flag translation.

Flag order is asserted exactly: both tools parse left to right and later
flags may override earlier ones.
"""

from pathlib import Path

import pytest

from dexer.core.models import Classpath, DexClasspaths
from dexer.domain.dex.config import ModuleDexConfig, OptimizeConfig, PropertyError
from dexer.domain.dex.flags import (
    DexFlags,
    check_flag_files,
    combine_flags,
    common_flags,
    d8_flags,
    extra_proguard_flag_files,
    r8_flags,
    remove_list_from_list,
    tool_flags,
)
from dexer.domain.dex.sdk import ApiLevel, PlatformSdk
from dexer.domain.dex.selector import Pipeline
from dexer.infra.config import ToolchainConfig
from dexer.infra.env import BuildEnv
from tests.fakes import FakeSdkResolver

SDK = PlatformSdk()
TOOLCHAIN = ToolchainConfig()
DEFAULT_FLAGS = "build/make/core/proguard.flags"
BASIC_KEEPS = "build/make/core/proguard_basic_keeps.flags"


def _common(
    config: ModuleDexConfig | None = None, min_sdk: str = "21", env: BuildEnv | None = None
) -> DexFlags:
    return common_flags(
        config or ModuleDexConfig(),
        SDK.parse_spec(min_sdk),
        env or BuildEnv(),
        SDK,
    )


def _r8(
    optimize: OptimizeConfig | None = None,
    classpaths: DexClasspaths | None = None,
    env: BuildEnv | None = None,
    **kwargs: object,
) -> DexFlags:
    config = ModuleDexConfig(optimize=optimize or OptimizeConfig(enabled=True))
    return r8_flags(
        config,
        classpaths or DexClasspaths(),
        env or BuildEnv(),
        TOOLCHAIN,
        **kwargs,  # type: ignore[arg-type]
    )


class TestRemoveListFromList:
    """Tests for remove_list_from_list."""

    def test_removes_every_occurrence_in_order(self) -> None:
        items = ["--dex", "--a", "--multi-dex", "--b", "--dex"]
        assert remove_list_from_list(items, ["--dex", "--multi-dex"]) == ["--a", "--b"]


class TestCommonFlags:
    """Tests for common_flags."""

    def test_min_api_only(self) -> None:
        assert _common().flags == ("--min-api 21",)

    def test_obsolete_dx_flags_removed(self) -> None:
        """--core-library, --dex and --multi-dex are dropped, the rest kept."""
        config = ModuleDexConfig(
            dxflags=("--core-library", "--no-locals", "--dex", "--multi-dex", "--x")
        )
        assert _common(config).flags == ("--no-locals", "--x", "--min-api 21")

    def test_main_dex_rules(self) -> None:
        """Each rules file is a flag pair and a dep, resolved against module_dir."""
        config = ModuleDexConfig(main_dex_rules=("main.rules", "more.rules"))
        flags = common_flags(
            config,
            SDK.parse_spec("21"),
            BuildEnv(),
            SDK,
            module_dir=Path("packages/apps/Foo"),
        )
        assert flags.flags == (
            "--main-dex-rules",
            "packages/apps/Foo/main.rules",
            "--main-dex-rules",
            "packages/apps/Foo/more.rules",
            "--min-api 21",
        )
        assert flags.deps == (
            Path("packages/apps/Foo/main.rules"),
            Path("packages/apps/Foo/more.rules"),
        )

    def test_no_optimize_dx(self) -> None:
        flags = _common(env=BuildEnv(no_optimize_dx=True)).flags
        assert flags == ("--debug", "--min-api 21")

    def test_generate_dex_debug(self) -> None:
        flags = _common(env=BuildEnv(generate_dex_debug=True)).flags
        assert flags == ("--debug", "--verbose", "--min-api 21")

    def test_both_debug_overrides(self) -> None:
        """Both overrides fire independently, in a fixed order."""
        env = BuildEnv(no_optimize_dx=True, generate_dex_debug=True)
        assert _common(env=env).flags == (
            "--debug",
            "--debug",
            "--verbose",
            "--min-api 21",
        )

    def test_min_api_appears_once(self) -> None:
        flags = _common(min_sdk="30").flags
        assert [f for f in flags if f.startswith("--min-api")] == ["--min-api 30"]

    def test_preview_min_sdk_on_preview_platform(self) -> None:
        sdk = PlatformSdk(
            platform_sdk_codename="Baklava",
            platform_sdk_final=False,
            active_codenames=("Baklava",),
        )
        flags = common_flags(ModuleDexConfig(), sdk.parse_spec("Baklava"), BuildEnv(), sdk)
        assert flags.flags == ("--min-api 10000",)

    def test_unresolvable_sdk(self) -> None:
        """An invalid spec is a property error on min_sdk_version."""
        with pytest.raises(PropertyError) as exc_info:
            _common(min_sdk="foo")
        assert exc_info.value.property_name == "min_sdk_version"
        assert 'invalid sdk version "foo"' in str(exc_info.value)

    def test_uses_injected_resolver(self) -> None:
        resolver = FakeSdkResolver(levels={"R": ApiLevel.of_int(30)})
        flags = common_flags(ModuleDexConfig(), SDK.parse_spec("R"), BuildEnv(), resolver)
        assert flags.flags == ("--min-api 30",)


class TestD8Flags:
    """Tests for d8_flags."""

    def test_boot_then_dex_classpath(self) -> None:
        classpaths = DexClasspaths(
            boot=Classpath(["bootA.jar", "bootB.jar"]), dex=Classpath(["lib.jar"])
        )
        flags = d8_flags(classpaths)
        assert flags.flags == ("--lib bootA.jar", "--lib bootB.jar", "--lib lib.jar")
        assert flags.deps == (Path("bootA.jar"), Path("bootB.jar"), Path("lib.jar"))

    def test_empty_classpath(self) -> None:
        assert d8_flags(DexClasspaths()) == DexFlags()


class TestR8Flags:
    """Tests for r8_flags."""

    def test_defaults(self) -> None:
        """Nothing enabled: compatibility mode and every disable flag."""
        assert _r8().flags == (
            f"-include {DEFAULT_FLAGS}",
            "--force-proguard-compatibility",
            "-dontshrink",
            "-dontoptimize",
            "-dontobfuscate",
            "-ignorewarnings",
        )

    def test_default_deps(self) -> None:
        """The basic keeps file is a dep even though no flag names it."""
        assert _r8().deps == (Path(DEFAULT_FLAGS), Path(BASIC_KEEPS))

    def test_library_jars_per_source(self) -> None:
        """Proguard-raise jars, boot and dex classpath each get one entry."""
        classpaths = DexClasspaths(
            boot=Classpath(["boot1.jar", "boot2.jar"]), dex=Classpath(["cp.jar"])
        )
        flags = _r8(classpaths=classpaths, proguard_raise=[Path("raise.jar")])
        assert flags.flags[:3] == (
            "-libraryjars raise.jar",
            "-libraryjars boot1.jar:boot2.jar",
            "-libraryjars cp.jar",
        )
        assert flags.deps[:4] == (
            Path("raise.jar"),
            Path("boot1.jar"),
            Path("boot2.jar"),
            Path("cp.jar"),
        )

    def test_empty_library_sources_skipped(self) -> None:
        classpaths = DexClasspaths(boot=Classpath(["boot.jar"]))
        flags = _r8(classpaths=classpaths)
        assert [f for f in flags.flags if f.startswith("-libraryjars")] == [
            "-libraryjars boot.jar"
        ]

    def test_flag_file_order(self) -> None:
        """Default file, then collaborator files, then module files."""
        optimize = OptimizeConfig(enabled=True, proguard_flags_files=("proguard.flags",))
        flags = _r8(
            optimize,
            extra_flag_files=[Path("out/aapt.flags")],
            module_dir=Path("apps/Foo"),
        )
        includes = [f for f in flags.flags if f.startswith("-include")]
        assert includes == [
            f"-include {DEFAULT_FLAGS}",
            "-include out/aapt.flags",
            "-include apps/Foo/proguard.flags",
        ]
        assert flags.deps == (
            Path(DEFAULT_FLAGS),
            Path("out/aapt.flags"),
            Path("apps/Foo/proguard.flags"),
            Path(BASIC_KEEPS),
        )

    def test_raw_flags_follow_includes(self) -> None:
        optimize = OptimizeConfig(enabled=True, proguard_flags=("-keep class A", "-verbose"))
        flags = _r8(optimize).flags
        assert flags[:4] == (
            f"-include {DEFAULT_FLAGS}",
            "-keep class A",
            "-verbose",
            "--force-proguard-compatibility",
        )

    def test_full_mode_with_obfuscation_emits_templates(self) -> None:
        optimize = OptimizeConfig(
            enabled=True, proguard_compatibility=False, obfuscate=True
        )
        flags = _r8(optimize).flags
        assert "--force-proguard-compatibility" not in flags
        assert flags == (
            f"-include {DEFAULT_FLAGS}",
            "--map-id-template",
            "%MAP_HASH",
            "--source-file-template",
            '"go/retraceme %MAP_ID"',
            "-dontshrink",
            "-dontoptimize",
            "-ignorewarnings",
        )

    def test_full_mode_without_optimize_or_obfuscate(self) -> None:
        """Full mode alone adds neither compatibility nor templates."""
        flags = _r8(OptimizeConfig(enabled=True, proguard_compatibility=False)).flags
        assert "--force-proguard-compatibility" not in flags
        assert "--map-id-template" not in flags
        assert "--source-file-template" not in flags

    def test_compatibility_never_emits_templates(self) -> None:
        optimize = OptimizeConfig(enabled=True, optimize=True, obfuscate=True)
        flags = _r8(optimize).flags
        assert "--force-proguard-compatibility" in flags
        assert "--map-id-template" not in flags

    def test_retrace_prefix_is_configurable(self) -> None:
        config = ModuleDexConfig(
            optimize=OptimizeConfig(
                enabled=True, proguard_compatibility=False, optimize=True
            )
        )
        toolchain = ToolchainConfig(retrace_prefix="https://retrace.example/")
        flags = r8_flags(config, DexClasspaths(), BuildEnv(), toolchain).flags
        assert '"https://retrace.example/%MAP_ID"' in flags

    def test_enabled_toggles_drop_disable_flags(self) -> None:
        optimize = OptimizeConfig(enabled=True, shrink=True, optimize=True, obfuscate=True)
        flags = _r8(optimize).flags
        assert "-dontshrink" not in flags
        assert "-dontoptimize" not in flags
        assert "-dontobfuscate" not in flags

    @pytest.mark.parametrize(
        ("disabled", "flag"),
        [
            ("shrink", "-dontshrink"),
            ("optimize", "-dontoptimize"),
            ("obfuscate", "-dontobfuscate"),
        ],
    )
    def test_each_disable_flag_independent(self, disabled: str, flag: str) -> None:
        """Turning one capability off appends exactly its disable flag."""
        toggles = {"shrink": True, "optimize": True, "obfuscate": True, disabled: False}
        flags = _r8(OptimizeConfig(enabled=True, **toggles)).flags
        assert [f for f in flags if f.startswith("-dont")] == [flag]

    def test_eng_adds_debug(self) -> None:
        flags = _r8(env=BuildEnv(eng=True)).flags
        assert flags[-2:] == ("--debug", "-ignorewarnings")

    def test_ignore_warnings_false(self) -> None:
        flags = _r8(OptimizeConfig(enabled=True, ignore_warnings=False)).flags
        assert "-ignorewarnings" not in flags

    def test_duplicate_flag_file(self) -> None:
        """The same file reached twice is rejected before any flag is emitted."""
        optimize = OptimizeConfig(enabled=True, proguard_flags_files=("a.flags",))
        with pytest.raises(PropertyError) as exc_info:
            _r8(optimize, extra_flag_files=[Path("a.flags")])
        assert exc_info.value.property_name == "optimize.proguard_flags_files"


class TestExtraProguardFlagFiles:
    """Tests for extra_proguard_flag_files."""

    def test_aapt_first(self) -> None:
        files = extra_proguard_flag_files(
            ModuleDexConfig(), Path("aapt.flags"), [Path("other.flags")]
        )
        assert files == [Path("aapt.flags"), Path("other.flags")]

    def test_no_aapt_flags(self) -> None:
        config = ModuleDexConfig(optimize=OptimizeConfig(no_aapt_flags=True))
        files = extra_proguard_flag_files(config, Path("aapt.flags"), [Path("o.flags")])
        assert files == [Path("o.flags")]

    def test_no_aapt_file(self) -> None:
        assert extra_proguard_flag_files(ModuleDexConfig(), None) == []


class TestCheckFlagFiles:
    """Tests for check_flag_files."""

    def test_unique_files_pass(self) -> None:
        check_flag_files([Path("a.flags"), Path("b.flags")])

    def test_repeat_names_file(self) -> None:
        with pytest.raises(PropertyError, match="flag file b.flags is included more than once"):
            check_flag_files([Path("b.flags"), Path("a.flags"), Path("b.flags")])


class TestCombine:
    """Tests for combine_flags and tool_flags."""

    def test_common_flags_first_tool_deps_first(self) -> None:
        common = DexFlags(("--min-api 21",), (Path("main.rules"),))
        specific = DexFlags(("--lib a.jar",), (Path("a.jar"),))
        combined = combine_flags(common, specific)
        assert combined.flags == ("--min-api 21", "--lib a.jar")
        assert combined.deps == (Path("a.jar"), Path("main.rules"))

    def test_plain_scenario(self) -> None:
        """Library module with one boot jar and min SDK 21."""
        config = ModuleDexConfig()
        classpaths = DexClasspaths(boot=Classpath(["bootA.jar"]))
        common = common_flags(config, SDK.parse_spec("21"), BuildEnv(), SDK)
        specific = tool_flags(Pipeline.D8, config, classpaths, BuildEnv(), TOOLCHAIN)
        assert combine_flags(common, specific).flags == ("--min-api 21", "--lib bootA.jar")

    def test_optimize_scenario(self) -> None:
        """Shrink and optimize on, obfuscate off, compatibility mode default."""
        config = ModuleDexConfig(
            optimize=OptimizeConfig(enabled=True, shrink=True, optimize=True)
        )
        common = common_flags(config, SDK.parse_spec("21"), BuildEnv(), SDK)
        specific = tool_flags(Pipeline.R8, config, DexClasspaths(), BuildEnv(), TOOLCHAIN)
        assert combine_flags(common, specific).flags == (
            "--min-api 21",
            f"-include {DEFAULT_FLAGS}",
            "--force-proguard-compatibility",
            "-dontobfuscate",
            "-ignorewarnings",
        )

    def test_stable_across_calls(self) -> None:
        """Identical inputs give identical flag lists."""
        classpaths = DexClasspaths(
            boot=Classpath(["b1.jar", "b2.jar"]), dex=Classpath(["c.jar"])
        )
        optimize = OptimizeConfig(
            enabled=True, proguard_flags_files=("x.flags", "y.flags")
        )
        first = _r8(optimize, classpaths=classpaths, proguard_raise=[Path("r.jar")])
        second = _r8(optimize, classpaths=classpaths, proguard_raise=[Path("r.jar")])
        assert first == second

    def test_full_mode_scenario(self) -> None:
        """Full mode, shrink and optimize on, obfuscate off."""
        config = ModuleDexConfig(
            optimize=OptimizeConfig(
                enabled=True,
                shrink=True,
                optimize=True,
                obfuscate=False,
                proguard_compatibility=False,
            )
        )
        common = common_flags(config, SDK.parse_spec("21"), BuildEnv(), SDK)
        specific = tool_flags(Pipeline.R8, config, DexClasspaths(), BuildEnv(), TOOLCHAIN)
        flags = combine_flags(common, specific).flags
        assert "-dontobfuscate" in flags
        assert "-dontshrink" not in flags
        assert "-dontoptimize" not in flags
        assert flags.count("--map-id-template") == 1
        assert flags.count("--source-file-template") == 1

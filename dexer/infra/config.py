"""Toolchain configuration for dexer.

Provides ToolchainConfig for centralized configuration of tool locations,
JVM flags, remote execution settings and platform SDK state. Programmatic
users construct it directly; the CLI loads it from the environment via
from_env().

Environment Variables:
    DEXER_D8_CMD: d8 launcher (default: prebuilts/r8/d8)
    DEXER_R8_CMD: r8 launcher (default: prebuilts/r8/r8-compat-proguard)
    DEXER_D8_JAR / DEXER_R8_JAR: Jars uploaded for remote d8/r8 actions
    DEXER_JAVA_CMD: Java binary used by the launchers
    DEXER_ZIP2ZIP_CMD, DEXER_SOONG_ZIP_CMD, DEXER_MERGE_ZIPS_CMD,
    DEXER_ZIPALIGN_CMD: Archive tools
    DEXER_D8_FLAGS / DEXER_R8_FLAGS: JVM flags prepended to tool flags
    DEXER_RBE_WRAPPER: Remote execution wrapper binary
    DEXER_RE_JAVA_POOL: Remote worker pool for Java tools (default: java16)
    RBE_D8_EXEC_STRATEGY / RBE_R8_EXEC_STRATEGY: Remote execution strategy
    DEXER_RETRACE_PREFIX: Prefix of the source-file template in full mode
    PLATFORM_SDK_VERSION: Platform API level (default: 34)
    PLATFORM_SDK_CODENAME: Platform codename, "REL" when final
    PLATFORM_VERSION_ACTIVE_CODENAMES: Comma-separated preview codenames
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dexer.domain.dex.sdk import PlatformSdk
from dexer.infra.remoteexec import EXEC_STRATEGIES, REMOTE_LOCAL_FALLBACK_EXEC_STRATEGY

if TYPE_CHECKING:
    from collections.abc import Mapping

_HOST_BIN = "out/host/linux-x86/bin"


def _safe_int(value: str | None, default: int) -> int:
    """Safely parse an integer with fallback to default."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _split_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(
            f"  - {e}" for e in errors
        )
        super().__init__(message)


@dataclass(frozen=True)
class ToolchainConfig:
    """Centralized toolchain configuration.

    Attributes:
        d8_cmd: Plain dexer launcher.
        r8_cmd: Optimizer launcher.
        d8_jar: Jar backing d8, uploaded for remote actions.
        r8_jar: Jar backing r8, uploaded for remote actions.
        java_cmd: Java binary, a toolchain input of remote actions.
        zip2zip_cmd: Archive filter used to strip stale dex entries.
        soong_zip_cmd: Archiver for dex output and the usage report.
        merge_zips_cmd: Merges dex output with the original resources.
        zipalign_cmd: Page-aligns uncompressed archives.
        d8_flags: JVM flags passed to every d8 invocation.
        r8_flags: JVM flags passed to every r8 invocation.
        rbe_wrapper: Remote execution wrapper binary.
        re_java_pool: Remote worker pool for Java tools.
        re_d8_exec_strategy: Remote strategy for d8 actions.
        re_r8_exec_strategy: Remote strategy for r8 actions.
        default_proguard_flags: Platform flag file included by every r8 run.
        proguard_basic_keeps: Flag file included by default_proguard_flags.
        retrace_prefix: Prefix embedded in the source-file template of
            full-mode optimized builds.
        platform_sdk_version: Platform API level.
        platform_sdk_codename: Platform codename, "REL" once final.
        active_codenames: Preview codenames accepted in SDK specs.

    Example:
        # Programmatic construction:
        config = ToolchainConfig(d8_cmd="/opt/r8/d8", re_java_pool="java21")

        # Load from environment:
        config = ToolchainConfig.from_env()
    """

    d8_cmd: str = "prebuilts/r8/d8"
    r8_cmd: str = "prebuilts/r8/r8-compat-proguard"
    d8_jar: str = "prebuilts/r8/r8.jar"
    r8_jar: str = "prebuilts/r8/r8.jar"
    java_cmd: str = "prebuilts/jdk/jdk17/linux-x86/bin/java"
    zip2zip_cmd: str = f"{_HOST_BIN}/zip2zip"
    soong_zip_cmd: str = f"{_HOST_BIN}/soong_zip"
    merge_zips_cmd: str = f"{_HOST_BIN}/merge_zips"
    zipalign_cmd: str = f"{_HOST_BIN}/zipalign"
    d8_flags: str = "-JXmx4096M -JXX:+TieredCompilation -JXX:TieredStopAtLevel=1"
    r8_flags: str = "-JXmx4096M"
    rbe_wrapper: str = "prebuilts/remoteexecution-client/live/rewrapper"
    re_java_pool: str = "java16"
    re_d8_exec_strategy: str = REMOTE_LOCAL_FALLBACK_EXEC_STRATEGY
    re_r8_exec_strategy: str = REMOTE_LOCAL_FALLBACK_EXEC_STRATEGY
    default_proguard_flags: str = "build/make/core/proguard.flags"
    proguard_basic_keeps: str = "build/make/core/proguard_basic_keeps.flags"
    retrace_prefix: str = "go/retraceme "
    platform_sdk_version: int = 34
    platform_sdk_codename: str = "REL"
    active_codenames: tuple[str, ...] = ()

    @property
    def platform_sdk_final(self) -> bool:
        return self.platform_sdk_codename == "REL"

    def platform_sdk(self) -> PlatformSdk:
        """Return the SDK resolver for this platform."""
        return PlatformSdk(
            platform_sdk_version=self.platform_sdk_version,
            platform_sdk_codename=self.platform_sdk_codename,
            platform_sdk_final=self.platform_sdk_final,
            active_codenames=self.active_codenames,
        )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, *, validate: bool = True
    ) -> ToolchainConfig:
        """Create ToolchainConfig from environment variables with validation.

        Args:
            environ: Mapping to read from (defaults to os.environ).
            validate: If True (default), raise ConfigurationError on any
                validation error.

        Raises:
            ConfigurationError: If validate=True and configuration is invalid.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(key: str, default: str) -> str:
            # Treat empty strings as unset
            return env.get(key) or default

        config = cls(
            d8_cmd=get("DEXER_D8_CMD", defaults.d8_cmd),
            r8_cmd=get("DEXER_R8_CMD", defaults.r8_cmd),
            d8_jar=get("DEXER_D8_JAR", defaults.d8_jar),
            r8_jar=get("DEXER_R8_JAR", defaults.r8_jar),
            java_cmd=get("DEXER_JAVA_CMD", defaults.java_cmd),
            zip2zip_cmd=get("DEXER_ZIP2ZIP_CMD", defaults.zip2zip_cmd),
            soong_zip_cmd=get("DEXER_SOONG_ZIP_CMD", defaults.soong_zip_cmd),
            merge_zips_cmd=get("DEXER_MERGE_ZIPS_CMD", defaults.merge_zips_cmd),
            zipalign_cmd=get("DEXER_ZIPALIGN_CMD", defaults.zipalign_cmd),
            d8_flags=get("DEXER_D8_FLAGS", defaults.d8_flags),
            r8_flags=get("DEXER_R8_FLAGS", defaults.r8_flags),
            rbe_wrapper=get("DEXER_RBE_WRAPPER", defaults.rbe_wrapper),
            re_java_pool=get("DEXER_RE_JAVA_POOL", defaults.re_java_pool),
            re_d8_exec_strategy=get(
                "RBE_D8_EXEC_STRATEGY", defaults.re_d8_exec_strategy
            ),
            re_r8_exec_strategy=get(
                "RBE_R8_EXEC_STRATEGY", defaults.re_r8_exec_strategy
            ),
            retrace_prefix=get("DEXER_RETRACE_PREFIX", defaults.retrace_prefix),
            platform_sdk_version=_safe_int(
                env.get("PLATFORM_SDK_VERSION"), defaults.platform_sdk_version
            ),
            platform_sdk_codename=get(
                "PLATFORM_SDK_CODENAME", defaults.platform_sdk_codename
            ),
            active_codenames=_split_list(env.get("PLATFORM_VERSION_ACTIVE_CODENAMES")),
        )

        if validate:
            errors = config.validate()
            if errors:
                raise ConfigurationError(errors)

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Checks:
            - Remote execution strategies are known
            - Platform SDK version is positive
            - A non-final platform lists its codename as active

        Returns:
            List of error messages. Empty list if configuration is valid.
        """
        errors: list[str] = []

        for name, strategy in [
            ("re_d8_exec_strategy", self.re_d8_exec_strategy),
            ("re_r8_exec_strategy", self.re_r8_exec_strategy),
        ]:
            if strategy not in EXEC_STRATEGIES:
                allowed = ", ".join(sorted(EXEC_STRATEGIES))
                errors.append(f"{name} must be one of {allowed}, got: {strategy}")

        if self.platform_sdk_version <= 0:
            errors.append(
                f"platform_sdk_version must be positive, got: {self.platform_sdk_version}"
            )

        if (
            not self.platform_sdk_final
            and self.platform_sdk_codename not in self.active_codenames
        ):
            errors.append(
                f"platform_sdk_codename {self.platform_sdk_codename} "
                "must be listed in active_codenames"
            )

        if not self.retrace_prefix.strip():
            errors.append("retrace_prefix must not be empty")

        return errors

"""Environment overrides and dotenv loading for dexer.

Environment variables are read exactly once into a frozen BuildEnv and then
passed explicitly to the flag translator and tool selector, so neither ever
consults os.environ on its own.

Environment Variables:
    NO_OPTIMIZE_DX: Any non-empty value adds --debug to dex compiles
    GENERATE_DEX_DEBUG: Any non-empty value adds --debug --verbose
    TARGET_BUILD_VARIANT: "eng" keeps debug info in optimized builds
    USE_RBE: Enable remote execution globally
    RBE_D8: Run d8 remotely (requires USE_RBE)
    RBE_R8: Run r8 remotely (requires USE_RBE)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from collections.abc import Mapping

# User config directory (stores .env)
USER_CONFIG_DIR = Path.home() / ".config" / "dexer"

_TRUE_VALUES = frozenset({"1", "y", "yes", "on", "true"})


def is_env_true(environ: Mapping[str, str], key: str) -> bool:
    """Return True if `key` is set to a true-ish value (1, y, yes, on, true)."""
    return environ.get(key, "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class BuildEnv:
    """Read-only snapshot of environment overrides that affect dexing.

    Attributes:
        no_optimize_dx: Add --debug to every dex compile.
        generate_dex_debug: Add --debug --verbose to every dex compile.
        eng: Engineering build variant; keep line numbers and locals in
            optimized output.
        use_rbe: Remote execution is globally enabled.
        rbe_d8: Remote execution requested for d8.
        rbe_r8: Remote execution requested for r8.
    """

    no_optimize_dx: bool = False
    generate_dex_debug: bool = False
    eng: bool = False
    use_rbe: bool = False
    rbe_d8: bool = False
    rbe_r8: bool = False

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> BuildEnv:
        """Create BuildEnv from a mapping (defaults to os.environ)."""
        env = os.environ if environ is None else environ
        return cls(
            no_optimize_dx=env.get("NO_OPTIMIZE_DX", "") != "",
            generate_dex_debug=env.get("GENERATE_DEX_DEBUG", "") != "",
            eng=env.get("TARGET_BUILD_VARIANT", "") == "eng",
            use_rbe=is_env_true(env, "USE_RBE"),
            rbe_d8=is_env_true(env, "RBE_D8"),
            rbe_r8=is_env_true(env, "RBE_R8"),
        )


def load_user_env() -> None:
    """Load environment from ${USER_CONFIG_DIR}/.env (~/.config/dexer/.env)."""
    load_dotenv(dotenv_path=USER_CONFIG_DIR / ".env")


def load_env(env_file: Path | None = None) -> None:
    """Load environment from user config and optionally an extra file.

    Args:
        env_file: Optional .env file loaded with override=True, so values in
            it win over both the user config and the process environment.
    """
    load_user_env()
    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)

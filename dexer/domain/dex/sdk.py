"""SDK version specs and API level resolution.

A module declares its minimum SDK as a string such as "21", "current",
"system_30", "S" or a preview codename. The dexer needs a single integer to
pass as `--min-api`; preview and "current" levels resolve to the future API
level so that nothing is desugared away for an unreleased platform.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Integer used for every unreleased (preview) API level.
FUTURE_API_LEVEL_INT = 10000

# Codenames of released platforms that users may still write.
FINAL_CODENAMES: dict[str, int] = {
    "Q": 29,
    "R": 30,
    "S": 31,
    "Sv2": 32,
    "Tiramisu": 33,
    "UpsideDownCake": 34,
    "VanillaIceCream": 35,
}


@dataclass(frozen=True)
class ApiLevel:
    """A resolved API level.

    Attributes:
        value: The user-facing spelling ("30", "current", a codename).
        number: The integer level; FUTURE_API_LEVEL_INT for previews.
        is_preview: True for unreleased levels.
    """

    value: str
    number: int
    is_preview: bool = False

    @classmethod
    def of_int(cls, number: int) -> ApiLevel:
        return cls(value=str(number), number=number)

    @classmethod
    def preview(cls, codename: str) -> ApiLevel:
        return cls(value=codename, number=FUTURE_API_LEVEL_INT, is_preview=True)

    def final_or_future_int(self) -> int:
        """Return the level as an int, mapping every preview to the future level."""
        if self.is_preview:
            return FUTURE_API_LEVEL_INT
        return self.number

    def __str__(self) -> str:
        return self.value


FUTURE_API_LEVEL = ApiLevel.preview("current")
NONE_API_LEVEL = ApiLevel(value="(no version)", number=-1, is_preview=True)


class SdkKind(Enum):
    """Which API surface an SDK spec refers to."""

    INVALID = "invalid"
    NONE = "none"
    CORE_PLATFORM = "core_platform"
    PRIVATE = "private"
    PUBLIC = "public"
    CORE = "core"
    SYSTEM = "system"
    TEST = "test"
    MODULE = "module"
    SYSTEM_SERVER = "system_server"


_KIND_PREFIXES: dict[str, SdkKind] = {
    "": SdkKind.PUBLIC,
    "core": SdkKind.CORE,
    "system": SdkKind.SYSTEM,
    "test": SdkKind.TEST,
    "module": SdkKind.MODULE,
    "system_server": SdkKind.SYSTEM_SERVER,
}


@dataclass(frozen=True)
class SdkSpec:
    """A parsed `[kind_]version` SDK spec.

    Attributes:
        kind: The API surface.
        api_level: The level, or an invalid placeholder.
        raw: The string as written in the module.
    """

    kind: SdkKind
    api_level: ApiLevel
    raw: str

    @property
    def valid(self) -> bool:
        return self.kind is not SdkKind.INVALID


@dataclass(frozen=True)
class PlatformSdk:
    """Platform SDK state used to resolve specs.

    Attributes:
        platform_sdk_version: The platform's own API level.
        platform_sdk_codename: Codename of the platform, "REL" once final.
        platform_sdk_final: Whether the platform API is finalized.
        active_codenames: Preview codenames currently accepted.
    """

    platform_sdk_version: int = 34
    platform_sdk_codename: str = "REL"
    platform_sdk_final: bool = True
    active_codenames: tuple[str, ...] = ()

    def api_level_from_user(self, raw: str) -> ApiLevel:
        """Parse a user-written version string.

        Raises:
            ValueError: If the string is empty or not a known level.
        """
        if raw == "":
            raise ValueError("API level string must be non-empty")
        if raw == "current":
            return FUTURE_API_LEVEL
        if raw in self.active_codenames:
            return ApiLevel.preview(raw)
        if raw in FINAL_CODENAMES:
            return ApiLevel(value=raw, number=FINAL_CODENAMES[raw])
        try:
            number = int(raw)
        except ValueError:
            raise ValueError(
                f"API level must be an integer or a known codename, got {raw!r}"
            ) from None
        return ApiLevel.of_int(number)

    def parse_spec(self, raw: str) -> SdkSpec:
        """Parse a `[kind_]version` string. Never raises; bad input is INVALID."""
        if raw == "":
            return SdkSpec(SdkKind.PRIVATE, NONE_API_LEVEL, raw)
        if raw == "none":
            return SdkSpec(SdkKind.NONE, NONE_API_LEVEL, raw)
        if raw == "core_platform":
            return SdkSpec(SdkKind.CORE_PLATFORM, NONE_API_LEVEL, raw)

        sep = raw.rfind("_")
        if sep == 0:
            return SdkSpec(SdkKind.INVALID, NONE_API_LEVEL, raw)
        kind_string = raw[:sep] if sep > 0 else ""
        version_string = raw[sep + 1 :]

        kind = _KIND_PREFIXES.get(kind_string)
        if kind is None:
            return SdkSpec(SdkKind.INVALID, NONE_API_LEVEL, raw)
        try:
            api_level = self.api_level_from_user(version_string)
        except ValueError:
            return SdkSpec(SdkKind.INVALID, NONE_API_LEVEL, raw)
        return SdkSpec(kind, api_level, raw)

    def default_app_target_sdk(self) -> ApiLevel:
        if self.platform_sdk_final:
            return ApiLevel.of_int(self.platform_sdk_version)
        return ApiLevel.preview(self.platform_sdk_codename)

    def effective_version(self, spec: SdkSpec) -> ApiLevel:
        """Resolve a spec to the level it actually targets.

        Final levels resolve to themselves. Preview levels (including unset
        specs) resolve to the platform's default app target SDK, which is
        itself the future level while the platform is not final.

        Raises:
            ValueError: If the spec is invalid.
        """
        if not spec.valid:
            raise ValueError(f'invalid sdk version "{spec.raw}"')
        if not spec.api_level.is_preview:
            return spec.api_level
        ret = self.default_app_target_sdk()
        if ret.is_preview:
            return FUTURE_API_LEVEL
        return ret

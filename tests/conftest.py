"""Pytest configuration for dexer tests."""

import os

import pytest

# Environment variables read by BuildEnv and ToolchainConfig.from_env()
_DEXER_ENV_VARS = (
    "NO_OPTIMIZE_DX",
    "GENERATE_DEX_DEBUG",
    "TARGET_BUILD_VARIANT",
    "USE_RBE",
    "RBE_D8",
    "RBE_R8",
    "RBE_D8_EXEC_STRATEGY",
    "RBE_R8_EXEC_STRATEGY",
    "PLATFORM_SDK_VERSION",
    "PLATFORM_SDK_CODENAME",
    "PLATFORM_VERSION_ACTIVE_CODENAMES",
)


def pytest_configure(config: pytest.Config) -> None:
    """Configure test environment before collection.

    Removes build overrides inherited from the developer's shell so that
    tests never pick up a local USE_RBE or eng variant.
    """
    for key in _DEXER_ENV_VARS:
        os.environ.pop(key, None)
    for key in [k for k in os.environ if k.startswith("DEXER_")]:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def _isolated_user_config(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Point the user .env lookup at an empty directory."""
    config_dir = tmp_path_factory.mktemp("dexer-config")
    monkeypatch.setattr("dexer.infra.env.USER_CONFIG_DIR", config_dir)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Default unmarked tests to unit category."""
    for item in items:
        if any(marker in item.keywords for marker in ("unit", "integration")):
            continue
        item.add_marker(pytest.mark.unit)

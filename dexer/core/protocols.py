"""Protocol definitions for dexer's external collaborators.

The dexing core never walks the module graph, parses other modules or runs
tools itself. These protocols name the narrow interfaces it consumes so that
the CLI, tests and a host build system can each plug in their own
implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from dexer.core.models import BuildAction, DexClasspaths
    from dexer.domain.dex.sdk import ApiLevel, SdkSpec


@runtime_checkable
class ClasspathProvider(Protocol):
    """Supplies the resolved classpaths for the module being dexed."""

    def dex_classpaths(self) -> DexClasspaths:
        """Return boot and extra dex classpath, in declared order."""
        ...


@runtime_checkable
class TaggedDependencyResolver(Protocol):
    """Graph query for outputs of direct dependencies carrying a tag.

    Used for "proguard raise" dependencies: header jars of modules that
    provide APIs newer than the module's SDK version.
    """

    def resolve_tagged_dependencies(self, tag: str) -> list[Path]:
        """Return header jars of direct dependencies tagged `tag`, in order."""
        ...


@runtime_checkable
class SdkResolver(Protocol):
    """Resolves a declared SDK spec to a concrete API level."""

    def effective_version(self, spec: SdkSpec) -> ApiLevel:
        """Return the effective API level.

        Raises:
            ValueError: If the spec cannot be resolved.
        """
        ...


@runtime_checkable
class BuildGraph(Protocol):
    """Sink for declared actions (the build-graph engine)."""

    def build(self, action: BuildAction) -> None:
        """Register an action for scheduling. Never executes it."""
        ...

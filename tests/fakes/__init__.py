"""In-memory fake implementations for testing.

This module provides fake implementations of the dexer collaborator
protocols for use in unit and integration tests. Fakes are preferred over
mocks because they:

1. Implement real protocol contracts, catching interface mismatches at test time
2. Provide deterministic, predictable behavior without call-order dependencies
3. Enable behavior-based testing (assert outputs/state) over interaction testing

Available fakes:
- FakeClasspathProvider: Fixed boot and dex classpaths
- FakeDependencyResolver: Tag -> header jars lookup that records queries
- FakeSdkResolver: Maps raw spec strings to API levels
- FakeBuildGraph: Captures declared actions

Usage:
    from tests.fakes import FakeBuildGraph, FakeClasspathProvider

    def test_something():
        graph = FakeBuildGraph()
        compile_dex(request, classpath=FakeClasspathProvider(), graph=graph, ...)
        assert len(graph.actions) == 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from dexer.core.models import BuildAction, Classpath, DexClasspaths
from dexer.domain.dex.sdk import ApiLevel, SdkSpec


@dataclass
class FakeClasspathProvider:
    """ClasspathProvider returning the classpaths it was built with."""

    boot: list[str] = field(default_factory=list)
    dex: list[str] = field(default_factory=list)

    def dex_classpaths(self) -> DexClasspaths:
        return DexClasspaths(boot=Classpath(self.boot), dex=Classpath(self.dex))


@dataclass
class FakeDependencyResolver:
    """TaggedDependencyResolver backed by a dict, recording every query."""

    tagged: dict[str, list[str]] = field(default_factory=dict)
    queries: list[str] = field(default_factory=list)

    def resolve_tagged_dependencies(self, tag: str) -> list[Path]:
        self.queries.append(tag)
        return [Path(p) for p in self.tagged.get(tag, [])]


@dataclass
class FakeSdkResolver:
    """SdkResolver mapping raw spec strings to fixed levels.

    Specs not in `levels` resolve to their integer value when numeric and
    raise ValueError otherwise.
    """

    levels: dict[str, ApiLevel] = field(default_factory=dict)

    def effective_version(self, spec: SdkSpec) -> ApiLevel:
        if spec.raw in self.levels:
            return self.levels[spec.raw]
        try:
            return ApiLevel.of_int(int(spec.raw))
        except ValueError:
            raise ValueError(f'invalid sdk version "{spec.raw}"') from None


@dataclass
class FakeBuildGraph:
    """BuildGraph that keeps declared actions in order."""

    actions: list[BuildAction] = field(default_factory=list)

    def build(self, action: BuildAction) -> None:
        self.actions.append(action)

    @property
    def outputs(self) -> list[Path]:
        return [o for a in self.actions for o in a.outputs]

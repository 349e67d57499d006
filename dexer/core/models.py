"""Shared build-graph dataclasses for dexer.

This module provides the types exchanged between the dexing domain and the
build-graph engine adapters, kept here to avoid circular dependencies between
domain and infra.

Types:
- ExecStrategy: Whether an action runs locally or through the remote wrapper
- DepsFormat: Format of a depfile written by a tool
- Rule: A reusable command template with its tool dependencies
- BuildAction: One declared action (inputs, outputs, implicit deps, args)
- Classpath: Ordered sequence of artifact paths
- DexClasspaths: Boot and extra dex classpath for one module
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dexer.infra.remoteexec import REParams


class ExecStrategy(Enum):
    """How the build-graph engine should execute an action."""

    LOCAL = "local"
    REMOTE = "remote"


class DepsFormat(Enum):
    """Format of a tool-generated depfile."""

    GCC = "gcc"


@dataclass(frozen=True)
class Rule:
    """A command template shared by every action built from it.

    Placeholders use the build-graph engine's `$name` syntax; `$in` and
    `$out` are bound per action, everything else comes from the action's
    args.

    Attributes:
        name: Unique rule name (e.g., "d8", "r8_remote").
        command: The shell command template.
        command_deps: Tool binaries the command runs; implicit inputs of
            every action using the rule.
        depfile: Depfile template written by the command, if any.
        deps: Depfile format when depfile is set.
    """

    name: str
    command: str
    command_deps: tuple[str, ...] = ()
    depfile: str | None = None
    deps: DepsFormat | None = None


@dataclass(frozen=True)
class BuildAction:
    """A single declarative action handed to the build-graph engine.

    Attributes:
        rule: Command template the action instantiates.
        description: Short tool identifier shown by the engine ("d8", "r8").
        input: The primary input archive.
        output: The primary output artifact.
        flags: Ordered tool flags, already folded into args.
        implicit_outputs: Additional declared outputs.
        implicits: Additional declared inputs (flag files, classpath jars).
        depfile: Path of the depfile the command writes, if any.
        args: Placeholder bindings for the rule's command template.
        strategy: Local or remote execution.
        remote_params: Labels, inputs, toolchain inputs and platform pool
            the remote wrapper was configured with (remote actions only).
    """

    rule: Rule
    description: str
    input: Path
    output: Path
    flags: tuple[str, ...] = ()
    implicit_outputs: tuple[Path, ...] = ()
    implicits: tuple[Path, ...] = ()
    depfile: Path | None = None
    args: dict[str, str] = field(default_factory=dict)
    strategy: ExecStrategy = ExecStrategy.LOCAL
    remote_params: REParams | None = None

    @property
    def outputs(self) -> tuple[Path, ...]:
        """All declared outputs, primary first."""
        return (self.output, *self.implicit_outputs)

    @property
    def is_remote(self) -> bool:
        return self.strategy is ExecStrategy.REMOTE

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "rule": self.rule.name,
            "description": self.description,
            "input": str(self.input),
            "output": str(self.output),
            "flags": list(self.flags),
            "implicit_outputs": [str(p) for p in self.implicit_outputs],
            "implicits": [str(p) for p in self.implicits],
            "depfile": str(self.depfile) if self.depfile else None,
            "args": dict(self.args),
            "strategy": self.strategy.value,
            "remote_params": (
                self.remote_params.to_dict() if self.remote_params else None
            ),
        }


class Classpath(tuple[Path, ...]):
    """Ordered, immutable sequence of classpath artifact paths."""

    def __new__(cls, paths: Iterable[Path | str] = ()) -> Classpath:
        return super().__new__(cls, (Path(p) for p in paths))

    def form_repeated_classpath(self, prefix: str) -> list[str]:
        """Return one flag per entry, e.g. ["--lib a.jar", "--lib b.jar"]."""
        return [prefix + str(p) for p in self]

    def form_java_classpath(self, flag: str) -> str:
        """Return a single `flag a.jar:b.jar` entry, or "" when empty."""
        if not self:
            return ""
        return flag + " " + ":".join(str(p) for p in self)


@dataclass(frozen=True)
class DexClasspaths:
    """Classpaths consumed while dexing one module.

    Attributes:
        boot: Boot classpath, in declared order.
        dex: Extra classpath visible to the dexer, in declared order.
    """

    boot: Classpath = field(default_factory=Classpath)
    dex: Classpath = field(default_factory=Classpath)

"""Ninja emitter: a BuildGraph that renders declared actions as a ninja file.

NinjaGraph collects actions in declaration order. Rules are written once,
in the order they are first used; each action becomes one `build` statement
that binds the rule's placeholders from the action's args.

Example output:
    rule d8
      command = rm -rf "$outDir" && ...
      description = ${desc} $out

    build out/Foo/dex/Foo.jar: d8 out/Foo/classes.jar | prebuilts/r8/d8 ...
      desc = d8
      d8Flags = --min-api 21
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from dexer.core.models import BuildAction, Rule

logger = logging.getLogger(__name__)


class GraphError(Exception):
    """Raised when declared actions cannot coexist in one graph."""

    pass


def escape(value: str) -> str:
    """Escape a variable value; only `$` is special there."""
    return value.replace("$", "$$")


def escape_path(path: Path | str) -> str:
    """Escape a path in a build statement (`$`, space and colon)."""
    return str(path).replace("$", "$$").replace(" ", "$ ").replace(":", "$:")


class NinjaWriter:
    """Minimal line writer for ninja syntax."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def comment(self, text: str) -> None:
        self._lines.append(f"# {text}")

    def newline(self) -> None:
        self._lines.append("")

    def variable(self, key: str, value: str, indent: int = 0) -> None:
        # Empty bindings are left out; ninja treats unset variables as ""
        if value == "":
            return
        self._lines.append(f"{'  ' * indent}{key} = {value}")

    def rule(self, rule: Rule) -> None:
        self._lines.append(f"rule {rule.name}")
        self.variable("command", rule.command, indent=1)
        self.variable("description", "${desc} $out", indent=1)
        if rule.depfile:
            self.variable("depfile", rule.depfile, indent=1)
        if rule.deps:
            self.variable("deps", rule.deps.value, indent=1)
        self.newline()

    def build(
        self,
        outputs: Iterable[Path],
        rule: str,
        inputs: Iterable[Path],
        *,
        implicit_outputs: Iterable[Path] = (),
        implicits: Iterable[str | Path] = (),
        variables: dict[str, str] | None = None,
    ) -> None:
        line = "build " + " ".join(escape_path(o) for o in outputs)
        implicit_out = [escape_path(o) for o in implicit_outputs]
        if implicit_out:
            line += " | " + " ".join(implicit_out)
        line += f": {rule}"
        ins = [escape_path(i) for i in inputs]
        if ins:
            line += " " + " ".join(ins)
        implicit_in = [escape_path(i) for i in implicits]
        if implicit_in:
            line += " | " + " ".join(implicit_in)
        self._lines.append(line)
        for key, value in (variables or {}).items():
            self.variable(key, escape(value), indent=1)
        self.newline()

    def getvalue(self) -> str:
        return "\n".join(self._lines) + "\n" if self._lines else ""


class NinjaGraph:
    """In-memory BuildGraph that renders to ninja or JSON.

    Declaration never executes anything; the rendered file is handed to
    ninja, which owns scheduling, caching and the depfile bookkeeping.
    """

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}
        self._actions: list[BuildAction] = []
        self._producers: dict[str, str] = {}

    @property
    def actions(self) -> list[BuildAction]:
        return list(self._actions)

    def build(self, action: BuildAction) -> None:
        """Register an action.

        Raises:
            GraphError: If another action already declares one of its
                outputs, or a different rule is registered under the same
                name.
        """
        existing = self._rules.get(action.rule.name)
        if existing is not None and existing != action.rule:
            raise GraphError(
                f"Conflicting definitions for rule '{action.rule.name}'"
            )
        for output in action.outputs:
            key = str(output)
            if key in self._producers:
                raise GraphError(
                    f"Output {key} declared by both {self._producers[key]} "
                    f"and {action.rule.name}"
                )
        for output in action.outputs:
            self._producers[str(output)] = action.rule.name
        self._rules.setdefault(action.rule.name, action.rule)
        self._actions.append(action)
        logger.debug("Registered %s -> %s", action.rule.name, action.output)

    def render(self) -> str:
        """Render every rule and build statement as ninja text."""
        writer = NinjaWriter()
        writer.comment("Generated by dexer. Do not edit.")
        writer.newline()
        for rule in self._rules.values():
            writer.rule(rule)
        for action in self._actions:
            writer.build(
                [action.output],
                action.rule.name,
                [action.input],
                implicit_outputs=action.implicit_outputs,
                implicits=[*action.implicits, *action.rule.command_deps],
                variables={"desc": action.description, **action.args},
            )
        return writer.getvalue()

    def to_dict(self) -> dict[str, Any]:
        """Serialize rules and actions to a JSON-compatible dictionary."""
        return {
            "rules": [
                {
                    "name": rule.name,
                    "command": rule.command,
                    "command_deps": list(rule.command_deps),
                    "depfile": rule.depfile,
                    "deps": rule.deps.value if rule.deps else None,
                }
                for rule in self._rules.values()
            ],
            "actions": [action.to_dict() for action in self._actions],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

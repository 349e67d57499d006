"""Optional alignment stage chained after the dex action."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dexer.core.models import BuildAction
from dexer.domain.dex.rules import zipalign_rule

if TYPE_CHECKING:
    from pathlib import Path

    from dexer.infra.config import ToolchainConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignResult:
    """Outcome of the alignment stage.

    Attributes:
        output: The module's externally visible artifact.
        action: The chained zipalign action, or None when not needed.
    """

    output: Path
    action: BuildAction | None = None


def aligned_path(dex_output: Path) -> Path:
    """`<module_out>/dex/<jar>` -> `<module_out>/aligned/<jar>`."""
    return dex_output.parent.parent / "aligned" / dex_output.name


def maybe_align(
    action: BuildAction, require_uncompressed: bool, toolchain: ToolchainConfig
) -> AlignResult:
    """Chain a zipalign action when the module keeps dex uncompressed.

    Uncompressed dex is only useful if entries are page-aligned so the
    runtime can map them directly; the aligned archive then replaces the
    dex action's output as the module's artifact.
    """
    if not require_uncompressed:
        return AlignResult(output=action.output)

    output = aligned_path(action.output)
    align = BuildAction(
        rule=zipalign_rule(toolchain),
        description="zipalign",
        input=action.output,
        output=output,
    )
    logger.debug("Chaining zipalign %s -> %s", action.output, output)
    return AlignResult(output=output, action=align)

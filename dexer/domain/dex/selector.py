"""Tool selection: plain dexer or optimizer, local or remote."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dexer.infra.env import BuildEnv

logger = logging.getLogger(__name__)


class Pipeline(Enum):
    """Which dexing pipeline an action uses.

    D8 is the plain dexer. R8 is the shrinking/obfuscating optimizer, which
    additionally produces a mapping dictionary and a usage report.
    """

    D8 = "d8"
    R8 = "r8"


@dataclass(frozen=True)
class ToolSelection:
    """The selected pipeline and execution strategy.

    Remote and local variants of a pipeline produce identical outputs from
    identical flags; `remote` only changes how the action is executed.
    """

    pipeline: Pipeline
    remote: bool = False


def select_tool(effective_optimize: bool, env: BuildEnv) -> ToolSelection:
    """Pick the pipeline for a module.

    Args:
        effective_optimize: The module's effective optimize.enabled.
        env: Environment overrides; remote execution needs both the global
            switch and the per-tool switch.

    Returns:
        The ToolSelection for the module.
    """
    if effective_optimize:
        selection = ToolSelection(Pipeline.R8, remote=env.use_rbe and env.rbe_r8)
    else:
        selection = ToolSelection(Pipeline.D8, remote=env.use_rbe and env.rbe_d8)
    logger.debug(
        "Selected %s (%s)",
        selection.pipeline.value,
        "remote" if selection.remote else "local",
    )
    return selection

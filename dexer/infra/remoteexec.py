"""Remote execution parameters for wrapped commands.

A remote action runs the same command line as its local counterpart, prefixed
by a wrapper invocation that tells the remote executor what to upload, what
to download and where to run. The prefix is produced by REParams.template().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Platform key selecting the worker pool.
POOL_KEY = "Pool"
# Platform key selecting the container image.
CONTAINER_IMAGE_KEY = "container-image"
DEFAULT_IMAGE = "docker://gcr.io/androidbuild-re-dockerimage/android-build-remoteexec-image"

LOCAL_EXEC_STRATEGY = "local"
REMOTE_EXEC_STRATEGY = "remote"
REMOTE_LOCAL_FALLBACK_EXEC_STRATEGY = "remote_local_fallback"
EXEC_STRATEGIES = frozenset(
    {LOCAL_EXEC_STRATEGY, REMOTE_EXEC_STRATEGY, REMOTE_LOCAL_FALLBACK_EXEC_STRATEGY}
)

_DEFAULT_LABELS = {"type": "tool"}
_DEFAULT_ENV_ALLOWLIST = ("LANG", "LC_ALL")


@dataclass(frozen=True)
class REParams:
    """Parameters for one remotely executed command.

    Attributes:
        labels: Classification labels for the remote executor.
        inputs: Files or placeholders uploaded with the command.
        output_files: Files downloaded after the command runs.
        exec_strategy: One of EXEC_STRATEGIES.
        toolchain_inputs: Toolchain binaries the command depends on.
        platform: Remote platform properties (e.g. {POOL_KEY: "java16"}).
        env_vars: Extra environment variables forwarded to the worker.
    """

    labels: dict[str, str] = field(default_factory=dict)
    inputs: tuple[str, ...] = ()
    output_files: tuple[str, ...] = ()
    exec_strategy: str = ""
    toolchain_inputs: tuple[str, ...] = ()
    platform: dict[str, str] = field(default_factory=dict)
    env_vars: tuple[str, ...] = ()

    def wrapper_args(self) -> str:
        """Return the wrapper's arguments, ending with the `--` separator.

        Map-valued parameters are emitted sorted so the command line never
        depends on dict insertion order.
        """
        labels = self.labels or _DEFAULT_LABELS
        args = " --labels=" + ",".join(sorted(f"{k}={v}" for k, v in labels.items()))

        platform = dict(self.platform)
        platform.setdefault(CONTAINER_IMAGE_KEY, DEFAULT_IMAGE)
        args += ' --platform="' + ",".join(
            sorted(f"{k}={v}" for k, v in platform.items())
        ) + '"'

        args += " --exec_strategy=" + (self.exec_strategy or LOCAL_EXEC_STRATEGY)

        if self.inputs:
            args += " --inputs=" + ",".join(self.inputs)
        if self.output_files:
            args += " --output_files=" + ",".join(self.output_files)
        if self.toolchain_inputs:
            args += " --toolchain_inputs=" + ",".join(self.toolchain_inputs)

        allowlist = (*self.env_vars, *_DEFAULT_ENV_ALLOWLIST)
        args += " --env_var_allowlist=" + ",".join(allowlist)
        return args + " -- "

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "labels": dict(self.labels),
            "inputs": list(self.inputs),
            "output_files": list(self.output_files),
            "exec_strategy": self.exec_strategy,
            "toolchain_inputs": list(self.toolchain_inputs),
            "platform": dict(self.platform),
            "env_vars": list(self.env_vars),
        }

    def template(self, wrapper: str) -> str:
        """Return the full command prefix for `wrapper` (the rewrapper binary)."""
        return wrapper + self.wrapper_args()

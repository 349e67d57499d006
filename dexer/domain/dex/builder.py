"""Action building for dexing a module.

ActionBuilder turns a tool selection and derived flags into one BuildAction.
compile_dex runs the whole sequence for a module: common flags (which fail
fast on an unresolvable SDK), tool selection, tool flags, the dex action and
the optional alignment action. Actions are handed to the build graph only
after every step succeeded, so a configuration error never leaves a partial
action set behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from dexer.core.models import BuildAction, ExecStrategy
from dexer.domain.dex.flags import (
    PROGUARD_RAISE_TAG,
    combine_flags,
    common_flags,
    extra_proguard_flag_files,
    tool_flags,
)
from dexer.domain.dex.postprocess import maybe_align
from dexer.domain.dex.rules import d8_remote_params, dex_rule, r8_remote_params
from dexer.domain.dex.selector import Pipeline, ToolSelection, select_tool

if TYPE_CHECKING:
    from dexer.core.protocols import (
        BuildGraph,
        ClasspathProvider,
        SdkResolver,
        TaggedDependencyResolver,
    )
    from dexer.domain.dex.config import ModuleDexConfig
    from dexer.domain.dex.flags import DexFlags
    from dexer.domain.dex.sdk import SdkSpec
    from dexer.infra.config import ToolchainConfig
    from dexer.infra.env import BuildEnv

logger = logging.getLogger(__name__)

KOTLINC_GENERATED_STRIP_FLAGS = (
    "-stripFile META-INF/*.kotlin_module -stripFile **/*.kotlin_builtins"
)


@dataclass(frozen=True)
class ModulePaths:
    """Output locations of one module's dexing actions.

    Every path lives under the module's own output directory, so paths are
    unique per module and stable across rebuilds.
    """

    module_out: Path
    jar_name: str
    module_name: str
    namespace: str = ""

    @property
    def dex_dir(self) -> Path:
        return self.module_out / "dex"

    @property
    def javalib_jar(self) -> Path:
        return self.dex_dir / self.jar_name

    @property
    def tmp_jar(self) -> Path:
        return self.module_out / "withres-withoutdex" / self.jar_name

    @property
    def proguard_dictionary(self) -> Path:
        return self.module_out / "proguard_dictionary"

    @property
    def proguard_usage_dir(self) -> Path:
        return self.module_out / "proguard_usage"

    @property
    def proguard_usage(self) -> Path:
        return self.proguard_usage_dir / self.namespace / self.module_name / "unused.txt"

    @property
    def proguard_usage_zip(self) -> Path:
        return self.module_out / "proguard_usage.zip"


class ActionBuilder:
    """Builds the dex action for one module.

    The three-stage command shape (strip, dex, merge) comes from the rule;
    this class binds the per-module placeholders and declares outputs and
    implicit inputs for the selected pipeline.
    """

    def __init__(
        self,
        toolchain: ToolchainConfig,
        module_out: Path,
        module_name: str,
        *,
        namespace: str = "",
        uncompress_dex: bool = False,
        exclude_kotlinc_generated_files: bool = False,
    ) -> None:
        self._toolchain = toolchain
        self._module_out = module_out
        self._module_name = module_name
        self._namespace = namespace
        self._uncompress_dex = uncompress_dex
        self._exclude_kotlinc = exclude_kotlinc_generated_files

    def paths(self, jar_name: str) -> ModulePaths:
        return ModulePaths(
            module_out=self._module_out,
            jar_name=jar_name,
            module_name=self._module_name,
            namespace=self._namespace,
        )

    def _zip_flags(self) -> str:
        zip_flags = "--ignore_missing_files"
        if self._uncompress_dex:
            zip_flags += " -L 0"
        return zip_flags

    def _merge_zips_flags(self) -> str:
        return KOTLINC_GENERATED_STRIP_FLAGS if self._exclude_kotlinc else ""

    def build(
        self,
        selection: ToolSelection,
        flags: DexFlags,
        classes_jar: Path,
        jar_name: str,
    ) -> BuildAction:
        """Build the dex action.

        Args:
            selection: Pipeline and execution strategy.
            flags: Complete ordered flags and their deps (common then tool).
            classes_jar: The compiled classes archive to dex.
            jar_name: File name of the produced archive.

        Returns:
            The BuildAction. d8 declares only the dex archive; r8 also
            declares the mapping dictionary, the usage report zip and a
            depfile.
        """
        paths = self.paths(jar_name)
        rule = dex_rule(selection.pipeline, self._toolchain, remote=selection.remote)
        strategy = ExecStrategy.REMOTE if selection.remote else ExecStrategy.LOCAL
        flag_string = " ".join(flags.flags)

        args = {
            "zipFlags": self._zip_flags(),
            "outDir": str(paths.dex_dir),
            "tmpJar": str(paths.tmp_jar),
            "mergeZipsFlags": self._merge_zips_flags(),
        }

        if selection.pipeline is Pipeline.R8:
            args.update(
                {
                    "r8Flags": flag_string,
                    "outDict": str(paths.proguard_dictionary),
                    "outUsageDir": str(paths.proguard_usage_dir),
                    "outUsage": str(paths.proguard_usage),
                    "outUsageZip": str(paths.proguard_usage_zip),
                }
            )
            if selection.remote:
                args["implicits"] = ",".join(str(d) for d in flags.deps)
            action = BuildAction(
                rule=rule,
                description="r8",
                input=classes_jar,
                output=paths.javalib_jar,
                flags=flags.flags,
                implicit_outputs=(paths.proguard_dictionary, paths.proguard_usage_zip),
                implicits=flags.deps,
                depfile=Path(f"{paths.javalib_jar}.d"),
                args=args,
                strategy=strategy,
                remote_params=(
                    r8_remote_params(self._toolchain) if selection.remote else None
                ),
            )
        else:
            args["d8Flags"] = flag_string
            action = BuildAction(
                rule=rule,
                description="d8",
                input=classes_jar,
                output=paths.javalib_jar,
                flags=flags.flags,
                implicits=flags.deps,
                args=args,
                strategy=strategy,
                remote_params=(
                    d8_remote_params(self._toolchain) if selection.remote else None
                ),
            )

        logger.debug(
            "Built %s action for %s: %d flags, %d implicits",
            rule.name,
            self._module_name,
            len(action.flags),
            len(action.implicits),
        )
        return action


@dataclass(frozen=True)
class DexRequest:
    """One module's request to be dexed.

    Attributes:
        name: Module name.
        config: The module's dexing properties.
        classes_jar: Compiled classes archive (with resources).
        jar_name: File name of the dexed archive.
        min_sdk_version: Declared minimum SDK.
        module_out: The module's output directory.
        module_dir: Directory module-relative source paths resolve against.
        namespace: Module namespace, part of the usage report path.
        aapt_flags_file: Keep rules generated by aapt from the manifest.
        extra_flag_files: Other flag files supplied by collaborators.
    """

    name: str
    config: ModuleDexConfig
    classes_jar: Path
    jar_name: str
    min_sdk_version: SdkSpec
    module_out: Path
    module_dir: Path = Path()
    namespace: str = ""
    aapt_flags_file: Path | None = None
    extra_flag_files: tuple[Path, ...] = ()


@dataclass(frozen=True)
class DexResult:
    """Everything compile_dex declared for a module.

    Attributes:
        selection: The pipeline and execution strategy used.
        actions: Declared actions, in dependency order.
        output: The module's externally visible dexed archive.
        proguard_dictionary: Mapping dictionary (r8 only).
        proguard_usage_zip: Zipped usage report (r8 only).
    """

    selection: ToolSelection
    actions: tuple[BuildAction, ...]
    output: Path
    proguard_dictionary: Path | None = None
    proguard_usage_zip: Path | None = None

    @property
    def dex_action(self) -> BuildAction:
        return self.actions[0]


def compile_dex(
    request: DexRequest,
    *,
    classpath: ClasspathProvider,
    dependencies: TaggedDependencyResolver,
    sdk: SdkResolver,
    env: BuildEnv,
    toolchain: ToolchainConfig,
    graph: BuildGraph | None = None,
) -> DexResult:
    """Declare the actions that dex `request.classes_jar`.

    Raises:
        PropertyError: If the SDK spec cannot be resolved or flag files
            contradict each other. Nothing is handed to `graph` then.
    """
    config = request.config
    common = common_flags(
        config, request.min_sdk_version, env, sdk, module_dir=request.module_dir
    )

    selection = select_tool(config.effective_optimize_enabled(), env)

    proguard_raise: list[Path] = []
    extra_flag_files: list[Path] = []
    if selection.pipeline is Pipeline.R8:
        proguard_raise = dependencies.resolve_tagged_dependencies(PROGUARD_RAISE_TAG)
        extra_flag_files = extra_proguard_flag_files(
            config, request.aapt_flags_file, request.extra_flag_files
        )

    specific = tool_flags(
        selection.pipeline,
        config,
        classpath.dex_classpaths(),
        env,
        toolchain,
        proguard_raise=proguard_raise,
        extra_flag_files=extra_flag_files,
        module_dir=request.module_dir,
    )
    flags = combine_flags(common, specific)

    builder = ActionBuilder(
        toolchain,
        request.module_out,
        request.name,
        namespace=request.namespace,
        uncompress_dex=bool(config.uncompress_dex),
        exclude_kotlinc_generated_files=bool(config.exclude_kotlinc_generated_files),
    )
    action = builder.build(selection, flags, request.classes_jar, request.jar_name)
    aligned = maybe_align(action, bool(config.uncompress_dex), toolchain)

    actions = (action,) if aligned.action is None else (action, aligned.action)
    paths = builder.paths(request.jar_name)
    result = DexResult(
        selection=selection,
        actions=actions,
        output=aligned.output,
        proguard_dictionary=(
            paths.proguard_dictionary if selection.pipeline is Pipeline.R8 else None
        ),
        proguard_usage_zip=(
            paths.proguard_usage_zip if selection.pipeline is Pipeline.R8 else None
        ),
    )

    if graph is not None:
        for a in result.actions:
            graph.build(a)
    logger.info("Dexed %s with %s -> %s", request.name, action.rule.name, result.output)
    return result

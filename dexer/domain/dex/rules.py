"""Command templates for dexing actions.

Both pipelines run the same three stages, chained with `&&` so the first
failing stage fails the whole action with its exit status:

1. Copy the input archive without any stale dex entries.
2. Run d8 or r8 into a scratch directory.
3. Zip the produced classes*.dex and merge them with the input's non-class
   entries into the final archive.

Only the middle stage differs between pipelines. Remote variants prefix the
tool and zip invocations with the remote execution wrapper and keep the rest
of the command line identical.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dexer.core.models import DepsFormat, Rule
from dexer.domain.dex.selector import Pipeline
from dexer.infra.remoteexec import POOL_KEY, REParams

if TYPE_CHECKING:
    from dexer.infra.config import ToolchainConfig

# Placeholders bound per action.
D8_ARGS = ("outDir", "d8Flags", "zipFlags", "tmpJar", "mergeZipsFlags")
R8_ARGS = (
    "outDir",
    "outDict",
    "outUsage",
    "outUsageZip",
    "outUsageDir",
    "r8Flags",
    "zipFlags",
    "tmpJar",
    "mergeZipsFlags",
)
R8_REMOTE_ARGS = (*R8_ARGS, "implicits")


def _strip_stage(toolchain: ToolchainConfig) -> str:
    return (
        'rm -rf "$outDir" && mkdir -p "$outDir" && '
        "mkdir -p $$(dirname $tmpJar) && "
        f"{toolchain.zip2zip_cmd} -i $in -o $tmpJar -x '**/*.dex' && "
    )


def _merge_stage(toolchain: ToolchainConfig, zip_template: str) -> str:
    return (
        f"{zip_template}{toolchain.soong_zip_cmd} $zipFlags "
        '-o $outDir/classes.dex.jar -C $outDir -f "$outDir/classes*.dex" && '
        f'{toolchain.merge_zips_cmd} -D -stripFile "**/*.class" $mergeZipsFlags '
        "$out $outDir/classes.dex.jar $in"
    )


def _command_deps(toolchain: ToolchainConfig, tool_cmd: str) -> tuple[str, ...]:
    return (
        tool_cmd,
        toolchain.zip2zip_cmd,
        toolchain.soong_zip_cmd,
        toolchain.merge_zips_cmd,
    )


def _zip_params(toolchain: ToolchainConfig, strategy: str) -> REParams:
    return REParams(
        labels={"type": "tool", "name": "soong_zip"},
        inputs=(toolchain.soong_zip_cmd, "$outDir"),
        output_files=("$outDir/classes.dex.jar",),
        exec_strategy=strategy,
        platform={POOL_KEY: toolchain.re_java_pool},
    )


def d8_remote_params(toolchain: ToolchainConfig) -> REParams:
    return REParams(
        labels={"type": "compile", "compiler": "d8"},
        inputs=(toolchain.d8_jar,),
        exec_strategy=toolchain.re_d8_exec_strategy,
        toolchain_inputs=(toolchain.java_cmd,),
        platform={POOL_KEY: toolchain.re_java_pool},
    )


def r8_remote_params(toolchain: ToolchainConfig) -> REParams:
    return REParams(
        labels={"type": "compile", "compiler": "r8"},
        inputs=("$implicits", toolchain.r8_jar),
        output_files=("${outUsage}",),
        exec_strategy=toolchain.re_r8_exec_strategy,
        toolchain_inputs=(toolchain.java_cmd,),
        platform={POOL_KEY: toolchain.re_java_pool},
    )


def d8_rule(toolchain: ToolchainConfig, *, remote: bool = False) -> Rule:
    """The plain dexer rule (`d8`, or `d8_remote`)."""
    tool_template = ""
    zip_template = ""
    if remote:
        tool_template = d8_remote_params(toolchain).template(toolchain.rbe_wrapper)
        zip_template = _zip_params(toolchain, toolchain.re_d8_exec_strategy).template(
            toolchain.rbe_wrapper
        )
    command = (
        _strip_stage(toolchain)
        + f"{tool_template}{toolchain.d8_cmd} {toolchain.d8_flags} "
        "--output $outDir $d8Flags $tmpJar && "
        + _merge_stage(toolchain, zip_template)
    )
    return Rule(
        name="d8_remote" if remote else "d8",
        command=command,
        command_deps=_command_deps(toolchain, toolchain.d8_cmd),
    )


def r8_rule(toolchain: ToolchainConfig, *, remote: bool = False) -> Rule:
    """The optimizer rule (`r8`, or `r8_remote`).

    Besides the dex output, the command always leaves a mapping dictionary
    and a zipped usage report behind (touching them if r8 wrote nothing),
    and writes a gcc-format depfile next to the output.
    """
    tool_template = ""
    zip_template = ""
    if remote:
        tool_template = r8_remote_params(toolchain).template(toolchain.rbe_wrapper)
        zip_template = _zip_params(toolchain, toolchain.re_r8_exec_strategy).template(
            toolchain.rbe_wrapper
        )
    command = (
        'rm -rf "$outDir" && mkdir -p "$outDir" && '
        'rm -f "$outDict" && rm -rf "${outUsageDir}" && '
        "mkdir -p $$(dirname ${outUsage}) && "
        "mkdir -p $$(dirname $tmpJar) && "
        f"{toolchain.zip2zip_cmd} -i $in -o $tmpJar -x '**/*.dex' && "
        f"{tool_template}{toolchain.r8_cmd} {toolchain.r8_flags} "
        "-injars $tmpJar --output $outDir "
        "--no-data-resources "
        "-printmapping ${outDict} "
        "-printusage ${outUsage} "
        "--deps-file ${out}.d "
        "$r8Flags && "
        'touch "${outDict}" "${outUsage}" && '
        f"{toolchain.soong_zip_cmd} -o ${{outUsageZip}} -C ${{outUsageDir}} "
        "-f ${outUsage} && "
        "rm -rf ${outUsageDir} && " + _merge_stage(toolchain, zip_template)
    )
    return Rule(
        name="r8_remote" if remote else "r8",
        command=command,
        command_deps=_command_deps(toolchain, toolchain.r8_cmd),
        depfile="${out}.d",
        deps=DepsFormat.GCC,
    )


def dex_rule(pipeline: Pipeline, toolchain: ToolchainConfig, *, remote: bool) -> Rule:
    """Rule for `pipeline` and execution strategy."""
    if pipeline is Pipeline.R8:
        return r8_rule(toolchain, remote=remote)
    return d8_rule(toolchain, remote=remote)


def zipalign_rule(toolchain: ToolchainConfig) -> Rule:
    """Page-align an archive, copying it unchanged if already aligned."""
    zipalign = toolchain.zipalign_cmd
    return Rule(
        name="zipalign",
        command=(
            f"if ! {zipalign} -c -p 4 $in > /dev/null; then "
            f"{zipalign} -f -p 4 $in $out; "
            "else "
            "cp -f $in $out; "
            "fi"
        ),
        command_deps=(zipalign,),
    )

#!/usr/bin/env python3
"""
dexer CLI: compile module dexing properties into build actions.

Usage:
    dexer compile [OPTIONS] MODULES_YAML
    dexer flags [OPTIONS] MODULES_YAML
    dexer outputs [OPTIONS] MODULES_YAML
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Never

import typer
from tabulate import tabulate

from .domain.dex.builder import compile_dex
from .domain.dex.config import ConfigError
from .domain.dex.config_loader import load_modules
from .domain.dex.flags import (
    PROGUARD_RAISE_TAG,
    combine_flags,
    common_flags,
    extra_proguard_flag_files,
    tool_flags,
)
from .domain.dex.selector import Pipeline, select_tool
from .infra.config import ConfigurationError, ToolchainConfig
from .infra.env import BuildEnv, load_env
from .infra.ninja import GraphError, NinjaGraph
from .logging.console import Colors, log, log_verbose, set_verbose

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .domain.dex.builder import DexResult
    from .domain.dex.config_loader import ModuleSpec

_FORMATS = ("ninja", "json")

app = typer.Typer(
    name="dexer",
    help="Compile module dexing properties into build actions",
    add_completion=False,
)


def _fail(message: str) -> Never:
    log("✗", message, Colors.RED)
    raise typer.Exit(1)


def _setup(
    env_file: Path | None, verbose: bool
) -> tuple[BuildEnv, ToolchainConfig]:
    """Load .env files, then snapshot the environment and toolchain."""
    set_verbose(verbose)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    if env_file is not None and not env_file.exists():
        _fail(f"Env file not found: {env_file}")
    load_env(env_file)
    try:
        toolchain = ToolchainConfig.from_env()
    except ConfigurationError as e:
        _fail(str(e))
    return BuildEnv.from_environ(), toolchain


def _load(modules_yaml: Path) -> list[ModuleSpec]:
    try:
        return load_modules(modules_yaml)
    except ConfigError as e:
        _fail(str(e))


def _dexed_modules(modules: list[ModuleSpec]) -> Iterator[ModuleSpec]:
    """Yield the modules that produce a dexed archive."""
    for module in modules:
        if module.dex.should_compile_dex(module.installable):
            yield module
        else:
            log_verbose("○", "not installable, skipping", module=module.name)


def _compile_all(
    modules: list[ModuleSpec],
    env: BuildEnv,
    toolchain: ToolchainConfig,
    out_dir: Path,
    graph: NinjaGraph | None = None,
) -> list[tuple[ModuleSpec, DexResult]]:
    sdk = toolchain.platform_sdk()
    results: list[tuple[ModuleSpec, DexResult]] = []
    for module in _dexed_modules(modules):
        try:
            result = compile_dex(
                module.to_request(sdk, out_dir),
                classpath=module,
                dependencies=module,
                sdk=sdk,
                env=env,
                toolchain=toolchain,
                graph=graph,
            )
        except (ConfigError, GraphError) as e:
            _fail(f"module '{module.name}': {e}")
        log_verbose(
            "◐",
            f"{result.selection.pipeline.value}"
            f"{' (remote)' if result.selection.remote else ''} -> {result.output}",
            module=module.name,
        )
        results.append((module, result))
    return results


ModulesArg = Annotated[
    Path,
    typer.Argument(help="YAML file describing the modules to dex"),
]
OutDirOpt = Annotated[
    Path,
    typer.Option("--out-dir", help="Root of the build output tree"),
]
EnvFileOpt = Annotated[
    Path | None,
    typer.Option("--env-file", help="Extra .env file, overrides the environment"),
]
VerboseOpt = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show per-module progress and debug logs"),
]


@app.command("compile")
def compile_cmd(
    modules_yaml: ModulesArg,
    out_dir: OutDirOpt = Path("out"),
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: ninja or json"),
    ] = "ninja",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to this file instead of stdout"),
    ] = None,
    env_file: EnvFileOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Emit the build actions for every module.

    Modules that are neither installable nor marked compile_dex are skipped.
    """
    if output_format not in _FORMATS:
        _fail(
            f"Invalid --format value: '{output_format}'. "
            f"Valid values: {', '.join(_FORMATS)}"
        )
    env, toolchain = _setup(env_file, verbose)
    modules = _load(modules_yaml)

    graph = NinjaGraph()
    results = _compile_all(modules, env, toolchain, out_dir, graph)
    text = graph.render() if output_format == "ninja" else graph.to_json() + "\n"

    if output is None:
        typer.echo(text, nl=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
    log(
        "●",
        f"{len(graph.actions)} action(s) for {len(results)} module(s)",
        Colors.GREEN,
    )


@app.command()
def flags(
    modules_yaml: ModulesArg,
    module_name: Annotated[
        str | None,
        typer.Option("--module", "-m", help="Only show this module"),
    ] = None,
    env_file: EnvFileOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Print the derived flags and declared dependencies of each module."""
    env, toolchain = _setup(env_file, verbose)
    modules = _load(modules_yaml)
    if module_name is not None:
        modules = [m for m in modules if m.name == module_name]
        if not modules:
            _fail(f"Module not found: {module_name}")

    sdk = toolchain.platform_sdk()
    for module in modules:
        config = module.dex
        selection = select_tool(config.effective_optimize_enabled(), env)
        try:
            common = common_flags(
                config,
                sdk.parse_spec(module.min_sdk_version),
                env,
                sdk,
                module_dir=module.module_dir,
            )
            is_r8 = selection.pipeline is Pipeline.R8
            specific = tool_flags(
                selection.pipeline,
                config,
                module.dex_classpaths(),
                env,
                toolchain,
                proguard_raise=(
                    module.resolve_tagged_dependencies(PROGUARD_RAISE_TAG)
                    if is_r8
                    else ()
                ),
                extra_flag_files=(
                    extra_proguard_flag_files(
                        config,
                        module.aapt_proguard_flags_file,
                        module.extra_proguard_flags_files,
                    )
                    if is_r8
                    else ()
                ),
                module_dir=module.module_dir,
            )
        except ConfigError as e:
            _fail(f"module '{module.name}': {e}")
        combined = combine_flags(common, specific)

        print(f"{Colors.CYAN}{module.name}{Colors.RESET} ({selection.pipeline.value})")
        print("  flags:")
        for flag in combined.flags:
            print(f"    {flag}")
        print("  deps:")
        for dep in combined.deps:
            print(f"    {dep}")


@app.command()
def outputs(
    modules_yaml: ModulesArg,
    out_dir: OutDirOpt = Path("out"),
    env_file: EnvFileOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Show each module's visible artifact and optimizer outputs."""
    env, toolchain = _setup(env_file, verbose)
    modules = _load(modules_yaml)
    results = _compile_all(modules, env, toolchain, out_dir)
    if not results:
        log("○", "No modules to dex", Colors.GRAY)
        return

    headers = ["Module", "Tool", "Output", "Dictionary", "Usage zip"]
    rows = [
        [
            module.name,
            result.dex_action.rule.name,
            str(result.output),
            str(result.proguard_dictionary or "-"),
            str(result.proguard_usage_zip or "-"),
        ]
        for module, result in results
    ]
    print(tabulate(rows, headers=headers, tablefmt="simple"))


def main() -> None:
    app()


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from nativebuild.foundation.config_io import load_config
from nativebuild.foundation.logging_utils import setup_operational_logger, write_graph_log
from nativebuild.framework.config import BuildSettings, apply_project_conventions
from nativebuild.framework.paths import PathPolicy
from nativebuild.framework.pipeline_builder import PipelineBuilder, finalize_all
from nativebuild.framework.toolchain import ToolchainRegistry
from stagekit.graph import StageGraph

logger = logging.getLogger("nativebuild.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nativebuild", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Synthesize the stage graph for configured binaries")
    plan.add_argument("--config", default=None, help="Build config YAML (default: config/build.yaml)")
    plan.add_argument(
        "--binary",
        action="append",
        default=[],
        help="Only plan this binary (repeatable)",
    )
    plan.add_argument("--platform", default=None, help="Override build.platform")
    plan.add_argument("--format", choices=("json", "text"), default="json")
    plan.add_argument("--output", default=None, help="Also write the JSON graph to this file")

    sub.add_parser("list-toolchains", help="List registered platform toolchains")

    return parser


def render_text(graph: StageGraph) -> str:
    lines: list[str] = []
    for stage in graph.topological_order():
        deps = ", ".join(f"{dep.stage}({dep.kind})" for dep in stage.dependencies) or "-"
        outputs = ", ".join(artifact.logical_path for artifact in stage.outputs) or "-"
        lines.append(f"{stage.id} [{stage.kind}] after: {deps} -> {outputs}")
    if graph.outputs:
        lines.append("")
        for key, artifact in graph.outputs.items():
            lines.append(f"{key} = {artifact.logical_path}")
    return "\n".join(lines)


def _plan(args: argparse.Namespace) -> int:
    cfg, meta = load_config(config_path=args.config)
    settings, warnings = BuildSettings.from_dict(cfg)
    setup_operational_logger(settings.logging.level, log_path=settings.logging.log_path)
    logger.debug("Loaded config (mode=%s paths=%s)", meta["mode"], ", ".join(meta["paths"]))
    for warning in warnings:
        logger.warning("%s", warning)

    builder = PipelineBuilder(
        ToolchainRegistry.default(),
        paths=PathPolicy(settings.build_dir),
        platform=args.platform or settings.platform,
        language=settings.language,
    )
    pipelines = builder.configure_all(settings.select(args.binary))

    # Conventions are applied after configuration; output paths read them lazily.
    for name in apply_project_conventions(settings):
        logger.info("Binary %s uses project name %s as module", name, settings.project_name)

    graph = finalize_all(pipelines)
    payload = graph.to_dict()

    if args.output:
        write_graph_log(args.output, payload)
        logger.info("Wrote stage graph to %s", args.output)

    if args.format == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(render_text(graph))
    return 0


def _list_toolchains() -> int:
    for row in ToolchainRegistry.default().describe():
        print(
            f"{row['platform']}: {row['toolchain']} "
            f"(executable={row['executable']} shared_library={row['shared_library']} "
            f"symbols={row['symbol_file_extension']})"
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "plan":
        try:
            return _plan(args)
        except (FileNotFoundError, ValueError, TypeError) as exc:
            print(f"nativebuild: error: {exc}", file=sys.stderr)
            return 2

    if args.command == "list-toolchains":
        return _list_toolchains()

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))

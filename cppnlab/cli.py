"""Command-line interface for cppnlab workflows."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import EvolutionConfig, RunConfig, load_evolution_config, load_run_config
from .training import TARGETS, get_target, run_training


def _load_bundle(config_path: Path) -> tuple[RunConfig, EvolutionConfig]:
    run_config = load_run_config(config_path)
    evolution_config = load_evolution_config(run_config.evolution_config)
    return run_config, evolution_config


def _cmd_train(args: argparse.Namespace) -> int:
    run_config, evolution_config = _load_bundle(Path(args.config))
    get_target(run_config.target)

    if args.dry_run:
        print("[train] configuration validated")
        print(f"  evolution_config: {run_config.evolution_config}")
        print(f"  target: {run_config.target}")
        print(f"  population_size: {evolution_config.population_size}")
        print(f"  max_generations: {evolution_config.max_generations}")
        print(f"  workers: {run_config.workers}")
        return 0

    result = run_training(run_config, evolution_config)
    print(
        f"[train] finished after {result.generations} generation(s); "
        f"best fitness {result.best_fitness:.4g}"
    )
    return 0


def _cmd_targets(args: argparse.Namespace) -> int:
    for name in sorted(TARGETS):
        print(name)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cppnlab",
        description="CPPN neuroevolution command-line interface",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for library diagnostics",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser(
        "train",
        help="Run training using a YAML configuration bundle",
    )
    train.add_argument(
        "--config",
        required=True,
        help="Path to run configuration YAML",
    )
    train.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration without training",
    )
    train.set_defaults(func=_cmd_train)

    targets = subparsers.add_parser(
        "targets",
        help="List the built-in target functions",
    )
    targets.set_defaults(func=_cmd_targets)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    result = args.func(args)
    return int(result)


if __name__ == "__main__":  # pragma: no cover - entry point
    raise SystemExit(main())

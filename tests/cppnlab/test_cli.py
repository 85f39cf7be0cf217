from __future__ import annotations

from pathlib import Path

import pytest
from cppnlab import cli


def test_cli_help() -> None:
    parser = cli.build_parser()
    help_text = parser.format_help()
    assert "train" in help_text
    assert "targets" in help_text


def _write_configs(tmp_path: Path, *, target: str = "product_sine") -> Path:
    (tmp_path / "evolution.yml").write_text(
        "population_size: 6\n"
        "max_generations: 1\n"
        "seed: 5\n",
        encoding="utf-8",
    )
    run_yaml = tmp_path / "run.yml"
    run_yaml.write_text(
        "evolution_config: evolution.yml\n"
        f"target: {target}\n"
        "example_count: 4\n"
        "output_dir: runs\n",
        encoding="utf-8",
    )
    return run_yaml


def test_cli_targets_lists_registry(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["targets"])
    assert code == 0
    assert capsys.readouterr().out.split() == ["hypot", "product", "product_sine", "sum"]


def test_cli_train_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run_yaml = _write_configs(tmp_path)

    code = cli.main(["train", "--config", str(run_yaml), "--dry-run"])

    assert code == 0
    assert "configuration validated" in capsys.readouterr().out
    assert not (tmp_path / "runs").exists()


def test_cli_train_dry_run_rejects_unknown_target(tmp_path: Path) -> None:
    run_yaml = _write_configs(tmp_path, target="cube")
    with pytest.raises(ValueError):
        cli.main(["train", "--config", str(run_yaml), "--dry-run"])


def test_cli_train_executes(tmp_path: Path) -> None:
    run_yaml = _write_configs(tmp_path)

    code = cli.main(["--log-level", "DEBUG", "train", "--config", str(run_yaml)])

    assert code == 0
    run_dirs = list((tmp_path / "runs").iterdir())
    assert len(run_dirs) == 1
    assert (run_dirs[0] / "metrics.csv").exists()

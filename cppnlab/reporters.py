"""Reporting helpers: run event log and human-readable genome summaries."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from os.path import commonprefix
from pathlib import Path
from typing import Any

from .genome import Genome
from .innovations import NodeGeneType
from .metrics import MetricsRow


class EventLogger:
    """Append-only text logger with ISO timestamps."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._path.open("a", encoding="utf-8")

    def __enter__(self) -> EventLogger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def log(self, message: str) -> None:
        """Append a timestamped message to the log."""
        timestamp = datetime.now(timezone.utc).isoformat()
        self._handle.write(f"{timestamp} {message}\n")
        self._handle.flush()

    def log_generation(self, row: MetricsRow) -> None:
        self.log(
            f"Generation {row.generation}: best={row.best_fitness:.4g} "
            f"mean={row.mean_fitness:.4g} median={row.median_fitness:.4g} "
            f"alive={row.alive_count}/{row.population_size} "
            f"species={row.species_count} nodes={row.best_nodes} edges={row.best_edges}"
        )

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()

    @property
    def path(self) -> Path:
        return self._path


def shorten_id(identity: str, known_ids: Iterable[str]) -> str:
    """Return the shortest prefix of ``identity`` that no other known id shares.

    Args:
        identity: Innovation id to shorten.
        known_ids: Ids the prefix must distinguish ``identity`` from; the
            identity itself may be included.

    Returns:
        One character longer than the longest prefix shared with another id,
        capped at the full identity.
    """
    longest = 0
    for other in known_ids:
        if other == identity:
            continue
        longest = max(longest, len(commonprefix([identity, other])))
    return identity[: longest + 1]


def describe_genome(genome: Genome, known_ids: Iterable[str] | None = None) -> str:
    """Render nodes and edges of ``genome`` one per line with shortened ids."""
    if known_ids is None:
        ids = [node.innovation_id for node in genome.nodes]
    else:
        ids = list(known_ids)

    def label(node: NodeGeneType) -> str:
        return f"Node[{shorten_id(node.innovation_id, ids)}]"

    lines = [
        f"{label(node)} {gene.role.value}[{gene.aggregation.value}, {gene.activation.value}]"
        for node, gene in sorted(genome.nodes.items())
    ]
    for key, edge in sorted(genome.edges.items()):
        state = "" if edge.enabled else " (disabled)"
        lines.append(f"{label(key.source)} -> {label(key.target)} w={edge.weight:.4g}{state}")
    return "\n".join(lines)


__all__ = ["EventLogger", "describe_genome", "shorten_id"]

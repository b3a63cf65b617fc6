"""Bundled seed dataset for a fresh graph store."""

import logging
from pathlib import Path

import yaml

from prism_kg.graph.models import GraphData

logger = logging.getLogger(__name__)

# Shipped with the package
BUNDLED_DIR = Path(__file__).parent / "bundled"
SEED_PATH = BUNDLED_DIR / "seed.yaml"


def load_seed(path: Path | None = None) -> GraphData:
    """Load the seed graph (bundled by default).

    Args:
        path: Alternative seed YAML with ``entities`` and ``relations`` lists

    Returns:
        Validated GraphData

    Raises:
        FileNotFoundError: If the seed file does not exist
    """
    seed_path = path or SEED_PATH
    if not seed_path.exists():
        raise FileNotFoundError(f"Seed file not found: {seed_path}")

    raw = yaml.safe_load(seed_path.read_text(encoding="utf-8")) or {}
    data = GraphData.model_validate(raw)
    logger.debug(
        f"Loaded seed: {len(data.entities)} entities, {len(data.relations)} relations"
    )
    return data

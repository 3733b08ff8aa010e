"""
Purpose: Constants for the export pipeline.
Description: Centralizes limits and names shared by the fetcher, writer and orchestrator.
Key Constants: INITIAL_BUFFER_SIZE, MAX_ARRAY_ITEMS, MAX_SERIALIZED_CHARS, ENTITY_KINDS.
"""

from typing import Dict, Literal, Tuple

DEFAULT_API_BASE: str = "https://api.braintrust.dev/v1"
DEFAULT_OUTPUT_DIR: str = "./exports"
DEFAULT_TIMEOUT_SECONDS: float = 60.0

# Records sampled before the CSV header is locked.
INITIAL_BUFFER_SIZE: int = 1000

# AIDEV-NOTE: Embeddings and token arrays blow up CSV cells; cap them.
MAX_ARRAY_ITEMS: int = 1000
MAX_SERIALIZED_CHARS: int = 100_000

PAGE_LIMIT: int = 1000
PROGRESS_INTERVAL_MS: int = 10_000

EXPERIMENT = "experiment"
DATASET = "dataset"
EntityKind = Literal["experiment", "dataset"]
ENTITY_KINDS: Tuple[str, ...] = (EXPERIMENT, DATASET)

# Sub-directory per kind under the project folder.
KIND_DIRECTORIES: Dict[str, str] = {
    EXPERIMENT: "experiments",
    DATASET: "datasets",
}

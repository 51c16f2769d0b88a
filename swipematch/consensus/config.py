from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class ConsensusConfig:
    # Bound for membership / ledger reads made while evaluating consensus
    read_timeout_seconds: float = float(os.getenv("SWIPEMATCH_READ_TIMEOUT", "2.0"))
    store_backend: str = os.getenv("SWIPEMATCH_STORE", "memory")  # memory | json
    data_dir: Path = Path(os.getenv("SWIPEMATCH_DATA_DIR", "swipematch/data/state"))
    match_list_limit: int = 50


DEFAULT_CONSENSUS_CONFIG = ConsensusConfig()

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

_DEFAULT_CATALOG = Path(__file__).resolve().parent.parent / "data" / "restaurants.csv"


@dataclass(frozen=True)
class DeckConfig:
    catalog_path: Path = Path(os.getenv("SWIPEMATCH_CATALOG", str(_DEFAULT_CATALOG)))
    deck_size: int = int(os.getenv("SWIPEMATCH_DECK_SIZE", "20"))


DEFAULT_DECK_CONFIG = DeckConfig()

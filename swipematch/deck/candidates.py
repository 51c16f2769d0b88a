from __future__ import annotations

import zlib
from pathlib import Path
from typing import Protocol

import pandas as pd

from ..consensus.models import RestaurantSnapshot
from .models import Candidate, DeckFilters


class CandidateSource(Protocol):
    def get_candidates(
        self, scope_id: str, filters: DeckFilters, limit: int, generation: int = 0,
    ) -> list[Candidate]: ...


def deck_seed(scope_id: str, generation: int) -> int:
    """Stable shuffle seed so a regenerated deck differs from the previous one."""
    return zlib.crc32(f"{scope_id}:{generation}".encode())


class CsvCandidateSource:
    """Restaurant candidates read from the processed catalog CSV."""

    def __init__(self, csv_path: Path) -> None:
        self.csv_path = Path(csv_path)
        self._df: pd.DataFrame | None = None

    def _load(self) -> pd.DataFrame:
        df = pd.read_csv(self.csv_path, dtype={"id": str})

        # Pre-parse cuisines into lists and lowercase for matching
        df["cuisines_list"] = (
            df["cuisines"]
            .fillna("")
            .apply(lambda s: [c.strip() for c in s.split(",") if c.strip()])
        )
        df["cuisines_lower"] = df["cuisines_list"].apply(lambda cl: [c.lower() for c in cl])
        df["price_level"] = df["price_bucket"].fillna("").str.len()
        return df

    def get_dataframe(self) -> pd.DataFrame:
        if self._df is None:
            self._df = self._load()
        return self._df

    def _filter(self, df: pd.DataFrame, filters: DeckFilters) -> pd.DataFrame:
        mask = pd.Series(True, index=df.index)
        if filters.cuisine:
            wanted = filters.cuisine.strip().lower()
            mask = mask & df["cuisines_lower"].apply(lambda cl: wanted in cl)
        if filters.max_price_level is not None:
            mask = mask & (df["price_level"] <= filters.max_price_level)
        if filters.min_rating > 0:
            mask = mask & (df["avg_rating"] >= filters.min_rating)
        return df.loc[mask]

    def get_candidates(
        self, scope_id: str, filters: DeckFilters, limit: int, generation: int = 0,
    ) -> list[Candidate]:
        df = self.get_dataframe()
        filtered = self._filter(df, filters)
        if filtered.empty:
            # Fall back to the whole catalog rather than an empty deck
            filtered = df

        shuffled = filtered.sample(frac=1, random_state=deck_seed(scope_id, generation))
        candidates: list[Candidate] = []
        for _, row in shuffled.head(limit).iterrows():
            snapshot = RestaurantSnapshot(
                name=row["name"],
                photo=row["photo"] if pd.notna(row.get("photo")) else None,
                rating=float(row["avg_rating"]) if pd.notna(row["avg_rating"]) else None,
                cuisines=row["cuisines_list"],
                address=row["address"] if pd.notna(row["address"]) else None,
                price_level=int(row["price_level"]) or None,
            )
            candidates.append(Candidate(item_id=str(row["id"]), item=snapshot))
        return candidates

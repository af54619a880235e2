"""Loading utilities for the 3D-printer filament weight table."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd

from .errors import InvalidInput
from .model import Observations

logger = logging.getLogger(__name__)


@dataclass
class DataConfig:
    """Configuration describing where the filament table lives and its columns."""

    csv_path: Path
    x_col: str = "CAD_Weight"
    y_col: str = "Actual_Weight"
    date_col: Optional[str] = "Date"

    def resolve_paths(self, project_root: Optional[Path] = None) -> "DataConfig":
        csv_path = Path(self.csv_path)
        if not csv_path.is_absolute() and project_root is not None:
            csv_path = project_root / csv_path
        return DataConfig(csv_path=csv_path, x_col=self.x_col, y_col=self.y_col, date_col=self.date_col)


def clean_filament_frame(df: pd.DataFrame, config: DataConfig) -> pd.DataFrame:
    """Coerce the weight columns to numbers and drop incomplete rows."""

    missing = [col for col in (config.x_col, config.y_col) if col not in df.columns]
    if missing:
        raise InvalidInput(f"Filament table is missing columns: {missing}")

    df = df.copy()
    for col in (config.x_col, config.y_col):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    n_before = len(df)
    df = df.dropna(subset=[config.x_col, config.y_col])
    if len(df) < n_before:
        logger.info("Dropped %d rows with missing or non-numeric weights", n_before - len(df))

    if config.date_col is not None and config.date_col in df.columns:
        df[config.date_col] = pd.to_datetime(df[config.date_col], errors="coerce")
        df = df.sort_values(config.date_col, kind="stable")
    return df.reset_index(drop=True)


def load_filament_data(config: DataConfig) -> Tuple[pd.DataFrame, Observations]:
    """Read the filament table and return it with its (x, y) observation set."""

    df = pd.read_csv(config.csv_path)
    df = clean_filament_frame(df, config)
    if df.empty:
        raise InvalidInput(f"No usable rows in {config.csv_path}")
    logger.info("Loaded %d filament observations from %s", len(df), config.csv_path)
    return df, Observations.from_frame(df, config.x_col, config.y_col)

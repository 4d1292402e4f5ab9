"""
Data I/O Module

Handles loading of the delimited input files:
- Typed dataset loading with per-row format validation
- Missing-value row filtering (applied before the train/test split)
- Example records used for console predictions
"""

import csv
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .config import MISSING_VALUE_TOKENS
from .exceptions import DataFormatError

logger = logging.getLogger(__name__)

NUMERIC_KINDS = {"float32", "float64", "int64"}
SUPPORTED_KINDS = NUMERIC_KINDS | {"string", "datetime"}


@dataclass(frozen=True)
class ColumnSpec:
    """One positional field of an input file."""
    name: str
    kind: str
    index: int

    def __post_init__(self):
        if self.kind not in SUPPORTED_KINDS:
            raise ValueError(f"Unsupported column kind '{self.kind}' for column '{self.name}'")


@dataclass(frozen=True)
class DatasetSchema:
    """Field layout of a delimited input file."""
    columns: List[ColumnSpec]
    separator: str = ","
    has_header: bool = True

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @classmethod
    def from_config(cls, cfg: dict) -> "DatasetSchema":
        """Build a schema from an experiment config (`columns`, `separator`, `has_header`)."""
        columns = [ColumnSpec(name=name, kind=kind, index=i)
                   for i, (name, kind) in enumerate(cfg["columns"])]
        return cls(columns=columns,
                   separator=cfg.get("separator", ","),
                   has_header=cfg.get("has_header", True))


def _empty_frame(schema: DatasetSchema) -> pd.DataFrame:
    data = {}
    for col in schema.columns:
        if col.kind == "datetime":
            data[col.name] = pd.Series(dtype="datetime64[ns]")
        elif col.kind == "string":
            data[col.name] = pd.Series(dtype=object)
        elif col.kind == "int64":
            data[col.name] = pd.Series(dtype="Int64")
        else:
            data[col.name] = pd.Series(dtype=col.kind)
    return pd.DataFrame(data)


def _convert_column(values: pd.Series, col: ColumnSpec, path: Path, line_offset: int) -> pd.Series:
    """Convert raw text to the column kind; unparseable tokens raise DataFormatError."""
    if col.kind == "string":
        return values.astype(object)

    missing = values.str.strip().isin(MISSING_VALUE_TOKENS)
    text = values.where(~missing)

    if col.kind == "datetime":
        converted = pd.to_datetime(text, errors="coerce")
    else:
        converted = pd.to_numeric(text, errors="coerce")

    bad = converted.isna() & ~missing
    if bad.any():
        row = int(bad.values.argmax())
        raise DataFormatError(
            f"cannot parse {values.iloc[row]!r} as {col.kind} in column '{col.name}'",
            path=path,
            line=row + line_offset,
        )

    if col.kind == "int64":
        return converted.astype("Int64")
    if col.kind in ("float32", "float64"):
        return converted.astype(col.kind)
    return converted


def _check_field_counts(path: Path, schema: DatasetSchema) -> None:
    """Raise DataFormatError at the first data row whose field count differs from the schema."""
    expected = len(schema.columns)
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.reader(f, delimiter=schema.separator)
        if schema.has_header:
            next(reader, None)
        for fields in reader:
            if not fields:
                continue  # blank lines are skipped by the parser too
            if len(fields) != expected:
                raise DataFormatError(
                    f"expected {expected} fields, found {len(fields)}",
                    path=path,
                    line=reader.line_num,
                )


def load_dataset(path, schema: DatasetSchema) -> pd.DataFrame:
    """
    Load a delimited text file into a typed DataFrame.

    Every row must carry exactly one field per schema column. Missing-value
    tokens (e.g. "null" or an empty field) become NaN/NaT; any other token
    that does not parse into its column kind is a format error.

    Args:
        path: Path to the delimited file
        schema: Field layout (names, kinds, separator, header flag)

    Returns:
        DataFrame with one column per schema column, in schema order

    Raises:
        FileNotFoundError: If the file does not exist
        DataFormatError: If a row has the wrong field count or an unparseable value

    Example:
        >>> schema = DatasetSchema.from_config(config.STOCK_FORECAST_CONFIG)
        >>> df = load_dataset("data/PETR4.SA.csv", schema)
        >>> print(df.columns.tolist())
        ['Date', 'Open', 'High', 'Low', 'Close', 'AdjustedClose', 'Volume']
    """
    path = Path(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset file not found: {path}")

    skip = 1 if schema.has_header else 0
    line_offset = skip + 1  # first data row is line 2 when a header is present

    _check_field_counts(path, schema)

    try:
        raw = pd.read_csv(
            path,
            sep=schema.separator,
            header=None,
            skiprows=skip,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"No data rows in {path}")
        return _empty_frame(schema)
    except pd.errors.ParserError as e:
        raise DataFormatError(str(e), path=path) from e

    raw.columns = schema.names
    df = pd.DataFrame({
        col.name: _convert_column(raw[col.name], col, path, line_offset)
        for col in schema.columns
    })

    logger.info(f"Loaded {len(df)} rows from {path}")
    return df


def filter_rows_by_missing_values(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Drop every row with a missing value in any of the given columns.

    Args:
        df: Loaded dataset
        columns: Columns that must be present

    Returns:
        Filtered copy of df with a fresh index

    Raises:
        KeyError: If a column is not in df
    """
    unknown = [c for c in columns if c not in df.columns]
    if unknown:
        raise KeyError(f"Unknown columns for missing-value filter: {unknown}")

    if not columns:
        return df.reset_index(drop=True)

    keep = df[list(columns)].notna().all(axis=1)
    n_dropped = int((~keep).sum())
    if n_dropped:
        logger.info(f"Dropped {n_dropped} rows with missing values in {list(columns)}")
    return df[keep].reset_index(drop=True)


def load_examples(path) -> List[Dict]:
    """
    Load the example records scored after training.

    The file is a JSON list of objects keyed by column name; the label
    column may be omitted.
    """
    path = Path(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Examples file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        examples = json.load(f)

    if not isinstance(examples, list) or not all(isinstance(e, dict) for e in examples):
        raise DataFormatError("examples file must contain a JSON list of objects", path=path)

    return examples

"""
Column Transforms

DataFrame-in / DataFrame-out column operations used ahead of a trainer:
- CopyColumns: alias a column under a new name (used to designate the label)
- Concatenate: pack numeric columns into one feature-vector column
- NormalizeMinMax: rescale a column with min/max learned at fit time
- MapValueToKey: map categorical values to integer keys
- ConvertType: numeric type cast

All transforms are scikit-learn estimators: learned state lives in
attributes with a trailing underscore and is set only by fit().
"""

from typing import List

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import MinMaxScaler

from .exceptions import TrainingError

# Key assigned to values never seen while fitting MapValueToKey
OUT_OF_VOCABULARY_KEY = -1


def _require_columns(X: pd.DataFrame, columns: List[str], step: str) -> None:
    missing = [c for c in columns if c not in X.columns]
    if missing:
        raise KeyError(f"{step}: missing input columns {missing}")


def is_vector_column(values: pd.Series) -> bool:
    """True if the cells of a column are 1-D arrays (output of Concatenate)."""
    return values.dtype == object and len(values) > 0 and isinstance(values.iloc[0], np.ndarray)


def as_matrix(values: pd.Series) -> np.ndarray:
    """Return a (n_rows, n_slots) float matrix for a scalar or vector column."""
    if is_vector_column(values):
        return np.vstack(values.to_list()).astype(np.float64)
    return values.to_numpy(dtype=np.float64).reshape(-1, 1)


class CopyColumns(TransformerMixin, BaseEstimator):
    """Copy `input_column` to `output_column`.

    When the input column is absent at transform time (e.g. a prediction
    record without its label) the output column is filled with NaN.
    """

    def __init__(self, output_column: str, input_column: str):
        self.output_column = output_column
        self.input_column = input_column

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, [self.input_column], "CopyColumns")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        out = X.copy()
        if self.input_column in X.columns:
            out[self.output_column] = X[self.input_column]
        else:
            out[self.output_column] = np.nan
        return out


class Concatenate(TransformerMixin, BaseEstimator):
    """Pack numeric columns into one float32 vector per row."""

    def __init__(self, output_column: str, input_columns: List[str]):
        self.output_column = output_column
        self.input_columns = input_columns

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, list(self.input_columns), "Concatenate")
        self.n_slots_ = len(self.input_columns)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        _require_columns(X, list(self.input_columns), "Concatenate")
        values = X[list(self.input_columns)].to_numpy(dtype=np.float32)
        out = X.copy()
        out[self.output_column] = pd.Series(list(values), index=X.index, dtype=object)
        return out


class NormalizeMinMax(TransformerMixin, BaseEstimator):
    """Rescale a column to [0, 1] using the min/max seen at fit time.

    Values outside the fitted range map outside [0, 1] (no clamping).
    Vector columns are scaled slot by slot.
    """

    def __init__(self, column: str):
        self.column = column

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, [self.column], "NormalizeMinMax")
        if len(X) == 0:
            raise TrainingError(f"NormalizeMinMax: cannot fit '{self.column}' on an empty dataset")
        self.scaler_ = MinMaxScaler(feature_range=(0, 1), clip=False)
        self.scaler_.fit(as_matrix(X[self.column]))
        self.is_vector_ = is_vector_column(X[self.column])
        return self

    @property
    def min_(self) -> np.ndarray:
        return self.scaler_.data_min_

    @property
    def max_(self) -> np.ndarray:
        return self.scaler_.data_max_

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        _require_columns(X, [self.column], "NormalizeMinMax")
        out = X.copy()
        if len(X) == 0:
            return out
        scaled = self.scaler_.transform(as_matrix(X[self.column]))
        if self.is_vector_:
            out[self.column] = pd.Series(list(scaled.astype(np.float32)), index=X.index, dtype=object)
        else:
            out[self.column] = scaled[:, 0]
        return out


class MapValueToKey(TransformerMixin, BaseEstimator):
    """Map each distinct value of `input_column` to an integer key.

    Keys are 0..n-1 in order of first occurrence in the fitting data.
    Unseen or missing values map to OUT_OF_VOCABULARY_KEY.
    """

    def __init__(self, output_column: str, input_column: str):
        self.output_column = output_column
        self.input_column = input_column

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, [self.input_column], "MapValueToKey")
        self.vocabulary_ = pd.Index(pd.unique(X[self.input_column].dropna()))
        return self

    @property
    def n_keys_(self) -> int:
        return len(self.vocabulary_)

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        _require_columns(X, [self.input_column], "MapValueToKey")
        out = X.copy()
        keys = self.vocabulary_.get_indexer(X[self.input_column])
        out[self.output_column] = np.where(keys < 0, OUT_OF_VOCABULARY_KEY, keys).astype(np.int64)
        return out


class ConvertType(TransformerMixin, BaseEstimator):
    """Cast `input_column` to a numeric dtype under `output_column`."""

    def __init__(self, output_column: str, input_column: str, output_kind: str = "float32"):
        self.output_column = output_column
        self.input_column = input_column
        self.output_kind = output_kind

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, [self.input_column], "ConvertType")
        np.dtype(self.output_kind)  # rejects unknown kinds early
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        out = X.copy()
        if self.input_column in X.columns:
            out[self.output_column] = X[self.input_column].astype(self.output_kind)
        else:
            out[self.output_column] = np.nan
        return out


TRANSFORMS = {
    "copy_columns": CopyColumns,
    "concatenate": Concatenate,
    "normalize_min_max": NormalizeMinMax,
    "map_value_to_key": MapValueToKey,
    "convert_type": ConvertType,
}


def build_transform(transform_config: dict):
    """Instantiate a transform from a config dict such as {"op": "concatenate", ...}."""
    params = dict(transform_config)
    op = params.pop("op", None)
    if op not in TRANSFORMS:
        raise ValueError(f"Unknown transform op: {op}. Must be one of {sorted(TRANSFORMS)}")
    return TRANSFORMS[op](**params)

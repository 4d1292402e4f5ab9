"""
Model Training Module

Handles train/test splitting, estimator-chain construction from an
experiment config, and model fitting.
"""

import logging
import math
import time
from typing import Optional, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split

from .exceptions import TrainingError
from .model import EstimatorChain, FittedModel
from .trainers import build_trainer
from .transforms import build_transform

logger = logging.getLogger(__name__)


def train_test_split_random(df: pd.DataFrame,
                            test_fraction: float = 0.2,
                            random_state: Optional[int] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Randomly partition a dataset into train and test sets.

    The split is disjoint and exhaustive; the test set holds
    ceil(test_fraction * len(df)) rows. Rows keep their original index.

    Args:
        df: Dataset to split
        test_fraction: Share of rows held out for testing, in (0, 1)
        random_state: Seed for a reproducible split (None = non-deterministic)

    Returns:
        Tuple of (train_df, test_df)

    Raises:
        ValueError: If test_fraction is not in (0, 1)
        TrainingError: If the dataset is too small to leave both sets non-empty

    Example:
        >>> train_df, test_df = train_test_split_random(df, test_fraction=0.2, random_state=42)
        >>> len(test_df) / len(df)
        0.2
    """
    if not 0.0 < test_fraction < 1.0:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")
    if len(df) < 2:
        raise TrainingError(f"Need at least 2 rows to split into train/test sets, got {len(df)}")
    n_test = math.ceil(test_fraction * len(df))
    if n_test >= len(df):
        raise TrainingError(
            f"test_fraction {test_fraction} leaves no training rows out of {len(df)}"
        )

    train_df, test_df = train_test_split(
        df,
        test_size=test_fraction,
        random_state=random_state,
        shuffle=True,
    )
    return train_df, test_df


def build_estimator_chain(transform_configs: list,
                          trainer_config: dict,
                          label_column: str = "Label",
                          score_column: str = "Score",
                          random_state: Optional[int] = None) -> EstimatorChain:
    """
    Build an unfitted estimator chain from config dicts.

    Args:
        transform_configs: Ordered list of {"op": ..., **params} dicts
        trainer_config: {"type": "regression" | "matrix_factorization", **params}
        label_column: Column holding the true label after the transforms
        score_column: Column the fitted model writes its predictions to
        random_state: Seed passed to trainers with randomized initialization

    Returns:
        EstimatorChain ending in the configured trainer

    Example:
        >>> cfg = config.STOCK_FORECAST_CONFIG
        >>> chain = build_estimator_chain(cfg["transforms"], cfg["trainer"])
    """
    chain = EstimatorChain(label_column=label_column, score_column=score_column)
    for transform_config in transform_configs:
        chain = chain.append(build_transform(transform_config))
    return chain.append(build_trainer(trainer_config, random_state=random_state))


def fit_model(chain: EstimatorChain, train_df: pd.DataFrame) -> FittedModel:
    """
    Fit an estimator chain on the training set.

    Raises:
        TrainingError: If the training data is empty or degenerate
    """
    start_time = time.time()
    model = chain.fit(train_df)
    logger.info(f"  Fitted {type(model.trainer).__name__} on {len(train_df)} rows "
                f"in {time.time() - start_time:.2f} seconds")
    return model

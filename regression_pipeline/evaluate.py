"""
Model Evaluation Module

Standard regression metrics for a fitted model on a held-out test set:
- MAE (Mean Absolute Error)
- MSE (Mean Squared Error)
- RMSE (Root Mean Squared Error)
- R² (coefficient of determination)
"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .model import FittedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegressionMetrics:
    """Aggregate evaluation results."""
    mean_absolute_error: float
    mean_squared_error: float
    root_mean_squared_error: float
    r_squared: float
    loss_function: float
    n_samples: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_regression_metrics(actuals, predictions) -> RegressionMetrics:
    """
    Compute regression metrics from paired actual/predicted values.

    Metric: How far predictions fall from the true labels
    Operationalization:
        MAE = mean(|pred - actual|)
        MSE = mean((pred - actual)^2)
        RMSE = sqrt(MSE)
        R² = 1 - SS_res / SS_tot

    Pairs where either value is missing are ignored. With no pairs left,
    every metric is NaN.
    """
    actuals = np.asarray(actuals, dtype=np.float64)
    predictions = np.asarray(predictions, dtype=np.float64)
    valid = ~np.isnan(actuals) & ~np.isnan(predictions)
    actuals, predictions = actuals[valid], predictions[valid]

    if len(actuals) == 0:
        logger.warning("No labelled test rows to evaluate; metrics are NaN")
        nan = float("nan")
        return RegressionMetrics(nan, nan, nan, nan, nan, 0)

    mse = float(mean_squared_error(actuals, predictions))
    # R² is undefined for a single sample; report NaN instead of a warning
    r2 = float(r2_score(actuals, predictions)) if len(actuals) > 1 else float("nan")

    return RegressionMetrics(
        mean_absolute_error=float(mean_absolute_error(actuals, predictions)),
        mean_squared_error=mse,
        root_mean_squared_error=math.sqrt(mse),
        r_squared=r2,
        loss_function=mse,
        n_samples=int(len(actuals)),
    )


def evaluate_regression(model: FittedModel,
                        test_df: pd.DataFrame,
                        label_column: Optional[str] = None,
                        score_column: Optional[str] = None) -> RegressionMetrics:
    """
    Score the test set with a fitted model and compare against the true labels.

    Only transform() is applied to the test data; no transform state is
    refitted on it.

    Args:
        model: Fitted model
        test_df: Held-out rows (raw columns, as loaded)
        label_column: Label column after the transforms (defaults to the model's)
        score_column: Score column written by the model (defaults to the model's)

    Returns:
        RegressionMetrics

    Example:
        >>> metrics = evaluate_regression(model, test_df)
        >>> print(f"RMSE: {metrics.root_mean_squared_error:.4f}")
        RMSE: 0.4127
    """
    label_column = label_column or model.label_column
    score_column = score_column or model.score_column

    scored = model.transform(test_df)
    return compute_regression_metrics(scored[label_column].to_numpy(dtype=np.float64),
                                      scored[score_column].to_numpy(dtype=np.float64))


def format_metrics(metrics: RegressionMetrics) -> str:
    """Render the console metrics block."""
    return "\n".join([
        "-------------------- METRICS --------------------",
        f"Mean Absolute Error: {metrics.mean_absolute_error}",
        f"Mean Squared Error: {metrics.mean_squared_error}",
        f"Root Mean Squared Error: {metrics.root_mean_squared_error}",
        f"R Squared: {metrics.r_squared}",
        "-------------------------------------------------",
    ])

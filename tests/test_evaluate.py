"""
Tests for regression_pipeline.evaluate module

Covers:
- Metric computation (MAE, MSE, RMSE, R²) and their consistency
- Missing and degenerate inputs
- Evaluation of a fitted model on held-out rows
- Console formatting
"""

import math

import numpy as np
import pandas as pd
import pytest

from regression_pipeline.evaluate import (
    RegressionMetrics,
    compute_regression_metrics,
    evaluate_regression,
    format_metrics,
)
from regression_pipeline.model import EstimatorChain
from regression_pipeline.trainers import RegressionTrainer
from regression_pipeline.transforms import Concatenate, CopyColumns

# ---------------------------------------------------------------------
# Metric computation
# ---------------------------------------------------------------------

class TestComputeRegressionMetrics:
    """Tests for compute_regression_metrics"""

    def test_known_values(self):
        metrics = compute_regression_metrics([1.0, 2.0, 3.0, 4.0], [1.5, 2.0, 2.5, 5.0])

        assert metrics.mean_absolute_error == pytest.approx(0.5)
        assert metrics.mean_squared_error == pytest.approx(0.375)
        assert metrics.root_mean_squared_error == pytest.approx(math.sqrt(0.375))
        assert metrics.r_squared == pytest.approx(1 - 1.5 / 5.0)
        assert metrics.n_samples == 4

    def test_rmse_squared_equals_mse(self):
        rng = np.random.default_rng(0)
        actual = rng.normal(size=50)
        predicted = actual + rng.normal(scale=0.3, size=50)

        metrics = compute_regression_metrics(actual, predicted)

        assert metrics.root_mean_squared_error >= 0
        assert metrics.root_mean_squared_error ** 2 == pytest.approx(metrics.mean_squared_error)
        assert metrics.loss_function == pytest.approx(metrics.mean_squared_error)

    def test_perfect_predictions(self):
        metrics = compute_regression_metrics([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
        assert metrics.r_squared == pytest.approx(1.0)
        assert metrics.mean_absolute_error == 0.0
        assert metrics.root_mean_squared_error == 0.0

    def test_missing_pairs_are_ignored(self):
        metrics = compute_regression_metrics([1.0, np.nan, 3.0], [2.0, 5.0, np.nan])
        assert metrics.n_samples == 1
        assert metrics.mean_absolute_error == pytest.approx(1.0)

    def test_single_sample_r_squared(self):
        """R² is undefined for one sample."""
        metrics = compute_regression_metrics([1.0], [1.5])
        assert math.isnan(metrics.r_squared)
        assert metrics.mean_squared_error == pytest.approx(0.25)

    def test_empty_input(self):
        metrics = compute_regression_metrics([], [])
        assert metrics.n_samples == 0
        assert math.isnan(metrics.mean_absolute_error)
        assert math.isnan(metrics.root_mean_squared_error)


# ---------------------------------------------------------------------
# Model evaluation
# ---------------------------------------------------------------------

class TestEvaluateRegression:
    """Tests for evaluate_regression"""

    @pytest.fixture
    def model(self, linear_df):
        chain = (EstimatorChain()
                 .append(CopyColumns("Label", "y"))
                 .append(Concatenate("Features", ["x"]))
                 .append(RegressionTrainer()))
        return chain.fit(linear_df)

    def test_perfect_fit_on_held_out_rows(self, model):
        test_df = pd.DataFrame({
            "x": np.array([5.0, 6.0, 7.0], dtype=np.float32),
            "y": np.array([11.0, 13.0, 15.0], dtype=np.float32),
        })

        metrics = evaluate_regression(model, test_df)

        assert isinstance(metrics, RegressionMetrics)
        assert metrics.r_squared == pytest.approx(1.0, abs=1e-6)
        assert metrics.root_mean_squared_error == pytest.approx(0.0, abs=1e-4)
        assert metrics.n_samples == 3

    def test_offset_labels(self, model):
        """Labels 1 above the fitted line give MAE = RMSE = 1."""
        test_df = pd.DataFrame({
            "x": np.array([5.0, 6.0], dtype=np.float32),
            "y": np.array([12.0, 14.0], dtype=np.float32),
        })

        metrics = evaluate_regression(model, test_df)

        assert metrics.mean_absolute_error == pytest.approx(1.0, abs=1e-4)
        assert metrics.root_mean_squared_error == pytest.approx(1.0, abs=1e-4)

    def test_metrics_dict(self, model, linear_df):
        result = evaluate_regression(model, linear_df).to_dict()
        assert set(result) == {
            "mean_absolute_error", "mean_squared_error", "root_mean_squared_error",
            "r_squared", "loss_function", "n_samples",
        }


def test_format_metrics():
    metrics = RegressionMetrics(0.5, 0.25, 0.5, 0.9, 0.25, 10)
    text = format_metrics(metrics)
    lines = text.splitlines()

    assert "METRICS" in lines[0]
    assert "Mean Absolute Error: 0.5" in lines
    assert "Root Mean Squared Error: 0.5" in lines
    assert "R Squared: 0.9" in lines
    assert lines[-1].startswith("-----")

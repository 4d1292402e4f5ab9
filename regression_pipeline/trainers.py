"""
Trainers

Final estimators of a pipeline. Each consumes the transformed DataFrame
and produces a scalar score per row:

- RegressionTrainer: linear model over a feature-vector column
- MatrixFactorizationTrainer: biased matrix factorization over
  (column key, row key, rating) triples, trained with SGD
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.linear_model import ElasticNet, LinearRegression

from .exceptions import TrainingError
from .transforms import as_matrix

logger = logging.getLogger(__name__)


def _require_training_columns(X: pd.DataFrame, columns, trainer: str) -> None:
    missing = [c for c in columns if c not in X.columns]
    if missing:
        raise TrainingError(f"{trainer}: training data is missing columns {missing}")


class RegressionTrainer(RegressorMixin, BaseEstimator):
    """
    Linear regression on a feature-vector column.

    With any regularization set, the weights are fitted by coordinate
    descent (scikit-learn ElasticNet, objective
    1/(2n) * ||y - Xw||^2 + l1 * ||w||_1 + 0.5 * l2 * ||w||^2);
    otherwise by ordinary least squares.
    """

    def __init__(self, label_column: str = "Label", feature_column: str = "Features",
                 l1_regularization: float = 0.0, l2_regularization: float = 0.0,
                 max_iterations: int = 1000):
        self.label_column = label_column
        self.feature_column = feature_column
        self.l1_regularization = l1_regularization
        self.l2_regularization = l2_regularization
        self.max_iterations = max_iterations

    def fit(self, X: pd.DataFrame, y=None):
        _require_training_columns(X, [self.label_column, self.feature_column], "RegressionTrainer")

        labelled = X[X[self.label_column].notna()]
        if len(labelled) == 0:
            raise TrainingError("RegressionTrainer: no labelled rows to train on")

        features = as_matrix(labelled[self.feature_column])
        if np.isnan(features).any():
            raise TrainingError("RegressionTrainer: feature column contains missing values")
        labels = labelled[self.label_column].to_numpy(dtype=np.float64)

        alpha = self.l1_regularization + self.l2_regularization
        if alpha > 0:
            self.model_ = ElasticNet(alpha=alpha,
                                     l1_ratio=self.l1_regularization / alpha,
                                     max_iter=self.max_iterations)
        else:
            self.model_ = LinearRegression()

        self.model_.fit(features, labels)
        self.n_features_ = features.shape[1]
        self.n_train_rows_ = len(labels)
        return self

    @property
    def weights_(self) -> np.ndarray:
        return self.model_.coef_

    @property
    def bias_(self) -> float:
        return float(self.model_.intercept_)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        if len(X) == 0:
            return np.empty(0, dtype=np.float64)
        return self.model_.predict(as_matrix(X[self.feature_column]))

    def get_model_info(self) -> dict:
        return {
            "algorithm": "ElasticNet (coordinate descent)" if isinstance(self.model_, ElasticNet)
                         else "Ordinary Least Squares",
            "n_features": self.n_features_,
            "n_train_rows": self.n_train_rows_,
            "l1_regularization": self.l1_regularization,
            "l2_regularization": self.l2_regularization,
        }


class MatrixFactorizationTrainer(RegressorMixin, BaseEstimator):
    """
    Matrix factorization with bias terms.

    Learns latent factors for matrix columns and rows plus global/column/row
    biases. Prediction formula: r = mu + b_c + b_r + p_c^T * q_r

    Where:
    - mu = global mean rating
    - b_c, b_r = column and row biases
    - p_c, q_r = column and row latent factors

    Keys outside the trained range (including the out-of-vocabulary key)
    contribute nothing, so an unseen row for a known column scores
    mu + b_c and a fully unknown pair scores mu.
    """

    def __init__(self, label_column: str = "Label",
                 matrix_column_index_column: str = "UserIdEncoded",
                 matrix_row_index_column: str = "MovieIdEncoded",
                 approximation_rank: int = 100,
                 number_of_iterations: int = 20,
                 learning_rate: float = 0.01,
                 regularization: float = 0.005,
                 random_state: Optional[int] = None):
        self.label_column = label_column
        self.matrix_column_index_column = matrix_column_index_column
        self.matrix_row_index_column = matrix_row_index_column
        self.approximation_rank = approximation_rank
        self.number_of_iterations = number_of_iterations
        self.learning_rate = learning_rate
        self.regularization = regularization
        self.random_state = random_state

    def _initialize_factors(self, rng: np.random.Generator, n_columns: int, n_rows: int) -> None:
        scale = 0.1
        self.column_factors_ = rng.normal(0, scale, (n_columns, self.approximation_rank))
        self.row_factors_ = rng.normal(0, scale, (n_rows, self.approximation_rank))

    def _initialize_biases(self, column_keys, row_keys, ratings) -> None:
        """
        Start the biases at the mean residuals: column bias from the global
        mean, then row bias from global mean plus column bias.

        A column whose ratings are all V then scores V for unseen rows
        before any SGD pass.
        """
        def mean_by_key(keys, values, n_keys):
            totals = np.bincount(keys, weights=values, minlength=n_keys)
            counts = np.bincount(keys, minlength=n_keys)
            return totals / np.maximum(counts, 1)

        self.column_bias_ = mean_by_key(column_keys, ratings - self.global_mean_, self.n_columns_)
        residuals = ratings - self.global_mean_ - self.column_bias_[column_keys]
        self.row_bias_ = mean_by_key(row_keys, residuals, self.n_rows_)

    def _fit_epoch(self, rng, column_keys, row_keys, ratings) -> float:
        """Run one SGD pass over the ratings in random order; returns the training RMSE."""
        lr = self.learning_rate
        reg = self.regularization
        squared_error = 0.0

        for idx in rng.permutation(len(ratings)):
            c = column_keys[idx]
            r = row_keys[idx]

            pred = (self.global_mean_ +
                    self.column_bias_[c] +
                    self.row_bias_[r] +
                    np.dot(self.column_factors_[c], self.row_factors_[r]))
            error = ratings[idx] - pred
            squared_error += error ** 2

            self.column_bias_[c] += lr * (error - reg * self.column_bias_[c])
            self.row_bias_[r] += lr * (error - reg * self.row_bias_[r])

            column_factor_old = self.column_factors_[c].copy()
            self.column_factors_[c] += lr * (error * self.row_factors_[r] - reg * self.column_factors_[c])
            self.row_factors_[r] += lr * (error * column_factor_old - reg * self.row_factors_[r])

        return float(np.sqrt(squared_error / len(ratings)))

    def fit(self, X: pd.DataFrame, y=None):
        _require_training_columns(
            X,
            [self.label_column, self.matrix_column_index_column, self.matrix_row_index_column],
            "MatrixFactorizationTrainer",
        )

        column_keys = X[self.matrix_column_index_column].to_numpy(dtype=np.int64)
        row_keys = X[self.matrix_row_index_column].to_numpy(dtype=np.int64)
        ratings = X[self.label_column].to_numpy(dtype=np.float64)

        valid = ~np.isnan(ratings) & (column_keys >= 0) & (row_keys >= 0)
        if not valid.any():
            raise TrainingError("MatrixFactorizationTrainer: no rated (column, row) pairs to train on")
        column_keys, row_keys, ratings = column_keys[valid], row_keys[valid], ratings[valid]

        self.n_columns_ = int(column_keys.max()) + 1
        self.n_rows_ = int(row_keys.max()) + 1
        self.global_mean_ = float(ratings.mean())

        rng = np.random.default_rng(self.random_state)
        self._initialize_factors(rng, self.n_columns_, self.n_rows_)
        self._initialize_biases(column_keys, row_keys, ratings)

        self.training_history_ = []
        for iteration in range(self.number_of_iterations):
            rmse = self._fit_epoch(rng, column_keys, row_keys, ratings)
            if not np.isfinite(rmse):
                raise TrainingError(
                    f"MatrixFactorizationTrainer diverged at iteration {iteration + 1}; "
                    f"lower the learning rate"
                )
            self.training_history_.append(rmse)
            logger.debug(f"Iteration {iteration + 1}/{self.number_of_iterations} - train RMSE: {rmse:.4f}")

        self.n_train_rows_ = len(ratings)
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        column_keys = X[self.matrix_column_index_column].to_numpy(dtype=np.int64)
        row_keys = X[self.matrix_row_index_column].to_numpy(dtype=np.int64)

        known_c = (column_keys >= 0) & (column_keys < self.n_columns_)
        known_r = (row_keys >= 0) & (row_keys < self.n_rows_)
        c = np.where(known_c, column_keys, 0)
        r = np.where(known_r, row_keys, 0)

        scores = np.full(len(X), self.global_mean_, dtype=np.float64)
        scores += np.where(known_c, self.column_bias_[c], 0.0)
        scores += np.where(known_r, self.row_bias_[r], 0.0)
        both = known_c & known_r
        interaction = np.sum(self.column_factors_[c] * self.row_factors_[r], axis=1)
        scores += np.where(both, interaction, 0.0)
        return scores

    def get_model_info(self) -> dict:
        return {
            "algorithm": "Matrix Factorization with Bias Terms (SGD)",
            "approximation_rank": self.approximation_rank,
            "number_of_iterations": self.number_of_iterations,
            "matrix_size": f"{self.n_columns_}×{self.n_rows_}",
            "n_train_rows": self.n_train_rows_,
            "final_train_rmse": self.training_history_[-1] if self.training_history_ else None,
        }


TRAINERS = {
    "regression": RegressionTrainer,
    "matrix_factorization": MatrixFactorizationTrainer,
}


def build_trainer(trainer_config: dict, random_state: Optional[int] = None):
    """Instantiate a trainer from a config dict such as {"type": "regression", ...}."""
    params = dict(trainer_config)
    trainer_type = params.pop("type", None)
    if trainer_type not in TRAINERS:
        raise ValueError(f"Invalid trainer type: {trainer_type}. Must be one of {sorted(TRAINERS)}")
    trainer_cls = TRAINERS[trainer_type]
    if random_state is not None and "random_state" in trainer_cls().get_params():
        params.setdefault("random_state", random_state)
    return trainer_cls(**params)

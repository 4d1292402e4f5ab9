"""
Tests for regression_pipeline.trainers module

Covers:
- RegressionTrainer (least squares and regularized)
- MatrixFactorizationTrainer (initialization, training, prediction with unknown keys)
- build_trainer config factory
"""

import numpy as np
import pandas as pd
import pytest

from regression_pipeline.exceptions import TrainingError
from regression_pipeline.trainers import (
    MatrixFactorizationTrainer,
    RegressionTrainer,
    build_trainer,
)


def _vector_frame(x, y):
    return pd.DataFrame({
        "Features": pd.Series([np.array([v], dtype=np.float32) for v in x], dtype=object),
        "Label": np.asarray(y, dtype=np.float32),
    })


@pytest.fixture
def keyed_ratings():
    """User 0 rates every movie 4, user 1 rates every movie 2 (already key-encoded)."""
    users = np.array([0] * 10 + [1] * 10, dtype=np.int64)
    movies = np.array(list(range(10)) * 2, dtype=np.int64)
    return pd.DataFrame({
        "UserIdEncoded": users,
        "MovieIdEncoded": movies,
        "Label": np.array([4.0] * 10 + [2.0] * 10, dtype=np.float32),
    })


@pytest.fixture
def interaction_ratings():
    """Checkerboard ratings (2 or 4) with equal user and movie means."""
    users = np.repeat(np.arange(4, dtype=np.int64), 6)
    movies = np.tile(np.arange(6, dtype=np.int64), 4)
    return pd.DataFrame({
        "UserIdEncoded": users,
        "MovieIdEncoded": movies,
        "Label": np.where((users + movies) % 2 == 0, 4.0, 2.0).astype(np.float32),
    })


def _mf(**kwargs):
    params = dict(approximation_rank=2, number_of_iterations=200,
                  learning_rate=0.05, regularization=0.0, random_state=0)
    params.update(kwargs)
    return MatrixFactorizationTrainer(**params)

# ---------------------------------------------------------------------
# RegressionTrainer
# ---------------------------------------------------------------------

class TestRegressionTrainer:
    """Tests for RegressionTrainer"""

    def test_recovers_linear_relation(self):
        """Noise-free y = 2x + 1 is fitted exactly."""
        trainer = RegressionTrainer().fit(_vector_frame([1, 2, 3, 4], [3, 5, 7, 9]))

        predictions = trainer.predict(_vector_frame([5, 6], [np.nan, np.nan]))

        np.testing.assert_allclose(predictions, [11.0, 13.0], atol=1e-4)
        assert trainer.weights_[0] == pytest.approx(2.0, abs=1e-4)
        assert trainer.bias_ == pytest.approx(1.0, abs=1e-4)

    def test_regularized_fit(self):
        """A small L2 penalty switches to coordinate descent and stays close to the exact fit."""
        trainer = RegressionTrainer(l2_regularization=1e-4).fit(_vector_frame([0, 1, 2, 3], [1, 3, 5, 7]))

        predictions = trainer.predict(_vector_frame([1.5], [np.nan]))

        assert predictions[0] == pytest.approx(4.0, abs=0.05)
        assert "ElasticNet" in trainer.get_model_info()["algorithm"]

    def test_unlabelled_rows_are_skipped(self):
        trainer = RegressionTrainer().fit(_vector_frame([1, 2, 3, 4], [3, 5, np.nan, 9]))
        assert trainer.get_model_info()["n_train_rows"] == 3

    def test_no_labelled_rows(self):
        with pytest.raises(TrainingError):
            RegressionTrainer().fit(_vector_frame([1, 2], [np.nan, np.nan]))

    def test_missing_feature_values(self):
        with pytest.raises(TrainingError):
            RegressionTrainer().fit(_vector_frame([1, np.nan], [1, 2]))

    def test_missing_columns(self):
        with pytest.raises(TrainingError):
            RegressionTrainer().fit(pd.DataFrame({"Label": [1.0]}))


# ---------------------------------------------------------------------
# MatrixFactorizationTrainer
# ---------------------------------------------------------------------

class TestMatrixFactorizationTrainer:
    """Tests for MatrixFactorizationTrainer"""

    def test_initialization_shapes(self, keyed_ratings):
        trainer = _mf(number_of_iterations=1).fit(keyed_ratings)

        assert trainer.column_factors_.shape == (2, 2)
        assert trainer.row_factors_.shape == (10, 2)
        assert trainer.global_mean_ == pytest.approx(3.0)

    def test_reproduces_user_ratings(self, keyed_ratings):
        """Each user's constant rating is reproduced on the movies they rated."""
        trainer = _mf().fit(keyed_ratings)

        scores = trainer.predict(keyed_ratings)

        np.testing.assert_allclose(scores[:10], 4.0, atol=0.3)
        np.testing.assert_allclose(scores[10:], 2.0, atol=0.3)

    def test_biases_start_at_mean_residuals(self, keyed_ratings):
        """Before any SGD pass, mu + column bias is each user's mean rating."""
        trainer = _mf(number_of_iterations=0).fit(keyed_ratings)

        np.testing.assert_allclose(trainer.column_bias_, [1.0, -1.0])
        np.testing.assert_allclose(trainer.row_bias_, 0.0, atol=1e-12)

    def test_training_error_decreases(self, interaction_ratings):
        """Ratings the biases cannot explain are learned by the factors."""
        trainer = _mf().fit(interaction_ratings)
        history = trainer.training_history_
        assert len(history) == 200
        assert history[-1] < history[0]

    def test_unknown_row_key_uses_column_bias(self, keyed_ratings):
        """An unseen movie scores mu + user bias, keeping the users apart."""
        trainer = _mf().fit(keyed_ratings)
        unseen = pd.DataFrame({"UserIdEncoded": [0, 1], "MovieIdEncoded": [-1, -1]})

        scores = trainer.predict(unseen)

        assert scores[0] > trainer.global_mean_ > scores[1]
        assert scores[0] == pytest.approx(trainer.global_mean_ + trainer.column_bias_[0])

    def test_fully_unknown_pair_scores_global_mean(self, keyed_ratings):
        trainer = _mf(number_of_iterations=5).fit(keyed_ratings)
        scores = trainer.predict(pd.DataFrame({"UserIdEncoded": [-1], "MovieIdEncoded": [50]}))
        assert scores[0] == pytest.approx(trainer.global_mean_)

    def test_seed_makes_training_deterministic(self, keyed_ratings):
        first = _mf(number_of_iterations=5).fit(keyed_ratings).predict(keyed_ratings)
        second = _mf(number_of_iterations=5).fit(keyed_ratings).predict(keyed_ratings)
        np.testing.assert_array_equal(first, second)

    def test_no_ratings(self, keyed_ratings):
        """Training on rows that are all unrated fails."""
        unrated = keyed_ratings.assign(Label=np.nan)
        with pytest.raises(TrainingError):
            _mf().fit(unrated)

    def test_divergence(self, keyed_ratings):
        with pytest.raises(TrainingError):
            _mf(learning_rate=1e6, number_of_iterations=50).fit(keyed_ratings)


# ---------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------

class TestBuildTrainer:
    """Tests for build_trainer"""

    def test_random_state_passed_to_mf(self):
        trainer = build_trainer({"type": "matrix_factorization", "approximation_rank": 4}, random_state=7)
        assert isinstance(trainer, MatrixFactorizationTrainer)
        assert trainer.random_state == 7
        assert trainer.approximation_rank == 4

    def test_regression_ignores_random_state(self):
        trainer = build_trainer({"type": "regression"}, random_state=7)
        assert isinstance(trainer, RegressionTrainer)

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            build_trainer({"type": "svd"})

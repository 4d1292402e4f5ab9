"""
Pytest configuration and shared fixtures

This file contains fixtures that are available to all test files.
"""

import json

import numpy as np
import pandas as pd
import pytest

from regression_pipeline import config
from regression_pipeline.data_io import DatasetSchema

# ---------------------------------------------------
# Schema fixtures
# ---------------------------------------------------

@pytest.fixture(scope="session")
def stock_schema():
    """Schema of the daily quote file."""
    return DatasetSchema.from_config(config.STOCK_FORECAST_CONFIG)


@pytest.fixture(scope="session")
def ratings_schema():
    """Schema of the movie ratings file."""
    return DatasetSchema.from_config(config.MOVIE_RECOMMENDATION_CONFIG)

# ---------------------------------------------------
# File fixtures
# ---------------------------------------------------

def write_stock_csv(path, n_rows=40, null_rows=2):
    """
    Quote file where Close = Open + 0.25 and High/Low/Volume move with Open,
    followed by `null_rows` rows of "null" values.
    """
    dates = pd.date_range("2020-01-01", periods=n_rows + null_rows, freq="D").strftime("%Y-%m-%d")
    lines = ["Date,Open,High,Low,Close,Adj Close,Volume"]
    for i in range(n_rows):
        open_ = 20.0 + 0.5 * i
        lines.append(
            f"{dates[i]},{open_:.2f},{open_ + 1:.2f},{open_ - 1:.2f},"
            f"{open_ + 0.25:.2f},{open_ + 0.2:.2f},{1000000 + 1000 * i}"
        )
    for i in range(null_rows):
        lines.append(f"{dates[n_rows + i]},null,null,null,null,null,null")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_ratings_csv(path, n_users=5, movies=range(101, 111)):
    """Every user rates every movie; user u's ratings are centred on 1 + u % 5."""
    lines = ["UserId,MovieId,MovieName,Rating"]
    for user in range(1, n_users + 1):
        for j, movie in enumerate(movies):
            rating = min(5, max(1, 1 + user % 5 + (j % 2)))
            lines.append(f'{user},{movie},"Movie, The ({movie})",{rating}')
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def stock_csv_path(tmp_path):
    """Path to a 42-row quote file (2 rows with null values)."""
    return write_stock_csv(tmp_path / "quotes.csv")


@pytest.fixture
def ratings_csv_path(tmp_path):
    """Path to a 50-row ratings file (5 users x 10 movies)."""
    return write_ratings_csv(tmp_path / "ratings.csv")


@pytest.fixture
def stock_examples_path(tmp_path):
    """Example quotes with their actual Close."""
    path = tmp_path / "stock_examples.json"
    path.write_text(json.dumps([
        {"Open": 25.0, "High": 26.0, "Low": 24.0, "Close": 25.25, "AdjustedClose": 25.2, "Volume": 1010000},
        {"Open": 30.0, "High": 31.0, "Low": 29.0, "Close": 30.25, "AdjustedClose": 30.2, "Volume": 1020000},
    ]))
    return path


@pytest.fixture
def ratings_examples_path(tmp_path):
    """Example (user, movie) pairs; movie 999 was never rated."""
    path = tmp_path / "ratings_examples.json"
    path.write_text(json.dumps([
        {"UserId": 1, "MovieId": 103},
        {"UserId": 2, "MovieId": 103},
        {"UserId": 3, "MovieId": 999},
    ]))
    return path

# ---------------------------------------------------
# DataFrame fixtures
# ---------------------------------------------------

@pytest.fixture
def linear_df():
    """4 rows with Label = 2 * x + 1, no noise."""
    return pd.DataFrame({
        "x": np.array([1.0, 2.0, 3.0, 4.0], dtype=np.float32),
        "y": np.array([3.0, 5.0, 7.0, 9.0], dtype=np.float32),
    })


@pytest.fixture
def tiny_ratings_df():
    """
    Tiny ratings DataFrame: user 1 rates every movie 4, user 2 rates every movie 2.
    """
    movies = [101.0, 102.0, 103.0, 104.0, 105.0, 106.0, 107.0, 108.0, 109.0, 110.0]
    return pd.DataFrame({
        "UserId": np.array([1.0] * 10 + [2.0] * 10, dtype=np.float32),
        "MovieId": np.array(movies * 2, dtype=np.float32),
        "MovieName": [f"Movie {int(m)}" for m in movies] * 2,
        "Rating": np.array([4.0] * 10 + [2.0] * 10, dtype=np.float32),
    })

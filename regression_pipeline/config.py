"""
Configuration file for the regression pipelines

Contains paths, hyperparameters, and the two experiment definitions
(stock price forecast and movie rating prediction) used across the pipeline.
"""

import os
from pathlib import Path

# ============================================================================
# PATHS
# ============================================================================

# Base directories
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
MODELS_DIR = Path(os.getenv("MODEL_BASE_PATH", PROJECT_ROOT / "MLModel"))
EXAMPLES_DIR = Path(os.getenv("EXAMPLES_DIR", PROJECT_ROOT / "examples"))

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO"),
    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
}

# ============================================================================
# TRAINING CONFIGURATION
# ============================================================================

TRAINING_CONFIG = {
    "test_fraction": 0.2,  # Held-out share of the dataset
    # None keeps the split non-deterministic; set RANDOM_STATE to pin it
    "random_state": int(os.environ["RANDOM_STATE"]) if os.getenv("RANDOM_STATE") else None,
}

# Tokens read as missing values in input files
MISSING_VALUE_TOKENS = ["", "null", "NaN", "NA", "N/A"]

# ============================================================================
# STOCK FORECAST
# ============================================================================

STOCK_FORECAST_CONFIG = {
    "name": "stock_forecast",
    "dataset_file": DATA_DIR / "PETR4.SA.csv",
    "model_file": "StockForecast.zip",
    "separator": ",",
    "has_header": True,
    "columns": [
        ("Date", "datetime"),
        ("Open", "float32"),
        ("High", "float32"),
        ("Low", "float32"),
        ("Close", "float32"),
        ("AdjustedClose", "float32"),
        ("Volume", "float32"),
    ],
    # Rows missing any of these are dropped before the split
    "required_columns": ["Open", "High", "Low", "AdjustedClose", "Volume"],
    "transforms": [
        {"op": "copy_columns", "output_column": "Label", "input_column": "Close"},
        {"op": "concatenate", "output_column": "Features",
         "input_columns": ["Open", "High", "Low", "Volume"]},
        {"op": "normalize_min_max", "column": "Features"},
    ],
    "trainer": {
        "type": "regression",
        "label_column": "Label",
        "feature_column": "Features",
        "l1_regularization": 0.0,
        "l2_regularization": 0.0,
        "max_iterations": 1000,
    },
    "label_column": "Label",
    "score_column": "Score",
    "examples_file": EXAMPLES_DIR / "stock_forecast.json",
    "prediction": {
        "style": "reference",
        "target": "price",
        "reference_column": "Close",
    },
}

# ============================================================================
# MOVIE RECOMMENDATION
# ============================================================================

MOVIE_RECOMMENDATION_CONFIG = {
    "name": "movie_recommendation",
    "dataset_file": DATA_DIR / "movie_ratings.csv",
    "model_file": "Movies.zip",
    "separator": ",",
    "has_header": True,
    "columns": [
        ("UserId", "float32"),
        ("MovieId", "float32"),
        ("MovieName", "string"),
        ("Rating", "float32"),
    ],
    # No missing-value filter for ratings; rows with a missing rating are
    # skipped by the trainer and the evaluator instead
    "required_columns": [],
    "transforms": [
        {"op": "convert_type", "output_column": "Label", "input_column": "Rating",
         "output_kind": "float32"},
        {"op": "map_value_to_key", "output_column": "UserIdEncoded", "input_column": "UserId"},
        {"op": "map_value_to_key", "output_column": "MovieIdEncoded", "input_column": "MovieId"},
    ],
    "trainer": {
        "type": "matrix_factorization",
        "label_column": "Label",
        "matrix_column_index_column": "UserIdEncoded",
        "matrix_row_index_column": "MovieIdEncoded",
        "approximation_rank": 100,  # Number of latent factors
        "number_of_iterations": 20,  # Passes over the training ratings
        "learning_rate": 0.01,
        "regularization": 0.005,
    },
    "label_column": "Label",
    "score_column": "Score",
    "examples_file": EXAMPLES_DIR / "movie_recommendation.json",
    "prediction": {
        "style": "rating",
        "user_column": "UserId",
        "item_column": "MovieId",
    },
}

EXPERIMENTS = {
    STOCK_FORECAST_CONFIG["name"]: STOCK_FORECAST_CONFIG,
    MOVIE_RECOMMENDATION_CONFIG["name"]: MOVIE_RECOMMENDATION_CONFIG,
}


def get_experiment_config(name: str) -> dict:
    """Return the configuration dict for a named experiment."""
    if name not in EXPERIMENTS:
        raise ValueError(f"Unknown experiment: {name}. Must be one of {sorted(EXPERIMENTS)}")
    return EXPERIMENTS[name]

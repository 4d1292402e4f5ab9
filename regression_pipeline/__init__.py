"""
Regression Pipelines Package

This package contains modular components for:
- Data loading (typed delimited files, missing-value filtering)
- Train/test splitting
- Column transforms (copy, concatenate, min-max normalization, key mapping, type conversion)
- Model training (linear regression, matrix factorization)
- Model evaluation (MAE, MSE, RMSE, R²)
- Model serialization (save/load)
- Prediction (single-record scoring of example inputs)
"""

__version__ = "1.0.0"

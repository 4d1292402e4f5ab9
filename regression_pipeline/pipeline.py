"""
ML Pipeline Orchestrator

Main entry point for running an experiment end to end:
1. Data loading
2. Missing-value filtering (per-experiment policy)
3. Train/test split
4. Model training
5. Model evaluation
6. Model serialization
7. Example predictions

Both experiments (stock_forecast, movie_recommendation) run through the
same code; everything that differs between them lives in config.py.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from . import config
from .data_io import DatasetSchema, filter_rows_by_missing_values, load_dataset, load_examples
from .evaluate import evaluate_regression, format_metrics
from .exceptions import DataFormatError, ModelFormatError, TrainingError
from .predict import run_example_predictions
from .serialize import get_model_size, load_model, save_model
from .train import build_estimator_chain, fit_model, train_test_split_random

logger = logging.getLogger(__name__)


def _model_path(cfg: dict, model_dir=None) -> Path:
    return Path(model_dir or config.MODELS_DIR) / cfg["model_file"]


def _load_examples_for(cfg: dict, examples_path=None) -> List[Dict]:
    """Load the example records; a missing default examples file only skips the predictions."""
    if examples_path is not None:
        return load_examples(examples_path)
    default_path = Path(cfg["examples_file"])
    if not default_path.exists():
        logger.warning(f"No examples file at {default_path}; skipping example predictions")
        return []
    return load_examples(default_path)


def run_training_pipeline(experiment: str = "stock_forecast",
                          data_path: Optional[str] = None,
                          model_dir: Optional[str] = None,
                          examples_path: Optional[str] = None,
                          random_state: Optional[int] = None,
                          test_fraction: Optional[float] = None) -> Dict:
    """
    Run the complete training pipeline from data file to saved model.

    Args:
        experiment: Experiment name ('stock_forecast' or 'movie_recommendation')
        data_path: Dataset file (uses the experiment default if None)
        model_dir: Output directory, cleared before saving (uses config.MODELS_DIR if None)
        examples_path: JSON file of example records to score (uses the experiment default if None)
        random_state: Seed for the split and trainer initialization (None = non-deterministic)
        test_fraction: Held-out share (uses config.TRAINING_CONFIG if None)

    Returns:
        Dict with pipeline results:
        - model_path: str
        - model_size_mb: float
        - training_time_sec: float
        - n_loaded, n_dropped, n_train, n_test: int
        - metrics: Dict
        - predictions: List[float]

    Example:
        >>> results = run_training_pipeline(
        ...     experiment="stock_forecast",
        ...     data_path="data/PETR4.SA.csv",
        ...     model_dir="MLModel"
        ... )
        >>> print(results['metrics']['root_mean_squared_error'])
        0.2113
    """
    start_time = time.time()

    cfg = config.get_experiment_config(experiment)
    if data_path is None:
        data_path = cfg["dataset_file"]
    if random_state is None:
        random_state = config.TRAINING_CONFIG.get("random_state")
    if test_fraction is None:
        test_fraction = config.TRAINING_CONFIG.get("test_fraction", 0.2)
    model_path = _model_path(cfg, model_dir)

    logger.info("=" * 60)
    logger.info(f"STARTING TRAINING PIPELINE: {experiment}")
    logger.info("=" * 60)

    # Step 1: Load dataset
    logger.info(f"[1/7] Loading data from {data_path}...")
    schema = DatasetSchema.from_config(cfg)
    df = load_dataset(data_path, schema)
    n_loaded = len(df)
    logger.info(f"  Loaded {n_loaded} rows")

    # Step 2: Drop rows with missing required fields
    required_columns = cfg.get("required_columns", [])
    if required_columns:
        logger.info(f"[2/7] Dropping rows with missing values in {required_columns}...")
        df = filter_rows_by_missing_values(df, required_columns)
    else:
        logger.info("[2/7] Missing-value filter disabled for this experiment")
    n_dropped = n_loaded - len(df)
    logger.info(f"  Kept {len(df)} rows ({n_dropped} dropped)")

    # Step 3: Split into train/test
    logger.info(f"[3/7] Splitting into train/test sets (test fraction {test_fraction})...")
    train_df, test_df = train_test_split_random(df, test_fraction=test_fraction, random_state=random_state)
    logger.info(f"  Train: {len(train_df)}, Test: {len(test_df)}")

    # Step 4: Build and fit the estimator chain
    logger.info(f"[4/7] Training {cfg['trainer']['type']} model...")
    chain = build_estimator_chain(
        cfg["transforms"],
        cfg["trainer"],
        label_column=cfg.get("label_column", "Label"),
        score_column=cfg.get("score_column", "Score"),
        random_state=random_state,
    )
    model = fit_model(chain, train_df)

    # Step 5: Evaluate on the held-out rows
    logger.info("[5/7] Evaluating model on test set...")
    metrics = evaluate_regression(model, test_df)

    # Step 6: Save model to disk
    logger.info(f"[6/7] Saving model to {model_path}...")
    save_model(model, model.input_schema, model_path)
    model_size_mb = get_model_size(model_path)
    logger.info(f"  Model size: {model_size_mb:.2f} MB")

    print(format_metrics(metrics))

    # Step 7: Score the example records
    logger.info("[7/7] Running example predictions...")
    examples = _load_examples_for(cfg, examples_path)
    predictions = run_example_predictions(model, examples, cfg["prediction"]) if examples else []

    training_time_sec = time.time() - start_time

    logger.info("=" * 60)
    logger.info("PIPELINE COMPLETED SUCCESSFULLY")
    logger.info("=" * 60)
    logger.info(f"Total time: {training_time_sec:.2f} seconds")
    logger.info(f"Model saved to: {model_path}")
    logger.info(f"RMSE: {metrics.root_mean_squared_error:.4f}")

    return {
        "model_path": str(model_path),
        "model_size_mb": model_size_mb,
        "training_time_sec": training_time_sec,
        "n_loaded": n_loaded,
        "n_dropped": n_dropped,
        "n_train": len(train_df),
        "n_test": len(test_df),
        "metrics": metrics.to_dict(),
        "predictions": predictions,
    }


def run_inference_pipeline(experiment: str = "stock_forecast",
                           model_path: Optional[str] = None,
                           model_dir: Optional[str] = None,
                           examples_path: Optional[str] = None) -> List[float]:
    """
    Load a saved model and score the example records.

    Steps:
    1. Load trained model
    2. Score each example with one prediction engine

    Args:
        experiment: Experiment name (selects default paths and output format)
        model_path: Saved archive (defaults to <model_dir>/<experiment model file>)
        model_dir: Directory holding the archive (uses config.MODELS_DIR if None)
        examples_path: JSON file of example records (uses the experiment default if None)

    Returns:
        Scores in example order
    """
    cfg = config.get_experiment_config(experiment)
    if model_path is None:
        model_path = _model_path(cfg, model_dir)

    logger.info(f"Loading model from {model_path}...")
    model = load_model(model_path)

    examples = _load_examples_for(cfg, examples_path)
    return run_example_predictions(model, examples, cfg["prediction"]) if examples else []


def _fraction(value: str) -> float:
    """argparse type for a share strictly between 0 and 1."""
    fraction = float(value)
    if not 0.0 < fraction < 1.0:
        raise argparse.ArgumentTypeError(f"must be in (0, 1), got {value}")
    return fraction


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Train and run regression pipelines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--experiment", type=str, default="stock_forecast",
                        choices=sorted(config.EXPERIMENTS),
                        help="Experiment to run (default: stock_forecast)")
    common.add_argument("--model-dir", type=str, default=None,
                        help="Directory for the model archive; its contents are deleted on train "
                             "(the working, home and root directories are refused)")
    common.add_argument("--examples", type=str, default=None,
                        help="JSON file of example records to score")
    common.add_argument("--pause", action="store_true",
                        help="Wait for Enter before exiting")

    train_parser = subparsers.add_parser("train", parents=[common],
                                         help="Load, split, fit, evaluate, save, predict")
    train_parser.add_argument("--data", type=str, default=None, help="Dataset file")
    train_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    train_parser.add_argument("--test-fraction", type=_fraction, default=None,
                              help="Held-out share of the dataset")

    predict_parser = subparsers.add_parser("predict", parents=[common],
                                           help="Score the examples with a saved model")
    predict_parser.add_argument("--model-path", type=str, default=None,
                                help="Saved model archive")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the pipeline from the command line.

    Usage:
        python -m regression_pipeline.pipeline train --experiment stock_forecast
        python -m regression_pipeline.pipeline train --experiment movie_recommendation --seed 42
        python -m regression_pipeline.pipeline predict --experiment stock_forecast
    """
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=config.LOGGING_CONFIG["level"], format=config.LOGGING_CONFIG["format"])

    try:
        if args.command == "train":
            run_training_pipeline(
                experiment=args.experiment,
                data_path=args.data,
                model_dir=args.model_dir,
                examples_path=args.examples,
                random_state=args.seed,
                test_fraction=args.test_fraction,
            )
        else:
            run_inference_pipeline(
                experiment=args.experiment,
                model_path=args.model_path,
                model_dir=args.model_dir,
                examples_path=args.examples,
            )
    except (DataFormatError, TrainingError, ModelFormatError, FileNotFoundError, ValueError) as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    if args.pause:
        input("Press Enter to exit...")
    return 0


def stock_forecast_main() -> int:
    """Console entry point: train the stock forecast experiment."""
    return main(["train", "--experiment", "stock_forecast"] + sys.argv[1:])


def movie_recommendation_main() -> int:
    """Console entry point: train the movie recommendation experiment."""
    return main(["train", "--experiment", "movie_recommendation"] + sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())

"""
Model Serialization Module

Handles saving and loading fitted models to/from disk.

A saved model is a single zip archive holding:
- model.pkl: the pickled FittedModel (transform state and trainer weights)
- schema.json: format version, creation time, input schema, model info
"""

import json
import logging
import os
import pickle
import shutil
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ModelFormatError
from .model import FittedModel

logger = logging.getLogger(__name__)

MODEL_FORMAT_VERSION = 1
MODEL_ENTRY = "model.pkl"
SCHEMA_ENTRY = "schema.json"


def clear_directory(path) -> None:
    """
    Empty a directory recursively, or create it if it does not exist.

    Files and subdirectories are removed; the directory itself is kept.
    The working, home and root directories are never cleared.

    Raises:
        ValueError: If path is one of those directories
    """
    path = Path(path)
    resolved = path.resolve()
    if resolved in (Path.cwd().resolve(), Path.home().resolve(), Path(resolved.anchor)):
        raise ValueError(f"Refusing to clear {resolved}; save the model into a dedicated directory")
    if not path.exists():
        path.mkdir(parents=True)
        return

    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


def save_model(model: FittedModel, schema: Optional[List[Dict[str, str]]], path) -> None:
    """
    Save a fitted model and its input schema as one archive.

    The archive's directory is cleared first, so after a save it holds
    exactly this one file.

    Args:
        model: Fitted model
        schema: Input schema of the training data (defaults to model.input_schema)
        path: Archive path (.zip extension)

    Example:
        >>> save_model(model, train_schema, "MLModel/StockForecast.zip")
    """
    output_path = Path(path)
    clear_directory(output_path.parent)

    manifest = {
        "format_version": MODEL_FORMAT_VERSION,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "input_schema": schema if schema is not None else model.input_schema,
        "model_info": model.get_model_info(),
    }

    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(SCHEMA_ENTRY, json.dumps(manifest, indent=2, default=str))
        archive.writestr(MODEL_ENTRY, pickle.dumps(model))

    logger.info(f"Model saved to: {output_path}")


def load_model(path) -> FittedModel:
    """
    Load a fitted model saved by save_model().

    Args:
        path: Archive path

    Returns:
        FittedModel with input_schema restored from the archive

    Raises:
        FileNotFoundError: If the archive doesn't exist
        ModelFormatError: If the file is not a model archive or its format version is unsupported

    Example:
        >>> model = load_model("MLModel/StockForecast.zip")
        >>> model.predict(records_df)
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model file not found: {path}")

    try:
        with zipfile.ZipFile(path, "r") as archive:
            manifest = json.loads(archive.read(SCHEMA_ENTRY))
            version = manifest.get("format_version")
            if version != MODEL_FORMAT_VERSION:
                raise ModelFormatError(
                    f"Unsupported model format version {version} in {path} "
                    f"(expected {MODEL_FORMAT_VERSION})"
                )
            input_schema = manifest["input_schema"]
            model = pickle.loads(archive.read(MODEL_ENTRY))
    # Stale class paths surface as ImportError/AttributeError, truncated pickles as EOFError
    except (zipfile.BadZipFile, KeyError, IndexError, TypeError, AttributeError, EOFError, ImportError,
            json.JSONDecodeError, pickle.UnpicklingError) as e:
        raise ModelFormatError(f"Not a valid model archive: {path} ({e})") from e

    if not isinstance(model, FittedModel):
        raise ModelFormatError(f"Archive {path} does not contain a fitted model")

    model.input_schema = input_schema
    logger.info(f"Model loaded from: {path}")
    return model


def get_model_size(path) -> float:
    """
    Get size of saved model file in megabytes.

    Args:
        path: Path to model archive

    Returns:
        Model size in MB
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model file not found: {path}")

    size_bytes = os.path.getsize(path)
    return size_bytes / (1024 ** 2)


def verify_model_integrity(path) -> bool:
    """
    Verify that a saved model can be loaded successfully.

    Args:
        path: Path to model archive

    Returns:
        True if model loads successfully, False otherwise
    """
    try:
        load_model(path)
        return True
    except Exception as e:
        logger.warning(f"Model integrity check failed: {e}")
        return False

"""
Prediction Module

Scores single records with a fitted model and formats the console output
for the example predictions printed after training.
"""

import logging
from typing import Dict, List

import numpy as np
import pandas as pd

from .model import FittedModel

logger = logging.getLogger(__name__)


class PredictionEngine:
    """
    Single-record scorer around a fitted model.

    Build one engine and reuse it for every record; records may omit the
    label column.
    """

    def __init__(self, model: FittedModel):
        self.model = model

    def predict(self, record: Dict) -> float:
        """Score one record (a dict keyed by input column name)."""
        frame = self.model.align_to_schema(pd.DataFrame([record]))
        return float(self.model.predict(frame)[0])


def _format_id(value) -> str:
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


def format_prediction(record: Dict, score: float, prediction_config: Dict) -> str:
    """
    Render one example prediction.

    Styles:
    - "reference": predicted value, the record's reference value (when present)
      and their difference, all to 2 decimals
    - "rating": "User <u> would rate movie <m> with a score of <s>."
    """
    style = prediction_config.get("style", "reference")

    if style == "rating":
        user = _format_id(record.get(prediction_config["user_column"]))
        item = _format_id(record.get(prediction_config["item_column"]))
        return f"User {user} would rate movie {item} with a score of {score:.2f}."

    if style == "reference":
        target = prediction_config.get("target", "value")
        reference_column = prediction_config.get("reference_column")
        line = f"Predicted {target}: {score:.2f}"
        reference = record.get(reference_column) if reference_column else None
        if reference is not None and not pd.isna(reference):
            reference = float(reference)
            line += f" | Actual {target}: {reference:.2f} | Difference: {score - reference:.2f}"
        return line

    raise ValueError(f"Unknown prediction style: {style}. Must be 'reference' or 'rating'")


def run_example_predictions(model: FittedModel,
                            examples: List[Dict],
                            prediction_config: Dict) -> List[float]:
    """
    Score each example with one shared PredictionEngine and print a line per example.

    Returns:
        Scores in example order
    """
    engine = PredictionEngine(model)
    scores = []

    print("------------------ PREDICTIONS ------------------")
    for record in examples:
        score = engine.predict(record)
        scores.append(score)
        print(format_prediction(record, score, prediction_config))
    print("-------------------------------------------------")

    logger.info(f"Scored {len(scores)} example records")
    return scores

"""
Pipeline Model

Narrow wrapper around the scikit-learn machinery so the orchestration only
ever sees two objects:

- EstimatorChain: an unfitted, declarative sequence of column transforms
  followed by one trainer
- FittedModel: the immutable result of EstimatorChain.fit(), exposing
  transform() / predict() and the schema of the data it was trained on
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.pipeline import Pipeline

from .exceptions import TrainingError

logger = logging.getLogger(__name__)


def describe_schema(df: pd.DataFrame) -> List[Dict[str, str]]:
    """Column names and dtypes of a DataFrame, in order."""
    return [{"name": str(name), "dtype": str(dtype)} for name, dtype in df.dtypes.items()]


class EstimatorChain:
    """
    Declarative transform chain plus trainer.

    Each append() returns a new chain; nothing is fitted until fit().

    Example:
        >>> chain = (EstimatorChain()
        ...          .append(CopyColumns("Label", "Close"))
        ...          .append(Concatenate("Features", ["Open", "High"]))
        ...          .append(RegressionTrainer()))
        >>> model = chain.fit(train_df)
    """

    def __init__(self, transforms: Optional[list] = None, trainer=None,
                 label_column: str = "Label", score_column: str = "Score"):
        self.transforms = list(transforms or [])
        self.trainer = trainer
        self.label_column = label_column
        self.score_column = score_column

    def append(self, step) -> "EstimatorChain":
        """Return a new chain with `step` added; a step with predict() becomes the trainer."""
        if self.trainer is not None:
            raise ValueError("Cannot append after the trainer; the trainer must be the last step")
        if hasattr(step, "predict"):
            return EstimatorChain(self.transforms, step, self.label_column, self.score_column)
        return EstimatorChain(self.transforms + [step], None, self.label_column, self.score_column)

    def _to_pipeline(self) -> Pipeline:
        if self.trainer is None:
            raise ValueError("EstimatorChain has no trainer; append one before fitting")
        steps = [(f"{type(t).__name__.lower()}_{i}", t) for i, t in enumerate(self.transforms)]
        steps.append(("trainer", self.trainer))
        return Pipeline(steps)

    def fit(self, train_df: pd.DataFrame) -> "FittedModel":
        """
        Fit every transform in order, then the trainer, on the training data.

        Raises:
            TrainingError: If train_df is empty or unusable by the trainer
        """
        if len(train_df) == 0:
            raise TrainingError("Training data is empty")

        pipeline = clone(self._to_pipeline())
        pipeline.fit(train_df)

        return FittedModel(
            pipeline=pipeline,
            input_schema=describe_schema(train_df),
            label_column=self.label_column,
            score_column=self.score_column,
        )


class FittedModel:
    """
    Fitted transform chain plus trainer.

    Only transform()/predict() are exposed; nothing refits, so the state
    learned on the training data (normalization bounds, vocabularies,
    weights) is applied unchanged to any later data.
    """

    def __init__(self, pipeline: Pipeline, input_schema: List[Dict[str, str]],
                 label_column: str = "Label", score_column: str = "Score"):
        self._pipeline = pipeline
        self.input_schema = input_schema
        self.label_column = label_column
        self.score_column = score_column

    @property
    def steps(self) -> list:
        return [step for _, step in self._pipeline.steps]

    @property
    def trainer(self):
        return self._pipeline.steps[-1][1]

    def align_to_schema(self, df: pd.DataFrame) -> pd.DataFrame:
        """Cast the columns of df that appear in the training schema to their trained dtypes."""
        out = df.copy()
        for column in self.input_schema:
            name, dtype = column["name"], column["dtype"]
            if name not in out.columns or str(out[name].dtype) == dtype or dtype == "object":
                continue
            if dtype.startswith("datetime64"):
                out[name] = pd.to_datetime(out[name])
            else:
                out[name] = out[name].astype(dtype)
        return out

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply the fitted chain and add the score column."""
        data = df
        for step in self.steps[:-1]:
            data = step.transform(data)
        data = data.copy()
        data[self.score_column] = self.trainer.predict(data)
        return data

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Scores for each row of df."""
        return self.transform(df)[self.score_column].to_numpy(dtype=np.float64)

    def get_model_info(self) -> dict:
        info = {}
        if hasattr(self.trainer, "get_model_info"):
            info.update(self.trainer.get_model_info())
        info["steps"] = [type(step).__name__ for step in self.steps]
        info["label_column"] = self.label_column
        info["score_column"] = self.score_column
        return info

"""Response DTOs for POST /api/predict."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Prediction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    prob: float


class PredictResponse(BaseModel):
    """Top-k classifier labels, highest probability first."""

    model_config = ConfigDict(populate_by_name=True)

    predictions: list[Prediction]

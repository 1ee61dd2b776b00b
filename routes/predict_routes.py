"""
POST /api/predict: classify a waste photo.

Thin proxy: the data URL is forwarded to the inference service and the
answer is reshaped into the top labels. No auth; the frontend calls it from
the camera page.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_inference_client
from errors import ValidationError
from infrastructure.inference import InferenceClient
from schemas.dto.requests.predict import PredictRequest
from schemas.dto.responses.predict import Prediction, PredictResponse

router = APIRouter(prefix="/api", tags=["predict"])


@router.post("/predict", response_model=PredictResponse)
async def predict(
    body: PredictRequest,
    inference: InferenceClient = Depends(get_inference_client),
) -> PredictResponse:
    if not body.data_url:
        raise ValidationError("dataUrl is required", field="dataUrl")

    predictions = await inference.classify(body.data_url)
    return PredictResponse(predictions=[Prediction(**p) for p in predictions])

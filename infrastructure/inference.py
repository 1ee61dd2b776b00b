"""Client for the external waste-image classifier.

The classifier is a Gradio Space: it takes ``{"data": [<data-url>]}`` and
answers with a label block. The client only forwards the image and reshapes
the answer into ``[{label, prob}]`` sorted by probability.
"""

from __future__ import annotations

from typing import Any

import httpx

from errors import UpstreamError
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)


def _collect_scores(result: Any) -> dict[str, float]:
    # Gradio label output: {"label": "...", "confidences": [{"label", "confidence"}]}
    if isinstance(result, dict) and isinstance(result.get("confidences"), list):
        return {
            str(item["label"]): float(item["confidence"])
            for item in result["confidences"]
            if isinstance(item, dict) and "label" in item and "confidence" in item
        }
    # Plain {label: probability} mapping
    if isinstance(result, dict):
        scores: dict[str, float] = {}
        for label, prob in result.items():
            if isinstance(prob, (int, float)) and not isinstance(prob, bool):
                scores[str(label)] = float(prob)
        return scores
    if isinstance(result, list):
        return {
            str(item["label"]): float(item.get("prob", item.get("confidence", 0.0)))
            for item in result
            if isinstance(item, dict) and "label" in item
        }
    return {}


def reshape_predictions(body: Any, top_k: int = 5) -> list[dict]:
    """Turn a classifier response body into the top-k ``{label, prob}`` pairs."""
    result = body
    if isinstance(body, dict) and isinstance(body.get("data"), list):
        result = body["data"][0] if body["data"] else {}
    scores = _collect_scores(result)
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:top_k]
    return [{"label": label, "prob": prob} for label, prob in ranked]


class InferenceClient:
    def __init__(self, http_client: HttpClient, url: str, top_k: int = 5) -> None:
        self._http = http_client
        self._url = url
        self._top_k = top_k

    async def classify(self, data_url: str) -> list[dict]:
        try:
            response = await self._http.post(self._url, json={"data": [data_url]})
        except httpx.HTTPError as e:
            log.error("inference_request_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError("Classifier unavailable", reason="inference_unavailable") from e

        if response.status_code >= 400:
            log.error(
                "inference_bad_status",
                status_code=response.status_code,
                response=response.text[:200],
            )
            raise UpstreamError("Classifier returned an error", reason="inference_error")

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("Classifier returned invalid JSON", reason="inference_error") from e

        return reshape_predictions(body, self._top_k)

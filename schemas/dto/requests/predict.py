"""Request DTO for POST /api/predict."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PredictRequest(BaseModel):
    """``dataUrl`` is a ``data:image/...;base64,`` payload from the camera UI."""

    model_config = ConfigDict(populate_by_name=True)

    data_url: Optional[str] = Field(default=None, alias="dataUrl")

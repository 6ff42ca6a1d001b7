from pydantic import BaseModel, Field
from typing import List, Optional

class UpscaleResult(BaseModel):
    model: str
    provider: str

    # paths on local disk
    source: str
    output: str
    comparison: Optional[str] = None
    data_url: Optional[str] = Field(None, description="upscaled PNG as data:image/png;base64,...")

    input_width: int
    input_height: int
    output_width: int
    output_height: int
    scale: int = 4

    elapsed_seconds: float = Field(..., description="wall time of the whole upscale call")

class EngineInfo(BaseModel):
    ok: bool = True
    model: str
    provider: str
    scale: int
    input_names: List[str] = Field(default_factory=list)
    output_names: List[str] = Field(default_factory=list)

"""
Configuration for the composition analysis engine.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .frame_admission import DEFAULT_ANALYSIS_INTERVAL
from .recommendation_window import DEFAULT_CAPACITY


class EngineConfig(BaseModel):
    """Settings for throttling, history size and detector scheduling"""
    analysis_interval: float = Field(default=DEFAULT_ANALYSIS_INTERVAL, description="Minimum seconds between admitted frames")
    window_capacity: int = Field(default=DEFAULT_CAPACITY, description="Number of recent hypotheses kept for the recommendation")
    frame_deadline: Optional[float] = Field(default=2.0, description="Seconds before a stuck analysis pass is abandoned (None disables)")
    max_workers: int = Field(default=5, description="Worker threads running detector adapters")
    enabled: bool = Field(default=True, description="Whether submitted frames are analyzed")

    @field_validator('analysis_interval')
    @classmethod
    def _non_negative_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("analysis_interval must be non-negative")
        return value

    @field_validator('window_capacity', 'max_workers')
    @classmethod
    def _positive_count(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator('frame_deadline')
    @classmethod
    def _positive_deadline(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("frame_deadline must be positive or None")
        return value

    @classmethod
    def load(cls, config: Optional[Union['EngineConfig', Dict[str, Any]]] = None) -> 'EngineConfig':
        """Accept an EngineConfig, a plain dictionary, or None for defaults."""
        if config is None:
            return cls()
        if isinstance(config, cls):
            return config
        return cls(**config)

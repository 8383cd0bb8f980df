"""
Pydantic model for the options accepted by the separation server's
`/separate` endpoint. Defaults mirror the server's own defaults.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, field_validator

# Fields rendered as JSON text rather than a plain scalar.
STRUCTURED_FIELDS = ("models", "custom_output_names")

# Handled separately by `model_selection_fields`.
MODEL_FIELDS = ("model", "models")

OUTPUT_FORMATS = ("wav", "flac", "mp3", "ogg", "opus", "m4a", "aiff", "ac3")


def render_scalar(value: Any) -> str:
    """Renders a scalar form value: booleans as 'true'/'false', numbers as decimals."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class SeparationParameters(BaseModel):
    """A validated set of separation options for one job."""

    # Model selection
    model: Optional[str] = None
    models: Optional[list[str]] = None

    # Output
    output_format: str = "flac"
    output_bitrate: Optional[str] = None
    normalization_threshold: float = 0.9
    amplification_threshold: float = 0.0
    output_single_stem: Optional[str] = None
    invert_using_spec: bool = False
    sample_rate: int = 44100
    use_soundfile: bool = False
    use_autocast: bool = False
    custom_output_names: Optional[dict[str, str]] = None

    # MDX
    mdx_segment_size: int = 256
    mdx_overlap: float = 0.25
    mdx_batch_size: int = 1
    mdx_hop_length: int = 1024
    mdx_enable_denoise: bool = False

    # VR
    vr_batch_size: int = 1
    vr_window_size: int = 512
    vr_aggression: int = 5
    vr_enable_tta: bool = False
    vr_high_end_process: bool = False
    vr_enable_post_process: bool = False
    vr_post_process_threshold: float = 0.2

    # Demucs
    demucs_segment_size: str = "Default"
    demucs_shifts: int = 2
    demucs_overlap: float = 0.25
    demucs_segments_enabled: bool = True

    # MDXC
    mdxc_segment_size: int = 256
    mdxc_override_model_segment_size: bool = False
    mdxc_overlap: int = 8
    mdxc_batch_size: int = 1
    mdxc_pitch_shift: int = 0

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True
        extra = "forbid"

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower().lstrip(".")
        if v not in OUTPUT_FORMATS:
            raise ValueError(
                f"Output format must be one of: {', '.join(OUTPUT_FORMATS)}."
            )
        return v

    @field_validator("sample_rate")
    @classmethod
    def validate_sample_rate(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Sample rate must be a positive number of Hz.")
        return v

    @field_validator("normalization_threshold", "amplification_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Thresholds must be between 0 and 1.")
        return v

    @field_validator("models")
    @classmethod
    def validate_models(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return None
        cleaned = [m.strip() for m in v if m and m.strip()]
        return cleaned or None

    def model_selection_fields(self) -> list[tuple[str, str]]:
        """
        Returns the model-selection part: the JSON `models` list when one is set,
        otherwise the single `model` name, otherwise nothing.
        """
        if self.models:
            return [("models", render_json(self.models))]
        if self.model:
            return [("model", self.model)]
        return []

    def to_form_fields(self) -> list[tuple[str, str]]:
        """Renders every set parameter as (name, text) form fields."""
        fields = self.model_selection_fields()
        for name in type(self).model_fields:
            if name in MODEL_FIELDS:
                continue
            value = getattr(self, name)
            if value is None:
                continue
            if name in STRUCTURED_FIELDS:
                fields.append((name, render_json(value)))
            else:
                fields.append((name, render_scalar(value)))
        return fields

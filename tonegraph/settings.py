from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .audio import SAMPLE_RATE
from .envelope import ADSR
from .errors import ValidationError
from .oscillators import OscillatorKind
from .waveform import OscillatorWaveform

_LOGGER = logging.getLogger("tonegraph.settings")
ENV_PREFIX = "TONEGRAPH_"

# C0, so that scale 48 (octave 4, first slot) is middle C.
C0_FREQUENCY = 440.0 * 2 ** (-57 / 12)


class EngineSettings(BaseModel):
    """Engine defaults; every field can be overridden by ``TONEGRAPH_<FIELD>``."""

    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    tempo: float = Field(default=120.0, gt=0)
    volume: float = Field(default=0.3, ge=0.0, le=1.0)
    reference_frequency: float = Field(default=C0_FREQUENCY, gt=0)
    waveform: OscillatorKind = "square"
    attack: float = Field(default=0.01, ge=0.0)
    decay: float = Field(default=0.1, ge=0.0)
    sustain: float = Field(default=0.6, ge=0.0, le=1.0)
    release: float = Field(default=0.05, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def envelope(self) -> ADSR:
        return ADSR(
            attack=self.attack,
            decay=self.decay,
            sustain=self.sustain,
            release=self.release,
        )

    @property
    def oscillator(self) -> OscillatorWaveform:
        return OscillatorWaveform(self.waveform)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> EngineSettings:
        """Defaults, then ``TONEGRAPH_*`` variables, then explicit overrides."""

        env = os.environ if environ is None else environ
        payload: dict[str, Any] = {}
        for name in cls.model_fields:
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None and value != "":
                payload[name] = value
        payload.update({key: value for key, value in overrides.items() if value is not None})
        return parse_settings(payload)


def parse_settings(payload: Mapping[str, Any]) -> EngineSettings:
    """Validate settings, raising ValidationError on failure."""

    try:
        return EngineSettings.model_validate(dict(payload))
    except PydanticValidationError as exc:
        _LOGGER.warning("Invalid engine settings: %s", exc, exc_info=True)
        raise ValidationError(str(exc)) from exc

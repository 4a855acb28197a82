"""Pydantic v2 models shared by the session engine and its callers."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ProtocolMode(str, Enum):
    """Operating regime of the acquisition worker."""

    SIMULATOR = "simulator"
    ELM_INITIALIZING = "elm_initializing"
    ELM_OBD = "elm_obd"
    ELM_MANUFACTURER = "elm+bmw"
    RAW_FALLBACK = "raw_fallback"
    STOPPED = "stopped"


class NumericType(str, Enum):
    """Numeric encodings understood by the generic channel decoder."""

    U8 = "u8"
    U16BE = "u16be"
    I16BE = "i16be"

    @property
    def width(self) -> int:
        return 1 if self is NumericType.U8 else 2


# ---------------------------------------------------------------------------
# Channel catalog entries
# ---------------------------------------------------------------------------

class DecodeConfig(BaseModel):
    """Byte-offset decode descriptor: ``raw * scale + offset``."""

    model_config = {"populate_by_name": True, "frozen": True}

    numeric_type: NumericType = Field(..., alias="type")
    byte_index: int = Field(..., ge=0, description="Offset into the response bytes")
    scale: float = Field(default=1.0)
    offset: float = Field(default=0.0)


class ChannelConfig(BaseModel):
    """A manufacturer-specific channel: raw command plus its decoder."""

    model_config = {"frozen": True}

    command: str = Field(..., description="Command string sent verbatim")
    decode: DecodeConfig

    @field_validator("command")
    @classmethod
    def command_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("channel command must not be blank")
        return v.strip()


# ---------------------------------------------------------------------------
# Samples and poll results
# ---------------------------------------------------------------------------

class DecodedSample(BaseModel):
    """Values decoded during one acquisition cycle."""

    model_config = {"frozen": True}

    timestamp_ms: int = Field(..., description="Milliseconds since the epoch")
    values: Dict[str, float] = Field(default_factory=dict)


class DatalogPollUpdate(BaseModel):
    """Result of draining the session buffer once."""

    is_logging: bool
    last_error: Optional[str] = None
    lines: List[str] = Field(default_factory=list)
    total_bytes: int = 0
    decoded_samples: List[DecodedSample] = Field(default_factory=list)
    protocol_mode: ProtocolMode = ProtocolMode.STOPPED

    @classmethod
    def stopped(cls) -> "DatalogPollUpdate":
        """Synthetic result returned when no session is active."""
        return cls(is_logging=False)

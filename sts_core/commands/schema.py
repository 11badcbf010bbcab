# sts_core/commands/schema.py
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from .lexicon import COLORS, SHAPES, SYSTEM_ON_WORDS, SYSTEM_WORDS, normalize_color, normalize_shape


class ActionKind(Enum):
    CREATION = "creation"
    MOVEMENT = "movement"
    ROTATION = "rotation"
    SCALING = "scaling"
    MODIFICATION = "modification"
    SYSTEM = "system"


Shape = Literal[SHAPES]
Color = Literal[COLORS]
Axis = Literal["x", "y", "z"]
Direction = Literal["positive", "negative"]


def _bounds(info) -> Tuple[Optional[float], Optional[float]]:
    lo = hi = None
    for m in info.metadata:
        lo = getattr(m, "ge", lo)
        hi = getattr(m, "le", hi)
    return lo, hi


class GuidedModel(BaseModel):
    """
    Base for everything the extraction service answers. Field descriptions,
    enums and ranges double as the generation guide sent with the prompt
    (model_json_schema()); validation normalizes the answer the way guided
    generation would: nulls mean "not given", spoken aliases map onto the
    enum, numbers are clamped into their range.
    """
    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {k: v.strip().lower() if isinstance(v, str) else v
                for k, v in data.items() if v is not None}

    @field_validator("shape", check_fields=False, mode="before")
    @classmethod
    def _shape_alias(cls, v: Any) -> Any:
        return normalize_shape(v) or v

    @field_validator("color", check_fields=False, mode="before")
    @classmethod
    def _color_alias(cls, v: Any) -> Any:
        return normalize_color(v) or v

    @field_validator("*", mode="before")
    @classmethod
    def _clamp_numbers(cls, v: Any, info: ValidationInfo) -> Any:
        f = cls.model_fields[info.field_name]
        lo, hi = _bounds(f)
        if lo is None and hi is None:
            return v
        if isinstance(v, bool):
            raise ValueError(f"{info.field_name} must be a number, got {v!r}")
        try:
            num = float(v)
        except (TypeError, ValueError):
            return v  # reported by the type check
        if not math.isfinite(num):
            raise ValueError(f"{info.field_name} must be finite, got {v!r}")
        if f.annotation is int:
            num = round(num)
        if lo is not None:
            num = max(num, lo)
        if hi is not None:
            num = min(num, hi)
        return num


# ---------------- Service-side schemas ----------------

class ActionChoice(GuidedModel):
    kind: Literal[tuple(k.value for k in ActionKind)] = Field(
        description="What type of action is in the input text.")


class SystemWord(GuidedModel):
    word: Literal[SYSTEM_WORDS] = Field(description="The action word in the input text")


# ---------------- Parameter records (one per action kind) ----------------

class CreationParams(GuidedModel):
    shape: Shape = Field(description="Type of object in the input text. Cube is ALWAYS box. Orb and Ball are sphere")
    size: float = Field(description="The size/radius of the object in the input text", ge=0.1, le=0.15)
    color: Color = Field(description="System standard color in the input text")
    metallic: bool = Field(description="Whether the color is metallic or not")
    roughness: float = Field(description="What roughness the object is. Metallic, shiny are closer to 0, "
                                         "matte is closer to 1.", ge=0.0, le=1.0)
    count: int = Field(1, description="The number of objects to make. MORE means minimum 2 objects, "
                                      "unspecified or default is 1.", ge=1, le=5)


class MoveParams(GuidedModel):
    axis: Axis = Field(description="Which axis the movement is on. Right/left is x, up/down is y, "
                                   "forward/backward is z.")
    direction: Direction = Field(description="Whether the movement is positive or not. Right, front, forward, "
                                             "and up are positive. Left, backward, and down are negative.")
    distance: float = Field(0.5, description="The amount to translate, in meters. If unspecified default to 0.5",
                            ge=0.0, le=2.0)

    @property
    def sign(self) -> int:
        return 1 if self.direction == "positive" else -1


class RotateParams(GuidedModel):
    axis: Axis = Field("y", description="Which axis to rotate around. Turning left/right spins around y, "
                                        "tilting forward/back is x, rolling is z.")
    direction: Direction = Field("positive", description="Counter-clockwise (left) is positive, "
                                                         "clockwise (right) is negative.")
    degrees: float = Field(90.0, description="How far to rotate, in degrees. If unspecified default to 90",
                           ge=0.0, le=360.0)

    @property
    def sign(self) -> int:
        return 1 if self.direction == "positive" else -1


class ScaleParams(GuidedModel):
    # only uniform scaling
    factor: float = Field(description="The amount to scale the object by. IF action includes SMALLER or "
                                      "SCALE DOWN or SHRINK and the number is larger than 1, divide 1 by the "
                                      "number to get the scale. If not specified, bigger is 2, smaller is 0.5",
                          ge=0.1, le=10.0)


class ModifyParams(GuidedModel):
    # None means "not mentioned": the current material value is kept
    color: Optional[Color] = Field(None, description="What color the modification in the input is. "
                                                     "null if no color is mentioned")
    roughness: Optional[float] = Field(None, description="What roughness the modification is. Metallic, shiny "
                                                         "are closer to 0, matte is closer to 1. null if not "
                                                         "mentioned", ge=0.0, le=1.0)
    metallic: Optional[bool] = Field(None, description="Whether the modification is metallic or not. "
                                                       "null if not mentioned")


@dataclass(frozen=True)
class SystemParams:
    on: bool
    word: str = ""

    @classmethod
    def from_word(cls, word: str) -> "SystemParams":
        w = (word or "").strip().lower()
        return cls(on=w in SYSTEM_ON_WORDS, word=w)


PARAMS_FOR_KIND = {
    ActionKind.CREATION: CreationParams,
    ActionKind.MOVEMENT: MoveParams,
    ActionKind.ROTATION: RotateParams,
    ActionKind.SCALING: ScaleParams,
    ActionKind.MODIFICATION: ModifyParams,
    ActionKind.SYSTEM: SystemParams,
}


# ---------------- Commands and the command log ----------------

@dataclass(frozen=True)
class Command:
    text: str
    seq: int
    timestamp: float


@dataclass
class CommandLogEntry:
    kind: str                       # ActionKind value, or "unknown" / "error"
    text: str                       # utterance as dispatched
    result: str                     # human-readable summary
    success: bool
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None     # CommandError.code on failure
    retryable: bool = False

    @property
    def display_text(self) -> str:
        if self.success:
            return f"✅ {self.kind.capitalize()}: {self.result}"
        return f"❌ Failed: {self.text} ({self.result})"

    @property
    def formatted_time(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")

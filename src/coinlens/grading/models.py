"""Coin metadata and the grading service's result types."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MISSING_VALUE = "None"


class CoinMetadata(BaseModel):
    """User-entered details about the photographed coin."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    country: str = Field(description="Country or region of issue")
    denomination: str = Field(description="Face value or series, e.g. 'Indian Head Penny'")
    year: str = Field(pattern=r"^[0-9]{4}$", description="Four-digit year of issue")
    mint_mark: str = ""
    notes: str = ""

    @field_validator("country", "denomination")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_metadata_json(self) -> str:
        """Serialize to the compact JSON string the grading service expects.

        Empty optional fields are sent as the literal ``"None"``.
        """
        payload = {
            "country": self.country,
            "denomination": self.denomination,
            "year": self.year,
            "mintMark": self.mint_mark or MISSING_VALUE,
            "notes": self.notes or MISSING_VALUE,
        }
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class GradeEstimation(_WireModel):
    """Grade label and the scores it was derived from."""

    grade_label: str
    normalized_score: int = Field(ge=0)
    edge_clarity_score: int = Field(ge=0)


class ValueBreakdown(_WireModel):
    """Step-by-step monetary estimate for a graded coin."""

    baseline_value: int = Field(ge=0)
    grade_multiplier: int = Field(ge=0)
    grade_mod_dependency: int = Field(ge=0)
    score_rarity_bonus: int = Field(ge=0)
    combined_rarity_bonus: int = Field(ge=0)
    normalization_adjustment: int = Field(ge=0)
    grade_bonus: int = Field(ge=0)
    estimated_value: int = Field(ge=0)


class ProcessResult(_WireModel):
    """Response of the grading service's ``processCoin`` operation."""

    value_report: ValueBreakdown
    grade_outcome: GradeEstimation
    message: str

"""
Configuration for the PLT decoder and the nesting engine

Decoder heuristics (segment naming bands, small-part rules, label pool)
are tables rather than inlined constants. The Y-bands are calibrated for
one garment family and are not expected to generalize to arbitrary files.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field


# 1 meter of fabric = 1000 plotter units in this deployment
UNITS_PER_METER = 1000.0

LOG_LEVEL = os.environ.get("PLT_NESTING_LOG_LEVEL", "INFO").upper()


class NameBand(BaseModel):
    """Segments whose max Y falls strictly inside (y_min, y_max) get this label"""
    label: str
    y_min: float
    y_max: float


class SizeRule(BaseModel):
    """Segments whose bbox is smaller than both limits get this label"""
    label: str
    max_width: float
    max_height: float


class TextRegion(BaseModel):
    """Rectangle where a garment-region caption is printed on the pattern"""
    text: str
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    size: float = 24.0


def _default_bands() -> List[NameBand]:
    return [
        NameBand(label="BUSTO", y_min=37000, y_max=42000),
        NameBand(label="FRENTE", y_min=27000, y_max=33000),
        NameBand(label="COSTAS", y_min=2000, y_max=7000),
    ]


def _default_size_rules() -> List[SizeRule]:
    return [
        SizeRule(label="MANGA", max_width=5000, max_height=5000),
        SizeRule(label="BOLSO", max_width=3000, max_height=3000),
    ]


def _default_text_regions() -> List[TextRegion]:
    return [
        TextRegion(text="BUSTO", min_x=17000, max_x=19000, min_y=38900, max_y=39400),
        TextRegion(text="FRENTE", min_x=18000, max_x=20000, min_y=28300, max_y=28800),
        TextRegion(text="COSTAS", min_x=17000, max_x=19000, min_y=3000, max_y=3700),
    ]


class DecoderConfig(BaseModel):
    """Thresholds and naming tables for the PLT decoder"""
    min_points: int = Field(10, ge=1, description="Points a strategy must extract to win")
    noise_max_points: int = Field(5, ge=0, description="Runs this short are dropped as noise")
    jump_threshold: float = Field(1000.0, gt=0, description="Travel distance that implies pen-up")
    fallback_slices: int = Field(5, ge=1)
    name_bands: List[NameBand] = Field(default_factory=_default_bands)
    small_part_rules: List[SizeRule] = Field(default_factory=_default_size_rules)
    label_pool: List[str] = Field(
        default_factory=lambda: ["FRENTE ESQ", "MANGA", "PALA", "FRENTE DIR", "BOLSO", "GABARITO"]
    )
    text_regions: List[TextRegion] = Field(default_factory=_default_text_regions)
    placeholder_name: str = "EXEMPLO"


class NestingConfig(BaseModel):
    """Configuration for nesting operations"""
    size_threshold: float = Field(50.0, ge=0, description="Width or height above this is 'large'")
    grid_step: Optional[float] = Field(None, gt=0, description="Fixed scan step; derived per piece when unset")
    min_grid_step: float = Field(1.0, gt=0)
    batch_size: int = Field(5, ge=1, description="Pieces placed between cooperative yields")
    units_per_meter: float = Field(UNITS_PER_METER, gt=0)
    default_fabric_width_m: float = Field(1.58, gt=0)

    class Config:
        json_schema_extra = {
            "example": {
                "size_threshold": 50.0,
                "grid_step": None,
                "min_grid_step": 1.0,
                "batch_size": 5,
                "units_per_meter": 1000.0,
                "default_fabric_width_m": 1.58
            }
        }


def meters_to_units(meters: float, units_per_meter: float = UNITS_PER_METER) -> float:
    return meters * units_per_meter


def units_to_meters(units: float, units_per_meter: float = UNITS_PER_METER) -> float:
    return units / units_per_meter

"""
Data models for the PLT Nesting API

Pydantic models for decoded plotter data, nesting pieces and results,
and request/response validation and serialization.
"""

from enum import Enum
from typing import List, Optional, Dict, Any, Literal

from pydantic import BaseModel, Field

from .config import NestingConfig


LogType = Literal["info", "warning", "error", "success"]


class PenCommand(str, Enum):
    """Plotter pen state for a single coordinate"""
    PU = "PU"
    PD = "PD"


class Point(BaseModel):
    """A coordinate in plotter units"""
    x: float
    y: float


class Bounds(BaseModel):
    """Axis-aligned bounding box; always produced by geometry.compute_bounds"""
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height


class Segment(BaseModel):
    """A named pattern piece cut out of the decoded pen stream"""
    name: str
    points: List[Point]
    commands: List[PenCommand]

    @property
    def bounds(self) -> Bounds:
        from .geometry import compute_bounds
        return compute_bounds(self.points)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "FRENTE",
                "points": [
                    {"x": 0, "y": 0}, {"x": 4000, "y": 0}, {"x": 4000, "y": 6000},
                    {"x": 0, "y": 6000}, {"x": 0, "y": 0}, {"x": 10, "y": 10}
                ],
                "commands": ["PU", "PD", "PD", "PD", "PD", "PD"]
            }
        }


class TextElement(BaseModel):
    """Fixed garment-region label placed over the drawing"""
    text: str
    x: float
    y: float
    size: Optional[float] = None


class DecodeResult(BaseModel):
    """Output of the PLT decoder"""
    commands: List[PenCommand]
    points: List[Point]
    segments: List[Segment]
    text_elements: List[TextElement] = Field(default_factory=list)
    raw_content: str = ""
    method: str = Field(description="Strategy that produced the points, or 'example'")


class NestingPiece(BaseModel):
    """A segment prepared for nesting: rotation and position are set once, at placement"""
    id: str
    name: str
    points: List[Point]
    bounds: Bounds
    rotation: int = 0
    position: Point = Field(default_factory=lambda: Point(x=0.0, y=0.0))
    size_class: Literal["large", "small"] = "large"
    enabled: bool = True


class ResultBounds(BaseModel):
    width: float
    height: float


class NestingResult(BaseModel):
    """Placed pieces and bounding-box utilization of one nesting run"""
    pieces: List[NestingPiece]
    efficiency: float
    fabric_length: float
    bounds: ResultBounds
    skipped: List[str] = Field(default_factory=list)
    fabric_length_m: float = 0.0
    used_area_m2: float = 0.0
    total_area_m2: float = 0.0


class LogEntry(BaseModel):
    """Timestamped, severity-tagged log line"""
    time: str
    message: str
    type: LogType = "info"


class DecodeRequest(BaseModel):
    """Request body for decoding a PLT file"""
    content: str
    filename: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "filename": "camisa.plt",
                "content": "IN;SP1;PU0,0;PD100,0;PD100,100;PD0,100;PD0,0;"
            }
        }


class DecodeResponse(BaseModel):
    success: bool = True
    result: DecodeResult
    logs: List[LogEntry]


class NestRequest(BaseModel):
    """Request body for nesting operations"""
    fabric_width_m: Optional[float] = Field(None, gt=0, description="Fabric width in meters; config default when unset")
    segments: Optional[List[Segment]] = None
    enabled_names: Optional[List[str]] = None
    large_only: bool = False
    config: Optional[NestingConfig] = None

    class Config:
        json_schema_extra = {
            "example": {
                "fabric_width_m": 1.58,
                "segments": None,
                "enabled_names": None,
                "large_only": False,
                "config": None
            }
        }


class NestResponse(BaseModel):
    """Response for nesting operations"""
    success: bool = True
    result: NestingResult
    logs: List[LogEntry]
    message: Optional[str] = None


class WorkerMessage(BaseModel):
    """Message emitted by the background nesting worker"""
    type: Literal["log", "result", "error"]
    data: Any


class ErrorResponse(BaseModel):
    """Error response format"""
    success: bool = False
    error: str
    detail: Optional[str] = None
    logs: List[Dict[str, Any]] = Field(default_factory=list)

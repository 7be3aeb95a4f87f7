"""
Nesting engine

Greedy bottom-left placement of pattern pieces on a fabric roll of fixed
width. Pieces are placed one at a time, largest first, each at the lowest
grid position (over four rotations) whose bounding box does not overlap
anything already placed. Placement is final; there is no backtracking.

Utilization is measured on bounding boxes, so concave pieces report a
higher efficiency than the real material usage.
"""

import asyncio
import logging
import math
from typing import List, Optional, Sequence, Tuple

from .config import NestingConfig, units_to_meters
from .geometry import ROTATIONS, absolute_rect, rects_overlap, rotate_points
from .logs import LogSink, null_sink
from .models import (
    Bounds,
    NestingPiece,
    NestingResult,
    Point,
    ResultBounds,
    Segment,
)
from .pieces import build_pieces, sort_for_nesting

logger = logging.getLogger(__name__)

Placement = Tuple[float, float, int, List[Point], Bounds]


def validate_inputs(fabric_width: float, segments: Optional[Sequence]) -> Optional[str]:
    """User-facing message when a run must not start, else None"""
    if not segments:
        return "No PLT data loaded: decode a file before nesting."
    if fabric_width is None or fabric_width <= 0:
        return "Fabric width must be positive."
    return None


def grid_step_for(piece: NestingPiece, config: NestingConfig) -> float:
    if config.grid_step:
        return config.grid_step
    return max(min(piece.bounds.width, piece.bounds.height) / 2, config.min_grid_step)


def collides(rect, placed: Sequence[NestingPiece]) -> bool:
    return any(rects_overlap(rect, absolute_rect(p.bounds, p.position)) for p in placed)


class NestingEngine:
    """One nesting run over a fabric of ``fabric_width`` plotter units"""

    def __init__(self, fabric_width: float, segments: Sequence[Segment],
                 log: Optional[LogSink] = None, config: Optional[NestingConfig] = None,
                 enabled_names=None, large_only: bool = False):
        self.fabric_width = float(fabric_width)
        self.config = config or NestingConfig()
        self.log = log or null_sink
        self.pieces = build_pieces(segments, self.config, enabled_names, large_only)

    def find_best_position(self, piece: NestingPiece,
                           placed: Sequence[NestingPiece]) -> Optional[Placement]:
        """
        Lowest resulting top edge over all rotations, first found wins.

        ``placed`` must be the complete list of pieces committed so far.
        """
        step = grid_step_for(piece, self.config)
        logger.debug("Scanning %s with grid step %.2f", piece.name, step)
        best: Optional[Placement] = None
        best_top = math.inf

        for rotation in ROTATIONS:
            points, bounds = rotate_points(piece.points, rotation)
            if bounds.width > self.fabric_width:
                continue

            col = 0
            while col * step < self.fabric_width:
                x = col * step
                col += 1
                if x + bounds.width > self.fabric_width:
                    break

                row = 0
                while row * step + bounds.height < best_top:
                    y = row * step
                    row += 1
                    rect = (x, y, x + bounds.width, y + bounds.height)
                    if not collides(rect, placed):
                        best_top = y + bounds.height
                        best = (x, y, rotation, points, bounds)
                        break

        return best

    def _place(self, piece: NestingPiece, placed: List[NestingPiece],
               skipped: List[str]) -> None:
        best = self.find_best_position(piece, placed)
        if best is None:
            skipped.append(piece.name)
            self.log(
                f"Could not place piece '{piece.name}' "
                f"({piece.bounds.width:.0f}x{piece.bounds.height:.0f}) on fabric width {self.fabric_width:.0f}",
                "warning",
            )
            return

        x, y, rotation, points, bounds = best
        placed.append(piece.model_copy(update={
            "points": points,
            "bounds": bounds,
            "rotation": rotation,
            "position": Point(x=x, y=y),
        }))
        self.log(f"Piece '{piece.name}' placed at ({x:.0f}, {y:.0f}) rotated {rotation}°", "success")

    async def _place_in_batches(self, group: Sequence[NestingPiece], placed: List[NestingPiece],
                                skipped: List[str]) -> None:
        size = self.config.batch_size
        for start in range(0, len(group), size):
            for piece in group[start:start + size]:
                self._place(piece, placed, skipped)
            # let the host loop deliver messages between batches
            await asyncio.sleep(0)

    async def perform_nesting(self) -> NestingResult:
        self.log("Starting nesting process", "info")
        self.log(f"Fabric width: {self.fabric_width:.0f} units", "info")

        active = [p for p in self.pieces if p.enabled]
        if len(active) < len(self.pieces):
            self.log(f"{len(self.pieces) - len(active)} pieces disabled", "info")

        large, small = sort_for_nesting(active)
        placed: List[NestingPiece] = []
        skipped: List[str] = []

        self.log(f"Processing {len(large)} large pieces", "info")
        for p in large:
            self.log(f"  * {p.name} ({p.bounds.width:.0f}x{p.bounds.height:.0f})", "info")
        await self._place_in_batches(large, placed, skipped)

        self.log(f"Processing {len(small)} small pieces", "info")
        for p in small:
            self.log(f"  * {p.name} ({p.bounds.width:.0f}x{p.bounds.height:.0f})", "info")
        await self._place_in_batches(small, placed, skipped)

        return self._summarize(placed, skipped, len(active))

    def _summarize(self, placed: List[NestingPiece], skipped: List[str], total: int) -> NestingResult:
        fabric_length = max((p.position.y + p.bounds.height for p in placed), default=0.0)
        used_area = sum(p.bounds.width * p.bounds.height for p in placed)
        total_area = self.fabric_width * fabric_length
        efficiency = 100.0 * used_area / total_area if total_area > 0 else 0.0

        upm = self.config.units_per_meter
        result = NestingResult(
            pieces=placed,
            efficiency=efficiency,
            fabric_length=fabric_length,
            bounds=ResultBounds(width=self.fabric_width, height=fabric_length),
            skipped=skipped,
            fabric_length_m=units_to_meters(fabric_length, upm),
            used_area_m2=used_area / (upm * upm),
            total_area_m2=total_area / (upm * upm),
        )

        if skipped:
            self.log(f"{len(skipped)} pieces could not be placed: {', '.join(skipped)}", "warning")
        self.log(f"Pieces placed: {len(placed)} of {total}", "info")
        self.log(f"Fabric length: {result.fabric_length_m:.2f}m", "success")
        self.log(f"Nesting finished with {efficiency:.2f}% efficiency", "success")
        return result


"""
Builds nesting pieces from decoded segments
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from .config import NestingConfig
from .geometry import compute_bounds
from .models import Bounds, NestingPiece, Segment


def classify(bounds: Bounds, threshold: float) -> str:
    """'large' if either side exceeds the threshold"""
    return "large" if bounds.width > threshold or bounds.height > threshold else "small"


def build_pieces(segments: Sequence[Segment], config: Optional[NestingConfig] = None,
                 enabled_names: Optional[Iterable[str]] = None,
                 large_only: bool = False) -> List[NestingPiece]:
    """
    Convert segments into nesting pieces.

    Pieces whose name is not in ``enabled_names`` (when given) are marked
    disabled; ``large_only`` disables every small piece. Disabled pieces are
    still returned so callers can list them.
    """
    config = config or NestingConfig()
    wanted = {n.upper() for n in enabled_names} if enabled_names is not None else None

    pieces = []
    for index, segment in enumerate(segments):
        bounds = compute_bounds(segment.points)
        size_class = classify(bounds, config.size_threshold)
        enabled = wanted is None or segment.name.upper() in wanted
        if large_only and size_class == "small":
            enabled = False
        pieces.append(NestingPiece(
            id=f"piece-{index}",
            name=segment.name,
            points=list(segment.points),
            bounds=bounds,
            size_class=size_class,
            enabled=enabled,
        ))
    return pieces


def sort_for_nesting(pieces: Sequence[NestingPiece]) -> Tuple[List[NestingPiece], List[NestingPiece]]:
    """
    Largest bbox area first (stable), split into (large, small).

    Large pieces go first so small ones fill the gaps instead of creating them.
    """
    ordered = sorted(pieces, key=lambda p: p.bounds.area, reverse=True)
    large = [p for p in ordered if p.size_class == "large"]
    small = [p for p in ordered if p.size_class == "small"]
    return large, small

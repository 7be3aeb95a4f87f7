"""
PLT decoder

Turns loosely structured plotter text into ordered pen events and named
pattern pieces. Four independent strategies are tried in order, each a
pure ``text -> (points, commands)`` function; the first one that extracts
enough points wins. When none does, a placeholder square is returned so
callers always receive a structurally valid result.
"""

import logging
import math
import re
import time
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .config import DecoderConfig
from .geometry import compute_bounds
from .logs import LogSink, null_sink
from .models import DecodeResult, PenCommand, Point, Segment, TextElement

logger = logging.getLogger(__name__)

PU = PenCommand.PU
PD = PenCommand.PD

Stream = Tuple[List[Point], List[PenCommand]]
Strategy = Callable[[str], Stream]

_NUM = r"(-?\d+\.?\d*)"
LINE_RE = re.compile(r"(PU|PD)[\s,]*" + _NUM + r"[\s,]*" + _NUM, re.IGNORECASE)
GLOBAL_RE = re.compile(r"(PU|PD)[\s,;]*" + _NUM + r"[\s,;]*" + _NUM, re.IGNORECASE)
PREFIX_RE = re.compile(r"P[A-Z][\s,;]*" + _NUM + r"[\s,;]*" + _NUM, re.IGNORECASE)
PAIR_RE = re.compile(_NUM + r"[\s,;]+" + _NUM)
NEWLINES_RE = re.compile(r"[\r\n]+")

PLACEHOLDER_COMMANDS = [PU, PD, PD, PD, PD]
PLACEHOLDER_POINTS = [(0, 0), (100, 0), (100, 100), (0, 100), (0, 0)]


def split_lines(content: str) -> List[str]:
    return NEWLINES_RE.split(content)


def parse_line_commands(content: str) -> Stream:
    """PU/PD with two numbers, matched once per ';'-separated chunk of each line"""
    points: List[Point] = []
    commands: List[PenCommand] = []
    for line in split_lines(content):
        line = line.strip()
        if not line:
            continue
        upper = line.upper()
        if "PU" not in upper and "PD" not in upper:
            continue
        for chunk in line.split(";"):
            if not chunk:
                continue
            m = LINE_RE.search(chunk)
            if m:
                commands.append(PenCommand(m.group(1).upper()))
                points.append(Point(x=float(m.group(2)), y=float(m.group(3))))
    return points, commands


def parse_global_commands(content: str) -> Stream:
    """PU/PD with two numbers, matched across the whole content"""
    points: List[Point] = []
    commands: List[PenCommand] = []
    for m in GLOBAL_RE.finditer(" ".join(split_lines(content))):
        commands.append(PenCommand(m.group(1).upper()))
        points.append(Point(x=float(m.group(2)), y=float(m.group(3))))
    return points, commands


def parse_prefixed_pairs(content: str) -> Stream:
    """Any P<letter> token (PA, PR, ...) with two numbers; every point is pen-down"""
    points: List[Point] = []
    for m in PREFIX_RE.finditer(" ".join(split_lines(content))):
        points.append(Point(x=float(m.group(1)), y=float(m.group(2))))
    return points, [PD] * len(points)


def parse_number_pairs(content: str, jump_threshold: float = 1000.0) -> Stream:
    """
    Every adjacent numeric pair, ignoring command tokens.

    Pen state is inferred: the first point and any point that moves more
    than ``jump_threshold`` on either axis is travel (PU), the rest draw.
    """
    points: List[Point] = []
    commands: List[PenCommand] = []
    for m in PAIR_RE.finditer(" ".join(split_lines(content))):
        p = Point(x=float(m.group(1)), y=float(m.group(2)))
        if not points:
            commands.append(PU)
        else:
            last = points[-1]
            jumped = abs(p.x - last.x) > jump_threshold or abs(p.y - last.y) > jump_threshold
            commands.append(PU if jumped else PD)
        points.append(p)
    return points, commands


def strategies(config: DecoderConfig) -> List[Tuple[str, Strategy]]:
    """Decoding strategies in the order they are tried"""
    return [
        ("regex", parse_line_commands),
        ("enhanced-regex", parse_global_commands),
        ("alternative-format", parse_prefixed_pairs),
        ("aggressive", lambda text: parse_number_pairs(text, config.jump_threshold)),
    ]


def _make_segment(points: Sequence[Point], commands: Sequence[PenCommand]) -> Segment:
    return Segment(name="", points=list(points), commands=list(commands))


def split_on_pen_lifts(points: Sequence[Point], commands: Sequence[PenCommand],
                       noise_max_points: int = 5) -> List[Segment]:
    """A PU immediately followed by PD starts a new shape; short runs are noise"""
    segments: List[Segment] = []
    run_points: List[Point] = []
    run_commands: List[PenCommand] = []
    last = len(points) - 1

    for i, (point, command) in enumerate(zip(points, commands)):
        if command == PU and i < last and commands[i + 1] == PD:
            if len(run_points) > noise_max_points:
                segments.append(_make_segment(run_points, run_commands))
            run_points, run_commands = [], []
        run_points.append(point)
        run_commands.append(command)

    if len(run_points) > noise_max_points:
        segments.append(_make_segment(run_points, run_commands))
    return segments


def split_on_jumps(points: Sequence[Point], commands: Sequence[PenCommand],
                   jump_threshold: float = 1000.0, noise_max_points: int = 5) -> List[Segment]:
    """Split where a pen-up travels further than jump_threshold"""
    if not points:
        return []
    segments: List[Segment] = []
    run_points: List[Point] = [points[0]]
    run_commands: List[PenCommand] = [commands[0]]

    for prev, point, command in zip(points, points[1:], commands[1:]):
        distance = math.hypot(point.x - prev.x, point.y - prev.y)
        if distance > jump_threshold and command == PU:
            if len(run_points) > noise_max_points:
                segments.append(_make_segment(run_points, run_commands))
            run_points, run_commands = [], []
        run_points.append(point)
        run_commands.append(command)

    if len(run_points) > noise_max_points:
        segments.append(_make_segment(run_points, run_commands))
    return segments


def split_into_slices(points: Sequence[Point], commands: Sequence[PenCommand],
                      slices: int = 5) -> List[Segment]:
    """Last resort: cut the stream into equal consecutive chunks"""
    if not points:
        return []
    size = math.ceil(len(points) / slices)
    segments = []
    for i in range(slices):
        start, end = i * size, min((i + 1) * size, len(points))
        if start < end:
            segments.append(_make_segment(points[start:end], commands[start:end]))
    return segments


def name_for_segment(segment: Segment, index: int, config: DecoderConfig) -> str:
    """Y-band first, then small-part size rules, then the label pool by position"""
    bounds = compute_bounds(segment.points)
    for band in config.name_bands:
        if band.y_min < bounds.max_y < band.y_max:
            return band.label
    for rule in config.small_part_rules:
        if bounds.width < rule.max_width and bounds.height < rule.max_height:
            return rule.label
    if not config.label_pool:
        return f"PIECE {index + 1}"
    return config.label_pool[index % len(config.label_pool)]


def extract_segments(points: Sequence[Point], commands: Sequence[PenCommand],
                     config: DecoderConfig, log: LogSink = null_sink) -> List[Segment]:
    if PU not in commands:
        # no pen lifts at all: shape boundaries cannot be recovered
        segments = []
    else:
        log("Identifying separate segments in the drawing...", "info")
        segments = split_on_pen_lifts(points, commands, config.noise_max_points)
        log(f"Identified {len(segments)} separate segments", "success")

        if not segments:
            segments = split_on_jumps(points, commands, config.jump_threshold, config.noise_max_points)
            log(f"Identified {len(segments)} segments from distance jumps", "success")

    if not segments:
        segments = split_into_slices(points, commands, config.fallback_slices)
        log(f"No shape boundaries found, split stream into {len(segments)} slices", "warning")

    for index, segment in enumerate(segments):
        segment.name = name_for_segment(segment, index, config)
    return segments


def region_labels(config: DecoderConfig) -> List[TextElement]:
    return [
        TextElement(
            text=r.text,
            x=(r.min_x + r.max_x) / 2,
            y=(r.min_y + r.max_y) / 2,
            size=r.size,
        )
        for r in config.text_regions
    ]


def placeholder_result(content: str, text_elements: List[TextElement],
                       config: DecoderConfig) -> DecodeResult:
    """100x100 square used when no strategy finds enough points"""
    points = [Point(x=x, y=y) for x, y in PLACEHOLDER_POINTS]
    commands = list(PLACEHOLDER_COMMANDS)
    return DecodeResult(
        commands=commands,
        points=points,
        segments=[Segment(name=config.placeholder_name, points=list(points), commands=list(commands))],
        text_elements=text_elements,
        raw_content=content,
        method="example",
    )


def parse_plt(content: Union[str, bytes, None], log: Optional[LogSink] = None,
              config: Optional[DecoderConfig] = None) -> DecodeResult:
    """
    Decode PLT text into pen events and named segments.

    Never raises for text input: empty or unrecognised content degrades
    to the placeholder result with ``method == "example"``.
    """
    log = log or null_sink
    config = config or DecoderConfig()

    if content is None:
        content = ""
    elif isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")

    log(f"File contains {len(split_lines(content))} lines", "info")
    text_elements = region_labels(config)
    log(f"Added {len(text_elements)} region labels", "success")

    for index, (method, strategy) in enumerate(strategies(config), start=1):
        log(f"Method {index} ({method}): parsing", "info")
        started = time.perf_counter()
        points, commands = strategy(content)
        elapsed = time.perf_counter() - started
        log(
            f"Method {index}: extracted {len(points)} points in {elapsed:.3f}s",
            "success" if points else "warning",
        )
        if len(points) >= config.min_points:
            logger.debug("Decoded %d points with %s", len(points), method)
            segments = extract_segments(points, commands, config, log)
            log(f"Using results of method {index} ({method})", "success")
            return DecodeResult(
                commands=commands,
                points=points,
                segments=segments,
                text_elements=text_elements,
                raw_content=content,
                method=method,
            )

    log("No method extracted enough points. Creating example data.", "warning")
    return placeholder_result(content, text_elements, config)

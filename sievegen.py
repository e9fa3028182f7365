#!/usr/bin/env python3
"""
SieveGen v0.1: Sieve of Eratosthenes stencil layers

Generates one laser-cut stencil layer per factor for a grid of numbered cells.
Stacking the sheets reproduces the sieve:
- non-multiples of a factor are cut out (and get a bead drill point)
- the factor itself gets a smaller inset cutout
- multiples stay solid, optionally etched and numbered
- a labelled tab above column `factor` identifies each sheet in the stack

Each layer's cuts are ONE even-odd compound path: the frame contour (with the
tab spliced in) followed by every hole.

Outputs: SVG (px units, 96 px = 1 in) with one <g> per factor layer.
"""
from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import math
import os
import textwrap
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit
from xml.sax.saxutils import escape, quoteattr

__version__ = "0.1"

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

# Control offset of a cubic Bezier quarter circle: (sqrt(2) - 1) * 4/3.
ARC_ALPHA = (math.sqrt(2.0) - 1.0) * 4.0 / 3.0

PX_PER_INCH = 96.0
CM_PER_INCH = 2.54

CONFIRM_CELL_THRESHOLD = 1024

CORNER_STYLES = ("bezier", "arc")


def fmt(n: float) -> str:
    return f"{n:.3f}".rstrip("0").rstrip(".")


def cubic_point(p0: Point, c1: Point, c2: Point, p1: Point, t: float) -> Point:
    u = 1.0 - t
    a, b, c, d = u * u * u, 3 * u * u * t, 3 * u * t * t, t * t * t
    return (
        a * p0[0] + b * c1[0] + c * c2[0] + d * p1[0],
        a * p0[1] + b * c1[1] + c * c2[1] + d * p1[1],
    )


# ---------------------- Path segments ----------------------

@dataclass(frozen=True)
class Segment:
    """One path command in absolute coordinates.

    M/L carry a single end point. C carries (c1, c2, end). A carries the same
    Bezier controls as C plus its signed radii and sweep flag, so both corner
    styles describe (and flatten to) the same curve.
    """

    op: str  # M|L|C|A|Z
    pts: Tuple[Point, ...] = ()
    radii: Optional[Point] = None
    sweep: int = 1

    @property
    def end(self) -> Optional[Point]:
        return self.pts[-1] if self.pts else None

    def retyped(self, op: str) -> "Segment":
        return Segment(op, self.pts, self.radii, self.sweep)

    def to_svg(self) -> str:
        if self.op == "Z":
            return "Z"
        if self.op == "A":
            rx, ry = self.radii
            x, y = self.pts[-1]
            return f"A {fmt(abs(rx))} {fmt(abs(ry))} 0 0 {self.sweep} {fmt(x)} {fmt(y)}"
        return self.op + " " + " ".join(f"{fmt(x)} {fmt(y)}" for x, y in self.pts)


@dataclass
class CompoundPath:
    """Ordered segments filled with the even-odd rule.

    A point enclosed by an odd number of subpaths is inside the sheet; an even
    count (frame + hole) is cut away.
    """

    segments: List[Segment] = field(default_factory=list)

    def extend(self, fragment: Iterable[Segment]) -> None:
        self.segments.extend(fragment)

    def is_empty(self) -> bool:
        return not self.segments

    def subpath_count(self) -> int:
        return sum(1 for s in self.segments if s.op == "M")

    def to_svg_d(self) -> str:
        return " ".join(s.to_svg() for s in self.segments)

    def rings(self, steps: int = 8) -> List[List[Point]]:
        """Flatten every subpath to a polygon ring, sampling curves `steps` times."""
        rings: List[List[Point]] = []
        ring: List[Point] = []
        pen: Optional[Point] = None
        for seg in self.segments:
            if seg.op == "M":
                if len(ring) > 2:
                    rings.append(ring)
                ring = [seg.end]
                pen = seg.end
            elif seg.op == "L":
                ring.append(seg.end)
                pen = seg.end
            elif seg.op in ("C", "A"):
                c1, c2, end = seg.pts
                for i in range(1, steps + 1):
                    ring.append(cubic_point(pen, c1, c2, end, i / steps))
                pen = end
        if len(ring) > 2:
            rings.append(ring)
        return rings

    def contains(self, point: Point, *, steps: int = 8) -> bool:
        px, py = point
        inside = False
        for ring in self.rings(steps):
            for (x0, y0), (x1, y1) in zip(ring, ring[1:] + ring[:1]):
                if (y0 > py) != (y1 > py):
                    xc = x0 + (py - y0) * (x1 - x0) / (y1 - y0)
                    if px < xc:
                        inside = not inside
        return inside


# ---------------------- Corner arcs & contours ----------------------

def corner_arc(start: Point, rx: float, ry: float, *,
               vertical_first: bool = False, style: str = "bezier") -> Segment:
    """Quarter arc from `start` to `start + (rx, ry)`.

    horizontal-first: the edge before the corner is horizontal, so the tangent
    at `start` is horizontal and the tangent at the end is vertical.
    vertical-first: the other way round. The signs of rx/ry pick the direction
    of travel and therefore the turn (clockwise on screen, y down, or not).
    """
    sx, sy = start
    end = (sx + rx, sy + ry)
    if vertical_first:
        c1 = (sx, sy + ARC_ALPHA * ry)
        c2 = (end[0] - ARC_ALPHA * rx, end[1])
        clockwise = rx * ry < 0
    else:
        c1 = (sx + ARC_ALPHA * rx, sy)
        c2 = (end[0], end[1] - ARC_ALPHA * ry)
        clockwise = rx * ry > 0

    if style == "arc":
        return Segment("A", (c1, c2, end), radii=(rx, ry), sweep=1 if clockwise else 0)
    if style != "bezier":
        raise ValueError(f"Unknown corner style: {style!r}")
    return Segment("C", (c1, c2, end))


class _Pen:
    def __init__(self, style: str):
        self.style = style
        self.segments: List[Segment] = []
        self.pos: Point = (0.0, 0.0)

    def move(self, x: float, y: float) -> None:
        self.pos = (x, y)
        self.segments.append(Segment("M", (self.pos,)))

    def line(self, x: float, y: float) -> None:
        self.pos = (x, y)
        self.segments.append(Segment("L", (self.pos,)))

    def corner(self, rx: float, ry: float, *, vertical_first: bool = False) -> None:
        if rx == 0 or ry == 0:
            return
        seg = corner_arc(self.pos, rx, ry, vertical_first=vertical_first, style=self.style)
        self.segments.append(seg)
        self.pos = seg.end

    def close(self) -> None:
        self.segments.append(Segment("Z"))


def _clamp_radii(rx: float, ry: float, w: float, h: float) -> Tuple[float, float]:
    rx = max(0.0, min(rx, w / 2))
    ry = max(0.0, min(ry, h / 2))
    if rx <= 0 or ry <= 0:
        return 0.0, 0.0
    return rx, ry


def rounded_rect(x: float, y: float, w: float, h: float, rx: float = 0.0, ry: float = 0.0, *,
                 style: str = "bezier") -> List[Segment]:
    """Closed clockwise contour starting at the top edge, `rx` before the top-right corner."""
    if w <= 0 or h <= 0:
        return []
    rx, ry = _clamp_radii(rx, ry, w, h)
    pen = _Pen(style)
    pen.move(x + w - rx, y)
    pen.corner(rx, ry)
    pen.line(x + w, y + h - ry)
    pen.corner(-rx, ry, vertical_first=True)
    pen.line(x + rx, y + h)
    pen.corner(-rx, -ry)
    pen.line(x, y + ry)
    pen.corner(rx, -ry, vertical_first=True)
    pen.line(x + w - rx, y)
    pen.close()
    return pen.segments


def tab(x: float, y: float, w: float, h: float, rx: float = 0.0, ry: float = 0.0, *,
        curved_start: bool = True, curved_end: bool = True, style: str = "bezier") -> List[Segment]:
    """Open fragment of a notch standing `h` above the edge at `y`, spanning x..x+w.

    Travels left to right (clockwise with the frame). With curved_start/curved_end
    the base corners get concave fillets reaching `rx` beyond the span; without,
    that side meets the edge with a straight run.
    """
    if w <= 0 or h <= 0:
        return []
    rx, ry = _clamp_radii(rx, ry, w, h)
    pen = _Pen(style)
    if curved_start and rx > 0:
        pen.move(x - rx, y)
        pen.corner(rx, -ry)
    else:
        pen.move(x, y)
    pen.line(x, y - h + ry)
    pen.corner(rx, -ry, vertical_first=True)
    pen.line(x + w - rx, y - h)
    pen.corner(rx, ry)
    if curved_end and rx > 0:
        pen.line(x + w, y - ry)
        pen.corner(rx, ry, vertical_first=True)
    else:
        pen.line(x + w, y)
    return pen.segments


def circle(cx: float, cy: float, rx: float, ry: Optional[float] = None, *,
           style: str = "bezier") -> List[Segment]:
    ry = rx if ry is None else ry
    if rx <= 0 or ry <= 0:
        return []
    pen = _Pen(style)
    pen.move(cx, cy - ry)
    pen.corner(rx, ry)
    pen.corner(-rx, ry, vertical_first=True)
    pen.corner(-rx, -ry)
    pen.corner(rx, -ry, vertical_first=True)
    pen.close()
    return pen.segments


def splice_tab(tab_fragment: List[Segment], frame: List[Segment], *,
               flush_right: bool = False) -> List[Segment]:
    """Merge an open tab fragment into a `rounded_rect` frame as one contour.

    The frame's leading move becomes a line so the pen never lifts, and its
    closing top run is dropped: Z returns along the top edge to the tab start.
    A flush tab already ends on the frame's right edge, so its last vertical
    run, the frame's top-right corner and the frame's first vertical run are
    replaced by a single run down to the bottom-right corner.
    """
    if not tab_fragment:
        return list(frame)
    body = frame[:-2]
    if not flush_right:
        return tab_fragment + [body[0].retyped("L")] + body[1:] + [Segment("Z")]
    right_run = next(i for i, s in enumerate(body) if s.op == "L")
    return tab_fragment[:-1] + body[right_run:] + [Segment("Z")]


# ---------------------- Data model ----------------------

@dataclass(frozen=True)
class GridConfig:
    n_rows: int = 20
    n_cols: int = 12
    cell_width: float = 72.0
    cell_height: float = 72.0
    margin_size: float = 4.0
    corner_sharpness: float = 16.0
    n_hole_punch: int = 0
    hole_punch_size: float = 24.0
    hole_punch_spacing: float = 408.0  # 4.25 in, US three-hole binder
    corner_style: str = "bezier"

    @property
    def n_cells(self) -> int:
        return max(0, self.n_rows) * max(0, self.n_cols)

    def corner_radii(self) -> Tuple[float, float]:
        k = max(0.0, self.corner_sharpness) / 4.0 + 2.0
        return self.cell_width / k, self.cell_height / k


@dataclass(frozen=True)
class FactorLayerSpec:
    factor: int
    fill: str = "rgba(0, 0, 0, 0.25)"
    draw_outlines: bool = True
    show_numbers: bool = False


FACTOR_FILLS = {
    1: "white",
    2: "rgba(255, 0, 0, 0.25)",
    3: "rgba(255, 255, 0, 0.33)",
    5: "rgba(0, 0, 255, 0.25)",
    7: "rgba(0, 255, 0, 0.25)",
    11: "rgba(255, 0, 255, 0.25)",
    13: "rgba(0, 255, 255, 0.25)",
}

DEFAULT_LAYERS = tuple(
    FactorLayerSpec(f, fill, draw_outlines=True, show_numbers=(f == 1))
    for f, fill in FACTOR_FILLS.items()
)


def fill_for_factor(factor: int) -> str:
    if factor in FACTOR_FILLS:
        return FACTOR_FILLS[factor]
    palette = list(FACTOR_FILLS.values())[1:]
    return palette[factor % len(palette)]


@dataclass
class WarningMsg:
    severity: str  # error|warn|info
    code: str
    message: str
    fix: str


@dataclass(frozen=True)
class Canvas:
    width: float
    height: float
    title: str
    header: float = 0.0
    footer: float = 0.0


@dataclass
class Layer:
    factor: int
    fill: str
    cutout: CompoundPath
    outline: CompoundPath
    beads: List[Point] = field(default_factory=list)
    labels: List[Tuple[str, Point]] = field(default_factory=list)
    tab_label: Optional[Tuple[str, Point]] = None

    @property
    def legend(self) -> List[Tuple[str, Point]]:
        return self.labels + ([self.tab_label] if self.tab_label else [])


# ---------------------- Cell classification ----------------------

class CellKind:
    BASE_FACTOR = "base_factor"    # the factor itself: inset cutout
    MULTIPLE = "multiple"          # stays solid
    NON_MULTIPLE = "non_multiple"  # cut out


@dataclass(frozen=True)
class CellRole:
    number: int
    kind: str
    cutout: bool
    outline: bool
    label: bool
    bead: bool


def cell_number(row: int, col: int, n_cols: int) -> int:
    return row * n_cols + col + 1


def classify_cell(row: int, col: int, factor: int, *, n_cols: int,
                  draw_outlines: bool = False, show_numbers: bool = False) -> CellRole:
    if factor < 1:
        raise ValueError("factor must be >= 1")
    n = cell_number(row, col, n_cols)
    if n == factor and factor > 1:
        kind = CellKind.BASE_FACTOR
    elif n % factor == 0:
        kind = CellKind.MULTIPLE
    else:
        kind = CellKind.NON_MULTIPLE
    multiple = kind == CellKind.MULTIPLE
    return CellRole(
        number=n,
        kind=kind,
        cutout=not multiple,
        outline=kind != CellKind.NON_MULTIPLE and draw_outlines,
        label=multiple and show_numbers,
        bead=kind == CellKind.NON_MULTIPLE,
    )


def skip_reason(factor: int, n_rows: int, n_cols: int) -> Optional[str]:
    """Why a factor gets no layer, or None if it is drawn.

    Every composite <= N has a prime factor <= sqrt(N), so a factor whose square
    exceeds N would cut nothing new. A factor beyond the last column has nowhere
    to put its tab.
    """
    if factor < 1:
        return "FACTOR_INVALID"
    if factor * factor > n_rows * n_cols:
        return "LAYER_SIEVED"
    if factor > n_cols:
        return "LAYER_NO_TAB_COLUMN"
    return None


def layer_included(factor: int, n_rows: int, n_cols: int) -> bool:
    return skip_reason(factor, n_rows, n_cols) is None


def needs_confirmation(config: GridConfig, threshold: int = CONFIRM_CELL_THRESHOLD) -> bool:
    return config.n_cells > threshold


# ---------------------- Layout ----------------------

def hole_punch_footer(config: GridConfig) -> float:
    if config.n_hole_punch <= 0 or config.hole_punch_size <= 0:
        return 0.0
    return config.hole_punch_size + 2 * config.margin_size


@dataclass(frozen=True)
class SieveLayout:
    """Positions shared by every layer of one generation.

    `origin` is the top-left of the frame; the tab band sits above it.
    """

    config: GridConfig
    origin: Point = (0.0, 0.0)
    footer: float = 0.0

    @property
    def frame_width(self) -> float:
        c = self.config
        return c.n_cols * c.cell_width + 2 * c.margin_size

    @property
    def grid_height(self) -> float:
        c = self.config
        return c.n_rows * c.cell_height + 2 * c.margin_size

    @property
    def frame_height(self) -> float:
        return self.grid_height + self.footer

    @property
    def tab_height(self) -> float:
        return self.config.cell_height / 2

    def slot(self, row: int, col: int) -> Point:
        c = self.config
        ox, oy = self.origin
        return (ox + c.margin_size + col * c.cell_width, oy + c.margin_size + row * c.cell_height)

    def cell_center(self, row: int, col: int) -> Point:
        sx, sy = self.slot(row, col)
        return (sx + self.config.cell_width / 2, sy + self.config.cell_height / 2)

    def cell_rect(self, row: int, col: int) -> Tuple[float, float, float, float]:
        c = self.config
        m = c.margin_size
        sx, sy = self.slot(row, col)
        return (sx + m, sy + m, c.cell_width - 2 * m, c.cell_height - 2 * m)

    def cell_radii(self) -> Tuple[float, float]:
        c = self.config
        w = c.cell_width - 2 * c.margin_size
        h = c.cell_height - 2 * c.margin_size
        return _clamp_radii(*c.corner_radii(), w, h)

    def inset(self) -> float:
        c = self.config
        w = c.cell_width - 2 * c.margin_size
        h = c.cell_height - 2 * c.margin_size
        # Never zero, so the prime's own cell stays distinguishable at margin 0.
        return max(0.0, min(2 * c.margin_size, w / 4, h / 4), min(w, h) / 8)

    def inset_rect(self, row: int, col: int) -> Tuple[float, float, float, float]:
        x, y, w, h = self.cell_rect(row, col)
        d = self.inset()
        return (x + d, y + d, w - 2 * d, h - 2 * d)

    def inset_radii(self) -> Tuple[float, float]:
        rx, ry = self.cell_radii()
        d = self.inset()
        return (max(0.0, rx - d), max(0.0, ry - d))

    def frame_radii(self) -> Tuple[float, float]:
        rx, ry = self.cell_radii()
        m = self.config.margin_size
        return _clamp_radii(rx + m, ry + m, self.frame_width, self.frame_height)

    def frame(self) -> List[Segment]:
        ox, oy = self.origin
        rx, ry = self.frame_radii()
        return rounded_rect(ox, oy, self.frame_width, self.frame_height, rx, ry,
                            style=self.config.corner_style)

    def tab_span(self, column: int) -> Tuple[float, float, bool]:
        """x, width and flushness of the tab above `column`.

        The last column's tab runs flush into the frame's right edge.
        """
        c = self.config
        x = self.slot(0, column)[0] + c.margin_size
        if column == c.n_cols - 1:
            return x, self.origin[0] + self.frame_width - x, True
        return x, c.cell_width - 2 * c.margin_size, False

    def tab_fragment(self, column: int) -> Tuple[List[Segment], bool]:
        x, w, flush = self.tab_span(column)
        rx, ry = self.cell_radii()
        th = self.tab_height
        rx, ry = min(rx, th / 2), min(ry, th / 2)
        frag = tab(x, self.origin[1], w, th, rx, ry,
                   curved_start=True, curved_end=not flush, style=self.config.corner_style)
        return frag, flush

    def tab_center(self, column: int) -> Point:
        x, w, _ = self.tab_span(column)
        return (x + w / 2, self.origin[1] - self.tab_height / 2)

    def hole_centers(self) -> List[Point]:
        c = self.config
        if c.n_hole_punch <= 0 or self.footer <= 0:
            return []
        ox, oy = self.origin
        cx = ox + self.frame_width / 2
        cy = oy + self.grid_height + self.footer / 2
        return [(cx + (i - (c.n_hole_punch - 1) / 2) * c.hole_punch_spacing, cy)
                for i in range(c.n_hole_punch)]

    def hole_punches(self) -> List[Segment]:
        r = self.config.hole_punch_size / 2
        segs: List[Segment] = []
        for cx, cy in self.hole_centers():
            segs += circle(cx, cy, r, style=self.config.corner_style)
        return segs


# ---------------------- Layer builder ----------------------

def build_layer(layout: SieveLayout, spec: FactorLayerSpec) -> Layer:
    cfg = layout.config
    style = cfg.corner_style
    factor = spec.factor

    frame = layout.frame()
    tab_label = None
    if factor > 1:
        column = factor - 1
        frag, flush = layout.tab_fragment(column)
        if frag:
            frame = splice_tab(frag, frame, flush_right=flush)
            tab_label = (str(factor), layout.tab_center(column))

    cutout = CompoundPath(list(frame))
    outline = CompoundPath()
    beads: List[Point] = []
    labels: List[Tuple[str, Point]] = []

    rx, ry = layout.cell_radii()
    irx, iry = layout.inset_radii()
    for row in range(cfg.n_rows):
        for col in range(cfg.n_cols):
            role = classify_cell(row, col, factor, n_cols=cfg.n_cols,
                                 draw_outlines=spec.draw_outlines, show_numbers=spec.show_numbers)
            center = layout.cell_center(row, col)
            if role.kind == CellKind.BASE_FACTOR:
                cutout.extend(rounded_rect(*layout.inset_rect(row, col), irx, iry, style=style))
            elif role.cutout:
                cutout.extend(rounded_rect(*layout.cell_rect(row, col), rx, ry, style=style))
            if role.outline:
                outline.extend(rounded_rect(*layout.cell_rect(row, col), rx, ry, style=style))
            if role.bead:
                beads.append(center)
            if role.label:
                labels.append((str(role.number), center))

    return Layer(factor=factor, fill=spec.fill, cutout=cutout, outline=outline,
                 beads=beads, labels=labels, tab_label=tab_label)


# ---------------------- Assembler ----------------------

def size_summary(width: float, height: float) -> str:
    w_in = width / PX_PER_INCH
    h_in = height / PX_PER_INCH
    return (
        f"{fmt(width)} x {fmt(height)} px, "
        f"{w_in:.2f} x {h_in:.2f} in, "
        f"{w_in * CM_PER_INCH:.2f} x {h_in * CM_PER_INCH:.2f} cm"
    )


def sieve_title(config: GridConfig, width: float, height: float) -> str:
    return f"Sieve of Eratosthenes {config.n_rows}x{config.n_cols} ({size_summary(width, height)})"


_SKIP_MESSAGES = {
    "FACTOR_INVALID": ("error", "Factor {f} is not a positive integer.", "Use factors >= 1."),
    "LAYER_SIEVED": ("info", "Factor {f}: {f}^2 > {n}, its multiples are already cut by smaller factors.",
                     "Drop the factor or enlarge the grid."),
    "LAYER_NO_TAB_COLUMN": ("info", "Factor {f} is beyond the last column ({c}); no room for its tab.",
                            "Add columns or drop the factor."),
}


def _normalize_config(config: GridConfig, warns: List[WarningMsg]) -> GridConfig:
    if config.margin_size < 0:
        warns.append(WarningMsg("warn", "MARGIN_NEGATIVE", "margin_size is negative; using 0.", "Set margin_size >= 0."))
        config = dataclasses.replace(config, margin_size=0.0)
    if config.corner_sharpness < 0:
        warns.append(WarningMsg("warn", "SHARPNESS_NEGATIVE", "corner_sharpness is negative; using 0.",
                                "Set corner_sharpness >= 0."))
        config = dataclasses.replace(config, corner_sharpness=0.0)
    return config


def build_sieve(config: GridConfig, specs: Iterable[FactorLayerSpec]
                ) -> Tuple[Canvas, List[Layer], List[WarningMsg]]:
    warns: List[WarningMsg] = []
    config = _normalize_config(config, warns)

    if min(config.n_rows, config.n_cols) <= 0 or min(config.cell_width, config.cell_height) <= 0:
        warns.append(WarningMsg("warn", "GRID_EMPTY", "Grid has no cells; nothing to cut.",
                                "Use positive rows, cols and cell sizes."))
        return Canvas(0.0, 0.0, sieve_title(config, 0.0, 0.0)), [], warns

    included: List[FactorLayerSpec] = []
    seen = set()
    for spec in sorted(specs, key=lambda s: s.factor):
        reason = skip_reason(spec.factor, config.n_rows, config.n_cols)
        if reason is None and spec.factor in seen:
            warns.append(WarningMsg("warn", "FACTOR_DUPLICATE", f"Factor {spec.factor} listed twice; keeping the first.",
                                    "Remove the duplicate layer."))
            continue
        if reason is not None:
            severity, message, fix = _SKIP_MESSAGES[reason]
            message = message.format(f=spec.factor, n=config.n_cells, c=config.n_cols)
            logger.info("Skipping layer: %s", message)
            warns.append(WarningMsg(severity, reason, message, fix))
            continue
        seen.add(spec.factor)
        included.append(spec)

    if config.n_hole_punch > 1 and abs(config.hole_punch_spacing) < config.hole_punch_size:
        # Overlapping circles would cancel under even-odd; cut a single hole.
        warns.append(WarningMsg("error", "HOLES_OVERLAP",
                                f"Hole punches {fmt(config.hole_punch_size)} px wide are only "
                                f"{fmt(config.hole_punch_spacing)} px apart; cutting one hole.",
                                "Set hole_punch_spacing >= hole_punch_size."))
        config = dataclasses.replace(config, n_hole_punch=1)

    bare = SieveLayout(config)
    header = bare.tab_height if any(s.factor > 1 for s in included) else 0.0
    footer = hole_punch_footer(config)
    layout = SieveLayout(config, origin=(0.0, header), footer=footer)

    width = layout.frame_width
    height = header + layout.frame_height
    canvas = Canvas(width, height, sieve_title(config, width, height), header=header, footer=footer)

    if config.n_hole_punch > 0:
        reach = (config.n_hole_punch - 1) * config.hole_punch_spacing + config.hole_punch_size
        if reach > width:
            warns.append(WarningMsg("warn", "HOLES_OUTSIDE_FRAME",
                                    f"Hole punches span {fmt(reach)} px but the frame is {fmt(width)} px wide.",
                                    "Reduce n_hole_punch or hole_punch_spacing."))

    holes = layout.hole_punches()
    layers: List[Layer] = []
    for spec in included:
        layer = build_layer(layout, spec)
        layer.cutout.extend(holes)
        layers.append(layer)

    logger.debug("Built %d layers on a %s canvas", len(layers), size_summary(width, height))
    return canvas, layers, warns


# ---------------------- Permalink ----------------------

PERMALINK_FIELDS = (
    ("nRows", "n_rows", int),
    ("nCols", "n_cols", int),
    ("cellWidth", "cell_width", float),
    ("cellHeight", "cell_height", float),
    ("marginSize", "margin_size", float),
    ("cornerSharpness", "corner_sharpness", float),
    ("nHolePunch", "n_hole_punch", int),
    ("holePunchSize", "hole_punch_size", float),
    ("holePunchSpacing", "hole_punch_spacing", float),
    ("cornerStyle", "corner_style", str),
)


def encode_permalink(config: GridConfig) -> str:
    pairs = []
    for key, attr, kind in PERMALINK_FIELDS:
        value = getattr(config, attr)
        pairs.append((key, repr(float(value)) if kind is float else str(value)))
    return urlencode(pairs)


def _parse_field(raw: str, kind: type):
    raw = raw.strip()
    if kind is int:
        value = float(raw)
        if not value.is_integer():
            raise ValueError(f"not an integer: {raw!r}")
        return int(value)
    if kind is float:
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(f"not finite: {raw!r}")
        return value
    if raw not in CORNER_STYLES:
        raise ValueError(f"unknown corner style: {raw!r}")
    return raw


def decode_permalink(query: str, *, defaults: GridConfig = GridConfig()) -> GridConfig:
    """Read a GridConfig from a query string or full URL.

    Each field is parsed on its own; missing or malformed fields keep their default.
    """
    if "?" in query:
        query = urlsplit(query).query
    parsed = parse_qs(query, keep_blank_values=True)
    values = {}
    for key, attr, kind in PERMALINK_FIELDS:
        raw = parsed.get(key)
        if not raw:
            continue
        try:
            values[attr] = _parse_field(raw[-1], kind)
        except ValueError as e:
            logger.debug("Permalink field %s ignored (%s); using default", key, e)
    return dataclasses.replace(defaults, **values)


# ---------------------- SVG ----------------------

def svg_header(canvas: Canvas) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>\n"
        f"<svg xmlns=\"http://www.w3.org/2000/svg\" version=\"1.1\" width=\"{fmt(canvas.width)}\" "
        f"height=\"{fmt(canvas.height)}\" viewBox=\"0 0 {fmt(canvas.width)} {fmt(canvas.height)}\">\n"
        f"  <title>{escape(canvas.title)}</title>\n"
        f"  <desc>Generated by sievegen v{__version__}</desc>\n"
    )


def svg_footer() -> str:
    return "</svg>\n"


def svg_layer_styles(config: GridConfig, *, stroke_px: float = 1.0) -> str:
    s = max(0.001, float(stroke_px))
    return (
        "  <style>\n"
        "    .factor-layer { mix-blend-mode: darken; }\n"
        f"    .cut {{ stroke: #ff0000; stroke-width: {fmt(s)}; }}\n"
        f"    .etch {{ fill: none; stroke: #0000ff; stroke-width: {fmt(s)}; }}\n"
        f"    .bead {{ fill: none; stroke: #ff0000; stroke-width: {fmt(s)}; }}\n"
        f"    .cell-number {{ font: bold {fmt(config.cell_width / 3)}px sans-serif; fill: #444; }}\n"
        f"    .tab-label {{ font: bold {fmt(config.cell_height / 4)}px sans-serif; fill: #444; }}\n"
        "  </style>\n"
    )


def _text(cls: str, txt: str, p: Point) -> str:
    return (f'    <text class="{cls}" x="{fmt(p[0])}" y="{fmt(p[1])}" '
            f'text-anchor="middle" dominant-baseline="central">{escape(txt)}</text>\n')


def make_svg(
    canvas: Canvas,
    layers: List[Layer],
    config: GridConfig,
    meta: dict,
    *,
    stroke_px: float = 1.0,
    bead_radius: float = 1.5,
    labels: bool = True,
) -> str:
    meta_comment = "\n".join(textwrap.wrap(json.dumps(meta, ensure_ascii=False), width=120))
    out: List[str] = [svg_header(canvas), svg_layer_styles(config, stroke_px=stroke_px)]
    out.append(f"  <!-- params: {meta_comment.replace('--', '- -')} -->\n")
    for layer in layers:
        out.append(f'  <g id="factor-{layer.factor}" class="factor-layer">\n')
        out.append(f'    <path class="cut" d="{layer.cutout.to_svg_d()}" '
                   f'fill-rule="evenodd" fill={quoteattr(layer.fill)}/>\n')
        if not layer.outline.is_empty():
            out.append(f'    <path class="etch" d="{layer.outline.to_svg_d()}"/>\n')
        if layer.beads:
            out.append('    <g class="bead">\n')
            for x, y in layer.beads:
                out.append(f'      <circle cx="{fmt(x)}" cy="{fmt(y)}" r="{fmt(bead_radius)}"/>\n')
            out.append("    </g>\n")
        if labels:
            for txt, p in layer.labels:
                out.append(_text("cell-number", txt, p))
            if layer.tab_label:
                out.append(_text("tab-label", *layer.tab_label))
        out.append("  </g>\n")
    out.append(svg_footer())
    return "".join(out)


def _warn_dicts(warns: List[WarningMsg]) -> List[dict]:
    return [w.__dict__.copy() for w in (warns or [])]


def build_meta(config: GridConfig, canvas: Canvas, layers: List[Layer], warns: List[WarningMsg]) -> dict:
    return {
        "template": "SIEVE_v0.1",
        "inputs": dataclasses.asdict(config),
        "layers": [layer.factor for layer in layers],
        "canvas": {"width": canvas.width, "height": canvas.height, "title": canvas.title},
        "permalink": encode_permalink(config),
        "warnings": _warn_dicts(warns),
    }


# ---------------------- Public dict API ----------------------

def config_from_params(params: dict) -> Tuple[GridConfig, List[FactorLayerSpec]]:
    d = GridConfig()
    style = str(params.get("corner_style", d.corner_style))
    if style not in CORNER_STYLES:
        raise ValueError(f"Unknown corner_style: {style}")
    config = GridConfig(
        n_rows=int(params.get("n_rows", d.n_rows)),
        n_cols=int(params.get("n_cols", d.n_cols)),
        cell_width=float(params.get("cell_width", d.cell_width)),
        cell_height=float(params.get("cell_height", d.cell_height)),
        margin_size=float(params.get("margin_size", d.margin_size)),
        corner_sharpness=float(params.get("corner_sharpness", d.corner_sharpness)),
        n_hole_punch=int(params.get("n_hole_punch", d.n_hole_punch)),
        hole_punch_size=float(params.get("hole_punch_size", d.hole_punch_size)),
        hole_punch_spacing=float(params.get("hole_punch_spacing", d.hole_punch_spacing)),
        corner_style=style,
    )

    if params.get("layers") is not None:
        specs = []
        for item in params["layers"]:
            f = int(item["factor"])
            specs.append(FactorLayerSpec(
                factor=f,
                fill=str(item.get("fill", fill_for_factor(f))),
                draw_outlines=bool(item.get("draw_outlines", True)),
                show_numbers=bool(item.get("show_numbers", f == 1)),
            ))
    elif params.get("factors") is not None:
        specs = [FactorLayerSpec(int(f), fill_for_factor(int(f)), show_numbers=(int(f) == 1))
                 for f in params["factors"]]
    else:
        specs = list(DEFAULT_LAYERS)
    return config, specs


def generate_svg(params: dict) -> dict:
    """Public API for embedding (web front-end, scripts).

    Returns a JSON-serializable dict:
      {"svg": str, "warnings": [{severity, code, message, fix}, ...], "meta": dict,
       "requires_confirmation": bool}

    Grids above `confirm_threshold` cells (default 1024) are not generated until
    the caller passes `confirmed=True`.
    """
    if not isinstance(params, dict):
        raise TypeError("params must be a dict")

    config, specs = config_from_params(params)
    threshold = int(params.get("confirm_threshold", CONFIRM_CELL_THRESHOLD))
    if needs_confirmation(config, threshold) and not bool(params.get("confirmed", False)):
        warn = WarningMsg("warn", "GRID_NEEDS_CONFIRMATION",
                          f"{config.n_cells} cells exceeds {threshold}; generation may be slow.",
                          "Pass confirmed=True to generate anyway.")
        return {
            "svg": "",
            "warnings": _warn_dicts([warn]),
            "meta": {"template": "SIEVE_v0.1", "inputs": dataclasses.asdict(config)},
            "requires_confirmation": True,
        }

    canvas, layers, warns = build_sieve(config, specs)
    meta = build_meta(config, canvas, layers, warns)
    svg = make_svg(
        canvas,
        layers,
        config,
        meta,
        stroke_px=float(params.get("stroke_px", 1.0)),
        bead_radius=float(params.get("bead_radius", 1.5)),
        labels=bool(params.get("labels", True)),
    )
    return {
        "svg": svg,
        "warnings": _warn_dicts(warns),
        "meta": meta,
        "requires_confirmation": False,
    }


# ---------------------- CLI ----------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    d = GridConfig()
    ap = argparse.ArgumentParser(
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Sieve of Eratosthenes stencil generator: one laser-cut layer per factor.\n\n"
            "Default factors: 1,2,3,5,7,11,13 (layer 1 carries the engraved numbers)\n"
        ),
    )
    ap.add_argument("--rows", type=int, default=d.n_rows)
    ap.add_argument("--cols", type=int, default=d.n_cols)
    ap.add_argument("--cell-width", type=float, default=d.cell_width, help="Cell width (px, 96 px = 1 in)")
    ap.add_argument("--cell-height", type=float, default=d.cell_height)
    ap.add_argument("--margin", type=float, default=d.margin_size, help="Material left around each cutout (px)")
    ap.add_argument("--corner-sharpness", type=float, default=d.corner_sharpness,
                    help="0 = round cells; larger = sharper corners")
    ap.add_argument("--corner-style", choices=CORNER_STYLES, default=d.corner_style)
    ap.add_argument("--hole-punch", type=int, default=d.n_hole_punch, help="Number of binder holes")
    ap.add_argument("--hole-punch-size", type=float, default=d.hole_punch_size)
    ap.add_argument("--hole-punch-spacing", type=float, default=d.hole_punch_spacing)
    ap.add_argument("--permalink", default=None, help="Query string or URL; its fields override the grid options")
    ap.add_argument("--print-permalink", action="store_true")

    ap.add_argument("--factors", type=str, default=None, help="Comma-separated factors, e.g. 1,2,3,5,7")
    ap.add_argument("--no-outlines", action="store_true", help="Do not etch outlines of multiples")
    ap.add_argument("--no-numbers", action="store_true")

    ap.add_argument("--stroke-px", type=float, default=1.0)
    ap.add_argument("--bead-radius", type=float, default=1.5)
    ap.add_argument("--export", choices=["single_svg", "per_layer_svgs"], default="single_svg")
    ap.add_argument("--yes", action="store_true", help=f"Generate grids above {CONFIRM_CELL_THRESHOLD} cells")
    ap.add_argument("--log-level", default="warning")
    ap.add_argument("--out", required=True, help="Output path (single SVG) or directory (per_layer_svgs)")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = GridConfig(
        n_rows=args.rows,
        n_cols=args.cols,
        cell_width=args.cell_width,
        cell_height=args.cell_height,
        margin_size=args.margin,
        corner_sharpness=args.corner_sharpness,
        n_hole_punch=args.hole_punch,
        hole_punch_size=args.hole_punch_size,
        hole_punch_spacing=args.hole_punch_spacing,
        corner_style=args.corner_style,
    )
    if args.permalink:
        config = decode_permalink(args.permalink, defaults=config)
    if args.print_permalink:
        print("?" + encode_permalink(config))

    if args.factors:
        factors = [int(x) for x in args.factors.split(",") if x.strip() != ""]
        specs = [FactorLayerSpec(f, fill_for_factor(f), show_numbers=(f == 1)) for f in factors]
    else:
        specs = list(DEFAULT_LAYERS)
    specs = [dataclasses.replace(s, draw_outlines=s.draw_outlines and not args.no_outlines,
                                 show_numbers=s.show_numbers and not args.no_numbers) for s in specs]

    if needs_confirmation(config) and not args.yes:
        print(f"{config.n_cells} cells exceeds {CONFIRM_CELL_THRESHOLD}; re-run with --yes to generate.")
        return 2

    canvas, layers, warns = build_sieve(config, specs)
    meta = build_meta(config, canvas, layers, warns)
    render = dict(stroke_px=args.stroke_px, bead_radius=args.bead_radius, labels=not args.no_numbers)

    if args.export == "single_svg":
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(make_svg(canvas, layers, config, meta, **render))
    else:
        # One file per sheet, all on the same canvas so the stack stays registered.
        os.makedirs(args.out, exist_ok=True)
        for layer in layers:
            svg = make_svg(canvas, [layer], config, {**meta, "single_layer": layer.factor}, **render)
            with open(os.path.join(args.out, f"factor-{layer.factor}.svg"), "w", encoding="utf-8") as f:
                f.write(svg)

    errs = [w for w in warns if w.severity == "error"]
    if errs:
        print("EXPORT SHOULD BE BLOCKED (errors):")
        for w in errs:
            print("-", w.code, w.message, "| fix:", w.fix)
        return 1
    if warns:
        print("Warnings:")
        for w in warns:
            print("-", w.severity, w.code, w.message, "| fix:", w.fix)
    print("OK", canvas.title)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

import math

import pytest

import sievegen as gen


def test_corner_arc_bezier_controls_use_quarter_circle_ratio():
    seg = gen.corner_arc((0.0, 0.0), 10.0, 10.0)
    assert seg.op == "C"
    c1, c2, end = seg.pts
    assert end == (10.0, 10.0)
    assert c1 == pytest.approx((10.0 * gen.ARC_ALPHA, 0.0))
    assert c2 == pytest.approx((10.0, 10.0 - 10.0 * gen.ARC_ALPHA))
    assert gen.ARC_ALPHA == pytest.approx(0.5523, abs=1e-4)


def test_corner_arc_midpoint_stays_on_circle():
    # Horizontal-first corner from (0,0) to (10,10) is centred on (0,10).
    c1, c2, end = gen.corner_arc((0.0, 0.0), 10.0, 10.0).pts
    x, y = gen.cubic_point((0.0, 0.0), c1, c2, end, 0.5)
    assert math.hypot(x - 0.0, y - 10.0) == pytest.approx(10.0, abs=0.01)


def test_corner_arc_sign_selects_sweep():
    assert gen.corner_arc((0, 0), 5, 5, style="arc").sweep == 1
    assert gen.corner_arc((0, 0), 5, -5, style="arc").sweep == 0
    assert gen.corner_arc((0, 0), -5, 5, vertical_first=True, style="arc").sweep == 1
    assert gen.corner_arc((0, 0), 5, 5, vertical_first=True, style="arc").sweep == 0


def test_corner_arc_vertical_first_tangents():
    c1, c2, end = gen.corner_arc((0.0, 0.0), -4.0, 4.0, vertical_first=True).pts
    assert end == (-4.0, 4.0)
    assert c1[0] == 0.0 and c1[1] > 0
    assert c2[1] == 4.0 and c2[0] > -4.0


def test_arc_style_emits_native_arc_command():
    seg = gen.corner_arc((0.0, 0.0), -3.0, 3.0, vertical_first=True, style="arc")
    assert seg.to_svg() == "A 3 3 0 0 1 -3 3"


def test_unknown_corner_style_rejected():
    with pytest.raises(ValueError):
        gen.corner_arc((0, 0), 1, 1, style="spline")


def test_rounded_rect_zero_radius_traces_exact_corners():
    segs = gen.rounded_rect(1.0, 2.0, 30.0, 20.0, 0.0, 0.0)
    assert [s.op for s in segs] == ["M", "L", "L", "L", "L", "Z"]
    assert [s.end for s in segs[:-1]] == [(31.0, 2.0), (31.0, 22.0), (1.0, 22.0), (1.0, 2.0), (31.0, 2.0)]


def test_rounded_rect_starts_before_top_right_and_closes():
    segs = gen.rounded_rect(0.0, 0.0, 40.0, 20.0, 5.0, 5.0)
    assert segs[0].op == "M"
    assert segs[0].end == (35.0, 0.0)
    assert sum(1 for s in segs if s.op == "C") == 4
    assert segs[-1].op == "Z"
    assert segs[-2].end == segs[0].end


def test_rounded_rect_clamps_radius_and_skips_empty():
    segs = gen.rounded_rect(0.0, 0.0, 10.0, 10.0, 50.0, 50.0)
    assert segs[0].end == (5.0, 0.0)
    assert gen.rounded_rect(0.0, 0.0, 0.0, 10.0, 1.0, 1.0) == []


def test_tab_is_open_with_fillets():
    segs = gen.tab(10.0, 50.0, 20.0, 15.0, 3.0, 3.0)
    assert segs[0].op == "M"
    assert segs[0].end == (7.0, 50.0)
    assert segs[-1].end == pytest.approx((33.0, 50.0))
    assert all(s.op != "Z" for s in segs)
    # Highest point is the tab top.
    assert min(s.end[1] for s in segs) == pytest.approx(35.0)


def test_tab_flags_suppress_each_fillet():
    segs = gen.tab(10.0, 50.0, 20.0, 15.0, 3.0, 3.0, curved_start=False, curved_end=False)
    assert segs[0].end == (10.0, 50.0)
    assert segs[-1].op == "L"
    assert segs[-1].end == (30.0, 50.0)


def test_circle_closes_on_start():
    segs = gen.circle(10.0, 10.0, 4.0)
    assert [s.op for s in segs] == ["M", "C", "C", "C", "C", "Z"]
    assert segs[0].end == (10.0, 6.0)
    assert segs[4].end == pytest.approx(segs[0].end)
    path = gen.CompoundPath(segs)
    assert path.contains((10.0, 10.0))
    assert not path.contains((13.5, 13.5))


def test_splice_tab_makes_one_continuous_contour():
    frame = gen.rounded_rect(0.0, 20.0, 100.0, 60.0, 8.0, 8.0)
    frag = gen.tab(30.0, 20.0, 20.0, 10.0, 2.0, 2.0)
    spliced = gen.splice_tab(frag, frame)
    ops = [s.op for s in spliced]
    assert ops.count("M") == 1
    assert ops.count("Z") == 1 and ops[-1] == "Z"
    # The frame's move became a line to the frame start.
    assert spliced[len(frag)].op == "L"
    assert spliced[len(frag)].end == (92.0, 20.0)

    path = gen.CompoundPath(spliced)
    assert path.contains((40.0, 15.0))    # inside the tab
    assert path.contains((50.0, 50.0))    # inside the frame
    assert not path.contains((70.0, 15.0))  # above the frame, beside the tab


def test_splice_flush_tab_replaces_top_right_corner():
    frame = gen.rounded_rect(0.0, 20.0, 100.0, 60.0, 8.0, 8.0)
    frag = gen.tab(80.0, 20.0, 20.0, 10.0, 2.0, 2.0, curved_end=False)
    spliced = gen.splice_tab(frag, frame, flush_right=True)
    assert [s.op for s in spliced].count("M") == 1

    # After the tab's top-right corner the pen runs straight down the right edge.
    i = next(i for i, s in enumerate(spliced) if s.end == pytest.approx((100.0, 12.0)))
    assert spliced[i + 1].op == "L"
    assert spliced[i + 1].end == (100.0, 72.0)

    path = gen.CompoundPath(spliced)
    assert path.contains((99.0, 21.0))  # no rounded frame corner under a flush tab
    assert path.contains((90.0, 15.0))

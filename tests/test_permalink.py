import dataclasses

import pytest

import sievegen as gen


def test_permalink_round_trip_field_by_field():
    config = gen.GridConfig(
        n_rows=9,
        n_cols=7,
        cell_width=0.1 + 0.2,
        cell_height=50.5,
        margin_size=3.25,
        corner_sharpness=7.0,
        n_hole_punch=3,
        hole_punch_size=20.0,
        hole_punch_spacing=1e-3,
        corner_style="arc",
    )
    decoded = gen.decode_permalink(gen.encode_permalink(config))
    for _, attr, kind in gen.PERMALINK_FIELDS:
        if kind is str:
            assert getattr(decoded, attr) == getattr(config, attr)
        else:
            assert getattr(decoded, attr) == pytest.approx(getattr(config, attr))
    assert decoded == config


def test_permalink_uses_ui_keys():
    q = gen.encode_permalink(gen.GridConfig())
    assert q.startswith("nRows=20&nCols=12&cellWidth=72.0")


def test_missing_fields_fall_back_to_defaults():
    assert gen.decode_permalink("") == gen.GridConfig()
    assert gen.decode_permalink("nCols=5") == gen.GridConfig(n_cols=5)


def test_bad_fields_fall_back_independently():
    decoded = gen.decode_permalink("nRows=abc&nCols=7&cellWidth=nan&marginSize=2.5&cornerStyle=wavy&nHolePunch=1.5")
    d = gen.GridConfig()
    assert decoded.n_rows == d.n_rows
    assert decoded.n_cols == 7
    assert decoded.cell_width == d.cell_width
    assert decoded.margin_size == 2.5
    assert decoded.corner_style == d.corner_style
    assert decoded.n_hole_punch == d.n_hole_punch


def test_decode_accepts_full_url_and_integral_floats():
    decoded = gen.decode_permalink("https://example.org/sieve/?nRows=12.0&nCols=12")
    assert (decoded.n_rows, decoded.n_cols) == (12, 12)


def test_decode_respects_custom_defaults():
    base = gen.GridConfig(n_rows=3, cell_width=10.0)
    decoded = gen.decode_permalink("nCols=4", defaults=base)
    assert decoded == dataclasses.replace(base, n_cols=4)

#!/usr/bin/env python3

import os
import sys

# Allow running this script directly (sys.path[0] is examples/).
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import sievegen as gen


def generate(out_dir: str):
    os.makedirs(out_dir, exist_ok=True)

    examples = [
        ("sieve_20x12.svg", gen.GridConfig(), gen.DEFAULT_LAYERS),
        (
            "sieve_10x10_binder.svg",
            gen.GridConfig(n_rows=10, n_cols=10, n_hole_punch=3, hole_punch_size=24, hole_punch_spacing=264),
            gen.DEFAULT_LAYERS,
        ),
        (
            "sieve_12x12_round_arcs.svg",
            gen.GridConfig(n_rows=12, n_cols=12, corner_sharpness=0, corner_style="arc"),
            [gen.FactorLayerSpec(f, gen.fill_for_factor(f), show_numbers=(f == 1)) for f in (1, 2, 3, 5, 7, 11)],
        ),
    ]

    for filename, config, specs in examples:
        canvas, layers, warns = gen.build_sieve(config, specs)
        meta = gen.build_meta(config, canvas, layers, warns)
        svg = gen.make_svg(canvas, layers, config, meta)
        with open(os.path.join(out_dir, filename), "w", encoding="utf-8") as f:
            f.write(svg)


if __name__ == "__main__":
    generate(os.path.join(os.path.dirname(__file__)))

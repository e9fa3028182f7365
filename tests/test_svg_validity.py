import xml.etree.ElementTree as ET

import sievegen as gen

NS = {"svg": "http://www.w3.org/2000/svg"}


def test_svg_is_valid_xml(tmp_path):
    # Smoke test: generator should output parseable XML.
    res = gen.generate_svg({"n_rows": 6, "n_cols": 6, "n_hole_punch": 2, "hole_punch_spacing": 120})
    assert res["requires_confirmation"] is False

    out = tmp_path / "out.svg"
    out.write_text(res["svg"], encoding="utf-8")
    root = ET.parse(str(out)).getroot()

    groups = root.findall("svg:g", NS)
    assert [g.get("id") for g in groups] == ["factor-1", "factor-2", "factor-3", "factor-5"]
    for g in groups:
        cut = g.find("svg:path[@class='cut']", NS)
        assert cut.get("fill-rule") == "evenodd"
        assert cut.get("d").startswith("M ")
    assert root.find("svg:title", NS).text.startswith("Sieve of Eratosthenes 6x6")


def test_default_params_skip_factor_without_tab_column():
    res = gen.generate_svg({})
    assert res["meta"]["layers"] == [1, 2, 3, 5, 7, 11]
    codes = [w["code"] for w in res["warnings"]]
    assert codes == ["LAYER_NO_TAB_COLUMN"]
    assert "nRows=20" in res["meta"]["permalink"]


def test_labels_and_beads_rendered():
    res = gen.generate_svg({"n_rows": 4, "n_cols": 4, "factors": [1, 2]})
    root = ET.fromstring(res["svg"])
    base = root.find("svg:g[@id='factor-1']", NS)
    assert len(base.findall("svg:text[@class='cell-number']", NS)) == 16
    two = root.find("svg:g[@id='factor-2']", NS)
    assert [t.text for t in two.findall("svg:text[@class='tab-label']", NS)] == ["2"]
    assert len(two.findall("svg:g[@class='bead']/svg:circle", NS)) == 8


def test_layer_dicts_override_defaults():
    res = gen.generate_svg({
        "n_rows": 4,
        "n_cols": 4,
        "labels": False,
        "layers": [{"factor": 2, "fill": "#abcdef", "draw_outlines": False}],
    })
    root = ET.fromstring(res["svg"])
    g = root.find("svg:g[@id='factor-2']", NS)
    assert g.find("svg:path[@class='cut']", NS).get("fill") == "#abcdef"
    assert g.find("svg:path[@class='etch']", NS) is None
    assert g.findall("svg:text", NS) == []


def test_large_grid_requires_confirmation():
    params = {"n_rows": 4, "n_cols": 4, "confirm_threshold": 10}
    gated = gen.generate_svg(params)
    assert gated["requires_confirmation"] is True
    assert gated["svg"] == ""
    assert gated["warnings"][0]["code"] == "GRID_NEEDS_CONFIRMATION"

    res = gen.generate_svg({**params, "confirmed": True})
    assert res["requires_confirmation"] is False
    assert res["svg"].startswith("<?xml")


def test_cli_writes_svg(tmp_path):
    out = tmp_path / "sieve.svg"
    assert gen.main(["--rows", "4", "--cols", "4", "--out", str(out)]) == 0
    ET.parse(str(out))


def test_cli_per_layer_export(tmp_path):
    out_dir = tmp_path / "layers"
    rc = gen.main(["--rows", "4", "--cols", "4", "--factors", "1,2,3", "--export", "per_layer_svgs",
                   "--out", str(out_dir)])
    assert rc == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["factor-1.svg", "factor-2.svg", "factor-3.svg"]


def test_cli_refuses_large_grid_without_yes(tmp_path):
    out = tmp_path / "big.svg"
    assert gen.main(["--rows", "40", "--cols", "40", "--out", str(out)]) == 2
    assert not out.exists()


def test_cli_blocks_on_invalid_factor(tmp_path):
    out = tmp_path / "bad.svg"
    assert gen.main(["--rows", "4", "--cols", "4", "--factors", "0,2", "--out", str(out)]) == 1

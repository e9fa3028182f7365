#!/usr/bin/env python3

import argparse
import json
import sys
import zipfile
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sievegen import generate_svg


EXPECTED_ZIP_FILES = {
    "sieve.svg",
    "project_summary.md",
    "permalink.txt",
}


@dataclass
class Case:
    name: str
    params: Dict[str, Any]
    source_file: Path


def _read_case(path: Path) -> Case:
    data = json.loads(path.read_text(encoding="utf-8"))
    name = str(data.get("name", "")).strip() or path.stem
    params = data.get("params")
    if not isinstance(params, dict):
        raise TypeError(f"{path}: params must be an object/dict")
    return Case(name=name, params=params, source_file=path)


def _iter_cases(params_dir: Path) -> List[Case]:
    if not params_dir.exists():
        raise FileNotFoundError(f"Params dir not found: {params_dir}")

    cases: List[Case] = []
    for p in sorted(params_dir.glob("*.json")):
        cases.append(_read_case(p))

    if not cases:
        raise FileNotFoundError(f"No *.json found in: {params_dir}")

    return cases


def _find_error_warnings(warnings: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for w in warnings or []:
        sev = str((w or {}).get("severity", "")).lower()
        if sev == "error":
            out.append(w)
    return out


def _build_project_summary_md(name: str, params: Dict[str, Any], meta: Dict[str, Any],
                              warnings: List[Dict[str, Any]]) -> str:
    canvas = meta.get("canvas", {})
    notes = [w for w in warnings if str(w.get("severity")) != "error"]
    return (
        "# SieveGen Project Summary\n\n"
        f"Case: **{name}**\n\n"
        f"{canvas.get('title', '')}\n\n"
        f"Layers (one sheet each): {', '.join(str(f) for f in meta.get('layers', []))}\n\n"
        "## Generator params\n"
        "```json\n"
        + json.dumps(params, indent=2, sort_keys=True)
        + "\n```\n\n"
        + ("## Notes\n" + "\n".join([f"- {w.get('code')}: {w.get('message')}" for w in notes]) + "\n" if notes else "")
    )


def _validate_svg(svg: str, *, name: str, layer_count: int) -> None:
    if not isinstance(svg, str) or not svg.strip():
        raise ValueError(f"{name}: empty svg")
    s = svg.lstrip()
    if "<svg" not in s[:5000]:
        raise ValueError(f"{name}: svg does not look like SVG")
    if s.count('class="factor-layer"') != layer_count:
        raise ValueError(f"{name}: expected {layer_count} factor layers in svg")


def _write_zip(out_path: Path, *, svg: str, name: str, params: Dict[str, Any], meta: Dict[str, Any],
               warnings: List[Dict[str, Any]]) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        z.writestr("sieve.svg", svg)
        z.writestr("project_summary.md", _build_project_summary_md(name, params, meta, warnings))
        z.writestr("permalink.txt", "?" + str(meta.get("permalink", "")) + "\n")

    with zipfile.ZipFile(out_path, "r") as z:
        names = set(z.namelist())
        if names != EXPECTED_ZIP_FILES:
            missing = sorted(EXPECTED_ZIP_FILES - names)
            extra = sorted(names - EXPECTED_ZIP_FILES)
            raise ValueError(
                f"{name}: zip contents mismatch. Missing={missing} Extra={extra} ({out_path})"
            )


def main(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(description="Generate and validate sieve regression packs (ZIP) per params file.")
    ap.add_argument(
        "--params-dir",
        default="examples/regression_params",
        help="Directory containing *.json files with {name, params} (default: %(default)s)",
    )
    ap.add_argument(
        "--out-dir",
        default="artifacts/regression",
        help="Output directory for generated ZIPs (default: %(default)s)",
    )
    ap.add_argument(
        "--date",
        default=None,
        help="Override date (YYYYMMDD) for deterministic filenames; default is today.",
    )
    args = ap.parse_args(argv)

    params_dir = Path(args.params_dir)
    out_dir = Path(args.out_dir)

    if args.date:
        ymd = str(args.date).strip()
        if not (len(ymd) == 8 and ymd.isdigit()):
            raise ValueError("--date must be YYYYMMDD")
    else:
        ymd = date.today().strftime("%Y%m%d")

    cases = _iter_cases(params_dir)

    failures: List[Tuple[str, str]] = []
    for c in cases:
        try:
            # Regression packs are explicit requests; skip the interactive size gate.
            res = generate_svg({**c.params, "confirmed": True})
            if not isinstance(res, dict):
                raise TypeError("generate_svg returned non-dict")
            svg = res.get("svg")
            meta = res.get("meta") or {}
            warnings = res.get("warnings") or []

            _validate_svg(svg, name=c.name, layer_count=len(meta.get("layers", [])))

            errors = _find_error_warnings(warnings)
            if errors:
                raise ValueError(f"Blocking errors returned: {errors}")

            out_path = out_dir / f"SieveGen_{c.name}_{ymd}.zip"
            _write_zip(out_path, svg=svg, name=c.name, params=c.params, meta=meta, warnings=warnings)

            print(f"OK  {c.name} -> {out_path}")
        except Exception as e:
            failures.append((c.name, str(e)))
            print(f"FAIL {c.name}: {e}", file=sys.stderr)

    if failures:
        print("\nFailures:", file=sys.stderr)
        for name, msg in failures:
            print(f"- {name}: {msg}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

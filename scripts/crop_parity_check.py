#!/usr/bin/env python3
"""
Crop Parity Check — compares the preview (CSS) crop with the raster extract
rectangle for the same crop parameters.

Usage:
    python scripts/crop_parity_check.py                        # Reference case
    python scripts/crop_parity_check.py --scale 1.4 --x 20     # Override params
    python scripts/crop_parity_check.py --sweep 240 450 900    # Same-aspect frames
    python scripts/crop_parity_check.py --json                 # Machine-readable

Exit code is 1 if any checked case disagrees by more than the tolerance.
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from storefront import config  # noqa: E402
from storefront.services.crop_parity import (  # noqa: E402
    ParityParams,
    ParityReport,
    run_parity_check,
    sweep_frame_sizes,
)

# ANSI colors
RED = "\033[91m"
GREEN = "\033[92m"
CYAN = "\033[96m"
BOLD = "\033[1m"
RESET = "\033[0m"
DIM = "\033[2m"


def build_parser() -> argparse.ArgumentParser:
    ref = config.PARITY_REFERENCE_CASE
    parser = argparse.ArgumentParser(description="Preview/raster crop parity check")
    parser.add_argument("--img-w", type=float, default=ref["img_w"])
    parser.add_argument("--img-h", type=float, default=ref["img_h"])
    parser.add_argument("--target-w", type=float, default=ref["target_w"])
    parser.add_argument("--target-h", type=float, default=ref["target_h"])
    parser.add_argument("--scale", type=float, default=ref["scale"])
    parser.add_argument("--x", type=float, default=ref["x"])
    parser.add_argument("--y", type=float, default=ref["y"])
    parser.add_argument("--tolerance", type=float, default=None,
                        help=f"max per-axis difference in px (default {config.PARITY_TOLERANCE_PX})")
    parser.add_argument("--sweep", type=int, nargs="+", metavar="WIDTH", default=[],
                        help="also check these frame widths at the target aspect ratio")
    parser.add_argument("--json", action="store_true", help="print reports as JSON")
    return parser


def print_report(report: ParityReport) -> None:
    p = report.params
    status = f"{GREEN}[OK]{RESET}" if report.match else f"{RED}[FAIL]{RESET}"
    print(f"{BOLD}{p['img_w']:g}x{p['img_h']:g} -> {p['target_w']:g}x{p['target_h']:g}"
          f"  scale {p['scale']:g}  x {p['x']:g}  y {p['y']:g}{RESET}  {status}")
    if not report.valid_input:
        print(f"    {RED}invalid dimensions{RESET}")
        return
    rect = report.raster["rect"]
    print(f"    css     left {report.css['left']:>6}  top {report.css['top']:>6}"
          f"  {DIM}{report.css['transform']}{RESET}")
    print(f"    raster  left {rect['left']:>6}  top {rect['top']:>6}"
          f"  {DIM}resize {report.raster['resized']['width']}x{report.raster['resized']['height']}{RESET}")
    print(f"    diff    left {report.diff['left']:>6g}  top {report.diff['top']:>6g}"
          f"  (tolerance {report.tolerance_px:g}px)")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    params = ParityParams(
        img_w=args.img_w, img_h=args.img_h,
        target_w=args.target_w, target_h=args.target_h,
        scale=args.scale, x=args.x, y=args.y,
    )
    reports = [run_parity_check(params, args.tolerance)]
    reports.extend(sweep_frame_sizes(params, args.sweep, args.tolerance))

    if args.json:
        print(json.dumps([r.to_dict() for r in reports], indent=2))
    else:
        print(f"\n{BOLD}{CYAN}CROP PARITY CHECK{RESET}")
        print(f"{DIM}{'-' * 70}{RESET}")
        for report in reports:
            print_report(report)

    failed = [r for r in reports if not r.match]
    if not args.json:
        if failed:
            print(f"\n{RED}{BOLD}[FAIL] {len(failed)} of {len(reports)} case(s) mismatched{RESET}\n")
        else:
            print(f"\n{GREEN}{BOLD}[OK] {len(reports)} case(s) within tolerance{RESET}\n")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())

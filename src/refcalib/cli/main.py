from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np
from loguru import logger

from refcalib.api.io import load_point_pairs, save_calibration_result, save_point_pairs
from refcalib.config import ConfigValidationError, load_calibration_config
from refcalib.core.params import SCALING_MODES
from refcalib.errors import CalibrationError
from refcalib.optim.backend import BACKENDS
from refcalib.optim.calibrator import ReferenceCalibrator, SolverOptions
from refcalib.sim.synthetic import make_transform, synthetic_point_pairs


def main(argv: list[str] | None = None) -> int:
    logger.enable("refcalib")
    parser = argparse.ArgumentParser(prog="refcalib")
    sub = parser.add_subparsers(dest="cmd", required=True)

    syn = sub.add_parser("synth", help="Write a synthetic point-pair file (p1 = S*H*p0).")
    syn.add_argument("--out", type=Path, required=True)
    syn.add_argument("--n", type=int, default=8, help="Number of point pairs.")
    syn.add_argument("--seed", type=int, default=0)
    syn.add_argument("--translation", type=float, nargs=3, default=[0.0, 0.0, 0.0], help="Translation (m).")
    syn.add_argument("--euler", type=float, nargs=3, default=[0.0, 0.0, 0.0], help="Euler angles (rad).")
    syn.add_argument("--euler-seq", type=str, default="xyz", help="scipy Euler sequence, e.g. xyz or ZYZ.")
    syn.add_argument(
        "--scale",
        type=float,
        nargs="+",
        default=None,
        help="One isotropic factor or three per-axis factors (default: no scaling).",
    )
    syn.add_argument("--extent", type=float, default=0.5, help="Size of the sampled point cloud (m).")
    syn.add_argument("--noise-std", type=float, default=0.0, help="Gaussian noise added to p1 (m).")

    cal = sub.add_parser("calibrate", help="Estimate H (and optionally S) from a point-pair file.")
    cal.add_argument("points", type=Path)
    cal.add_argument("--config", type=Path, default=None, help="JSON calibration config.")
    cal.add_argument("--scaling", type=str, default="none", choices=list(SCALING_MODES))
    cal.add_argument("--backend", type=str, default=None, choices=list(BACKENDS), help="Override the config backend.")
    cal.add_argument("--out", type=Path, default=None, help="Write the result JSON here.")

    args = parser.parse_args(argv)

    if args.cmd == "synth":
        scale = None
        if args.scale is not None:
            if len(args.scale) == 1:
                scale = float(args.scale[0])
            elif len(args.scale) == 3:
                scale = np.asarray(args.scale, dtype=np.float64)
            else:
                parser.error("--scale takes 1 or 3 values")
        H = make_transform(tuple(args.translation), tuple(args.euler), euler_seq=args.euler_seq)
        P0, P1 = synthetic_point_pairs(
            n=args.n,
            H=H,
            scale=scale,
            extent_m=args.extent,
            noise_std_m=args.noise_std,
            seed=args.seed,
        )
        save_point_pairs(args.out, P0, P1)
        print(f"Wrote {args.out}")
        return 0

    if args.cmd == "calibrate":
        try:
            if args.config is not None:
                cfg = load_calibration_config(args.config)
                if args.backend is not None:
                    cfg = replace(cfg, solver=replace(cfg.solver, backend=args.backend))
                calib = cfg.build_calibrator()
            else:
                calib = ReferenceCalibrator(SolverOptions(backend=args.backend or "trf"))

            P0, P1 = load_point_pairs(args.points)
            for p0, p1 in zip(P0, P1):
                calib.add_points(p0, p1)
            result = calib.calibrate(scaling=args.scaling)
        except (CalibrationError, ConfigValidationError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

        print(f"H =\n{np.array2string(result.H, precision=6, suppress_small=True)}")
        if result.scale is not None:
            print(f"scale = {result.scale}")
        print(f"error = {result.error:.6g} m over {calib.num_points} pairs")
        if args.out is not None:
            save_calibration_result(args.out, result)
            print(f"Wrote {args.out}")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())

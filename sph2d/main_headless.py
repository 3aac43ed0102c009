#!/usr/bin/env python3
"""
Headless runner for the 2D SPH solver.
Runs a block of fluid for a number of frames and reports performance.
"""

import argparse
import logging
import time
import numpy as np

import sph2d
from sph2d.core.kernels import equilibrium_spacing
from sph2d.scenarios import create_block_layout

logger = logging.getLogger("sph2d.headless")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="2D SPH Fluid Simulation (Headless)")
    parser.add_argument("--particles", type=int, default=1600)
    parser.add_argument("--fluid", default="water", choices=sorted(sph2d.FLUID_PRESETS))
    parser.add_argument("--backend", choices=["cpu", "numba", "auto"], default="auto")
    parser.add_argument("--frames", type=int, default=120, help="Number of frames to run")
    parser.add_argument("--substeps", type=int, default=3, help="Substeps per frame")
    parser.add_argument("--frame-time", type=float, default=1.0 / 60.0)
    parser.add_argument("--obstacle", action="store_true", help="Add a tilted box obstacle")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(message)s")

    if args.backend == "auto":
        backend = sph2d.auto_select_backend(args.particles)
        logger.info("Auto-selected %s backend for %d particles", backend.upper(), args.particles)
    else:
        backend = sph2d.set_backend(args.backend)

    fluid = sph2d.FLUID_PRESETS[args.fluid]
    spacing = equilibrium_spacing(fluid.target_density)
    positions = create_block_layout(args.particles, spacing, center=(0.0, 1.0),
                                    jitter=0.1, seed=0)

    boxes = ()
    if args.obstacle:
        boxes = (sph2d.BoxCollider(center=(0.0, -2.5), size=(3.0, 0.6), forward=(0.3, 1.0)),)
    params = sph2d.SimulationParameters(num_particles=args.particles, box_colliders=boxes)
    params = params.with_fluid(fluid)

    simulation = sph2d.FluidSimulation(positions)

    logger.info("Simulation info:")
    logger.info("  Particles: %d", args.particles)
    logger.info("  Fluid: %s", fluid.name)
    logger.info("  Bounds: %.1f x %.1f", 2 * params.bounds_half_extent[0],
                2 * params.bounds_half_extent[1])
    logger.info("  Frames: %d x %d substeps", args.frames, args.substeps)

    frame_times = []
    for frame in range(args.frames):
        t0 = time.perf_counter()
        simulation.run_frame(params, args.frame_time, iterations_per_frame=args.substeps)
        frame_times.append(time.perf_counter() - t0)

        if (frame + 1) % 20 == 0:
            avg_time = np.mean(frame_times[-20:])
            logger.info("  Frame %d/%d: %.1f ms/frame (%.1f FPS)",
                        frame + 1, args.frames, avg_time * 1000, 1.0 / avg_time)

    state = simulation.snapshot()
    logger.info("Simulation complete!")
    logger.info("Average: %.1f ms/frame", np.mean(frame_times) * 1000)
    logger.info("Density: mean %.2f, min %.2f, max %.2f (target %.2f)",
                float(np.mean(state['density'])), float(np.min(state['density'])),
                float(np.max(state['density'])), params.target_density)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Closed-loop highway simulation.

Stands in for the driving simulator: the ego follows every emitted trajectory
exactly, consuming a fixed number of points between planning cycles, while
traffic vehicles drive along their lanes at constant speed. Each cycle the
runner builds the telemetry record the simulator would send, in simulator
units, and hands it to the HighwayPathPlanner.
"""

import csv
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger
from tabulate import tabulate

from ..config import PlannerConfig
from ..core.coordinate_converter import rad2deg
from ..core.data_structures import Trajectory
from ..core.metrics import summarize_run
from ..core.telemetry import MPH_TO_MPS
from ..core.track import Track, load_track_csv, make_ring_track
from ..core.traffic import signed_gap
from .path_planner import HighwayPathPlanner

# Lateral distance under which two vehicles share a lane for gap metrics
SAME_LANE_DISTANCE = 2.0


@dataclass
class TrafficVehicle:
    """Traffic vehicle keeping its lane at constant speed (Frenet frame)."""
    id: int
    s: float
    d: float
    speed: float


@dataclass
class RunRecord:
    """Per-cycle record of a closed-loop run."""
    cycle: int
    time: float
    x: float
    y: float
    s: float
    d: float
    speed: float
    lane: int
    target_speed: float
    maneuver: str
    min_gap: float


def build_track(config: PlannerConfig) -> Track:
    """Track from the configured map file, or a synthetic ring without one."""
    if config.track_path is not None:
        return load_track_csv(config.track_path, max_s=config.max_s)
    return make_ring_track(radius=config.ring_radius, n_waypoints=config.ring_waypoints)


class HighwayRunner:
    """Run the planner against simulated ego and traffic motion.

    Args:
        track: Waypoint map
        config: Planner and runner configuration
        traffic: Traffic vehicles; built from ``config.traffic`` when omitted
    """

    def __init__(
        self,
        track: Track,
        config: PlannerConfig,
        traffic: Optional[Sequence[TrafficVehicle]] = None
    ):
        self.config = config
        self.planner = HighwayPathPlanner(track, config)
        self.converter = self.planner.converter

        if traffic is None:
            traffic = [
                TrafficVehicle(id=int(v['id']), s=float(v['s']), d=float(v['d']), speed=float(v['speed']))
                for v in config.traffic
            ]
        self.traffic: List[TrafficVehicle] = list(traffic)

        # Ego state, kept in SI
        self.ego_s = config.ego_initial_s % self.converter.max_s
        self.ego_d = self.planner.lane_model.lane_center(config.starting_lane)
        self.ego_x, self.ego_y = self.converter.to_cartesian(self.ego_s, self.ego_d)
        self.ego_yaw = self.converter.heading_at(self.ego_s)
        self.ego_speed = config.ego_initial_speed

        self.remaining = np.empty((0, 2))
        self.driven: List[tuple] = [(self.ego_x, self.ego_y)]
        self.time = 0.0
        self.records: List[RunRecord] = []

        logger.info(
            f"Highway runner initialized: ego s={self.ego_s:.1f} d={self.ego_d:.1f}, "
            f"{len(self.traffic)} traffic vehicles"
        )

    def build_telemetry(self) -> Dict[str, Any]:
        """Telemetry record of the current state, in simulator units."""
        if len(self.remaining) > 0:
            end_x, end_y = self.remaining[-1]
            if len(self.remaining) >= 2:
                prev_x, prev_y = self.remaining[-2]
                end_yaw = math.atan2(end_y - prev_y, end_x - prev_x)
            else:
                end_yaw = self.ego_yaw
            end_s, end_d = self.converter.to_frenet(end_x, end_y, end_yaw)
        else:
            end_s, end_d = 0.0, 0.0

        sensor_fusion = []
        for vehicle in self.traffic:
            x, y = self.converter.to_cartesian(vehicle.s, vehicle.d)
            heading = self.converter.heading_at(vehicle.s)
            sensor_fusion.append([
                vehicle.id, x, y,
                vehicle.speed * math.cos(heading),
                vehicle.speed * math.sin(heading),
                vehicle.s, vehicle.d,
            ])

        return {
            'x': self.ego_x,
            'y': self.ego_y,
            'yaw': rad2deg(self.ego_yaw),
            'speed': self.ego_speed / MPH_TO_MPS,
            's': self.ego_s,
            'd': self.ego_d,
            'previous_path_x': self.remaining[:, 0].tolist(),
            'previous_path_y': self.remaining[:, 1].tolist(),
            'end_path_s': end_s,
            'end_path_d': end_d,
            'sensor_fusion': sensor_fusion,
        }

    def step(self) -> Optional[Trajectory]:
        """Plan once, then advance ego and traffic by ``points_per_cycle`` points.

        Returns:
            The trajectory of this cycle, None if the planner rejected it
        """
        dt = self.config.dt
        cycle = len(self.records)

        trajectory = self.planner.plan(self.build_telemetry())
        if trajectory is not None:
            path = trajectory.to_array()
        else:
            # The vehicle keeps following what is left of the last path
            path = self.remaining

        n = min(self.config.points_per_cycle, len(path))
        if n == 0:
            raise RuntimeError(f"No path left to follow at cycle {cycle}")

        for x, y in path[:n]:
            prev_x, prev_y = self.driven[-1]
            step = math.hypot(x - prev_x, y - prev_y)
            if step > 1e-9:
                self.ego_yaw = math.atan2(y - prev_y, x - prev_x)
            self.ego_speed = step / dt
            self.driven.append((float(x), float(y)))

        self.ego_x, self.ego_y = self.driven[-1]
        self.ego_s, self.ego_d = self.converter.to_frenet(self.ego_x, self.ego_y, self.ego_yaw)
        self.remaining = np.asarray(path[n:], dtype=float).reshape(-1, 2)

        elapsed = n * dt
        self.time += elapsed
        max_s = self.converter.max_s
        for vehicle in self.traffic:
            vehicle.s = (vehicle.s + vehicle.speed * elapsed) % max_s

        context = self.planner.context
        self.records.append(RunRecord(
            cycle=cycle,
            time=self.time,
            x=self.ego_x,
            y=self.ego_y,
            s=self.ego_s,
            d=self.ego_d,
            speed=self.ego_speed,
            lane=context.lane if context is not None else self.config.starting_lane,
            target_speed=context.target_speed if context is not None else 0.0,
            maneuver=context.maneuver.name if context is not None else 'KEEP_LANE',
            min_gap=self._min_gap(),
        ))
        return trajectory

    def _min_gap(self) -> float:
        """Smallest longitudinal distance to a vehicle sharing the ego lane."""
        gaps = [
            abs(signed_gap(self.ego_s, v.s, self.converter.max_s))
            for v in self.traffic
            if abs(v.d - self.ego_d) < SAME_LANE_DISTANCE
        ]
        return min(gaps) if gaps else float('inf')

    def run(self, n_cycles: Optional[int] = None) -> List[RunRecord]:
        """Run several planning cycles.

        Args:
            n_cycles: Number of cycles (default: config.total_cycles)

        Returns:
            Per-cycle records
        """
        if n_cycles is None:
            n_cycles = self.config.total_cycles

        logger.info(f"Running {n_cycles} planning cycles ({n_cycles * self.config.points_per_cycle * self.config.dt:.1f}s)")

        for i in range(n_cycles):
            self.step()
            record = self.records[-1]
            if i % 50 == 0:
                logger.info(
                    f"Cycle {i}/{n_cycles}, t={record.time:.2f}s, s={record.s:.1f}, d={record.d:.2f}, "
                    f"v={record.speed:.2f}m/s, lane={record.lane}, {record.maneuver}"
                )

        logger.info(
            f"Run complete: {len(self.records)} cycles, "
            f"{self.planner.rejected_cycles} rejected"
        )
        return self.records

    def metrics(self) -> Dict[str, Any]:
        """Aggregate metrics of the run so far."""
        metrics: Dict[str, Any] = summarize_run(
            np.array(self.driven),
            self.config.dt,
            [r.lane for r in self.records],
            [r.min_gap for r in self.records],
            self.config.max_speed,
        )
        metrics['cycles'] = len(self.records)
        metrics['rejected_cycles'] = self.planner.rejected_cycles
        return metrics

    def save_results(self, output_path: Optional[str] = None) -> Dict[str, Any]:
        """Save the run to ``output_path``.

        Writes ``trajectory.npz`` (per-cycle records and the driven path),
        ``metrics_summary.csv`` and ``metrics_report.txt``.

        Args:
            output_path: Output directory (default: config.output_path)

        Returns:
            The metrics that were saved
        """
        if output_path is None:
            output_path = self.config.output_path

        output_dir = Path(output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        np.savez(
            output_dir / "trajectory.npz",
            times=np.array([r.time for r in self.records]),
            ego_x=np.array([r.x for r in self.records]),
            ego_y=np.array([r.y for r in self.records]),
            ego_s=np.array([r.s for r in self.records]),
            ego_d=np.array([r.d for r in self.records]),
            ego_v=np.array([r.speed for r in self.records]),
            lane=np.array([r.lane for r in self.records]),
            target_speed=np.array([r.target_speed for r in self.records]),
            maneuver=np.array([r.maneuver for r in self.records]),
            min_gap=np.array([r.min_gap for r in self.records]),
            driven=np.array(self.driven),
        )

        metrics = self.metrics()
        context = {
            'scenario_file': str(self.config.config_path or 'none'),
            'track': str(self.config.track_path or 'ring'),
            'max_speed': self.config.max_speed,
            'lane_count': self.config.lane_count,
            'traffic_vehicles': len(self.traffic),
            'total_time': self.time,
        }

        csv_path = output_dir / "metrics_summary.csv"
        row = dict(context)
        row.update(metrics)
        with open(csv_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=list(row.keys()))
            writer.writeheader()
            writer.writerow(row)
        logger.info(f"Saved metrics summary to {csv_path}")

        txt_path = output_dir / "metrics_report.txt"
        with open(txt_path, 'w') as f:
            f.write("=" * 40 + "\n")
            f.write("       HIGHWAY RUN REPORT\n")
            f.write("=" * 40 + "\n\n")
            f.write("--- Configuration ---\n")
            f.write(tabulate(list(context.items()), headers=['parameter', 'value'], tablefmt='github'))
            f.write("\n\n--- Metrics ---\n")
            f.write(tabulate(list(metrics.items()), headers=['metric', 'value'], tablefmt='github'))
            f.write("\n")
        logger.info(f"Saved metrics report to {txt_path}")

        return metrics

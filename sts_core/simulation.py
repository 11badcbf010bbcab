# sts_core/simulation.py
# Attraction force step: every enrolled entity is pulled back toward the scene
# center and toward every other enrolled entity, both with inverse-square falloff.

import asyncio
import logging
from typing import Any, Dict, List, Optional

import numpy as np

log = logging.getLogger(__name__)

CENTER_STRENGTH = 0.05
PAIR_STRENGTH = 0.05
MIN_DISTANCE = 1e-3


def _inverse_square(vectors: np.ndarray, min_distance: float) -> np.ndarray:
    """normalize(v) / |v|^2 along the last axis; zero vectors map to zero."""
    dist = np.linalg.norm(vectors, axis=-1, keepdims=True)
    coincident = dist == 0.0
    unit = vectors / np.where(coincident, 1.0, dist)
    magnitude = 1.0 / np.maximum(dist, min_distance) ** 2
    return np.where(coincident, 0.0, unit * magnitude)


def compute_forces(positions, center, center_strength: float = CENTER_STRENGTH,
                   pair_strength: float = PAIR_STRENGTH, min_distance: float = MIN_DISTANCE) -> np.ndarray:
    """
    F_i = -k_c * normalize(p_i - c) / |p_i - c|^2
          + sum_j k_p * normalize(p_j - p_i) / |p_j - p_i|^2

    positions: (n, 3) world positions of the enrolled entities only.
    Distances below `min_distance` are clamped; exactly coincident points
    contribute nothing. Returns an (n, 3) array in the same order.
    """
    p = np.asarray(positions, dtype=float).reshape(-1, 3)
    if len(p) == 0:
        return np.zeros((0, 3))
    c = np.asarray(center, dtype=float).reshape(3)

    forces = -center_strength * _inverse_square(p - c, min_distance)

    # diff[i, j] = p_j - p_i; the diagonal is all zeros and drops out
    diff = p[np.newaxis, :, :] - p[:, np.newaxis, :]
    forces += pair_strength * _inverse_square(diff, min_distance).sum(axis=1)
    return forces


class SimulationLoop:
    """
    Fixed-tick driver for compute_forces. Each tick snapshots the enrolled
    entities under the scene lock, hands the forces to the renderer and, when
    running headless, integrates them (semi-implicit Euler, a = F / m).
    """

    def __init__(self, scene, center=None, center_strength: float = CENTER_STRENGTH,
                 pair_strength: float = PAIR_STRENGTH, min_distance: float = MIN_DISTANCE,
                 tick_hz: float = 60.0, integrate: bool = True, damping: float = 0.1,
                 max_speed: float = 2.0):
        self.scene = scene
        self.center = np.asarray(scene.anchor if center is None else center, dtype=float)
        self.center_strength = center_strength
        self.pair_strength = pair_strength
        self.min_distance = min_distance
        self.dt = 1.0 / float(tick_hz)
        self.integrate = integrate
        self.damping = damping
        self.max_speed = max_speed
        self.ticks = 0

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], scene) -> "SimulationLoop":
        block = cfg.get("simulation", {}) or {}
        return cls(
            scene,
            center_strength=float(block.get("center_strength", CENTER_STRENGTH)),
            pair_strength=float(block.get("pair_strength", PAIR_STRENGTH)),
            min_distance=float(block.get("min_distance", MIN_DISTANCE)),
            tick_hz=float(block.get("tick_hz", 60.0)),
            integrate=bool(block.get("integrate", True)),
            damping=float(block.get("damping", 0.1)),
            max_speed=float(block.get("max_speed", 2.0)),
        )

    def step(self, dt: Optional[float] = None) -> Dict[str, List[float]]:
        """One tick. Returns {entity_id: force}; empty while the simulation is off."""
        dt = self.dt if dt is None else dt
        with self.scene.lock:
            if not self.scene.simulation_on:
                return {}
            enrolled = self.scene.simulated()
            if not enrolled:
                return {}
            positions = np.stack([e.position for e in enrolled])
            forces = compute_forces(positions, self.center, self.center_strength,
                                    self.pair_strength, self.min_distance)
            if self.integrate:
                self._integrate(enrolled, forces, dt)
            out = {e.id: f.tolist() for e, f in zip(enrolled, forces)}
        self.ticks += 1
        self.scene.renderer.forces_applied(out)
        return out

    def _integrate(self, enrolled, forces: np.ndarray, dt: float) -> None:
        for e, f in zip(enrolled, forces):
            mass = e.mass if e.mass > 0 else 1.0
            v = (e.velocity + f / mass * dt) * max(0.0, 1.0 - self.damping * dt)
            speed = float(np.linalg.norm(v))
            if speed > self.max_speed:
                v = v * (self.max_speed / speed)
            e.velocity = v
            e.position = e.position + v * dt

    async def run(self, stop: asyncio.Event) -> None:
        log.info("[Simulation] running at %.0f Hz", 1.0 / self.dt)
        while not stop.is_set():
            self.step()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.dt)
            except asyncio.TimeoutError:
                pass
        log.info("[Simulation] stopped after %d ticks", self.ticks)

# sts_core/scene.py
# Scene model: entities, the active entity, the simulation flag and the renderer seam.

import itertools
import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import numpy as np

log = logging.getLogger(__name__)

AXIS_INDEX = {"x": 0, "y": 1, "z": 2}

DEFAULT_ANCHOR = (0.0, 1.0, -1.5)
DEFAULT_SPAWN_MIN = (-0.5, -0.5, -0.5)
DEFAULT_SPAWN_MAX = (0.5, 0.5, 0.3)


def shape_volume(shape: str, size: float) -> float:
    """Volume used as the entity's mass; `size` is the edge / height, radius is size/2."""
    r = size / 2.0
    if shape == "box":
        return size ** 3
    if shape == "sphere":
        return 4.0 / 3.0 * math.pi * r ** 3
    if shape == "cone":
        return math.pi * r * r * size / 3.0
    if shape == "cylinder":
        return math.pi * r * r * size
    return 0.0


def axis_rotation(axis: str, radians: float) -> np.ndarray:
    """Right-handed rotation matrix about a principal axis."""
    c, s = math.cos(radians), math.sin(radians)
    if axis == "x":
        m = [[1, 0, 0], [0, c, -s], [0, s, c]]
    elif axis == "y":
        m = [[c, 0, s], [0, 1, 0], [-s, 0, c]]
    elif axis == "z":
        m = [[c, -s, 0], [s, c, 0], [0, 0, 1]]
    else:
        raise ValueError(f"unknown axis {axis!r}")
    return np.array(m, dtype=float)


@dataclass
class Entity:
    id: str
    shape: str
    size: float
    color: str
    metallic: bool
    roughness: float
    position: np.ndarray
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    orientation: np.ndarray = field(default_factory=lambda: np.eye(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    simulated: bool = False

    @property
    def mass(self) -> float:
        # fixed at creation; scaling does not change it
        return shape_volume(self.shape, self.size)

    @property
    def label(self) -> str:
        return f"{self.color} {self.shape}"

    def descriptor(self) -> Dict[str, Any]:
        """Everything a renderer needs to build the object."""
        return {
            "id": self.id,
            "shape": self.shape,
            "size": self.size,
            "color": self.color,
            "metallic": self.metallic,
            "roughness": self.roughness,
            "position": self.position.tolist(),
            "scale": self.scale.tolist(),
            "orientation": self.orientation.tolist(),
            "mass": self.mass,
            "simulated": self.simulated,
        }


class SceneRenderer(Protocol):
    def entity_created(self, descriptor: Dict[str, Any]) -> None: ...
    def entity_updated(self, delta: Dict[str, Any]) -> None: ...
    def forces_applied(self, forces: Dict[str, List[float]]) -> None: ...


class LoggingRenderer:
    """Headless renderer: writes scene changes to the log."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger("sts_core.render")

    def entity_created(self, descriptor):
        p = descriptor["position"]
        self.log.info("[Render] + %s %s %s at (%.2f, %.2f, %.2f)", descriptor["id"], descriptor["color"],
                      descriptor["shape"], p[0], p[1], p[2])

    def entity_updated(self, delta):
        self.log.info("[Render] ~ %s %s", delta.get("id"), {k: v for k, v in delta.items() if k != "id"})

    def forces_applied(self, forces):
        self.log.debug("[Render] forces on %d entities", len(forces))


class RecordingRenderer:
    """Keeps every notification; used by tests and the live bridge."""

    def __init__(self):
        self.created: List[Dict[str, Any]] = []
        self.updated: List[Dict[str, Any]] = []
        self.forces: List[Dict[str, List[float]]] = []

    def entity_created(self, descriptor):
        self.created.append(descriptor)

    def entity_updated(self, delta):
        self.updated.append(delta)

    def forces_applied(self, forces):
        self.forces.append(forces)


class Scene:
    """
    Entities live in creation order. Every mutation happens under `lock`, so a
    simulation tick on another thread sees whole commands only.
    """

    def __init__(self, renderer: Optional[SceneRenderer] = None, anchor=DEFAULT_ANCHOR,
                 spawn_min=DEFAULT_SPAWN_MIN, spawn_max=DEFAULT_SPAWN_MAX, seed: Optional[int] = None):
        self.renderer = renderer or LoggingRenderer()
        self.anchor = np.asarray(anchor, dtype=float)
        self.spawn_min = np.asarray(spawn_min, dtype=float)
        self.spawn_max = np.asarray(spawn_max, dtype=float)
        self.rng = np.random.default_rng(seed)
        self.lock = threading.RLock()
        self.entities: List[Entity] = []
        self.active_id: Optional[str] = None
        self.simulation_on = False
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], renderer: Optional[SceneRenderer] = None) -> "Scene":
        block = cfg.get("scene", {}) or {}
        return cls(
            renderer=renderer,
            anchor=block.get("anchor", DEFAULT_ANCHOR),
            spawn_min=block.get("spawn_min", DEFAULT_SPAWN_MIN),
            spawn_max=block.get("spawn_max", DEFAULT_SPAWN_MAX),
            seed=block.get("seed"),
        )

    # ---------------- queries ----------------

    @property
    def active(self) -> Optional[Entity]:
        if self.active_id is None:
            return None
        return self.get(self.active_id)

    def get(self, entity_id: str) -> Optional[Entity]:
        for e in self.entities:
            if e.id == entity_id:
                return e
        return None

    def simulated(self) -> List[Entity]:
        return [e for e in self.entities if e.simulated]

    def spawn_position(self) -> np.ndarray:
        return self.anchor + self.rng.uniform(self.spawn_min, self.spawn_max)

    # ---------------- mutations (callers hold `lock`) ----------------

    def add_entity(self, shape: str, size: float, color: str, metallic: bool, roughness: float) -> Entity:
        entity = Entity(
            id=f"entity-{next(self._ids)}",
            shape=shape,
            size=size,
            color=color,
            metallic=metallic,
            roughness=roughness,
            position=self.spawn_position(),
            simulated=self.simulation_on,
        )
        self.entities.append(entity)
        self.active_id = entity.id
        self.renderer.entity_created(entity.descriptor())
        return entity

    def set_material(self, entity: Entity, color: Optional[str] = None, roughness: Optional[float] = None,
                     metallic: Optional[bool] = None) -> None:
        if color is not None:
            entity.color = color
        if roughness is not None:
            entity.roughness = roughness
        if metallic is not None:
            entity.metallic = metallic
        self.renderer.entity_updated({"id": entity.id, "color": entity.color,
                                      "roughness": entity.roughness, "metallic": entity.metallic})

    def scale_entity(self, entity: Entity, factor: float) -> None:
        entity.scale = entity.scale * factor
        self.renderer.entity_updated({"id": entity.id, "scale": entity.scale.tolist()})

    def move_entity(self, entity: Entity, axis: str, signed_distance: float) -> None:
        # offset expressed in the entity's own frame
        local = np.zeros(3)
        local[AXIS_INDEX[axis]] = signed_distance
        entity.position = entity.position + entity.orientation @ local
        self.renderer.entity_updated({"id": entity.id, "position": entity.position.tolist()})

    def rotate_entity(self, entity: Entity, axis: str, degrees: float) -> None:
        entity.orientation = entity.orientation @ axis_rotation(axis, math.radians(degrees))
        self.renderer.entity_updated({"id": entity.id, "orientation": entity.orientation.tolist()})

    def set_simulation(self, on: bool) -> bool:
        """Flip the global flag; returns False (and touches nothing) when already in that state."""
        if on == self.simulation_on:
            return False
        self.simulation_on = on
        for e in self.entities:
            e.simulated = on
            if not on:
                e.velocity = np.zeros(3)
            self.renderer.entity_updated({"id": e.id, "simulated": on})
        return True

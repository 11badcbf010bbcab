import asyncio

import numpy as np
import pytest

from sts_core.scene import RecordingRenderer, Scene, shape_volume
from sts_core.simulation import CENTER_STRENGTH, PAIR_STRENGTH, SimulationLoop, compute_forces

ORIGIN = np.zeros(3)


def test_single_entity_is_pulled_to_the_center():
    f = compute_forces([[2.0, 0.0, 0.0]], ORIGIN)
    assert np.allclose(f, [[-CENTER_STRENGTH / 4.0, 0.0, 0.0]])


def test_entity_at_the_center_feels_nothing():
    assert np.allclose(compute_forces([[1.0, 1.0, 1.0]], [1.0, 1.0, 1.0]), 0.0)


def test_pair_forces_are_equal_and_opposite():
    p = [[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]]
    f = compute_forces(p, ORIGIN, center_strength=0.0)
    assert np.allclose(f[0], [-PAIR_STRENGTH / 4.0, 0.0, 0.0])
    assert np.allclose(f[0], -f[1])


def test_center_and_pair_terms_add_up():
    p = [[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]]
    f = compute_forces(p, ORIGIN)
    assert f[0][0] == pytest.approx(-(CENTER_STRENGTH + PAIR_STRENGTH / 4.0))


def test_coincident_entities_do_not_attract_each_other():
    p = [[1.0, 0.0, 0.0], [1.0, 0.0, 0.0]]
    f = compute_forces(p, ORIGIN)
    assert np.all(np.isfinite(f))
    assert np.allclose(f, [[-CENTER_STRENGTH, 0.0, 0.0]] * 2)


def test_close_pairs_are_clamped_to_min_distance():
    p = [[0.0, 0.0, 0.0], [1e-6, 0.0, 0.0]]
    f = compute_forces(p, [0.0, 5.0, 0.0], center_strength=0.0, min_distance=1e-3)
    assert np.all(np.isfinite(f))
    assert f[0][0] == pytest.approx(PAIR_STRENGTH / 1e-6)


def test_no_entities():
    assert compute_forces([], ORIGIN).shape == (0, 3)


# ---------------- loop over a scene ----------------

def _scene(renderer, *offsets):
    scene = Scene(renderer=renderer, seed=1)
    for off in offsets:
        e = scene.add_entity("box", 0.12, "red", False, 0.5)
        e.position = scene.anchor + np.asarray(off, dtype=float)
    return scene


def test_step_is_a_no_op_while_off():
    renderer = RecordingRenderer()
    scene = _scene(renderer, [0.5, 0, 0])
    loop = SimulationLoop(scene)
    assert loop.step() == {}
    assert renderer.forces == []
    assert loop.ticks == 0


def test_step_only_touches_enrolled_entities():
    renderer = RecordingRenderer()
    scene = _scene(renderer, [0.5, 0, 0], [-0.5, 0, 0], [0, 0.5, 0])
    scene.set_simulation(True)
    outsider = scene.entities[2]
    outsider.simulated = False
    before = outsider.position.copy()

    forces = SimulationLoop(scene).step()
    assert set(forces) == {scene.entities[0].id, scene.entities[1].id}
    assert renderer.forces[-1] == forces
    assert np.allclose(outsider.position, before)


def test_integration_moves_toward_the_center():
    scene = _scene(RecordingRenderer(), [0.5, 0, 0])
    scene.set_simulation(True)
    loop = SimulationLoop(scene)
    for _ in range(5):
        loop.step()
    e = scene.entities[0]
    assert e.position[0] < scene.anchor[0] + 0.5
    assert np.linalg.norm(e.velocity) <= loop.max_speed + 1e-9
    assert loop.ticks == 5


def test_mass_is_fixed_at_creation():
    scene = _scene(RecordingRenderer(), [0, 0, 0])
    e = scene.entities[0]
    assert e.mass == pytest.approx(shape_volume("box", 0.12))
    scene.scale_entity(e, 3.0)
    assert e.mass == pytest.approx(0.12 ** 3)


def test_run_ticks_until_stopped():
    scene = _scene(RecordingRenderer(), [0.2, 0, 0])
    scene.set_simulation(True)
    loop = SimulationLoop(scene, tick_hz=200.0)

    async def go():
        stop = asyncio.Event()
        task = asyncio.create_task(loop.run(stop))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(go())
    assert loop.ticks > 0

from pathlib import Path

import numpy as np
import pytest

from impact2d.core import Domain, FieldRegistry
from impact2d.numerics.adaptivity import AdaptResult
from impact2d.physics import circle, fraction_from_levelset
from impact2d.simulations import (
    AdaptivityConfig,
    DomainConfig,
    DropletConfig,
    OutputConfig,
    SimulationConfig,
    TimeConfig,
    ViewConfig,
)


class FixedStepSolver:
    """一定の時間刻み幅で時刻だけを進めるソルバー"""

    def __init__(self, dt: float = 7e-5):
        self.dt = dt
        self.calls = []
        self.liquid = None
        self.gas = None
        self.sigma = None

    def set_fluid_properties(self, liquid, gas):
        self.liquid = liquid
        self.gas = gas

    def set_surface_tension(self, sigma):
        self.sigma = sigma

    def advance_one_step(self, clock, dt_max):
        dt = min(self.dt, dt_max)
        self.calls.append(dt_max)
        clock.advance(dt)
        return dt


class StaticEngine:
    """格子を変更しない適応格子エンジン"""

    def __init__(self):
        self.adapt_calls = 0
        self.refine_calls = 0

    def refine_where(self, predicate, max_level):
        self.refine_calls += 1
        return 0

    def adapt(self, names, tolerances, max_level):
        self.adapt_calls += 1
        return AdaptResult(refined=0, coarsened=0, cells=0)


class RecordingRenderer:
    """描画命令を記録し、save で小さなファイルを書き出す描画器"""

    def __init__(self):
        self.calls = []
        self.saved = []

    def set_view(self, **params):
        self.calls.append(("set_view", params))

    def clear(self):
        self.calls.append(("clear",))

    def draw_vof(self, name):
        self.calls.append(("draw_vof", name))

    def squares(self, name, linear=True, spread=10.0):
        self.calls.append(("squares", name, linear, spread))

    def box(self):
        self.calls.append(("box",))

    def save(self, path):
        Path(path).write_bytes(b"frame")
        self.saved.append(path)


@pytest.fixture
def fixed_solver():
    return FixedStepSolver()


@pytest.fixture
def static_engine():
    return StaticEngine()


@pytest.fixture
def recording_renderer():
    return RecordingRenderer()


@pytest.fixture
def small_config(tmp_path):
    """小さな領域での設定（最大レベルのセル幅 1.25e-4, 液滴直径の8分の1）"""
    return SimulationConfig(
        domain=DomainConfig(box_length=4e-3, base_resolution=8, max_level=5),
        droplet=DropletConfig(diameter=1e-3, start_height=2e-3, impact_velocity=1.0),
        adaptivity=AdaptivityConfig(),
        time=TimeConfig(end_time=3e-4, cfl=0.5),
        output=OutputConfig(
            root_dir=str(tmp_path / "runs"),
            frame_interval=1e-4,
            view=ViewConfig(tx=0.0, ty=-0.5, width=120, height=120),
        ),
    )


@pytest.fixture
def uniform_fields():
    """一様格子 (32x32) 上の f, u, p"""
    domain = Domain.configure(4e-3, 32)
    fields = FieldRegistry(domain.create_mesh())
    fields.declare_field("f", prolongation="fraction")
    fields.declare_field("u", rank=1)
    fields.declare_field("p")
    return domain, fields


def droplet_fraction(fields, center_y=2e-3, radius=0.5e-3):
    """円形の液滴の体積分率を設定して返す"""
    mesh = fields.mesh
    x, y = mesh.centers()
    fraction = fraction_from_levelset(circle(0.0, center_y, radius), x, y, mesh.cell_size())
    fields.set_values("f", fraction)
    return np.asarray(fraction)


@pytest.fixture
def make_droplet():
    return droplet_fraction

import numpy as np
import pytest

from impact2d.simulations import Renderer
from impact2d.visualization import FrameRenderer


@pytest.fixture
def renderer(uniform_fields, make_droplet):
    domain, fields = uniform_fields
    fraction = make_droplet(fields)
    fields.set_values("u.y", -fraction)
    return FrameRenderer(fields, domain, dpi=50)


def test_satisfies_renderer_protocol(renderer):
    assert isinstance(renderer, Renderer)


def test_window_follows_view(renderer):
    renderer.set_view(tx=0.0, ty=-0.5, width=100, height=100)
    (xmin, xmax), (ymin, ymax) = renderer.window
    assert (xmin, xmax) == pytest.approx((-2e-3, 2e-3))
    assert (ymin, ymax) == pytest.approx((0.0, 4e-3))

    renderer.set_view(tx=0.25, ty=0.0)
    (xmin, xmax), _ = renderer.window
    assert (xmin, xmax) == pytest.approx((-3e-3, 1e-3))


def test_rejects_empty_image(renderer):
    with pytest.raises(ValueError):
        renderer.set_view(width=0, height=100)


def test_writes_png(renderer, tmp_path):
    renderer.set_view(tx=0.0, ty=-0.5, width=100, height=80)
    renderer.clear()
    renderer.draw_vof("f")
    renderer.squares("u.y", linear=False, spread=-1)
    renderer.box()
    path = tmp_path / "frame.png"

    renderer.save(str(path))

    header = path.read_bytes()[:24]
    assert header.startswith(b"\x89PNG")
    width = int.from_bytes(header[16:20], "big")
    height = int.from_bytes(header[20:24], "big")
    assert (width, height) == (100, 80)


def test_uniform_field_is_drawn(uniform_fields, tmp_path):
    domain, fields = uniform_fields
    renderer = FrameRenderer(fields, domain, dpi=50)
    renderer.set_view(width=60, height=60)
    renderer.clear()
    renderer.draw_vof("f")
    renderer.squares("u.y")
    renderer.save(str(tmp_path / "empty.png"))

    assert (tmp_path / "empty.png").stat().st_size > 0


def test_colour_range(renderer):
    vmin, vmax = renderer._color_range("u.y", spread=-1)
    assert (vmin, vmax) == (-1.0, 0.0)

    mean = renderer.fields.statistics("u.y")["mean"]
    vmin, vmax = renderer._color_range("u.y", spread=2.0)
    assert vmin < mean < vmax
    assert vmax - mean == pytest.approx(mean - vmin)


def test_save_without_clear_creates_figure(renderer, tmp_path):
    renderer.set_view(width=40, height=40)
    renderer.save(str(tmp_path / "blank.png"))
    assert (tmp_path / "blank.png").exists()
    assert np.isfinite(renderer.fields.values("f")).all()

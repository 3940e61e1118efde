import pytest
import yaml

from impact2d.main import load_config, main, parse_args


def write_config(path, root_dir, log_dir, **logging_overrides):
    config = {
        "domain": {"box_length": 4.0e-3, "base_resolution": 8, "max_level": 5},
        "droplet": {"diameter": 1.0e-3, "start_height": 2.0e-3},
        "time": {"end_time": 2.0e-4},
        "output": {
            "root_dir": str(root_dir),
            "frame_interval": 1.0e-4,
            "view": {"width": 80, "height": 80},
        },
        "logging": {
            "level": "info",
            "log_dir": str(log_dir),
            "console": {"enabled": False},
            **logging_overrides,
        },
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)
    return path


def test_parse_args():
    args = parse_args(["--config", "run.yaml", "--output-root", "out", "--debug"])
    assert args.config == "run.yaml"
    assert args.output_root == "out"
    assert args.debug


def test_load_config_defaults_with_output_root(tmp_path):
    config = load_config(parse_args(["--output-root", str(tmp_path)]))
    assert config.output.root_dir == str(tmp_path)
    assert config.domain.box_length == 30e-3


def test_main_runs_simulation(tmp_path, capsys):
    path = write_config(tmp_path / "run.yaml", tmp_path / "runs", tmp_path / "logs")

    assert main(["--config", str(path)]) == 0

    run_dir = tmp_path / "runs" / "v=1__D=0.001"
    lines = (run_dir / "log.log").read_text().splitlines()
    assert lines[0] == "0 0"
    assert lines[-1] == "Re:1120, We:14"
    assert len(list(run_dir.glob("*_t=*.png"))) == 3
    assert (tmp_path / "logs" / "simulation.log").exists()
    assert capsys.readouterr().out.count("Re: 1120, We:14") == 2


def test_output_root_overrides_file(tmp_path):
    path = write_config(tmp_path / "run.yaml", tmp_path / "runs", tmp_path / "logs")

    assert main(["--config", str(path), "--output-root", str(tmp_path / "other")]) == 0
    assert (tmp_path / "other" / "v=1__D=0.001" / "log.log").exists()


@pytest.mark.parametrize(
    "content",
    [
        "domain:\n  base_resolution: 48\n",
        "droplet:\n  start_height: 0.1e-3\n",
        "output:\n  image_format: tiff\n",
        "domain: [1, 2\n",
    ],
)
def test_invalid_config_returns_error(tmp_path, capsys, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    assert main(["--config", str(path)]) == 1
    assert "設定の読み込みに失敗しました" in capsys.readouterr().err


def test_missing_config_returns_error(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_invalid_logging_returns_error(tmp_path):
    path = write_config(
        tmp_path / "run.yaml", tmp_path / "runs", tmp_path / "logs", level="chatty"
    )
    assert main(["--config", str(path)]) == 1

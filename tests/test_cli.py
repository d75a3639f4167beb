"""
Smoke tests for the command-line entrypoint.
"""

import json

import pytest

from sph_fluid.cli import main
from sph_fluid.config import save_config
from sph_fluid.io import read_snapshot


@pytest.fixture
def config_file(tmp_path, make_constants):
    path = tmp_path / "config.json"
    save_config(make_constants(
        smoothing_radius=0.5, particle_mass=20.0, num_particles=12, random_seed=5,
        x_min=0.0, x_max=1.0, y_min=0.0, y_max=1.0, z_min=0.0, z_max=1.0,
    ), path)
    return path


class TestCLI:

    def test_run_writes_snapshots(self, tmp_path, config_file):
        out = tmp_path / "out"
        code = main([str(config_file), "--steps", "4", "--dt", "0.01",
                     "--snapshot-every", "2", "-o", str(out), "--quiet"])

        assert code == 0
        names = sorted(p.name for p in out.glob("snapshot_*.h5"))
        assert names == ["snapshot_0000.h5", "snapshot_0001.h5", "snapshot_0002.h5"]

        last = read_snapshot(str(out / "snapshot_0002.h5"))
        assert last['n_particles'] == 12
        assert last['time'] == pytest.approx(0.04)

    @pytest.mark.parametrize("mode", ["physics", "full"])
    def test_mode_override(self, tmp_path, config_file, mode):
        out = tmp_path / "out"
        code = main([str(config_file), "--steps", "2", "--snapshot-every", "2",
                     "-o", str(out), "--mode", mode, "--quiet"])
        assert code == 0
        assert read_snapshot(str(out / "snapshot_0001.h5"))['metadata']['cuda_mode'] == mode

    def test_snapshots_disabled(self, tmp_path, config_file):
        out = tmp_path / "out"
        assert main([str(config_file), "--steps", "2", "--snapshot-every", "0",
                     "-o", str(out), "--quiet"]) == 0
        assert not out.exists()

    def test_verbose_output(self, tmp_path, config_file, capsys):
        assert main([str(config_file), "--steps", "1", "--snapshot-every", "0",
                     "-o", str(tmp_path / "out")]) == 0
        out = capsys.readouterr().out
        assert "smoothing_radius: 0.5" in out
        assert "Simulation complete!" in out

    def test_visualize(self, tmp_path, config_file):
        out = tmp_path / "out"
        assert main([str(config_file), "--steps", "1", "--snapshot-every", "0",
                     "-o", str(out), "--visualize", "--quiet"]) == 0
        assert (out / "final_state.png").exists()

    def test_bad_config_exit_code(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"particles-constants": {"cudaMode": "none"}}))

        assert main([str(path), "--quiet"]) == 2
        assert "Configuration validation failed" in capsys.readouterr().err

    def test_missing_config_exit_code(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.json")]) == 2
        assert "not found" in capsys.readouterr().err

    def test_unreadable_config_exit_code(self, tmp_path, capsys):
        path = tmp_path / "binary.json"
        path.write_bytes(b'\xff\xfe\x00\x01')

        assert main([str(path), "--quiet"]) == 2
        assert "Could not read JSON" in capsys.readouterr().err

    def test_negative_steps(self, config_file, capsys):
        assert main([str(config_file), "--steps", "-1"]) == 2
        assert "--steps" in capsys.readouterr().err

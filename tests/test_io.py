"""
Tests for configuration files, NetCDF/CSV output and the command line.

Run with: pytest tests/test_io.py -v
"""

import os
import tempfile

import numpy as np
import pandas as pd
import pytest

from angin import (
    ConfigManager,
    ConfigurationError,
    DataHandler,
    InitialCondition,
    OutputError,
    WeatherIntegrator,
    WeatherSystem,
)
from angin.cli import SCENARIOS, build_config, main, run_simulation
from angin.io.data_handler import NETCDF_FIELDS, NetCDFWriter
from angin.visualization.animator import Animator


class TestConfigManager:
    """Test configuration parsing and validation."""

    def test_load_config(self):
        """Test loading configuration from file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("# Test config\n")
            f.write("nx_glob = 40\n")
            f.write("nz_glob = 20\n")
            f.write("sim_time = 50.0  # seconds\n")
            f.write("data_spec = density_current\n")
            f.write("save_gif = false\n")
            f.write("hv_beta = 2.5e-2\n")
            f.write("not a setting\n")
            f.flush()

            config = ConfigManager.load(f.name)

        os.unlink(f.name)

        assert config['nx_glob'] == 40
        assert config['nz_glob'] == 20
        assert config['sim_time'] == 50.0
        assert config['data_spec'] == 'density_current'
        assert config['save_gif'] is False
        assert config['hv_beta'] == pytest.approx(0.025)
        assert len(config) == 6

    def test_known_keys_take_default_types(self, tmp_path):
        path = tmp_path / 'typed.txt'
        path.write_text(
            "nx_glob = 40.0\n"
            "sim_time = 50\n"
            "use_gpu = yes\n"
            "data_spec = 3\n"
            "scenario_name = 'Gravity Waves'\n"
            "custom_flag = off\n"
        )
        config = ConfigManager.load(path)

        assert config['nx_glob'] == 40 and isinstance(config['nx_glob'], int)
        assert config['sim_time'] == 50.0 and isinstance(config['sim_time'], float)
        assert config['use_gpu'] is True
        assert config['data_spec'] == 3
        assert InitialCondition.parse(config['data_spec']) is InitialCondition.GRAVITY_WAVES
        assert config['scenario_name'] == 'Gravity Waves'
        assert config['custom_flag'] is False

    @pytest.mark.parametrize("line", [
        "nx_glob = 40.5",
        "nranks = two",
        "save_gif = maybe",
        "cfl = fast",
    ])
    def test_malformed_known_key(self, tmp_path, line):
        path = tmp_path / 'bad.txt'
        path.write_text(f"# header\n{line}\n")
        key = line.split('=')[0].strip()
        with pytest.raises(ConfigurationError, match=f"bad.txt:2: {key}"):
            ConfigManager.load(path)

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager.load('/nonexistent/config.txt')

    def test_save_and_reload(self):
        config = ConfigManager.get_default_config()

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'sub', 'config.txt')
            ConfigManager.save(config, path)
            loaded = ConfigManager.load(path)

        for key, value in config.items():
            if isinstance(value, float):
                assert loaded[key] == pytest.approx(value)
            else:
                assert loaded[key] == value

    def test_default_config_valid(self):
        assert ConfigManager.validate_config(ConfigManager.get_default_config())

    def test_scenarios_valid(self):
        for overrides in SCENARIOS.values():
            assert ConfigManager.validate_config(build_config(overrides))

    @pytest.mark.parametrize("key,value", [
        ('nx_glob', 0),
        ('nz_glob', -5),
        ('nx_glob', 10.5),
        ('sim_time', 0.0),
        ('data_spec', 'tornado'),
        ('hv_beta', 1.5),
        ('cfl', 0.0),
        ('max_speed', -1.0),
        ('max_workers', 0),
        ('nranks', 0),
        ('nranks', 60),
    ])
    def test_invalid_values(self, key, value):
        config = ConfigManager.get_default_config()
        config[key] = value
        with pytest.raises(ConfigurationError):
            ConfigManager.validate_config(config)

    def test_missing_required(self):
        config = ConfigManager.get_default_config()
        del config['sim_time']
        with pytest.raises(ConfigurationError, match="sim_time"):
            ConfigManager.validate_config(config)

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestNetCDFOutput:
    """Test the time-series NetCDF writer."""

    def test_write_and_load(self, small_system):
        integrator = WeatherIntegrator()

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'thermal.nc')
            writer = NetCDFWriter(path, small_system, {'scenario_name': 'Test Thermal'})
            result = integrator.run(small_system, sim_time=7.0, output_freq=3.0,
                                    on_output=writer, verbose=False)

            data = DataHandler.load_netcdf(path)

        n = result['n_outputs']
        assert writer.n_records == n
        assert n >= 2
        assert data['times'].shape == (n,)
        assert data['times'][0] == 0.0
        assert np.all(np.diff(data['times']) > 0)

        np.testing.assert_allclose(data['x'], small_system.x)
        np.testing.assert_allclose(data['z'], small_system.z)
        for name, _, _ in NETCDF_FIELDS:
            assert data[name].shape == (n, 10, 20)

        assert data['scenario_name'] == 'Test Thermal'
        assert data['data_spec'] == 'thermal'
        assert int(data['nx_glob']) == 20
        assert float(data['dt']) == pytest.approx(small_system.dt)

    def test_initial_record_matches_snapshot(self, small_system):
        snap = small_system.snapshot()

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'initial.nc')
            NetCDFWriter(path, small_system).write(snap)
            data = DataHandler.load_netcdf(path)

        np.testing.assert_allclose(data['theta'][0], snap['theta'])
        np.testing.assert_allclose(data['dens'][0], snap['dens'])

    def test_unwritable_path(self, small_system):
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = os.path.join(tmpdir, 'blocker')
            with open(blocker, 'w') as f:
                f.write('x')

            writer = NetCDFWriter(os.path.join(blocker, 'out.nc'), small_system)
            with pytest.raises(OutputError) as excinfo:
                writer.write(small_system.snapshot())

        assert excinfo.value.record == 0
        assert 'out.nc' in str(excinfo.value)
        assert writer.n_records == 0

    def test_load_missing(self):
        with pytest.raises(OutputError):
            DataHandler.load_netcdf('/nonexistent/run.nc')


class TestCSVOutput:
    """Test CSV metric tables."""

    def test_metrics_csv(self):
        history = [
            {'mass': 1.0, 'total_energy': 2.0, 'is_finite': True, 'label': 'skip'},
            {'mass': 1.0, 'total_energy': 1.9, 'is_finite': True, 'label': 'skip'},
        ]

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'metrics.csv')
            DataHandler.save_metrics_csv(path, history, np.array([0.0, 10.0]))
            df = pd.read_csv(path)

        assert list(df['time']) == [0.0, 10.0]
        assert 'mass' in df.columns
        assert 'label' not in df.columns
        assert df['total_energy'].iloc[1] == pytest.approx(1.9)

    def test_final_metrics_csv(self):
        metrics = {'drift_mass_drift': 1e-14, 'stab_is_finite': True, 'nested': {'a': 1}}

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'final.csv')
            DataHandler.save_final_metrics_csv(path, metrics)
            df = pd.read_csv(path)

        assert list(df['Metric']) == ['drift_mass_drift', 'stab_is_finite']
        assert list(df['Type']) == ['float', 'bool']


class TestAnimator:
    """Test figure output."""

    def test_static_plot(self, small_system):
        result = {'x': small_system.x, 'z': small_system.z, 'snapshot': small_system.snapshot()}

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'fields.png')
            Animator(dpi=50).create_static_plot(result, path, "Test")
            assert os.path.getsize(path) > 0

    def test_animation_without_history(self, small_system):
        result = {'x': small_system.x, 'z': small_system.z, 'history': []}

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'empty.gif')
            Animator().create_animation(result, path)
            assert not os.path.exists(path)


class TestCLI:
    """Test the command-line entry point."""

    def test_no_arguments(self):
        with pytest.raises(SystemExit):
            main([])

    def test_missing_config_file(self):
        assert main(['-c', '/nonexistent/config.txt']) == 1

    def test_invalid_config_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'bad.txt')
            with open(path, 'w') as f:
                f.write("nx_glob = 20\nnz_glob = 10\nsim_time = -1.0\n")

            assert main(['-c', path, '-o', tmpdir]) == 1

    def test_run_simulation(self, monkeypatch):
        config = build_config({
            'scenario_name': 'Tiny Thermal',
            'nx_glob': 20,
            'nz_glob': 10,
            'sim_time': 10.0,
            'output_freq': 5.0,
            'nranks': 2,
            'save_gif': False,
        })

        with tempfile.TemporaryDirectory() as tmpdir:
            monkeypatch.chdir(tmpdir)
            result = run_simulation(config, 'tiny', output_dir='out')

            for name in ('tiny.nc', 'tiny_fields.png', 'tiny_metrics.png',
                         'tiny_metrics.csv', 'tiny_final_metrics.csv'):
                assert os.path.exists(os.path.join('out', name))
            assert os.path.exists(os.path.join('logs', 'tiny.log'))
            assert not os.path.exists(os.path.join('out', 'tiny.gif'))

            data = DataHandler.load_netcdf(os.path.join('out', 'tiny.nc'))

        run = result['result']
        assert run['etime'] == 10.0
        assert len(result['history']) == run['n_outputs']
        assert data['times'].shape == (run['n_outputs'],)
        assert abs(run['drift']['mass_drift']) < 1e-10

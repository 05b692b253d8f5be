"""Configuration file parser for stratified atmosphere simulations."""

from pathlib import Path
from typing import Dict, Any, Optional

from ..core.grid import ConfigurationError, Grid, decompose
from ..core.atmosphere import InitialCondition


_TRUE = ('true', 'yes', 'on')
_FALSE = ('false', 'no', 'off')


class ConfigManager:
    """Parse and manage configuration files for atmosphere simulations."""

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load a run configuration.

        File format:
            # Comments
            nx_glob = 200
            data_spec = density_current   # name or 1..5

        Keys known from get_default_config() are converted to the type of
        their default (an integral float is accepted for a cell count);
        unknown keys fall back to a best guess. Lines without '=' are
        ignored.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigurationError: If a known key holds a value of the wrong type
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        defaults = ConfigManager.get_default_config()
        config = {}

        for lineno, raw in enumerate(path.read_text().splitlines(), start=1):
            line = raw.split('#', 1)[0].strip()
            if '=' not in line:
                continue

            key, value = (part.strip() for part in line.split('=', 1))
            try:
                config[key] = ConfigManager._parse_value(value, defaults.get(key))
            except ValueError as e:
                raise ConfigurationError(f"{path.name}:{lineno}: {key}: {e}") from None

        return config

    @staticmethod
    def _parse_value(value: str, default: Optional[Any] = None) -> Any:
        """Convert `value` to the type of `default`, or guess when there is none."""
        lowered = value.lower()

        if isinstance(default, bool):
            if lowered in _TRUE or lowered in _FALSE:
                return lowered in _TRUE
            raise ValueError(f"expected true/false, got {value!r}")

        if isinstance(default, int):
            number = float(value)
            if not number.is_integer():
                raise ValueError(f"expected an integer, got {value!r}")
            return int(number)

        if isinstance(default, float):
            return float(value)

        if default is not None:
            # data_spec may be given by number
            return int(value) if value.isdigit() else value.strip('"\'')

        if lowered in _TRUE or lowered in _FALSE:
            return lowered in _TRUE
        for convert in (int, float):
            try:
                return convert(value)
            except ValueError:
                pass
        return value

    @staticmethod
    def save(config: Dict[str, Any], config_path: str):
        """
        Save configuration to file, known keys first in default order.

        Args:
            config: Configuration dictionary
            config_path: Output path
        """
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        known = [key for key in ConfigManager.get_default_config() if key in config]
        extra = sorted(key for key in config if key not in known)

        lines = ["# Angin Stratified Atmosphere Configuration", "# Generated automatically", ""]
        for key in known + extra:
            value = config[key]
            if isinstance(value, bool):
                text = 'true' if value else 'false'
            elif isinstance(value, float):
                # repr keeps floats such as 1000.0 recognisable as floats
                text = repr(value)
            else:
                text = str(value)
            lines.append(f"{key} = {text}")

        path.write_text("\n".join(lines) + "\n")

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        """Get default configuration."""
        return {
            'scenario_name': 'Rising Thermal',
            'nx_glob': 100,
            'nz_glob': 50,
            'xlen': 2.0e4,
            'zlen': 1.0e4,
            'sim_time': 1000.0,
            'output_freq': 10.0,
            'data_spec': 'thermal',
            'nranks': 1,
            'max_workers': 1,
            'hv_beta': 0.05,
            'cfl': 1.5,
            'max_speed': 450.0,
            'use_gpu': False,
            'compute_metrics': True,
            'save_csv': True,
            'save_netcdf': True,
            'save_png': True,
            'save_gif': True,
            'output_dir': 'outputs',
            'animation_fps': 15,
            'animation_dpi': 100,
            'png_dpi': 150,
        }

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Validate configuration parameters.

        Args:
            config: Configuration dictionary

        Returns:
            True if valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        required = ['nx_glob', 'nz_glob', 'sim_time', 'data_spec']

        for key in required:
            if key not in config:
                raise ConfigurationError(f"Missing required parameter: {key}")

        for key in ('nx_glob', 'nz_glob', 'nranks'):
            value = config.get(key, 1)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{key} must be an integer, got {value!r}")

        if config['nx_glob'] <= 0 or config['nz_glob'] <= 0:
            raise ConfigurationError("nx_glob and nz_glob must be > 0")

        if config['sim_time'] <= 0:
            raise ConfigurationError("sim_time must be > 0")

        InitialCondition.parse(config['data_spec'])

        hv_beta = config.get('hv_beta', 0.05)
        if not 0.0 <= hv_beta <= 1.0:
            raise ConfigurationError("hv_beta must be in [0, 1]")

        if config.get('cfl', 1.5) <= 0:
            raise ConfigurationError("cfl must be > 0")

        if config.get('max_speed', 450.0) <= 0:
            raise ConfigurationError("max_speed must be > 0")

        max_workers = config.get('max_workers', 1)
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError("max_workers must be >= 1")

        # Rejects nranks < 1 and partitions narrower than the halo
        grid = Grid(
            nx_glob=config['nx_glob'],
            nz_glob=config['nz_glob'],
            xlen=config.get('xlen', 2.0e4),
            zlen=config.get('zlen', 1.0e4),
        )
        decompose(grid, config.get('nranks', 1))

        return True

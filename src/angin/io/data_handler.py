"""Data handler for saving atmosphere simulation results to CSV and NetCDF."""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List

from .. import __version__


# Output fields: (name, long_name, units)
NETCDF_FIELDS = (
    ('dens', 'density_perturbation', 'kg m-3'),
    ('uwnd', 'eastward_wind', 'm s-1'),
    ('wwnd', 'upward_air_velocity', 'm s-1'),
    ('theta', 'potential_temperature_perturbation', 'K'),
)


class OutputError(IOError):
    """Failure to write simulation output, with the file and record involved."""

    def __init__(self, message: str, path: Optional[str] = None, record: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.record = record

    def __str__(self) -> str:
        return f"{self.message} (file={self.path}, record={self.record})"


class NetCDFWriter:
    """
    Time-series writer for snapshot dictionaries.

    The file is created at the first write (dimensions t (unlimited), z, x)
    and every following snapshot is appended as a new record along t. The
    file is closed between writes, so a partially written run stays
    readable.

    Example:
        >>> writer = NetCDFWriter('outputs/thermal.nc', system, config)
        >>> solver.run(system, sim_time=1000.0, output_freq=10.0, on_output=writer.write)
    """

    def __init__(self, filepath: str, system, config: Optional[Dict[str, Any]] = None):
        self.filepath = Path(filepath)
        self.system = system
        self.config = config or {}
        self.n_records = 0

    def _create(self, nc: Dataset):
        system = self.system
        nc.createDimension('t', None)
        nc.createDimension('x', system.grid.nx_glob)
        nc.createDimension('z', system.grid.nz_glob)

        nc_t = nc.createVariable('t', 'f8', ('t',))
        nc_t.units = "s"
        nc_t.long_name = "elapsed_model_time"
        nc_t.axis = "T"

        nc_x = nc.createVariable('x', 'f8', ('x',))
        nc_x[:] = system.x
        nc_x.units = "m"
        nc_x.long_name = "x_coordinate"
        nc_x.axis = "X"

        nc_z = nc.createVariable('z', 'f8', ('z',))
        nc_z[:] = system.z
        nc_z.units = "m"
        nc_z.long_name = "height"
        nc_z.axis = "Z"

        for name, long_name, units in NETCDF_FIELDS:
            var = nc.createVariable(name, 'f8', ('t', 'z', 'x'), zlib=True)
            var.long_name = long_name
            var.units = units

        # ============ Global Attributes ============
        for key, value in system.params.to_dict().items():
            nc.setncattr(key, value)
        nc.scenario_name = self.config.get('scenario_name', 'Atmosphere Simulation')
        nc.title = "2D Stratified Atmosphere Simulation - angin"
        nc.institution = f"angin v{__version__}"
        nc.source = "JAX-accelerated finite volume solver"
        nc.history = f"Created {datetime.now().isoformat()}"
        nc.Conventions = "CF-1.8"

    def write(self, snapshot: Dict[str, Any]):
        """
        Append one snapshot as the next record.

        Raises:
            OutputError: If the file cannot be created, opened or written
        """
        record = self.n_records
        mode = 'w' if record == 0 else 'a'
        try:
            if record == 0:
                self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with Dataset(self.filepath, mode, format='NETCDF4') as nc:
                if record == 0:
                    self._create(nc)
                nc.variables['t'][record] = snapshot['t']
                for name, _, _ in NETCDF_FIELDS:
                    nc.variables[name][record, :, :] = snapshot[name]
        except (OSError, RuntimeError, KeyError) as e:
            raise OutputError(f"Failed to write NetCDF output: {e}", str(self.filepath), record) from e
        self.n_records += 1

    __call__ = write


class DataHandler:
    """Handle saving atmosphere simulation data to various formats."""

    @staticmethod
    def save_metrics_csv(filepath: str, metrics_history: List[Dict[str, Any]], times: np.ndarray):
        """
        Save time series of metrics to CSV.

        Args:
            filepath: Output file path
            metrics_history: List of metrics dictionaries at each time
            times: Time array
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for t, metrics in zip(times, metrics_history):
            row = {'time': t}
            for key, value in metrics.items():
                if isinstance(value, (int, float, bool)):
                    row[key] = value
            rows.append(row)

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False, float_format='%.8e')

    @staticmethod
    def save_final_metrics_csv(filepath: str, metrics: Dict[str, Any]):
        """
        Save final state metrics to CSV.

        Args:
            filepath: Output file path
            metrics: Metrics dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(metrics.items()):
            if isinstance(value, (int, float, bool, str)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Type': type(value).__name__
                })

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False)

    @staticmethod
    def load_netcdf(filepath: str) -> Dict[str, Any]:
        """
        Load simulation data from NetCDF file.

        Args:
            filepath: Path to NetCDF file

        Returns:
            Dictionary with coordinates, (t, z, x) fields and global attributes
        """
        try:
            with Dataset(filepath, 'r') as nc:
                result = {
                    'times': np.array(nc.variables['t'][:]),
                    'x': np.array(nc.variables['x'][:]),
                    'z': np.array(nc.variables['z'][:]),
                }
                for name, _, _ in NETCDF_FIELDS:
                    result[name] = np.array(nc.variables[name][:])

                for attr in nc.ncattrs():
                    result[attr] = nc.getncattr(attr)
        except (OSError, RuntimeError, KeyError) as e:
            raise OutputError(f"Failed to read NetCDF output: {e}", str(filepath)) from e

        return result

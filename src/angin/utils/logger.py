"""Simulation logger for stratified atmosphere runs."""

import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class SimulationLogger:
    """Logger for atmosphere simulations with conservation and timing sections."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True
    ):
        """
        Initialize simulation logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Echo informational messages to the console as well
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"{scenario_name}.log"

        self.logger = self._setup_logger()
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def _setup_logger(self) -> logging.Logger:
        """Configure Python logging: everything to file, console when verbose."""
        logger = logging.getLogger(f"angin.{self.scenario_name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []

        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(handler)

        if self.verbose:
            console = logging.StreamHandler()
            console.setLevel(logging.INFO)
            console.setFormatter(logging.Formatter('%(message)s'))
            logger.addHandler(console)

        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def debug(self, msg: str):
        self.logger.debug(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)
        self.warnings.append(msg)

        if not self.verbose:
            print(f"  WARNING: {msg}")

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)
        self.errors.append(msg)

        if not self.verbose:
            print(f"  ERROR: {msg}")

    def log_parameters(self, config: Dict[str, Any]):
        """Log all simulation parameters."""
        self.info("=" * 70)
        self.info("2D STRATIFIED ATMOSPHERE SIMULATION - ANGIN")
        self.info(f"Scenario: {config.get('scenario_name', 'Unknown')}")
        self.info("=" * 70)
        self.info("")

        self.info("GRID PARAMETERS:")
        self.info(f"  nx_glob = {config.get('nx_glob', 100)}")
        self.info(f"  nz_glob = {config.get('nz_glob', 50)}")
        self.info(f"  xlen = {config.get('xlen', 2.0e4):.1f} m")
        self.info(f"  zlen = {config.get('zlen', 1.0e4):.1f} m")
        self.info(f"  nranks = {config.get('nranks', 1)}")

        self.info("")
        self.info("NUMERICAL PARAMETERS:")
        self.info(f"  hv_beta = {config.get('hv_beta', 0.05)}")
        self.info(f"  CFL = {config.get('cfl', 1.5)}")
        self.info(f"  max_speed = {config.get('max_speed', 450.0)} m/s")

        self.info("")
        self.info("SIMULATION PARAMETERS:")
        self.info(f"  sim_time = {config.get('sim_time', 1000.0)} s")
        self.info(f"  output_freq = {config.get('output_freq', 10.0)} s")
        self.info(f"  data_spec = {config.get('data_spec', 'thermal')}")
        self.info(f"  max_workers = {config.get('max_workers', 1)}")
        self.info(f"  use_gpu = {config.get('use_gpu', False)}")

        self.info("=" * 70)
        self.info("")

    def log_conservation(self, metrics: Dict[str, float], t: float):
        """Log conservation metrics at a time."""
        self.info(f"Conservation at t={t:.4f} s:")
        self.info(f"  Mass: {metrics.get('mass', 0):.12e}")
        self.info(f"  Total energy: {metrics.get('total_energy', 0):.12e}")
        self.info(f"  Kinetic energy: {metrics.get('kinetic_energy', 0):.8e}")
        self.info(f"  Internal energy: {metrics.get('internal_energy', 0):.8e}")

    def log_drift(self, drift: Dict[str, float]):
        """Log relative drift of the conserved quantities."""
        self.info("CONSERVATION DRIFT:")
        self.info(f"  d_mass: {drift.get('mass_drift', 0):.6e}")
        self.info(f"  d_te: {drift.get('energy_drift', 0):.6e}")

    def log_stability(self, metrics: Dict[str, Any], t: float):
        """Log stability metrics."""
        self.info(f"Stability at t={t:.4f} s:")
        self.info(f"  Max |u|: {metrics.get('max_u', 0):.4f} m/s")
        self.info(f"  Max |w|: {metrics.get('max_w', 0):.4f} m/s")
        self.info(f"  CFL effective: {metrics.get('cfl_effective', 0):.4f}")
        self.info(f"  Min density: {metrics.get('min_density', 0):.6f}")
        self.info(f"  Finite: {metrics.get('is_finite', True)}")
        if not metrics.get('is_finite', True):
            self.warning(f"Non-finite values in the state at t={t:.4f} s")

    def _banner(self, heading: str):
        self.info("=" * 70)
        self.info(heading)
        self.info("=" * 70)

    def _list_messages(self, label: str, messages: List[str]):
        if not messages:
            self.info(f"{label}: None")
            return
        self.info(f"{label}: {len(messages)}")
        for n, text in enumerate(messages, 1):
            self.info(f"  {n}. {text}")

    def log_timing(self, timing: Dict[str, float]):
        """Log wall-clock time per phase (initialization, stepping, output)."""
        self._banner("WALL-CLOCK TIMING:")
        width = max((len(key) for key in timing), default=0)
        for key, seconds in sorted(timing.items(), key=lambda kv: -kv[1]):
            self.info(f"  {key:<{width}}  {seconds:9.3f} s")
        self.info(f"  {'total':<{width}}  {sum(timing.values()):9.3f} s")
        self.info("")

    def finalize(self):
        """Write the error/warning summary and release the log file."""
        self._banner(f"RUN FINISHED: {self.scenario_name}")
        self._list_messages("ERRORS", self.errors)
        self._list_messages("WARNINGS", self.warnings)
        self.info(f"Log written to {self.log_file} at {datetime.now().isoformat()}")

        for handler in self.logger.handlers:
            handler.close()
        self.logger.handlers = []

"""
Dimensionally-split Runge-Kutta integrator for the stratified atmosphere.

One outer step is a Strang split: the x and z sub-problems are each
advanced with the three-stage low-storage Runge-Kutta scheme

    q*      = q^n + dt/3 * L(q^n)
    q**     = q^n + dt/2 * L(q*)
    q^{n+1} = q^n + dt   * L(q**)

and the order of the two directions alternates between outer steps. The
scheme is third-order accurate for linear problems and second-order in
general.

Each stage exchanges the halo of the buffer the tendencies are computed
from, evaluates the tendencies of every partition (optionally on a thread
pool) and blends the result into the output buffer. Halo exchange happens
here and nowhere else.

References:
    Strang, G. (1968). On the construction and comparison of difference
        schemes. SIAM J. Numer. Anal., 5(3), 506-517.
    Wicker, L. J., & Skamarock, W. C. (2002). Time-splitting methods for
        elastic models using forward time schemes. Mon. Wea. Rev.,
        130(8), 2088-2097.
"""

import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .grid import ConfigurationError, Direction
from .jax_config import is_gpu_available
from .halo import exchange_halo
from .tendencies import compute_tendencies
from .metrics import (
    compute_conservation_metrics,
    compute_drift,
    compute_stability_metrics,
)


# Stage fractions of dt
RK_STAGES = (1.0 / 3.0, 1.0 / 2.0, 1.0)


class WeatherIntegrator:
    """
    Strang-split RK3 integrator with a fixed time step.

    Example:
        >>> from angin.core.weather_system import WeatherSystem
        >>> system = WeatherSystem(nx_glob=100, nz_glob=50, data_spec='thermal')
        >>> system.initialize()
        >>> solver = WeatherIntegrator()
        >>> result = solver.run(system, sim_time=100.0, output_freq=10.0)

    Attributes:
        direction_switch: True when the next step starts with x
        max_workers: Threads used for per-partition tendencies (None = serial)
        backend: 'gpu' or 'cpu'
    """

    def __init__(
        self,
        max_workers: Optional[int] = None,
        use_gpu: bool = False
    ):
        """
        Initialize the integrator.

        Args:
            max_workers: Size of the thread pool for partition tendencies;
                None or 1 evaluates partitions one after another
            use_gpu: Whether to use GPU acceleration
        """
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.use_gpu = use_gpu
        self.direction_switch = True
        self._executor: Optional[ThreadPoolExecutor] = None

        # Configure JAX device
        self.backend = 'cpu'
        if use_gpu:
            if is_gpu_available():
                self.backend = 'gpu'
            else:
                print("Warning: GPU not available, using CPU")

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def semi_discrete_step(
        self,
        system,
        state_init: Sequence[np.ndarray],
        state_forcing: Sequence[np.ndarray],
        state_out: Sequence[np.ndarray],
        dt: float,
        direction: Direction
    ) -> None:
        """
        One Runge-Kutta stage over all partitions.

        state_out = state_init + dt * L(state_forcing) on every interior
        cell. `state_out` may be the same buffer as `state_init` or
        `state_forcing`: the tendencies are fully evaluated before any
        interior cell is written.

        Args:
            system: WeatherSystem owning the partitions
            state_init, state_forcing, state_out: One buffer per partition
            dt: Stage time step
            direction: Direction of the split sub-step
        """
        exchange_halo(system, direction, state_forcing)

        spacing = direction.spacing(system.grid)
        hv_beta = system.params.hv_beta
        partitions = system.partitions

        def tendency(idx: int) -> np.ndarray:
            return compute_tendencies(
                state_forcing[idx], direction, system.background,
                spacing, dt, hv_beta, partitions[idx].forcing,
            )

        if self._executor is not None:
            tendencies = list(self._executor.map(tendency, range(len(partitions))))
        else:
            tendencies = [tendency(idx) for idx in range(len(partitions))]

        for part, q_init, q_out, tend in zip(partitions, state_init, state_out, tendencies):
            interior = part.layout.interior
            q_out[interior] = q_init[interior] + dt * tend

    def _split_step(self, system, direction: Direction, dt: float) -> None:
        state = [part.state for part in system.partitions]
        tmp = [part.state_tmp for part in system.partitions]

        # (init, forcing, out): the last stage lands back in `state`
        rotation = (
            (state, state, tmp),
            (state, tmp, tmp),
            (state, tmp, state),
        )
        for (q_init, q_forcing, q_out), frac in zip(rotation, RK_STAGES):
            self.semi_discrete_step(system, q_init, q_forcing, q_out, dt * frac, direction)

    def perform_timestep(self, system, dt: float) -> None:
        """
        Advance every partition's `state` by one Strang-split step.

        Does not touch the elapsed time; the driver loop owns it.
        """
        if self.direction_switch:
            order = (Direction.X, Direction.Z)
        else:
            order = (Direction.Z, Direction.X)
        for direction in order:
            self._split_step(system, direction, dt)
        self.direction_switch = not self.direction_switch

    # ------------------------------------------------------------------
    # Driver loop
    # ------------------------------------------------------------------

    def _drive(
        self,
        system,
        sim_time: float,
        output_freq: float,
        on_output: Optional[Callable[[Dict[str, Any]], None]],
        verbose: bool,
        record: Optional[Callable[[float], None]] = None
    ) -> Dict[str, Any]:
        if not system._initialized:
            raise ValueError("Weather system not initialized. Call initialize() first.")
        if sim_time <= 0:
            raise ConfigurationError(f"sim_time must be positive, got {sim_time}")

        dt_full = system.dt
        output_enabled = output_freq >= 0
        output_counter = 0.0
        n_outputs = 0
        step_count = 0

        def emit(dt: float) -> None:
            nonlocal n_outputs
            if on_output is not None:
                on_output(system.snapshot())
            if record is not None:
                record(dt)
            n_outputs += 1

        initial_metrics = compute_conservation_metrics(system)
        if output_enabled:
            emit(dt_full)

        if self.max_workers is not None and self.max_workers > 1 and system.nranks > 1:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers)

        wall_start = time.perf_counter()
        pbar = None
        if verbose:
            pbar = tqdm(total=math.ceil(sim_time / dt_full), desc="      Simulating", unit="step")

        try:
            while system.etime < sim_time:
                dt = dt_full
                truncated = system.etime + dt > sim_time
                if truncated:
                    dt = sim_time - system.etime

                self.perform_timestep(system, dt)
                system.etime = sim_time if truncated else system.etime + dt
                step_count += 1
                if pbar is not None:
                    pbar.update(1)

                output_counter += dt
                if output_enabled and output_counter >= output_freq:
                    output_counter -= output_freq
                    emit(dt)
        finally:
            if pbar is not None:
                pbar.close()
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

        wall_time = time.perf_counter() - wall_start
        final_metrics = compute_conservation_metrics(system)

        return {
            'system': system,
            'params': system.params,
            'sim_time': sim_time,
            'etime': system.etime,
            'dt': dt_full,
            'total_steps': step_count,
            'n_outputs': n_outputs,
            'backend': self.backend,
            'wall_time': wall_time,
            'initial_metrics': initial_metrics,
            'final_metrics': final_metrics,
            'drift': compute_drift(initial_metrics, final_metrics),
        }

    def run(
        self,
        system,
        sim_time: float,
        output_freq: float = -1.0,
        on_output: Optional[Callable[[Dict[str, Any]], None]] = None,
        verbose: bool = True
    ) -> Dict[str, Any]:
        """
        Advance the system to `sim_time`.

        The last step is shortened so the elapsed time ends exactly at
        `sim_time`. `on_output` receives a snapshot at t = 0 and every time
        the output counter reaches `output_freq`; a negative `output_freq`
        disables output.

        Args:
            system: Initialized WeatherSystem
            sim_time: Simulated time to reach [s]
            output_freq: Output interval [s]
            on_output: Callable taking a snapshot dictionary
            verbose: Show a progress bar

        Returns:
            Dictionary with simulation results, conservation metrics before
            and after the run and their relative drift
        """
        return self._drive(system, sim_time, output_freq, on_output, verbose)

    def run_with_diagnostics(
        self,
        system,
        sim_time: float,
        output_freq: float = 10.0,
        on_output: Optional[Callable[[Dict[str, Any]], None]] = None,
        verbose: bool = True
    ) -> Dict[str, Any]:
        """
        Run simulation with diagnostic tracking.

        Conservation and stability metrics are recorded at every output
        time, in addition to everything `run` returns.
        """
        times: List[float] = []
        conservation_history: List[Dict[str, float]] = []
        stability_history: List[Dict[str, Any]] = []

        def record(dt: float) -> None:
            times.append(system.etime)
            conservation_history.append(compute_conservation_metrics(system))
            stability_history.append(compute_stability_metrics(system, dt))

        result = self._drive(system, sim_time, output_freq, on_output, verbose, record)
        result.update({
            'times': np.array(times),
            'conservation_history': conservation_history,
            'stability_history': stability_history,
        })
        return result

    def __repr__(self) -> str:
        return (
            f"WeatherIntegrator(max_workers={self.max_workers}, backend='{self.backend}', "
            f"scheme='Strang-RK3')"
        )

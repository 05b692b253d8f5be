#!/usr/bin/env python3
"""
Command-line interface for the Angin stratified atmosphere simulator.

Usage:
    angin case1              # Colliding thermals
    angin case2              # Rising thermal
    angin case3              # Internal gravity waves
    angin case4              # Density current
    angin case5              # Injection jet
    angin -a                 # Run all cases sequentially
    angin --all              # Run all cases sequentially
    angin -c config.txt      # Run from config file
    angin --config my.txt    # Run from config file
    angin --help             # Show help
"""

import argparse
import os
import sys
import time
from typing import Dict, Any, List, Optional

from tqdm import tqdm

from angin.core.grid import ConfigurationError
from angin.core.weather_system import WeatherSystem
from angin.core.integrator import WeatherIntegrator
from angin.io.config_manager import ConfigManager
from angin.io.data_handler import DataHandler, NetCDFWriter, OutputError
from angin.utils.logger import SimulationLogger
from angin.visualization.animator import Animator


# =============================================================================
# Scenario Configurations
# =============================================================================

SCENARIOS = {
    'case1': {
        'scenario_name': 'Case 1 - Colliding Thermals',
        'data_spec': 'collision',
        'nx_glob': 200,
        'nz_glob': 100,
        'sim_time': 700.0,
        'output_freq': 10.0,
    },
    'case2': {
        'scenario_name': 'Case 2 - Rising Thermal',
        'data_spec': 'thermal',
        'nx_glob': 200,
        'nz_glob': 100,
        'sim_time': 1000.0,
        'output_freq': 10.0,
    },
    'case3': {
        'scenario_name': 'Case 3 - Internal Gravity Waves',
        'data_spec': 'gravity_waves',
        'nx_glob': 200,
        'nz_glob': 100,
        'sim_time': 1500.0,
        'output_freq': 15.0,
    },
    'case4': {
        'scenario_name': 'Case 4 - Density Current',
        'data_spec': 'density_current',
        'nx_glob': 200,
        'nz_glob': 100,
        'sim_time': 900.0,
        'output_freq': 10.0,
    },
    'case5': {
        'scenario_name': 'Case 5 - Injection Jet',
        'data_spec': 'injection',
        'nx_glob': 200,
        'nz_glob': 100,
        'sim_time': 1200.0,
        'output_freq': 12.0,
    },
}


def build_config(overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Defaults updated with scenario or file values."""
    config = ConfigManager.get_default_config()
    config.update(overrides)
    return config


# =============================================================================
# Main Simulation Runner
# =============================================================================

def run_simulation(
    config: Dict[str, Any],
    run_name: str,
    output_dir: str = 'outputs',
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Run a complete simulation for one configuration.

    Args:
        config: Full configuration dictionary (see ConfigManager)
        run_name: Base name for the log and output files
        output_dir: Directory for output files
        verbose: Echo the log to the console

    Returns:
        Dictionary with simulation results and timing information

    Raises:
        ConfigurationError: If the configuration is invalid
        OutputError: If NetCDF output cannot be written
    """
    ConfigManager.validate_config(config)

    os.makedirs(output_dir, exist_ok=True)
    logger = SimulationLogger(run_name, log_dir='logs', verbose=verbose)
    logger.log_parameters(config)

    timing = {}

    # Initialize system
    t_start = time.perf_counter()
    system = WeatherSystem(
        nx_glob=config['nx_glob'],
        nz_glob=config['nz_glob'],
        data_spec=config['data_spec'],
        nranks=config.get('nranks', 1),
        xlen=config.get('xlen', 2.0e4),
        zlen=config.get('zlen', 1.0e4),
        hv_beta=config.get('hv_beta', 0.05),
        cfl=config.get('cfl', 1.5),
        max_speed=config.get('max_speed', 450.0),
    )
    system.initialize()
    timing['system_init'] = time.perf_counter() - t_start
    logger.debug(system.describe())

    integrator = WeatherIntegrator(
        max_workers=config.get('max_workers', 1),
        use_gpu=config.get('use_gpu', False),
    )
    logger.info(f"Integrator: {integrator}")
    logger.info(f"dt = {system.dt:.6f} s")

    # Output collaborators
    history: List[Dict[str, Any]] = []
    nc_file = f"{output_dir}/{run_name}.nc"
    writer: Optional[NetCDFWriter] = None
    if config.get('save_netcdf', True):
        writer = NetCDFWriter(nc_file, system, config)

    def on_output(snapshot: Dict[str, Any]) -> None:
        if writer is not None:
            writer.write(snapshot)
        if config.get('save_gif', True) or config.get('save_png', True):
            history.append(snapshot)

    print(f"\n{'='*60}")
    print(f"  Running: {config['scenario_name']}")
    print(f"  Grid: {config['nx_glob']}x{config['nz_glob']}, "
          f"sim_time: {config['sim_time']} s, nranks: {system.nranks}")
    print(f"{'='*60}\n")

    t_start = time.perf_counter()
    try:
        result = integrator.run_with_diagnostics(
            system,
            sim_time=config['sim_time'],
            output_freq=config.get('output_freq', 10.0),
            on_output=on_output,
            verbose=True
        )
    except OutputError as e:
        logger.error(str(e))
        logger.finalize()
        raise
    timing['simulation'] = time.perf_counter() - t_start
    print()

    # Conservation report
    logger.log_conservation(result['initial_metrics'], 0.0)
    logger.log_conservation(result['final_metrics'], result['etime'])
    logger.log_drift(result['drift'])
    if result['stability_history']:
        logger.log_stability(result['stability_history'][-1], result['etime'])
    logger.info(f"Total steps: {result['total_steps']}, outputs: {result['n_outputs']}")

    times = result['times']
    final_metrics = {}
    final_metrics.update({f"cons_{k}": v for k, v in result['final_metrics'].items()})
    final_metrics.update({f"drift_{k}": v for k, v in result['drift'].items()})
    if result['stability_history']:
        final_metrics.update({f"stab_{k}": v for k, v in result['stability_history'][-1].items()})

    vis_result = {
        'x': system.x,
        'z': system.z,
        'snapshot': system.snapshot(),
        'history': history,
        'params': config,
        'times': times,
        'conservation_history': result['conservation_history'],
        'stability_history': result['stability_history'],
        'final_metrics': final_metrics,
    }

    # Post-processing with progress bar
    post_steps = [
        ('Creating field plot', 'png'),
        ('Creating metrics plot', 'metrics_png'),
        ('Creating animation', 'gif'),
        ('Saving CSV', 'csv'),
    ]

    animator = Animator(fps=config.get('animation_fps', 15), dpi=config.get('png_dpi', 150))
    pbar = tqdm(post_steps, desc="Post-processing", unit="step", leave=True)

    for step_name, step_key in pbar:
        pbar.set_description(f"  {step_name}")

        if step_key == 'png' and config.get('save_png', True):
            t_start = time.perf_counter()
            animator.create_static_plot(vis_result, f"{output_dir}/{run_name}_fields.png",
                                        config['scenario_name'])
            timing['png_save'] = time.perf_counter() - t_start

        elif step_key == 'metrics_png' and config.get('save_png', True) and len(times) > 0:
            t_start = time.perf_counter()
            animator.create_metrics_plot(
                times,
                result['conservation_history'],
                result['stability_history'],
                f"{output_dir}/{run_name}_metrics.png",
                f"{config['scenario_name']} - Diagnostics"
            )
            timing['visualization'] = time.perf_counter() - t_start

        elif step_key == 'gif' and config.get('save_gif', True):
            t_start = time.perf_counter()
            gif_animator = Animator(fps=config.get('animation_fps', 15),
                                    dpi=config.get('animation_dpi', 100))
            gif_animator.create_animation(vis_result, f"{output_dir}/{run_name}.gif",
                                          config['scenario_name'], verbose=False)
            timing['gif_save'] = time.perf_counter() - t_start

        elif step_key == 'csv' and config.get('save_csv', True):
            t_start = time.perf_counter()
            rows = [
                {**cons, **stab}
                for cons, stab in zip(result['conservation_history'], result['stability_history'])
            ]
            DataHandler.save_metrics_csv(f"{output_dir}/{run_name}_metrics.csv", rows, times)
            DataHandler.save_final_metrics_csv(f"{output_dir}/{run_name}_final_metrics.csv",
                                               final_metrics)
            timing['csv_save'] = time.perf_counter() - t_start

    print()

    logger.log_timing(timing)
    logger.finalize()

    drift = result['drift']
    print(f"\n{'='*60}")
    print(f"  SIMULATION COMPLETE")
    print(f"{'='*60}")
    print(f"  Total time: {sum(timing.values()):.1f}s")
    print(f"  Elapsed model time: {result['etime']:.3f} s in {result['total_steps']} steps")
    print(f"  d_mass: {drift['mass_drift']:.6e}")
    print(f"  d_te:   {drift['energy_drift']:.6e}")
    print(f"{'='*60}")
    print(f"  Output directory: {output_dir}")
    print(f"  Log file: {logger.log_file}")
    print(f"{'='*60}\n")

    vis_result['result'] = result
    vis_result['timing'] = timing
    return vis_result


def run_scenario(
    scenario_key: str,
    output_dir: str = 'outputs',
    verbose: bool = False,
    overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Run one of the named SCENARIOS.

    Args:
        scenario_key: Key from SCENARIOS dict (e.g., 'case1')
        output_dir: Directory for output files
        verbose: Echo the log to the console
        overrides: Command-line overrides (nranks, max_workers, use_gpu)
    """
    if scenario_key not in SCENARIOS:
        raise ConfigurationError(f"Unknown scenario: {scenario_key}. "
                                 f"Available: {list(SCENARIOS.keys())}")

    config = build_config(SCENARIOS[scenario_key])
    config.update(overrides or {})
    run_name = f"{scenario_key}_{config['data_spec']}"
    return run_simulation(config, run_name, output_dir=output_dir, verbose=verbose)


# =============================================================================
# CLI Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Angin: 2D Compressible Stratified Atmosphere Simulator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  angin case2                  Run the rising thermal
  angin -a                     Run all test cases sequentially
  angin -c config.txt          Run from config file
  angin case4 --nranks 4       Split the domain into 4 partitions
  angin case4 --nranks 4 --workers 4
                               Evaluate partitions on 4 threads
  angin case1 -v               Run with verbose output
  angin case1 --gpu            Run with GPU acceleration

Available scenarios:
  case1  Colliding Thermals (warm and cold bubble)
  case2  Rising Thermal (warm bubble in a neutral atmosphere)
  case3  Internal Gravity Waves (stable stratification, mean wind)
  case4  Density Current (cold bubble collapsing onto the ground)
  case5  Injection Jet (inflow through the left boundary)
        """
    )

    parser.add_argument(
        'scenario',
        nargs='?',
        choices=list(SCENARIOS.keys()),
        default=None,
        help='Scenario to run (optional if using -a or -c)'
    )
    parser.add_argument('-a', '--all', action='store_true',
                        help='Run all test cases sequentially')
    parser.add_argument('-c', '--config', type=str, default=None,
                        help='Path to configuration file (.txt)')
    parser.add_argument('-o', '--output', default='outputs',
                        help='Output directory (default: outputs)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose output')
    parser.add_argument('--nranks', type=int, default=None,
                        help='Number of partitions along x (default: from config)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Threads for per-partition tendencies (default: from config)')
    parser.add_argument('--gpu', action='store_true',
                        help='Use GPU acceleration (requires JAX with CUDA)')

    args = parser.parse_args(argv)

    if not args.all and not args.config and not args.scenario:
        parser.error("Please specify a scenario, use -a/--all, or provide -c/--config")

    overrides: Dict[str, Any] = {}
    if args.nranks is not None:
        overrides['nranks'] = args.nranks
    if args.workers is not None:
        overrides['max_workers'] = args.workers
    if args.gpu:
        overrides['use_gpu'] = True

    try:
        if args.all:
            print(f"\n{'='*60}")
            print(f"  ANGIN: Running All Test Cases")
            print(f"{'='*60}\n")

            results = {}
            failed = []

            for i, scenario in enumerate(SCENARIOS.keys(), 1):
                print(f"\n[{i}/{len(SCENARIOS)}] Running {scenario}...")
                try:
                    results[scenario] = run_scenario(scenario, args.output,
                                                     args.verbose, overrides)
                except (ConfigurationError, OutputError) as e:
                    print(f"  ERROR: {e}")
                    failed.append((scenario, str(e)))

            print(f"\n{'='*60}")
            print(f"  ALL SIMULATIONS COMPLETE")
            print(f"{'='*60}")
            print(f"  Successful: {len(results)}/{len(SCENARIOS)}")
            if failed:
                print(f"  Failed: {len(failed)}")
                for scenario, error in failed:
                    print(f"    • {scenario}: {error}")
            print(f"{'='*60}\n")

            return 0 if not failed else 1

        elif args.config:
            if not os.path.exists(args.config):
                print(f"Error: Config file not found: {args.config}", file=sys.stderr)
                return 1

            print(f"\n  Loading config: {args.config}")
            config = build_config(ConfigManager.load(args.config))
            config.update(overrides)
            run_simulation(config, f"custom_{config['data_spec']}",
                           output_dir=args.output, verbose=args.verbose)
            return 0

        else:
            run_scenario(args.scenario, args.output, args.verbose, overrides)
            return 0

    except ConfigurationError as e:
        print(f"\nConfiguration error: {e}", file=sys.stderr)
        return 1
    except OutputError as e:
        print(f"\nOutput error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user.")
        return 1


if __name__ == '__main__':
    sys.exit(main())

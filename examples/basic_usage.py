#!/usr/bin/env python
"""
Example: Basic usage of the angin library.

This script simulates a cold bubble collapsing onto the ground and
spreading as a density current, then saves the run to NetCDF, CSV and
PNG.

Run with:
    python examples/basic_usage.py
"""

from pathlib import Path

from angin import WeatherSystem, WeatherIntegrator
from angin.io.data_handler import DataHandler, NetCDFWriter
from angin.visualization.animator import Animator


def main():
    print("=" * 60)
    print("angin: 2D Stratified Atmosphere Simulation")
    print("=" * 60)

    output_dir = Path("example_outputs")
    output_dir.mkdir(exist_ok=True)

    # 1. Define the atmosphere
    print("\n[1] Creating weather system (density current)...")
    system = WeatherSystem(
        nx_glob=200,
        nz_glob=100,
        data_spec='density_current',
        nranks=2,
    )
    system.initialize()
    print(f"    {system}")
    print(f"    dt = {system.dt:.4f} s")

    # 2. Integrator
    print("\n[2] Initializing integrator...")
    integrator = WeatherIntegrator(
        max_workers=2,
        use_gpu=False  # Set to True if you have GPU
    )
    print(f"    {integrator}")

    # 3. Run simulation with diagnostics, streaming snapshots to NetCDF
    print("\n[3] Running simulation...")
    nc_file = output_dir / "density_current.nc"
    writer = NetCDFWriter(nc_file, system, {'scenario_name': 'Density Current Example'})
    history = []

    def on_output(snapshot):
        writer.write(snapshot)
        history.append(snapshot)

    result = integrator.run_with_diagnostics(
        system,
        sim_time=300.0,
        output_freq=20.0,
        on_output=on_output,
        verbose=True
    )

    print(f"\n    Simulation complete!")
    print(f"    Outputs: {result['n_outputs']}")
    print(f"    Total steps: {result['total_steps']}")

    # 4. Conservation
    print("\n    === CONSERVATION ===")
    print(f"    d_mass: {result['drift']['mass_drift']:.6e}")
    print(f"    d_te:   {result['drift']['energy_drift']:.6e}")
    stab = result['stability_history'][-1]
    print(f"    max |u| = {stab['max_u']:.2f} m/s, effective CFL = {stab['cfl_effective']:.3f}")

    # 5. Save results
    print("\n[5] Saving results...")
    print(f"    Saved: {nc_file}")

    metrics_file = output_dir / "density_current_metrics.csv"
    DataHandler.save_metrics_csv(metrics_file, result['conservation_history'], result['times'])
    print(f"    Saved: {metrics_file}")

    # 6. Visualization
    print("\n[6] Creating visualizations...")
    animator = Animator(fps=10, dpi=150)
    vis_result = {'x': system.x, 'z': system.z, 'snapshot': system.snapshot(), 'history': history}

    png_file = output_dir / "density_current_final.png"
    animator.create_static_plot(vis_result, png_file, "Density Current")
    print(f"    Saved: {png_file}")

    create_gif = input("\n    Create GIF animation? (y/n): ").lower().strip() == 'y'
    if create_gif:
        gif_file = output_dir / "density_current_animation.gif"
        animator.create_animation(vis_result, gif_file, "Density Current")
        print(f"    Saved: {gif_file}")

    print("\n" + "=" * 60)
    print("Done! Check 'example_outputs' directory for results.")
    print("=" * 60)


if __name__ == "__main__":
    main()

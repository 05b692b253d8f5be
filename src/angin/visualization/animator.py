"""
Visualization module for 2D stratified atmosphere simulations.

Provides the Animator class for creating:
    - Static field plots (density, winds, potential temperature perturbation)
    - Diagnostic time series (mass and energy drift, winds, CFL)
    - GIF animations of the potential temperature perturbation

Uses dark theme with publication-quality output.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from typing import Dict, List, Optional, Any


# Set dark style globally
plt.style.use('dark_background')


class Animator:
    """
    Animation and visualization class for atmosphere simulations.

    Attributes:
        fps: Frames per second for animations
        dpi: Resolution for saved figures
    """

    def __init__(self, fps: int = 15, dpi: int = 150):
        """
        Initialize the Animator.

        Args:
            fps: Frames per second for GIF animations
            dpi: Dots per inch for saved figures
        """
        self.fps = fps
        self.dpi = dpi

        self.colors = {
            'mass': '#00D4AA',         # Cyan-green
            'energy': '#FFD93D',       # Yellow
            'u': '#FF6B9D',            # Pink
            'w': '#00D4AA',            # Cyan
            'cfl': '#FFD93D',          # Yellow
            'grid': '#2a2a3e',         # Dark grid
            'text': '#ffffff',         # White text
        }

        self.fig_facecolor = '#1a1a2e'
        self.ax_facecolor = '#16213e'

    def _style_axis(self, ax, xlabel: str, ylabel: str, title: str = None, grid: bool = False):
        text = self.colors['text']
        ax.set_facecolor(self.ax_facecolor)
        ax.set_xlabel(xlabel, color=text)
        ax.set_ylabel(ylabel, color=text)
        if title is not None:
            ax.set_title(title, color=text)
        ax.tick_params(colors=text)
        if grid:
            ax.grid(True, alpha=0.3, color=self.colors['grid'])

    def _colorbar(self, fig, mappable, ax, label: str = None):
        cbar = fig.colorbar(mappable, ax=ax)
        cbar.ax.tick_params(color=self.colors['text'], labelcolor=self.colors['text'])
        if label is not None:
            cbar.set_label(label, color=self.colors['text'])
        return cbar

    def _save(self, fig, filename):
        fig.tight_layout()
        fig.savefig(filename, dpi=self.dpi, facecolor=self.fig_facecolor, bbox_inches='tight')
        plt.close(fig)

    def create_static_plot(
        self,
        result: Dict[str, Any],
        filename: str,
        title: str = "Atmosphere Simulation"
    ) -> None:
        """
        Create a static 2x2 plot of the final snapshot.

        Panels:
            - Density perturbation
            - Horizontal wind u
            - Vertical wind w
            - Potential temperature perturbation

        Args:
            result: Dictionary with 'x', 'z' [m] and 'snapshot' (or a
                non-empty 'history' whose last entry is plotted)
            filename: Output file path
            title: Plot title
        """
        snap = result.get('snapshot') or result['history'][-1]
        x_km = np.asarray(result['x']) / 1000.0
        z_km = np.asarray(result['z']) / 1000.0
        X, Z = np.meshgrid(x_km, z_km)

        fig, axes = plt.subplots(2, 2, figsize=(14, 8), facecolor=self.fig_facecolor)
        fig.suptitle(f"{title}\nt = {snap['t']:.1f} s", fontsize=14, color=self.colors['text'])

        fields = [
            (snap['dens'], r"Density perturbation $\rho'$ [kg m$^{-3}$]"),
            (snap['uwnd'], r'Horizontal wind $u$ [m s$^{-1}$]'),
            (snap['wwnd'], r'Vertical wind $w$ [m s$^{-1}$]'),
            (snap['theta'], r"Potential temperature perturbation $\theta'$ [K]"),
        ]

        for ax, (field, label) in zip(axes.flat, fields):
            # Diverging map centred on zero
            vmax = float(np.max(np.abs(field)))
            if vmax == 0.0:
                vmax = 1.0

            im = ax.pcolormesh(X, Z, field, cmap='RdBu_r', vmin=-vmax, vmax=vmax, shading='auto')
            self._style_axis(ax, 'x [km]', 'z [km]', label)
            ax.set_aspect('equal')
            self._colorbar(fig, im, ax)

        self._save(fig, filename)

    def create_metrics_plot(
        self,
        times: np.ndarray,
        conservation_history: List[Dict[str, float]],
        stability_history: List[Dict[str, Any]],
        filename: str,
        title: str = "Diagnostics"
    ) -> None:
        """
        Create diagnostic time series plot.

        Panels (2x2):
            - Mass drift
            - Total energy drift
            - Maximum wind speeds
            - Effective CFL number

        Args:
            times: Array of time points [s]
            conservation_history: List of conservation metric dicts
            stability_history: List of stability metric dicts
            filename: Output file path
            title: Plot title
        """
        fig, axes = plt.subplots(2, 2, figsize=(12, 8), facecolor=self.fig_facecolor)
        fig.suptitle(title, fontsize=14, color=self.colors['text'])

        times = np.asarray(times, dtype=float)

        def series(history, key):
            return np.array([h.get(key, 0.0) for h in history], dtype=float)

        def relative_drift(values):
            if values.size == 0 or values[0] == 0:
                return np.zeros_like(times)
            return np.abs(values / values[0] - 1.0)

        # Drift panels on a log axis, floored at round-off
        for ax, key, color, label in (
            (axes[0, 0], 'mass', 'mass', 'Mass Conservation'),
            (axes[0, 1], 'total_energy', 'energy', 'Energy Conservation'),
        ):
            drift = relative_drift(series(conservation_history, key))
            ax.semilogy(times, np.maximum(drift, 1e-16), color=self.colors[color], linewidth=2)
            self._style_axis(ax, 'Time [s]', 'Relative drift', label, grid=True)

        ax = axes[1, 0]
        for key, color, label in (('max_u', 'u', 'max |u|'), ('max_w', 'w', 'max |w|')):
            ax.plot(times, series(stability_history, key), color=self.colors[color],
                    label=label, linewidth=2)
        self._style_axis(ax, 'Time [s]', r'Speed [m s$^{-1}$]', 'Wind Maxima', grid=True)
        ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')

        ax = axes[1, 1]
        ax.plot(times, series(stability_history, 'cfl_effective'), color=self.colors['cfl'],
                linewidth=2)
        self._style_axis(ax, 'Time [s]', 'CFL', 'Effective CFL Number', grid=True)

        self._save(fig, filename)

    def create_animation(
        self,
        result: Dict[str, Any],
        filename: str,
        title: str = "Atmosphere Simulation",
        verbose: bool = False
    ) -> None:
        """
        Create GIF animation of the potential temperature perturbation.

        Args:
            result: Dictionary with 'x', 'z' and 'history' (snapshot dicts)
            filename: Output GIF file path
            title: Animation title
            verbose: Print progress
        """
        history = result.get('history', [])
        if not history:
            if verbose:
                print("No history available for animation")
            return

        x_km = np.asarray(result['x']) / 1000.0
        z_km = np.asarray(result['z']) / 1000.0
        X, Z = np.meshgrid(x_km, z_km)

        # Common colour range across all frames
        vmax = max(float(np.max(np.abs(snap['theta']))) for snap in history)
        if vmax == 0.0:
            vmax = 1.0

        fig, ax = plt.subplots(figsize=(10, 5), facecolor=self.fig_facecolor)
        im = ax.pcolormesh(X, Z, history[0]['theta'], cmap='RdBu_r',
                           vmin=-vmax, vmax=vmax, shading='auto')
        self._style_axis(ax, 'x [km]', 'z [km]')
        ax.set_aspect('equal')
        self._colorbar(fig, im, ax, r"$\theta'$ [K]")

        time_text = ax.set_title(f"{title}\nt = {history[0]['t']:.1f} s", color=self.colors['text'])

        def update(frame):
            snap = history[frame]
            im.set_array(np.asarray(snap['theta']).ravel())
            time_text.set_text(f"{title}\nt = {snap['t']:.1f} s")
            return [im, time_text]

        if verbose:
            print(f"Creating animation with {len(history)} frames...")

        anim = animation.FuncAnimation(
            fig, update, frames=len(history),
            interval=1000 // self.fps, blit=True
        )

        anim.save(filename, writer='pillow', fps=self.fps,
                  savefig_kwargs={'facecolor': self.fig_facecolor})
        plt.close(fig)

        if verbose:
            print(f"Animation saved to {filename}")

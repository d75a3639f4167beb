"""
Matplotlib plots of SPH fluid particle state.

Static figures for inspecting a run or a snapshot:
- 3D particle scatter coloured by a per-particle quantity
- Histograms of density, pressure or speed

Functions take plain arrays so they work on live ``FluidParticles`` as well
as on arrays read back with ``read_snapshot``.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

NDArrayFloat = npt.NDArray[np.float64]


class MatplotlibVisualizer:
    """
    Matplotlib-based plots for SPH fluid particles.
    """

    # Color schemes
    COLORMAPS = {
        'density': 'viridis',
        'pressure': 'magma',
        'speed': 'coolwarm',
    }

    @staticmethod
    def plot_particles_3d(
        positions: NDArrayFloat,
        color_by: Optional[NDArrayFloat] = None,
        colorbar_label: str = 'Density',
        title: str = "SPH Fluid",
        cmap: str = 'viridis',
        bounds: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
        point_size: float = 4.0,
        figsize: Tuple[float, float] = (8, 7),
        save_path: Optional[str] = None
    ) -> Tuple[Figure, Axes]:
        """
        Scatter particles in 3D, optionally coloured by a scalar field.

        Parameters
        ----------
        positions : np.ndarray, shape (N, 3)
            Particle positions.
        color_by : np.ndarray, shape (N,), optional
            Scalar per particle (density, pressure, speed...).
        colorbar_label : str, optional
            Colorbar label when ``color_by`` is given.
        title : str, optional
            Plot title.
        cmap : str, optional
            Colormap name (default: 'viridis').
        bounds : ((x, y, z), (x, y, z)), optional
            Box corners used as axis limits.
        point_size : float, optional
            Marker size.
        figsize : tuple, optional
            Figure size in inches.
        save_path : str, optional
            Path to save figure. If None, not saved.

        Returns
        -------
        fig : Figure
        ax : Axes3D
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        if color_by is not None and len(color_by) != len(positions):
            raise ValueError(
                f"color_by has {len(color_by)} values for {len(positions)} particles"
            )

        fig = plt.figure(figsize=figsize)
        ax = fig.add_subplot(projection='3d')

        # y is up in the simulation; plot it on the vertical axis
        scatter = ax.scatter(
            positions[:, 0],
            positions[:, 2],
            positions[:, 1],
            c=color_by,
            cmap=cmap if color_by is not None else None,
            s=point_size,
            depthshade=True
        )

        if color_by is not None:
            fig.colorbar(scatter, ax=ax, label=colorbar_label, shrink=0.7)

        if bounds is not None:
            lo, hi = bounds
            ax.set_xlim(lo[0], hi[0])
            ax.set_ylim(lo[2], hi[2])
            ax.set_zlim(lo[1], hi[1])

        ax.set_xlabel('X', fontsize=12)
        ax.set_ylabel('Z', fontsize=12)
        ax.set_zlabel('Y', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')

        return fig, ax

    @staticmethod
    def plot_histogram(
        data: NDArrayFloat,
        label: str = 'Quantity',
        title: str = "Histogram",
        bins: int = 50,
        log_y: bool = False,
        figsize: Tuple[float, float] = (8, 6),
        save_path: Optional[str] = None
    ) -> Tuple[Figure, Axes]:
        """
        Plot histogram of a particle quantity. Non-finite values are dropped.
        """
        fig, ax = plt.subplots(figsize=figsize)

        data = np.asarray(data)
        data_clean = data[np.isfinite(data)]

        ax.hist(
            data_clean,
            bins=bins,
            color='steelblue',
            edgecolor='black',
            alpha=0.7
        )

        if log_y:
            ax.set_yscale('log')

        ax.set_xlabel(label, fontsize=12)
        ax.set_ylabel('Count', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')
        ax.grid(True, alpha=0.3, axis='y')

        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')

        return fig, ax


# Convenience functions

def quick_plot(
    positions: NDArrayFloat,
    density: Optional[NDArrayFloat] = None,
    bounds: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
    title: str = "SPH Fluid",
    save_path: Optional[str] = None
) -> Tuple[Figure, Axes]:
    """
    One-line 3D particle plot coloured by density.

    Examples
    --------
    >>> from sph_fluid.visualization import quick_plot
    >>> fig, ax = quick_plot(sim.particles.positions, sim.particles.density)
    >>> plt.show()
    """
    return MatplotlibVisualizer.plot_particles_3d(
        positions,
        color_by=density,
        colorbar_label='Density',
        title=title,
        cmap=MatplotlibVisualizer.COLORMAPS['density'],
        bounds=bounds,
        save_path=save_path,
    )


def quick_density_histogram(
    density: NDArrayFloat,
    save_path: Optional[str] = None
) -> Tuple[Figure, Axes]:
    """One-line density histogram."""
    return MatplotlibVisualizer.plot_histogram(
        density, label='Density', title='Density distribution', save_path=save_path
    )

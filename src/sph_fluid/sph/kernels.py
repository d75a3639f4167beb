"""
Smoothing kernel coefficients for the SPH fluid.

Density uses the poly6 kernel and the pressure gradient uses the spiky
kernel gradient (Mueller et al. 2003):

    W_poly6(r, h)      = 315 / (64 pi h^9) * (h^2 - r^2)^3
    grad W_spiky(r, h) = -45 / (pi h^6) * (h - r)^2 * r_hat

Both kernels vanish for r >= h. Only the scalar prefactors are cached here;
the per-pair terms are evaluated inline in the force kernels.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class KernelCoefficients:
    """
    Derived smoothing-kernel constants for a smoothing radius ``h``.

    Attributes
    ----------
    h : float
        Smoothing radius.
    h_sq : float
        h squared.
    h_inv : float
        1 / h.
    poly6 : float
        Poly6 prefactor 315 / (64 pi h^9).
    spiky : float
        Spiky gradient prefactor -45 / (pi h^6).
    cell_size : float
        Neighbour-grid cell size; equal to h so a radius-h query never
        reaches beyond the 26 adjacent cells.
    """
    h: float
    h_sq: float
    h_inv: float
    poly6: float
    spiky: float
    cell_size: float

    @classmethod
    def from_smoothing_radius(cls, h: float) -> "KernelCoefficients":
        h = float(h)
        if not (math.isfinite(h) and h > 0.0):
            raise ValueError(f"Smoothing radius must be positive and finite, got {h}")
        return cls(
            h=h,
            h_sq=h * h,
            h_inv=1.0 / h,
            poly6=315.0 / (64.0 * math.pi * h ** 9),
            spiky=-45.0 / (math.pi * h ** 6),
            cell_size=h,
        )

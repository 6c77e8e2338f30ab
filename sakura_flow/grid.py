#!/usr/bin/env python3
"""
Ghost-padded 1-D flow arrays.

Every field holds `len` physical nodes plus two ghost nodes on each side. The
logical index range is -2 ... len+1; `FlowArray.idx` maps it onto the numpy
buffer, which is stored with a fixed bias of PAD.
"""
import logging

import numpy as np

logger = logging.getLogger(__name__)

PAD = 2


class FlowNode:
    """Inflow or outflow boundary values."""

    def __init__(self, u=0.0, c=0.0, h=0.0, c_grain=None, n_grain=None):
        if c_grain is None and n_grain is None:
            raise ValueError("FlowNode needs c_grain or n_grain")
        if c_grain is None:
            c_grain = np.zeros(n_grain)
        self.u = float(u)
        self.c = float(c)
        self.h = float(h)
        self.c_grain = np.array(c_grain, dtype=float)

    @property
    def n_grain(self) -> int:
        return len(self.c_grain)

    def set(self, u, c, h, c_grain=None):
        self.u = float(u)
        self.c = float(c)
        self.h = float(h)
        if c_grain is None:
            self.c_grain[:] = 0.0
        else:
            self.c_grain[:] = c_grain
        return self

    def zero(self):
        return self.set(0.0, 0.0, 0.0)


class FlowArray:
    """Flow state on a staggered grid: u at faces, h and c at cell centres."""

    def __init__(self, length: int, n_grain: int):
        if length <= 0 or n_grain <= 0:
            raise ValueError(f"FlowArray needs positive length and grain count (got {length}, {n_grain})")

        n_nodes = length + 2 * PAD

        self.len = length
        self.n_grain = n_grain

        self.x = np.zeros(n_nodes)
        self.w = np.zeros(n_nodes)
        self.h = np.zeros(n_nodes)
        self.u = np.zeros(n_nodes)
        self.c = np.zeros(n_nodes)

        self.c_grain = np.zeros((n_nodes, n_grain))
        self.d = np.zeros((n_nodes, n_grain))  # deposited solid volume (m^3)
        self.e = np.zeros((n_nodes, n_grain))  # eroded solid volume (m^3)

    @staticmethod
    def idx(i: int) -> int:
        """Buffer offset of logical node i."""
        return i + PAD

    @property
    def interior(self) -> slice:
        return slice(PAD, PAD + self.len)

    def copy_from(self, src: "FlowArray") -> "FlowArray":
        if (src.len, src.n_grain) != (self.len, self.n_grain):
            raise ValueError("Cannot copy between arrays of different shape")
        for name in ("x", "w", "h", "u", "c", "c_grain", "d", "e"):
            getattr(self, name)[...] = getattr(src, name)
        return self

    def copy(self) -> "FlowArray":
        return FlowArray(self.len, self.n_grain).copy_from(self)

    def set_x(self, x):
        x = np.asarray(x, dtype=float)
        if len(x) != self.len or self.len < 2:
            raise ValueError(f"Expected {self.len} positions (at least two), got {len(x)}")

        dx_0 = x[1] - x[0]
        dx_1 = x[-1] - x[-2]
        if dx_0 <= 0 or dx_1 <= 0:
            raise ValueError("Node positions must be strictly increasing at both ends")

        self.x[self.interior] = x
        self.x[self.idx(-1)] = x[0] - dx_0
        self.x[self.idx(-2)] = x[0] - 2. * dx_0
        self.x[self.idx(self.len)] = x[-1] + dx_1
        self.x[self.idx(self.len + 1)] = x[-1] + 2. * dx_1
        return self

    def set_width(self, w):
        w = np.asarray(w, dtype=float)
        if len(w) != self.len:
            raise ValueError(f"Expected {self.len} widths, got {len(w)}")

        self.w[self.interior] = w
        self.w[:PAD] = w[0]
        self.w[PAD + self.len:] = w[-1]
        return self

    def set_boundary(self, inflow: FlowNode, outflow: FlowNode):
        up = slice(0, PAD)
        down = slice(PAD + self.len, None)

        self.u[up] = inflow.u
        self.u[self.idx(0)] = inflow.u
        self.c[up] = inflow.c
        self.h[up] = inflow.h
        self.c_grain[up] = inflow.c_grain

        self.u[down] = outflow.u
        self.c[down] = outflow.c
        self.h[down] = outflow.h
        self.c_grain[down] = outflow.c_grain
        return self

    def cell_length(self) -> np.ndarray:
        """x[i+1] - x[i] for every interior node."""
        k = self.interior
        return self.x[k.start + 1:k.stop + 1] - self.x[k]

    def cell_volume(self) -> np.ndarray:
        k = self.interior
        return self.h[k] * self.w[k] * self.cell_length()

    def mass_in_suspension(self, sed) -> float:
        vol_w = self.cell_volume()
        return float(np.sum(vol_w[:, None] * self.c_grain[self.interior] * sed.rho_grain))

    def mass_eroded(self, sed) -> float:
        return float(np.sum(self.e[self.interior] * sed.rho_grain))

    def mass_deposited(self, sed) -> float:
        return float(np.sum(self.d[self.interior] * sed.rho_grain))

    def mass_lost(self, sed, dt: float) -> float:
        """Sediment mass carried past the second to last node in one time step."""
        k = self.idx(self.len - 2)
        flux_water = self.h[k] * self.w[k] * self.u[k]
        return float(flux_water * np.sum(self.c_grain[k] * sed.rho_grain) * dt)

    def grain_sum_error(self) -> float:
        k = self.interior
        return float(np.max(np.abs(self.c_grain[k].sum(axis=1) - self.c[k])))


def set_outflow(out: FlowNode, a: FlowArray, x_head: float, dt: float, dx: float) -> FlowNode:
    """Downstream boundary values for the current head position."""
    last = a.idx(a.len - 1)
    behind = a.idx(a.len - 2)
    x_end = a.x[last]

    if x_head > x_end + dx:
        out.set(a.u[last], a.c[behind], a.h[behind], a.c_grain[behind])
    elif x_head > x_end:
        # Head is crossing the last face: fill the outflow cell gradually
        h = out.h + a.h[behind] * a.u[last] * dt / dx
        out.set(0.0, a.c[behind], h, a.c_grain[behind])
    else:
        out.zero()

    return out

#!/usr/bin/env python3
"""
Seabed access for the flow model.

The solver never touches the seabed directly. It asks a `BedArchitecture` for
the grain composition it may erode, removes and adds sediment one grain class
at a time, and reads water depths to compute bed slopes. Calls arrive node by
node, left to right, erosion before deposition.
"""
import logging
from abc import ABC, abstractmethod

import numpy as np

from sakura_flow.config import FlowConstants

logger = logging.getLogger(__name__)


class BedArchitecture(ABC):

    @abstractmethod
    def composition_at(self, x: float, volume: float):
        """
        Grain composition of the bed at x.

        Returns a tuple (fractions, accepted_volume) where accepted_volume is
        the requested erosion volume (m^3, sediment plus water), reduced if the
        bed cannot supply it.
        """

    @abstractmethod
    def remove(self, x: float, grain: int, volume: float) -> float:
        """Erodes up to `volume` m^3 of one grain class; returns the volume removed."""

    @abstractmethod
    def add(self, x: float, grain: int, volume: float) -> float:
        """Deposits up to `volume` m^3 of one grain class; returns the volume accepted."""

    @abstractmethod
    def depth_at(self, x: float) -> float:
        """Bed elevation at x (negative below sea level)."""


class BathymetryBed(BedArchitecture):
    """
    Seabed held in memory on a uniform grid.

    The bottom sediment has a fixed grain composition. Deposition fills the
    water column up to sea level and no further; erosion is limited to an
    optional erodible thickness per node.
    """

    def __init__(self, x, depth, width, bottom_fraction, erodible_thickness=None):
        self.x = np.array(x, dtype=float)
        self.depth = np.array(depth, dtype=float)
        self.width = np.array(width, dtype=float)
        self.bottom_fraction = np.array(bottom_fraction, dtype=float)

        if len(self.x) < 2:
            raise ValueError("BathymetryBed needs at least two nodes")
        if not (len(self.x) == len(self.depth) == len(self.width)):
            raise ValueError("Bathymetry x, depth and width must have the same length")

        self.dx = self.x[1] - self.x[0]
        if self.dx <= 0 or not np.allclose(np.diff(self.x), self.dx):
            raise ValueError("Bathymetry nodes must be uniformly spaced and increasing")

        if erodible_thickness is None:
            self.erodible = np.full(len(self.x), np.inf)
        else:
            self.erodible = np.broadcast_to(np.asarray(erodible_thickness, dtype=float),
                                            self.x.shape).copy()

        # Net deposit thickness (m) of each grain class
        self.deposit = np.zeros((len(self.bottom_fraction), len(self.x)))

    @classmethod
    def from_profile(cls, x, depth, width, dx, bottom_fraction, erodible_thickness=None):
        """Resamples a measured (x, depth, width) profile onto nodes spaced dx apart."""
        x = np.asarray(x, dtype=float)
        x_new = np.arange(x[0], x[-1] + 0.5 * dx, dx)
        x_new = x_new[x_new <= x[-1] + 1e-9 * dx]
        return cls(x_new,
                   np.interp(x_new, x, np.asarray(depth, dtype=float)),
                   np.interp(x_new, x, np.asarray(width, dtype=float)),
                   bottom_fraction, erodible_thickness)

    @classmethod
    def from_config(cls, bathy, dx, bottom_fraction, flow=None):
        """
        Builds the bed from a BathymetryConfig. Widths and the length of a
        generated profile fall back to the channel geometry in `flow`.
        """
        flow = flow or FlowConstants()
        width_default = flow.channel_width if bathy.width_default is None else bathy.width_default

        if bathy.x:
            width = bathy.width or [width_default] * len(bathy.x)
            return cls.from_profile(bathy.x, bathy.depth, width, dx,
                                    bottom_fraction, bathy.erodible_thickness)

        length = flow.channel_length if bathy.length is None else bathy.length
        x = np.arange(0., length + 0.5 * dx, dx)
        depth = bathy.depth_at_origin - bathy.slope * x
        width = np.full(len(x), width_default)
        return cls(x, depth, width, bottom_fraction, bathy.erodible_thickness)

    @property
    def len(self) -> int:
        return len(self.x)

    @property
    def n_grains(self) -> int:
        return len(self.bottom_fraction)

    def index(self, x: float) -> int:
        i = int(round((x - self.x[0]) / self.dx))
        return min(max(i, 0), self.len - 1)

    def composition_at(self, x, volume):
        i = self.index(x)
        available = self.erodible[i] * self.dx * self.width[i]
        return self.bottom_fraction.copy(), min(volume, available)

    def remove(self, x, grain, volume):
        if volume <= 0:
            return 0.0

        i = self.index(x)
        dh = min(volume / (self.dx * self.width[i]), self.erodible[i])

        self.depth[i] -= dh
        self.erodible[i] -= dh
        self.deposit[grain, i] -= dh

        return dh * self.dx * self.width[i]

    def add(self, x, grain, volume):
        if volume <= 0:
            return 0.0

        i = self.index(x)
        dh = volume / (self.dx * self.width[i])

        # No deposition above sea level
        if self.depth[i] + dh > 0:
            dh = -self.depth[i]
        if dh < 0:
            dh = 0.0

        self.depth[i] += dh
        self.erodible[i] += dh
        self.deposit[grain, i] += dh

        return dh * self.dx * self.width[i]

    def depth_at(self, x):
        return float(self.depth[self.index(x)])

    def set_width(self, river_width: float):
        """Flow width starts at the river width for every flood."""
        self.width[:] = river_width

    def copy(self) -> "BathymetryBed":
        new = BathymetryBed(self.x, self.depth, self.width, self.bottom_fraction)
        new.erodible = self.erodible.copy()
        new.deposit = self.deposit.copy()
        return new

    def reset_from(self, other: "BathymetryBed"):
        self.depth[:] = other.depth
        self.width[:] = other.width
        self.erodible[:] = other.erodible
        self.deposit[:] = other.deposit
        return self

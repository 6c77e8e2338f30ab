"""
Shared fixtures for the sakura_flow test suite.
"""
import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from sakura_flow.bed import BathymetryBed, BedArchitecture
from sakura_flow.config import FlowConstants, Flood
from sakura_flow.grid import FlowArray
from sakura_flow.sediment import Sediment


class InertBed(BedArchitecture):
    """Bed with a prescribed elevation that neither gives nor takes sediment."""

    def __init__(self, depth_func, n_grains):
        self.depth_func = depth_func
        self.n_grains = n_grains

    def composition_at(self, x, volume):
        return np.zeros(self.n_grains), 0.0

    def remove(self, x, grain, volume):
        return 0.0

    def add(self, x, grain, volume):
        return 0.0

    def depth_at(self, x):
        return self.depth_func(x)


@pytest.fixture
def sediment():
    return Sediment(rho_grain=[2650., 2650.], rho_dep=[1850., 1400.], u_settling=[1e-3, 1e-4])


@pytest.fixture
def const():
    return FlowConstants()


@pytest.fixture
def flood():
    return Flood(velocity=1.0, concentration=20.0, depth=3.0, width=100.0,
                 duration=600.0, fraction=[0.5, 0.5])


def sloping_bed(n_nodes, dx=100., depth0=-3., slope=0.005, width=100., n_grains=2, x0=0.):
    x = x0 + np.arange(n_nodes) * dx
    return BathymetryBed(x, depth0 - slope * (x - x0), np.full(n_nodes, width),
                         np.full(n_grains, 1. / n_grains))


def flow_array(n_nodes, n_grains=1, dx=100., width=100.):
    a = FlowArray(n_nodes, n_grains)
    a.set_x(np.arange(n_nodes) * dx)
    a.set_width(np.full(n_nodes, width))
    return a


@pytest.fixture
def bed():
    return sloping_bed(200)

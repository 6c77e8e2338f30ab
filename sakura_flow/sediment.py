#!/usr/bin/env python3
import logging
import math
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

# Bursik (1995) settling constants relating removal rate and settling velocity
BURSIK_CONST_A_3 = 1.74
BURSIK_CONST_H = 7.5


@dataclass(frozen=True)
class Sediment:
    """Per grain class densities (kg/m^3) and settling velocities (m/s)."""
    rho_grain: np.ndarray
    rho_dep: np.ndarray
    u_settling: np.ndarray

    def __post_init__(self):
        for name in ("rho_grain", "rho_dep", "u_settling"):
            object.__setattr__(self, name, np.asarray(getattr(self, name), dtype=float))
        if not (len(self.rho_grain) == len(self.rho_dep) == len(self.u_settling)):
            raise ValueError("Sediment arrays must have one value per grain type")
        if len(self.rho_grain) == 0:
            raise ValueError("Sediment needs at least one grain type")

    @property
    def n_grains(self) -> int:
        return len(self.rho_grain)

    def porosity(self, rho_water: float) -> np.ndarray:
        return (self.rho_grain - self.rho_dep) / (self.rho_grain - rho_water)

    @classmethod
    def from_config(cls, cfg) -> "Sediment":
        if cfg.settling_velocity is not None:
            u_settling = np.asarray(cfg.settling_velocity, dtype=float)
        else:
            # Grains occupying a smaller part of the flow settle out faster
            rate = np.asarray(cfg.removal_rate, dtype=float) / np.asarray(cfg.flow_fraction, dtype=float)
            u_settling = removal_rate_to_settling_velocity(rate)

        for n, w_s in enumerate(u_settling):
            logger.info(f"Grain {n}: settling velocity (cm/s): {w_s * 100.:.4f}")

        return cls(
            rho_grain=np.asarray(cfg.grain_density, dtype=float),
            rho_dep=np.asarray(cfg.bulk_density, dtype=float),
            u_settling=u_settling,
        )


def removal_rate_to_settling_velocity(rate):
    """Settling velocity (m/s) of a removal rate given in 1/day."""
    return np.asarray(rate, dtype=float) * BURSIK_CONST_A_3 * BURSIK_CONST_H / SECONDS_PER_DAY


def settling_velocity_to_removal_rate(w_s):
    return np.asarray(w_s, dtype=float) * SECONDS_PER_DAY / (BURSIK_CONST_A_3 * BURSIK_CONST_H)


def _dimensionless_settling(r, diameter, nu, gravity):
    d_star = r * gravity * diameter**3 / nu**2
    log_d = math.log10(d_star)
    w_star = (-3.76715
              + 1.92944 * log_d
              - 0.09815 * log_d**2
              - 0.00575 * log_d**3
              + 0.00056 * log_d**4)
    return 10.0**w_star


def settling_velocity(rho_grain, diameter, rho_water, nu, gravity=9.81):
    """
    Dietrich (1982) settling velocity of a natural grain.

    Args:
        rho_grain: grain density (kg/m^3)
        diameter: equivalent grain diameter (m)
        rho_water: density of the ambient water (kg/m^3)
        nu: kinematic viscosity of the water (m^2/s)

    Returns:
        Settling velocity in m/s.
    """
    if rho_grain <= rho_water or diameter <= 0 or nu <= 0:
        raise ValueError("settling_velocity needs rho_grain > rho_water, diameter > 0 and nu > 0")

    r = (rho_grain - rho_water) / rho_water
    w_star = _dimensionless_settling(r, diameter, nu, gravity)
    return (r * gravity * nu * w_star) ** (1. / 3.)


def reynolds_number(rho_grain, diameter, rho_water, nu, gravity=9.81):
    """Particle Reynolds number sqrt(R g D^3) / nu."""
    if rho_grain <= rho_water or diameter <= 0 or nu <= 0:
        raise ValueError("reynolds_number needs rho_grain > rho_water, diameter > 0 and nu > 0")

    r = (rho_grain - rho_water) / rho_water
    return math.sqrt(r * gravity * diameter**3) / nu

#!/usr/bin/env python3
import dataclasses
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

logger = logging.getLogger(__name__)

HEAD_CELERITY_MODES = ("buoyancy", "buoyancy_flux")


@dataclass(frozen=True)
class FlowConstants:
    # Entrainment
    e_a: float = 0.00153
    e_b: float = 0.0204

    # Bed shear strength (kPa)
    sua: float = 30.0
    sub: float = 0.5

    # Friction
    c_drag: float = 0.004
    friction_angle: float = 20.0  # degrees
    mu_water: float = 1.3e-6      # kinematic viscosity (m^2/s)

    # Water
    rho_river_water: float = 1028.0
    rho_sea_water: float = 1028.0

    # Channel geometry, the default for beds without their own widths or length (m)
    channel_width: float = 100.0
    channel_length: float = 30000.0

    # Distance downstream of the first node where deposition starts (m)
    dep_start: float = 2000.0

    # Physical constants
    gravity: float = 9.81
    submerged_specific_gravity: float = 1.65

    # Flow head propagation rule
    head_celerity: str = "buoyancy"

    @property
    def tan_phi(self) -> float:
        return math.tan(math.radians(self.friction_angle))

    def for_run(self, x0: float) -> "FlowConstants":
        """Copy with shear strengths in Pa and deposition start in grid coordinates."""
        return dataclasses.replace(
            self,
            sua=self.sua * 1e3,
            sub=self.sub * 1e3,
            dep_start=self.dep_start + x0,
        )


@dataclass
class SedimentConfig:
    grain_density: List[float] = field(default_factory=lambda: [2650.0] * 5)
    bulk_density: List[float] = field(
        default_factory=lambda: [1850.0, 1600.0, 1400.0, 1300.0, 1200.0]
    )
    # Removal rate constants (1/day)
    removal_rate: List[float] = field(
        default_factory=lambda: [25.0, 16.8, 9.0, 3.2, 2.4]
    )
    flow_fraction: List[float] = field(default_factory=lambda: [1.0] * 5)
    bottom_fraction: List[float] = field(default_factory=lambda: [0.2] * 5)
    # Settling velocities (m/s); derived from removal rates when not given
    settling_velocity: Optional[List[float]] = None

    @property
    def n_grains(self) -> int:
        return len(self.grain_density)


@dataclass
class BathymetryConfig:
    # Explicit profile, or a generated constant-slope profile when x is empty
    x: List[float] = field(default_factory=list)
    depth: List[float] = field(default_factory=list)
    width: List[float] = field(default_factory=list)

    # None takes the channel length and width of the flow constants
    length: Optional[float] = None
    depth_at_origin: float = -3.0
    slope: float = 0.005
    width_default: Optional[float] = None

    # Bulk thickness of erodible bottom sediment (m); None is unlimited
    erodible_thickness: Optional[float] = None


@dataclass
class Flood:
    velocity: float = 1.0        # m/s
    concentration: float = 20.0  # kg/m^3 of sediment
    depth: float = 3.0           # m
    width: float = 100.0         # m
    duration: float = 3600.0     # s
    fraction: List[float] = field(default_factory=lambda: [0.2] * 5)


@dataclass
class SimulationConfig:
    # Grid and time
    dx: float = 100.0
    dt: float = 30.0
    output_interval: int = 20

    # Run
    reset_bathymetry: bool = False

    flow: FlowConstants = field(default_factory=FlowConstants)
    sediment: SedimentConfig = field(default_factory=SedimentConfig)
    bathymetry: BathymetryConfig = field(default_factory=BathymetryConfig)
    floods: List[Flood] = field(default_factory=lambda: [Flood()])

    # Output
    output_dir: str = "output"
    experiment_name: str = "sakura_run"


def _fill(cls, values: dict, section: str):
    """Builds a dataclass from a mapping, ignoring unknown keys with a warning."""
    known = {f.name for f in dataclasses.fields(cls)}
    kwargs = {}
    for key, value in (values or {}).items():
        if key in known:
            kwargs[key] = value
        else:
            logger.warning(f"Unknown configuration key '{key}' in section '{section}'")
    return cls(**kwargs)


def load_config(config_path: Path) -> SimulationConfig:
    """Loads configuration from a YAML file into the dataclasses."""
    with open(config_path, 'r') as f:
        config_dict = yaml.safe_load(f) or {}

    config = SimulationConfig()
    for key, value in config_dict.items():
        if key == 'flow':
            config.flow = _fill(FlowConstants, value, key)
        elif key == 'sediment':
            config.sediment = _fill(SedimentConfig, value, key)
        elif key == 'bathymetry':
            config.bathymetry = _fill(BathymetryConfig, value, key)
        elif key == 'floods':
            config.floods = [_fill(Flood, item, key) for item in value]
        elif hasattr(config, key):
            setattr(config, key, value)
        else:
            logger.warning(f"Unknown configuration key '{key}' in {config_path}")

    return validate_config(config)


def validate_config(config: SimulationConfig) -> SimulationConfig:
    """Checks every parameter and raises ValueError listing all that fail."""
    errors = []

    def check(ok, message):
        if not ok:
            errors.append(message)

    flow = config.flow
    sed = config.sediment
    n = sed.n_grains

    check(config.dx > 0., "Spacing positive")
    check(config.dt > 0., "Time step positive")
    check(config.output_interval >= 0, "Output interval non-negative")

    check(flow.rho_sea_water >= flow.rho_river_water,
          "Sea water density greater than river water")
    check(flow.rho_river_water >= 1000., "River water density greater than 1000 kg/m^3")
    check(flow.sua > 0., "sua positive")
    check(flow.sub > 0., "sub positive")
    check(flow.e_a > 0., "Ea positive")
    check(flow.e_b > 0., "Eb positive")
    check(flow.c_drag > 0., "Drag coefficient positive")
    check(0. < flow.friction_angle < 90., "Internal friction angle between 0 and 90 degrees")
    check(flow.mu_water > 0., "Viscosity of water positive")
    check(flow.dep_start >= 0., "Start of deposition non-negative")
    check(flow.channel_width > 0., "Channel width positive")
    check(flow.channel_length > 0., "Channel length positive")
    check(flow.head_celerity in HEAD_CELERITY_MODES,
          f"Head celerity mode one of {', '.join(HEAD_CELERITY_MODES)}")

    check(n > 0, "At least one grain type")
    for name in ("bulk_density", "removal_rate", "flow_fraction", "bottom_fraction"):
        check(len(getattr(sed, name)) == n, f"One {name} value per grain type")
    if sed.settling_velocity is not None:
        check(len(sed.settling_velocity) == n, "One settling_velocity value per grain type")
        check(all(v > 0. for v in sed.settling_velocity), "Settling velocities positive")
    check(all(v >= 0. for v in sed.removal_rate), "Removal rates positive")
    check(all(0. < v <= 1. for v in sed.flow_fraction), "Fraction of flow between 0 and 1")
    check(all(0. <= v <= 1. for v in sed.bottom_fraction),
          "Fraction of bottom sediment between 0 and 1")
    check(all(v >= flow.rho_sea_water for v in sed.bulk_density),
          "Bulk density greater than sea water")
    check(all(g >= b for g, b in zip(sed.grain_density, sed.bulk_density)),
          "Grain density greater than bulk density")

    bathy = config.bathymetry
    if bathy.x:
        check(len(bathy.x) >= 2, "At least two bathymetry points")
        check(len(bathy.depth) == len(bathy.x), "One bathymetry depth per position")
        check(not bathy.width or len(bathy.width) == len(bathy.x),
              "One bathymetry width per position")
    else:
        length = flow.channel_length if bathy.length is None else bathy.length
        check(length > config.dx, "Bathymetry length greater than spacing")
    check(bathy.width_default is None or bathy.width_default > 0.,
          "Bathymetry default width positive")
    check(bathy.erodible_thickness is None or bathy.erodible_thickness >= 0.,
          "Erodible thickness non-negative")

    check(len(config.floods) > 0, "At least one flood")
    for i, flood in enumerate(config.floods):
        check(flood.velocity > 0., f"Flood {i}: velocity positive")
        check(flood.concentration > 0., f"Flood {i}: concentration positive")
        check(flood.depth > 0., f"Flood {i}: depth positive")
        check(flood.width > 0., f"Flood {i}: width positive")
        check(flood.duration > 0., f"Flood {i}: duration positive")
        check(len(flood.fraction) == n, f"Flood {i}: one fraction per grain type")

    if errors:
        raise ValueError("Invalid configuration:\n  " + "\n  ".join(errors))

    return config

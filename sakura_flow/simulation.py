#!/usr/bin/env python3
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np

from sakura_flow.erosion import deposit_all
from sakura_flow.grid import FlowArray, FlowNode, set_outflow
from sakura_flow.hydraulics import (advance_concentration, advance_head, advance_thickness,
                                    average_midpoint, correct_velocity, predict_velocity)
from sakura_flow.numerics import HMIN

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    ITERATING = "iterating"
    SUCCESS = "success"
    FALLBACK_DEPOSIT = "fallback_deposit"


@dataclass
class MassBalance:
    """Sediment masses (kg) over one run."""
    mass_in: float = 0.0
    eroded: float = 0.0
    deposited: float = 0.0
    suspended: float = 0.0
    lost: float = 0.0

    @property
    def balance(self) -> float:
        return self.mass_in + self.eroded - self.deposited - self.suspended - self.lost

    @property
    def relative_error(self) -> float:
        if self.mass_in <= 0:
            return 0.0
        return self.balance / self.mass_in


@dataclass
class SakuraResult:
    x: np.ndarray
    deposit: np.ndarray   # deposit thickness (m), shape (n_grains, n_nodes)
    erosion: np.ndarray   # eroded thickness (m), shape (n_grains, n_nodes)
    state: RunState
    n_steps: int
    time: float
    x_head: float
    ind_head: int
    n_negative_thickness: int
    mass_balance: MassBalance
    metrics: dict = field(default_factory=dict)
    snapshots: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state == RunState.SUCCESS


def check_inputs(flood, x, width, sed, dt):
    """Raises ValueError listing every argument of a run that is out of range."""
    errors = []

    if dt <= 0:
        errors.append(f"Time step must be positive (got {dt})")
    if flood.velocity <= 0:
        errors.append(f"Flood velocity must be positive (got {flood.velocity})")
    if flood.concentration <= 0:
        errors.append(f"Flood concentration must be positive (got {flood.concentration})")
    if flood.depth <= 0:
        errors.append(f"Flood depth must be positive (got {flood.depth})")
    if flood.duration <= 0:
        errors.append(f"Flood duration must be positive (got {flood.duration})")
    if sed.n_grains <= 0:
        errors.append("At least one grain type is needed")
    if len(flood.fraction) != sed.n_grains:
        errors.append(f"Flood has {len(flood.fraction)} grain fractions for {sed.n_grains} grain types")
    if len(x) < 2:
        errors.append(f"At least two nodes are needed (got {len(x)})")
    else:
        spacing = np.diff(np.asarray(x, dtype=float))
        if spacing[0] <= 0 or not np.allclose(spacing, spacing[0]):
            errors.append("Node positions must be uniformly spaced and increasing")
    if len(width) != len(x):
        errors.append(f"Got {len(width)} widths for {len(x)} nodes")

    if errors:
        raise ValueError("Invalid sakura run:\n  " + "\n  ".join(errors))


def inflow_from_flood(flood, sed) -> FlowNode:
    """River mouth boundary values; flood concentration is kg/m^3, the flow carries volume fractions."""
    c_grain = flood.concentration * np.asarray(flood.fraction, dtype=float) / sed.rho_grain
    return FlowNode(u=flood.velocity, c=c_grain.sum(), h=flood.depth, c_grain=c_grain)


class SakuraSimulation:
    """Runs one flood as a turbidity current over the bed."""

    def __init__(self, flood, x, width, sed, const, bed, dt, output_interval=0):
        check_inputs(flood, x, width, sed, dt)

        self.flood = flood
        self.sed = sed
        self.bed = bed
        self.dt = dt
        self.output_interval = output_interval

        x = np.asarray(x, dtype=float)
        self.dx = x[1] - x[0]
        self.const = const.for_run(x[0])

        # Previous, midpoint and next states
        self.a = FlowArray(len(x), sed.n_grains)
        self.a.set_x(x).set_width(width)
        self.a_mid = self.a.copy()
        self.a_next = self.a.copy()

        self.inflow = inflow_from_flood(flood, sed)
        self.outflow = FlowNode(n_grain=sed.n_grains)

        self.state = RunState.INIT
        self.time = 0.0
        self.step = 0
        self.x_head = x[0] + HMIN
        self.ind_head = 0
        self.n_negative = 0

        self.mass_in = 0.0
        self.mass_lost = 0.0

        self.metrics = {'time': [], 'x_head': [], 'max_velocity': []}
        self.snapshots = []

    def simulate_step(self) -> bool:
        """Advances the flow by one time step; returns False if the step failed."""
        a, a_mid, a_next = self.a, self.a_mid, self.a_next
        dt, const = self.dt, self.const

        if self.time > self.flood.duration:
            self.inflow.zero()

        set_outflow(self.outflow, a, self.x_head, dt, self.dx)
        a.set_boundary(self.inflow, self.outflow)
        a_mid.set_boundary(self.inflow, self.outflow)

        # 1. Velocity at the half step
        ok = predict_velocity(a_mid, a, self.ind_head, const, self.bed, dt)

        # 2. Thickness and concentration at the full step
        if ok:
            ok, n_clamped = advance_thickness(a_next, a, a_mid.u, self.ind_head, const, dt)
            self.n_negative += n_clamped
        if ok:
            ok = advance_concentration(a_next, a, a_mid.u, self.ind_head,
                                       self.sed, const, self.bed, dt)
        if ok:
            self.mass_in += self._inflow_mass(dt)

            # Outflow recomputed from the previous state; a ramping outflow grows twice per step
            set_outflow(self.outflow, a, self.x_head, dt, self.dx)
            a_next.set_boundary(self.inflow, self.outflow)

            # 3. Velocity at the full step from the midpoint state
            average_midpoint(a_mid, a, a_next)
            ok = correct_velocity(a, a_mid, a_next, self.ind_head, const, self.bed, dt)

        if ok:
            self.ind_head, self.x_head = advance_head(a, a_mid.u, self.ind_head, self.x_head,
                                                      dt, self.dx, const)

        self.mass_lost += a_next.mass_lost(self.sed, dt)
        a.copy_from(a_next)

        self.time += dt
        self.step += 1
        self._update_metrics()

        return ok

    def _inflow_mass(self, dt) -> float:
        k = self.a.idx(0)
        flux_water = self.inflow.u * self.a.w[k] * self.inflow.h
        return dt * flux_water * float(np.sum(self.inflow.c_grain * self.sed.rho_grain))

    def _update_metrics(self):
        k = self.a.interior
        self.metrics['time'].append(self.time)
        self.metrics['x_head'].append(self.x_head)
        self.metrics['max_velocity'].append(float(np.max(self.a.u[k])))

        if self.output_interval and self.step % self.output_interval == 0:
            self.snapshots.append({
                'time': self.time,
                'x_head': self.x_head,
                'u': self.a.u[k].copy(),
                'h': self.a.h[k].copy(),
                'c': self.a.c[k].copy(),
            })

        if self.step % 100 == 0:
            logger.info(
                f"Step {self.step}, Time {self.time:.1f}s, head at {self.x_head:.1f}m "
                f"(node {self.ind_head}), max velocity {self.metrics['max_velocity'][-1]:.3f}m/s"
            )

    def mass_balance(self) -> MassBalance:
        return MassBalance(
            mass_in=self.mass_in,
            eroded=self.a.mass_eroded(self.sed),
            deposited=self.a.mass_deposited(self.sed),
            suspended=self.a.mass_in_suspension(self.sed),
            lost=self.mass_lost,
        )

    def run(self) -> SakuraResult:
        """Iterates until twice the flood duration has passed or a step fails."""
        logger.info(
            f"Starting flood: u={self.flood.velocity}m/s, h={self.flood.depth}m, "
            f"c={self.flood.concentration}kg/m^3 for {self.flood.duration}s"
        )
        self.state = RunState.ITERATING

        ok = True
        while self.time <= 2. * self.flood.duration and ok:
            ok = self.simulate_step()

        if ok:
            self.state = RunState.SUCCESS
        else:
            logger.warning(f"Flow stopped at step {self.step} (t={self.time:.1f}s); "
                           f"depositing the suspended load in place")
            deposit_all(self.a, self.sed, self.const, self.bed)
            self.state = RunState.FALLBACK_DEPOSIT

        balance = self.mass_balance()
        self._report(balance)

        return SakuraResult(
            x=self.a.x[self.a.interior].copy(),
            deposit=self._thickness(self.a.d),
            erosion=self._thickness(self.a.e),
            state=self.state,
            n_steps=self.step,
            time=self.time,
            x_head=self.x_head,
            ind_head=self.ind_head,
            n_negative_thickness=self.n_negative,
            mass_balance=balance,
            metrics=self.metrics,
            snapshots=self.snapshots,
        )

    def _thickness(self, volume) -> np.ndarray:
        """Bulk thickness (m) of per grain solid volumes, shape (n_grains, n_nodes)."""
        k = self.a.interior
        area = self.a.cell_length() * self.a.w[k]
        bulk = volume[k] * (self.sed.rho_grain / self.sed.rho_dep)
        return (bulk / area[:, None]).T

    def _report(self, mb: MassBalance):
        logger.info(f"Run finished ({self.state.value}) after {self.step} steps, "
                    f"t={self.time:.1f}s, head at {self.x_head:.1f}m")
        logger.info(f"Mass of sediment entering the flow (kg): {mb.mass_in:.6g}")
        logger.info(f"Mass eroded by the flow (kg): {mb.eroded:.6g}")
        logger.info(f"Mass deposited by the flow (kg): {mb.deposited:.6g}")
        logger.info(f"Mass in suspension (kg): {mb.suspended:.6g}")
        logger.info(f"Mass carried out of the domain (kg): {mb.lost:.6g}")
        logger.info(f"Mass balance error: {mb.relative_error:.3%}")

        if self.n_negative:
            logger.warning(f"Negative flow thickness was set to zero {self.n_negative} times")
        if abs(mb.balance) > 0.01 * mb.mass_in:
            logger.warning(f"Mass balance error above 1%: {mb.balance:.6g} kg")


def run_sakura(flood, x, width, sed, const, bed, dt, output_interval=0) -> SakuraResult:
    """
    Simulates a hyperpycnal flood entering the basin at x[0].

    Args:
        flood: Flood with the river mouth velocity, depth, concentration (kg/m^3),
            duration and grain fractions.
        x: node positions (m), uniformly spaced.
        width: flow width at each node (m).
        sed: Sediment definition.
        const: FlowConstants as configured (sua/sub in kPa, deposition start
            relative to x[0]).
        bed: BedArchitecture the flow erodes from and deposits onto.
        dt: time step (s).
        output_interval: record u, h and c every this many steps (0 disables).

    Returns:
        SakuraResult. A run that fails part way still returns the deposit,
        with everything left in suspension dropped in place.
    """
    sim = SakuraSimulation(flood, x, width, sed, const, bed, dt, output_interval)
    return sim.run()

import dataclasses

import numpy as np
import pytest

from sakura_flow.config import FlowConstants, Flood
from sakura_flow.sediment import Sediment
from sakura_flow.simulation import (MassBalance, RunState, SakuraSimulation, inflow_from_flood,
                                    run_sakura)
from tests.conftest import InertBed, sloping_bed

DT = 10.


@pytest.fixture
def depositing():
    """Deposition from the river mouth on, no erosion."""
    return FlowConstants(dep_start=0.)


@pytest.fixture
def sim(flood, sediment, depositing, bed):
    return SakuraSimulation(flood, bed.x, bed.width, sediment, depositing, bed, DT, output_interval=10)


class TestRun:

    def test_run_outlasts_the_flood(self, sim, flood):
        result = sim.run()

        # The waning flow may stall before twice the flood duration
        assert result.state in (RunState.SUCCESS, RunState.FALLBACK_DEPOSIT)
        assert flood.duration / DT < result.n_steps <= int(2 * flood.duration / DT) + 1
        assert result.time == pytest.approx(result.n_steps * DT)

    def test_mass_is_conserved(self, sim):
        mb = sim.run().mass_balance

        assert mb.mass_in > 0.
        assert mb.deposited > 0.
        assert mb.eroded == 0.
        assert abs(mb.relative_error) < 0.01

    def test_inflow_mass_matches_flood(self, sim, flood):
        mb = sim.run().mass_balance

        # River discharge times concentration over the flood duration
        expected = flood.velocity * flood.depth * flood.width * flood.concentration * flood.duration
        assert mb.mass_in == pytest.approx(expected, rel=0.05)

    def test_grain_concentrations_sum_to_total(self, sim):
        ok = True
        while sim.time <= 2. * sim.flood.duration and ok:
            ok = sim.simulate_step()
            assert sim.a.grain_sum_error() < 1e-9, f"step {sim.step}"
        assert sim.step > 1

    def test_head_never_moves_back(self, sim):
        result = sim.run()
        x_head = np.asarray(result.metrics['x_head'])

        assert x_head[-1] > 0.
        assert np.all(np.diff(x_head) >= 0.)

    def test_deposit_thickness(self, sim, sediment, bed):
        depth_before = bed.depth.copy()
        result = sim.run()

        assert result.deposit.shape == (sediment.n_grains, bed.len)
        assert np.all(result.deposit >= 0.)
        assert result.deposit.sum() > 0.
        assert np.all(result.erosion == 0.)
        # The bed received the same sediment as bulk deposit
        porosity = sediment.porosity(1028.)
        bulk = result.deposit * (sediment.rho_dep / sediment.rho_grain / (1. - porosity))[:, None]
        assert np.allclose(bulk, bed.deposit, atol=1e-12)
        assert np.allclose(bed.deposit.sum(axis=0), bed.depth - depth_before, atol=1e-9)

    def test_snapshots_recorded(self, sim):
        result = sim.run()
        assert len(result.snapshots) == result.n_steps // 10
        assert result.snapshots[0]['h'].shape == (len(result.x),)


def test_buoyancy_flux_head_mode(flood, sediment, bed):
    const = FlowConstants(dep_start=0., head_celerity="buoyancy_flux")
    result = run_sakura(flood, bed.x, bed.width, sediment, const, bed, DT)
    assert result.state in (RunState.SUCCESS, RunState.FALLBACK_DEPOSIT)
    assert result.x_head > 0.


def test_failed_step_deposits_load_in_place(flood, sediment, bed):
    # A time step this long blows the flow up on the second step
    flood = dataclasses.replace(flood, duration=3e4)

    result = run_sakura(flood, bed.x, bed.width, sediment, FlowConstants(), bed, 1e4)

    assert result.state == RunState.FALLBACK_DEPOSIT
    assert not result.success
    assert result.n_steps == 2
    assert result.n_negative_thickness > 0
    assert result.mass_balance.deposited > 0.


def test_mass_is_conserved_on_flat_bed():
    sed = Sediment(rho_grain=[2650.], rho_dep=[1850.], u_settling=[1e-3])
    flood = Flood(velocity=1.0, concentration=20.0, depth=3.0, width=100.0,
                  duration=600.0, fraction=[1.0])
    bed = sloping_bed(200, depth0=-20., slope=0., n_grains=1)

    mb = run_sakura(flood, bed.x, bed.width, sed, FlowConstants(dep_start=0.), bed, DT).mass_balance

    assert mb.mass_in > 0.
    assert mb.deposited > 0.
    assert mb.eroded == 0.
    assert abs(mb.relative_error) < 0.01


class TestOneStep:

    @pytest.fixture
    def flat(self, flood, sediment):
        """Ten nodes over a flat bed that neither erodes nor takes deposits."""
        x = np.arange(10) * 100.
        bed = InertBed(lambda x: -100., sediment.n_grains)
        return SakuraSimulation(flood, x, np.full(10, 100.), sediment,
                                FlowConstants(dep_start=0.), bed, DT)

    def test_outflow_ramps_twice_per_step(self, flat):
        sim = flat
        k = sim.a.interior
        sim.a.h[k] = 1.
        sim.a.u[k] = 1.
        # Head part way across the last cell
        sim.ind_head = 9
        sim.x_head = 900. + 50.

        assert sim.simulate_step()

        # h[len-2] u[len-1] dt / dx, once before the predictor and once before the corrector
        assert sim.outflow.h == pytest.approx(2. * 1. * 1. * DT / 100.)
        assert sim.outflow.u == 0.
        assert sim.a.h[sim.a.idx(10)] == pytest.approx(0.2)

    def test_transport_only_moves_mass_across_boundaries(self, flat, sediment):
        sim = flat
        for a in (sim.a, sim.a_mid, sim.a_next):
            a.h[a.idx(0):a.idx(5)] = 1.
            a.u[a.idx(0):a.idx(6)] = 1.
            a.c_grain[a.idx(0):a.idx(5)] = 0.002
            a.c[a.idx(0):a.idx(5)] = 0.004
        sim.ind_head = 5
        sim.x_head = 550.

        before = sim.a.mass_in_suspension(sediment)
        assert sim.simulate_step()
        after = sim.a.mass_in_suspension(sediment)

        assert sim.mass_in > 0.
        assert sim.mass_lost == 0.
        assert np.all(sim.a.e == 0.) and np.all(sim.a.d == 0.)
        assert after - before == pytest.approx(sim.mass_in - sim.mass_lost, rel=1e-8)


class TestInputs:

    def test_rejects_non_positive_time_step(self, flood, sediment, const, bed):
        with pytest.raises(ValueError, match="Time step"):
            run_sakura(flood, bed.x, bed.width, sediment, const, bed, 0.)

    def test_lists_every_bad_flood_value(self, flood, sediment, const, bed):
        flood = dataclasses.replace(flood, velocity=0., depth=-1.)
        with pytest.raises(ValueError) as err:
            run_sakura(flood, bed.x, bed.width, sediment, const, bed, DT)
        assert "velocity" in str(err.value)
        assert "depth" in str(err.value)

    def test_rejects_mismatched_fractions(self, flood, sediment, const, bed):
        flood = dataclasses.replace(flood, fraction=[1.])
        with pytest.raises(ValueError, match="grain"):
            run_sakura(flood, bed.x, bed.width, sediment, const, bed, DT)

    def test_rejects_single_node(self, flood, sediment, const, bed):
        with pytest.raises(ValueError, match="two nodes"):
            run_sakura(flood, [0.], [100.], sediment, const, bed, DT)

    def test_rejects_mismatched_widths(self, flood, sediment, const, bed):
        with pytest.raises(ValueError, match="widths"):
            run_sakura(flood, bed.x, bed.width[:-1], sediment, const, bed, DT)

    def test_rejects_uneven_nodes(self, flood, sediment, const, bed):
        x = bed.x.copy()
        x[5:] += 50.
        with pytest.raises(ValueError, match="uniformly spaced"):
            run_sakura(flood, x, bed.width, sediment, const, bed, DT)

    def test_rejects_decreasing_nodes(self, flood, sediment, const, bed):
        with pytest.raises(ValueError, match="uniformly spaced and increasing"):
            run_sakura(flood, bed.x[::-1], bed.width, sediment, const, bed, DT)


def test_inflow_from_flood(flood, sediment):
    node = inflow_from_flood(flood, sediment)

    assert node.u == 1.0
    assert node.h == 3.0
    assert node.c_grain == pytest.approx([10. / 2650., 10. / 2650.])
    assert node.c == pytest.approx(20. / 2650.)


def test_mass_balance():
    mb = MassBalance(mass_in=100., eroded=10., deposited=80., suspended=25., lost=4.)
    assert mb.balance == pytest.approx(1.)
    assert mb.relative_error == pytest.approx(0.01)
    assert MassBalance().relative_error == 0.

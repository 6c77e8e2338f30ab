#!/usr/bin/env python3
"""
Sub-steps of the predictor-corrector scheme.

Each sub-step works on the ghost-padded FlowArray snapshots owned by the
driver and returns False when the flow state has left the physically
meaningful range, which ends the run.
"""
import logging
import math

from sakura_flow.erosion import advect_concentration, deposit, erode
from sakura_flow.numerics import HMIN, UPPER_LIMIT, dfdt, dudt, sin_slope

logger = logging.getLogger(__name__)


def _momentum(u, c, h, k, s, dx, const):
    """dudt at face k from the velocities u and cell values c, h."""
    cl, cr = c[k - 1], c[k]
    hl, hr = h[k - 1], h[k]
    cm = 0.5 * (cl + cr)
    hm = 0.5 * (hl + hr)

    return dudt(u[k], u[k - 1], u[k + 1], u[k - 2], u[k + 2],
                hl, hr, hm, cl, cr, cm, s, dx,
                const.c_drag, const.mu_water,
                const.submerged_specific_gravity, const.gravity), hm


def predict_velocity(a_mid, a, ind_head, const, bed, dt):
    """Tentative velocity at t + dt/2 behind the head; node 0 holds the river velocity."""
    dx = a.x[a.idx(1)] - a.x[a.idx(0)]
    ind_head = min(ind_head, a.len - 1)

    for i in range(1, ind_head + 1):
        k = a.idx(i)
        s = sin_slope(bed, a, i)

        du_dt, hm = _momentum(a.u, a.c, a.h, k, s, dx, const)

        if 0 < hm < HMIN:
            logger.warning(f"Flow too thin to predict velocity at node {i}: h={hm}")
            return False

        a_mid.u[k] = a.u[k] + du_dt * dt * 0.5

        if a_mid.u[k] < 0:
            logger.info(f"predict_velocity: negative flow velocity (i={i}): {a_mid.u[k]}")
            return False

    return True


def advance_thickness(a_next, a_last, u_mid, ind_head, const, dt):
    """
    Flow thickness at t + dt behind the head, including entrainment of sea water.

    Returns (success, number of negative thicknesses clamped to zero).
    """
    dx = a_last.x[a_last.idx(1)] - a_last.x[a_last.idx(0)]
    r, g = const.submerged_specific_gravity, const.gravity
    top = min(ind_head, a_last.len - 1, a_last.len - 2)
    h = a_last.h
    n_clamped = 0

    for i in range(0, top + 1):
        k = a_last.idx(i)
        ul, ur = u_mid[k], u_mid[k + 1]
        um = 0.5 * (ul + ur)

        if abs(um) <= 1e-12:
            e_w = 0.0
        else:
            ri = r * g * a_last.c[k] * h[k] / (um * um)
            e_w = const.e_a / (const.e_b + ri)

        df_dt = dfdt(ul, ur, a_last.w[k], a_last.w[k + 1],
                     h[k - 1], h[k + 1], h[k - 2], h[k + 2], h[k],
                     dx, e_w * abs(um))

        h_new = h[k] + dt * df_dt

        if math.isnan(h_new):
            logger.warning(f"advance_thickness: flow thickness is not a number at node {i}")
            return False, n_clamped

        if h_new < 0:
            logger.warning(f"Negative flow thickness at node {i} set to zero: {h_new} "
                           f"(ul={ul}, ur={ur}, hl={h[k - 1]}, h={h[k]}, hr={h[k + 1]})")
            h_new = 0.0
            n_clamped += 1

        a_next.h[k] = h_new

    return True, n_clamped


def advance_concentration(a_next, a_last, u_mid, ind_head, sed, const, bed, dt):
    """Grain concentrations at t + dt: transport, then erosion, then deposition at each node."""
    top = min(ind_head, a_last.len - 1, a_last.len - 2)

    for i in range(0, top + 1):
        advect_concentration(a_next, a_last, u_mid, i, dt)
        erode(a_next, sed, u_mid, i, dt, const, bed)
        deposit(a_next, sed, i, dt, const, bed)

    return True


def average_midpoint(a_mid, a_last, a_next):
    """Thickness and concentration at t + dt/2, ghost nodes included."""
    a_mid.c[:] = 0.5 * (a_last.c + a_next.c)
    a_mid.h[:] = 0.5 * (a_last.h + a_next.h)
    return True


def correct_velocity(a_last, a_mid, a_next, ind_head, const, bed, dt):
    """Velocity at t + dt from the midpoint state."""
    dx = a_last.x[a_last.idx(1)] - a_last.x[a_last.idx(0)]
    ind_head = min(ind_head, a_last.len - 1)
    success = True

    for i in range(1, ind_head + 1):
        k = a_last.idx(i)
        s = sin_slope(bed, a_last, i)

        du_dt, _ = _momentum(a_mid.u, a_mid.c, a_mid.h, k, s, dx, const)
        a_next.u[k] = a_last.u[k] + du_dt * dt

        if abs(a_next.u[k]) > UPPER_LIMIT:
            logger.error(f"correct_velocity: extreme flow velocity (i={i}): {a_next.u[k]}")
            success = False
        elif a_next.u[k] < 0:
            logger.info(f"correct_velocity: negative flow velocity (i={i}): {a_next.u[k]}")
            success = False

    return success


def head_celerity(a, u, ind_head, const):
    k = a.idx(ind_head)

    if ind_head <= 0:
        return u[a.idx(0)]

    u_head = max(u[k], u[k - 1])
    if u_head <= 0:
        return u_head

    buoyancy = const.gravity * const.submerged_specific_gravity * a.c[k - 1] * a.h[k - 1]
    if const.head_celerity == "buoyancy_flux":
        buoyancy *= u_head

    cap = 1.5 * buoyancy ** (1. / 3.) if buoyancy > 0 else 0.0
    if cap > 0:
        return min(u_head, cap)
    return u_head


def advance_head(a, u, ind_head, x_head, dt, dx, const):
    """Moves the flow head; returns the new (head index, head position)."""
    if ind_head >= a.len:
        return ind_head, x_head

    x_head += head_celerity(a, u, ind_head, const) * dt
    new_ind = int(math.floor((x_head - a.x[a.idx(0)]) / dx))

    if new_ind < 0:
        logger.warning(f"Flow head moved upstream of the first node (x_head={x_head})")
        new_ind = 0

    return new_ind, x_head

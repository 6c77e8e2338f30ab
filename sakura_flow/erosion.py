#!/usr/bin/env python3
import logging

import numpy as np

from sakura_flow.numerics import HMIN, NEAR_BED_RATIO, dfdt

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def rho_flow(c_grain, rho_grain, rho_water):
    """Density of the flow from its grain concentrations."""
    return rho_water + float(np.dot(c_grain, rho_grain))


def erode_depth(rho_f, u, dt, sua, sub, c_drag):
    """Depth (m of sediment plus water) eroded in dt seconds by a flow of speed u."""
    if dt <= 0:
        return 0.0

    e = (c_drag * rho_f * u * u - sub) / sua * (dt / SECONDS_PER_DAY)
    return max(e, 0.0)


def advect_concentration(a_next, a_last, u, i, dt):
    """
    Per grain concentration at node i after transport by the flow.

    Advects h*c_grain from the last state with the face velocities u and
    divides by the new thickness already stored in a_next.
    """
    k = a_last.idx(i)
    dx = a_last.x[k + 1] - a_last.x[k]
    ul, ur = u[k], u[k + 1]
    wl, wr = a_last.w[k], a_last.w[k + 1]
    h = a_last.h
    c = a_last.c_grain

    for n in range(a_last.n_grain):
        if a_next.h[k] < HMIN:
            c_new = 0.0
        else:
            df_dt = dfdt(ul, ur, wl, wr,
                         h[k - 1] * c[k - 1, n], h[k + 1] * c[k + 1, n],
                         h[k - 2] * c[k - 2, n], h[k + 2] * c[k + 2, n],
                         h[k] * c[k, n], dx, 0.0)
            c_new = (c[k, n] * h[k] + dt * df_dt) / a_next.h[k]

            if c_new < -HMIN:
                logger.warning(f"Negative concentration at node {i}, grain {n}: {c_new} (was {c[k, n]})")
                c_new = 0.0

        a_next.c_grain[k, n] = c_new

    a_next.c[k] = a_next.c_grain[k].sum()
    return a_next


def erode(a, sed, u, i, dt, const, bed):
    """Entrains bottom sediment at node i; returns the solid volume eroded (m^3)."""
    if dt <= 0:
        return 0.0

    k = a.idx(i)
    if a.h[k] < HMIN:
        a.c_grain[k] = 0.0
        a.c[k] = 0.0
        return 0.0

    dx = a.x[k + 1] - a.x[k]
    area = dx * a.w[k]
    vol_w = area * a.h[k]
    porosity = sed.porosity(const.rho_sea_water)

    rho_f = rho_flow(a.c_grain[k], sed.rho_grain, const.rho_sea_water)
    e_tot = erode_depth(rho_f, 0.5 * (u[k] + u[k + 1]), dt, const.sua, const.sub, const.c_drag)

    # The bed may not hold as much sediment as the flow could erode
    fractions, volume = bed.composition_at(a.x[k], e_tot * area)
    e_tot = volume / area

    ero = 0.0
    for n in range(sed.n_grains):
        e_grain = e_tot * fractions[n]
        if e_grain > 0:
            e_grain = bed.remove(a.x[k], n, e_grain * area)

        if e_grain > 0:
            e_grain *= 1. - porosity[n]
            a.c_grain[k, n] = max(a.c_grain[k, n] + e_grain / vol_w, 0.0)
        else:
            e_grain = 0.0

        ero += e_grain
        a.e[k, n] += e_grain

    a.c[k] = a.c_grain[k].sum()
    return ero


def deposit(a, sed, i, dt, const, bed):
    """Settles suspended sediment at node i onto the bed; returns the solid volume deposited (m^3)."""
    if dt <= 0:
        return 0.0

    k = a.idx(i)
    if a.x[k] <= const.dep_start:
        return 0.0

    if a.h[k] < HMIN:
        a.c_grain[k] = 0.0
        a.c[k] = 0.0
        return 0.0

    dx = a.x[k + 1] - a.x[k]
    area = dx * a.w[k]
    vol_w = area * a.h[k]
    porosity = sed.porosity(const.rho_sea_water)

    dep = 0.0
    for n in range(sed.n_grains):
        small_h = sed.u_settling[n] * dt * NEAR_BED_RATIO

        # Thin flows drop their whole load in one step
        if a.h[k] <= small_h:
            rate = a.h[k] / dt * a.c_grain[k, n]
        else:
            rate = sed.u_settling[n] * NEAR_BED_RATIO * a.c_grain[k, n]

        d_grain = rate / (1. - porosity[n]) * area * dt
        if d_grain > 0:
            d_grain = bed.add(a.x[k], n, d_grain)
        d_grain = max(d_grain, 0.0) * (1. - porosity[n])

        avail = a.c_grain[k, n] * vol_w
        if d_grain > avail:
            d_grain = avail

        a.c_grain[k, n] = max(a.c_grain[k, n] - d_grain / vol_w, 0.0)

        dep += d_grain
        a.d[k, n] += d_grain

    a.c[k] = a.c_grain[k].sum()
    return dep


def deposit_all(a, sed, const, bed):
    """Drops everything still in suspension where it is; returns the solid volume deposited (m^3)."""
    f_sed = 1. - sed.porosity(const.rho_sea_water)
    vol_w = a.cell_volume()

    dep = 0.0
    for i in range(a.len):
        if vol_w[i] <= 0:
            continue

        k = a.idx(i)
        for n in range(sed.n_grains):
            vol_grain = vol_w[i] * a.c_grain[k, n] / f_sed[n]
            if vol_grain <= 0:
                continue

            # Whatever the bed refuses stays in suspension
            vol_grain = min(bed.add(a.x[k], n, vol_grain) * f_sed[n], vol_w[i] * a.c_grain[k, n])
            a.c_grain[k, n] = max(a.c_grain[k, n] - vol_grain / vol_w[i], 0.0)
            a.d[k, n] += vol_grain
            dep += vol_grain

        a.c[k] = a.c_grain[k].sum()

    return dep

#!/usr/bin/env python3
import logging
import math

logger = logging.getLogger(__name__)

# Smallest flow thickness / velocity treated as non-zero
HMIN = 1e-7

# Largest physically plausible flow velocity (m/s)
UPPER_LIMIT = 20.0

# Ratio of near-bed to depth-averaged concentration
NEAR_BED_RATIO = 2.0


def minmod(x, y):
    if x * y < 0:
        return 0.0
    if abs(x) <= abs(y):
        return x
    return y


def tvd_right(u, f, fl, fr, fll, frr):
    """Value of f at the right face of a cell, upwinded on the sign of u."""
    if abs(u) <= HMIN:
        return 0.0

    if u > 0:
        if f - fl == 0 or f <= HMIN:
            return f
        return f + 0.5 * (f - fl) * minmod(1., (fr - f) / (f - fl))

    if frr - fr == 0 or fr <= HMIN:
        return fr
    return fr - 0.5 * (frr - fr) * minmod(1., (fr - f) / (frr - fr))


def tvd_left(u, f, fl, fr, fll, frr):
    """Value of f at the left face of a cell, upwinded on the sign of u."""
    if abs(u) <= HMIN:
        return 0.0

    if u > 0:
        if fl - fll == 0 or fl <= HMIN:
            return fl
        return fl + 0.5 * (fl - fll) * minmod(1., (f - fl) / (fl - fll))

    if fr - f == 0 or f <= HMIN:
        return f
    return f - 0.5 * (fr - f) * minmod(1., (f - fl) / (fr - f))


def dfdt(ul, ur, wl, wr, fl, fr, fll, frr, fm, dx, ext):
    """
    Rate of change of a cell quantity f advected through a channel of varying width.

    Fluxes through the left and right faces are width weighted and divided by
    the mean cell width; `ext` is an external source (entrainment).
    """
    flux_r = tvd_right(ur, fm, fl, fr, fll, frr)
    flux_l = tvd_left(ul, fm, fl, fr, fll, frr)
    w = 0.5 * (wr + wl)
    return (ul * wl * flux_l - ur * wr * flux_r) / dx / w + ext


def dudt(u, ul, ur, ull, urr, hl, hr, hm, cl, cr, cm, s, dx, c_drag, nu, r, g):
    """
    Acceleration of the flow at a cell face.

    Sum of advection, gravity along the bed slope `s` (sine of the slope angle),
    the hydrostatic pressure gradient, bed friction and turbulent diffusion.
    """
    if cm < 0:
        logger.warning(f"Negative concentration in dudt: cm={cm}")

    u_right = tvd_right(u, u, ul, ur, ull, urr)
    u_left = tvd_left(u, u, ul, ur, ull, urr)
    du_dx = (u_right - u_left) / dx

    u_grav = r * g * s * cm

    if hm < HMIN:
        u_press = r * g * (cm * (hr - hl) + 0.5 * hm * (cr - cl)) / dx
        u_fric = 0.0
    else:
        u_press = 0.5 * r * g / hm * (cr * hr * hr - cl * hl * hl) / dx
        u_fric = c_drag * u * u / hm

    u_visco = nu * (1 + 2.5 * cm) * (ur - 2 * u + ul) / dx / dx

    return -u * du_dx + u_grav - u_press - u_fric - u_visco


def sin_slope(bed, a, i):
    """Sine of the bed slope between nodes i-1 and i, positive downhill."""
    i = max(i, 1)
    x_0 = a.x[a.idx(i - 1)]
    x_1 = a.x[a.idx(i)]

    depth_0 = bed.depth_at(x_0)
    depth_1 = bed.depth_at(x_1)

    return -math.sin(math.atan((depth_1 - depth_0) / (x_1 - x_0)))

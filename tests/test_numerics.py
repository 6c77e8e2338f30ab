import math

import pytest

from sakura_flow.numerics import HMIN, dfdt, dudt, minmod, sin_slope, tvd_left, tvd_right
from tests.conftest import InertBed, flow_array


@pytest.mark.parametrize("x, y, expected", [
    (1., 2., 1.),
    (3., 1., 1.),
    (-3., -1., -1.),
    (-1., 2., 0.),
])
def test_minmod(x, y, expected):
    assert minmod(x, y) == expected


class TestTVD:

    def test_still_flow_has_no_face_value(self):
        assert tvd_right(0., 2., 1., 3., 0., 4.) == 0.
        assert tvd_left(HMIN / 2, 2., 1., 3., 0., 4.) == 0.

    def test_right_face_forward_flow(self):
        assert tvd_right(1., 2., 1., 3., 0., 4.) == pytest.approx(2.5)

    def test_right_face_forward_flow_flat_upwind(self):
        assert tvd_right(1., 2., 2., 3., 0., 4.) == 2.

    def test_right_face_forward_flow_extremum_is_first_order(self):
        assert tvd_right(1., 2., 1., 1., 0., 4.) == 2.

    def test_right_face_backward_flow(self):
        assert tvd_right(-1., 2., 1., 3., 0., 5.) == pytest.approx(2.5)

    def test_left_face_forward_flow(self):
        assert tvd_left(1., 2., 1., 3., 0., 4.) == pytest.approx(1.5)

    def test_left_face_backward_flow_empty_cell(self):
        assert tvd_left(-1., 0., 1., 3., 0., 4.) == 0.

    def test_left_and_right_faces_agree(self):
        # Right face of cell k is the left face of cell k+1
        f = [0.5, 1.0, 1.8, 2.1, 2.2]
        right = tvd_right(1., f[2], f[1], f[3], f[0], f[4])
        left = tvd_left(1., f[3], f[2], f[4], f[1], 9.)
        assert right == pytest.approx(left)


def test_dfdt_uniform_field_only_sees_source():
    assert dfdt(1., 1., 2., 2., 1., 1., 1., 1., 1., 10., 0.5) == pytest.approx(0.5)


def test_dfdt_inflow_into_empty_cell():
    # Flux u*f through the left face into a cell dx long
    assert dfdt(2., 0., 1., 1., 3., 0., 3., 0., 0., 100., 0.) == pytest.approx(0.06)


class TestDudt:

    def test_fluid_at_rest_stays_at_rest(self):
        assert dudt(0., 0., 0., 0., 0., 1., 1., 1., .01, .01, .01, 0., 100.,
                    0.004, 1.3e-6, 1.65, 9.81) == 0.

    def test_gravity_along_slope(self):
        du = dudt(0., 0., 0., 0., 0., 1., 1., 1., .01, .01, .01, 0.1, 100.,
                  0.004, 1.3e-6, 1.65, 9.81)
        assert du == pytest.approx(1.65 * 9.81 * 0.1 * 0.01)

    def test_pressure_pushes_toward_thin_flow(self):
        du = dudt(0., 0., 0., 0., 0., 2., 1., 1.5, .01, .01, .01, 0., 100.,
                  0.004, 1.3e-6, 1.65, 9.81)
        assert du > 0

    def test_friction_slows_flow(self):
        du = dudt(1., 1., 1., 1., 1., 1., 1., 1., 0., 0., 0., 0., 100.,
                  0.004, 1.3e-6, 1.65, 9.81)
        assert du == pytest.approx(-0.004)

    def test_no_division_by_zero_without_flow(self):
        du = dudt(0.5, 0.5, 0.5, 0.5, 0.5, 0., 0., 0., 0., 0., 0., 0.01, 100.,
                  0.004, 1.3e-6, 1.65, 9.81)
        assert math.isfinite(du)


def test_sin_slope_of_bed_at_45_degrees():
    bed = InertBed(lambda x: x, 1)
    a = flow_array(3, dx=1.)

    assert sin_slope(bed, a, 1) == pytest.approx(-math.sqrt(2.) / 2.)
    # Node 0 uses the slope between nodes 0 and 1
    assert sin_slope(bed, a, 0) == sin_slope(bed, a, 1)


def test_sin_slope_is_positive_downhill():
    bed = InertBed(lambda x: -0.01 * x, 1)
    a = flow_array(3, dx=100.)

    assert sin_slope(bed, a, 2) == pytest.approx(math.sin(math.atan(0.01)))

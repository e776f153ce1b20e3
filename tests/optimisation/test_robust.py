"""Tests for the Tukey and Huber penalties."""

import numpy as np
import pytest

from warpforge.optimisation.robust import huber_loss, tukey_penalty


class TestTukey:
    @pytest.mark.parametrize("x", [0.0100001, 0.02, -0.5, 3.0])
    def test_outliers_contribute_nothing(self, x):
        assert tukey_penalty(x) == 0.0

    def test_zero(self):
        assert tukey_penalty(0.0) == 0.0

    def test_cutoff_boundary(self):
        assert tukey_penalty(0.01, 0.01) == 0.0
        assert tukey_penalty(-0.01, 0.01) == 0.0

    def test_continuous_at_cutoff(self):
        c = 0.01
        below = tukey_penalty(c * (1 - 1e-9), c)
        above = tukey_penalty(c * (1 + 1e-9), c)
        assert below == pytest.approx(0.0, abs=1e-15)
        assert above == 0.0

    @pytest.mark.parametrize("x", np.linspace(-0.0099, 0.0099, 21))
    def test_sign_preserved_inside(self, x):
        assert np.sign(tukey_penalty(x)) == np.sign(x)

    def test_inlier_scaling(self):
        assert tukey_penalty(0.005) == pytest.approx(0.005 * 0.75 ** 2)

    def test_custom_cutoff(self):
        assert tukey_penalty(0.05, c=0.1) == pytest.approx(0.05 * 0.75 ** 2)


class TestHuber:
    @pytest.mark.parametrize("d", [0.0, 1e-5, 5e-5, 1e-4])
    def test_quadratic_below_delta(self, d):
        assert huber_loss(d) == pytest.approx(d * d / 2)

    @pytest.mark.parametrize("d", [2e-4, 0.01, 1.0])
    def test_linear_above_delta(self, d):
        delta = 1e-4
        assert huber_loss(d) == pytest.approx(delta * d - delta * delta / 2)

    def test_pieces_agree_at_delta(self):
        delta = 0.5
        quad = delta * delta / 2
        lin = delta * delta - delta * delta / 2
        assert huber_loss(delta, delta) == pytest.approx(quad)
        assert quad == pytest.approx(lin)
        assert huber_loss(delta + 1e-12, delta) == pytest.approx(quad)

"""
Tests for the integrator, cumulative tables and samplers.

Run with: pytest tests/ -v
"""

import math

import numpy as np
import pytest
from scipy.stats import chisquare

from radiolensfit_sim.distributions import E_MAX, e_pdf, scalelength_cdf, scalelength_pdf
from radiolensfit_sim.errors import ConvergenceError, DegenerateDistributionError
from radiolensfit_sim.integrate import cdf
from radiolensfit_sim.sampling import (
    build_cdf_table,
    build_integrated_table,
    generate_ellipticity,
    generate_random_data,
    invert_table,
)


class TestIntegrator:
    """Tests for the adaptive trapezoidal integrator."""

    def test_linear_density(self):
        """Test that pdf(x) = x integrates to b^2 / 2."""
        for b in (0.5, 2.0, 10.0):
            assert cdf(lambda x: x, b) == pytest.approx(b * b / 2, rel=1e-5)

    def test_quadratic_density(self):
        """Test convergence for a curved density."""
        result = cdf(lambda x: x * x, 3.0)
        assert result == pytest.approx(9.0, rel=1e-4)

    def test_idempotent(self):
        """Test that repeated calls give bit-identical results."""
        first = cdf(e_pdf, 0.5)
        second = cdf(e_pdf, 0.5)
        assert first == second

    def test_zero_density(self):
        """Test that an identically zero density converges to 0."""
        assert cdf(lambda x: 0.0, 1.0) == 0.0

    def test_matches_closed_form_cdf(self):
        """Test that integrating the scalelength pdf reproduces its closed form."""
        numeric = cdf(lambda r: scalelength_pdf(1.0, r), 2.0)
        assert numeric == pytest.approx(scalelength_cdf(1.0, 2.0), rel=1e-4)

    def test_non_convergence_raises(self):
        """Test that exhausting the refinement levels raises with context."""
        with pytest.raises(ConvergenceError) as excinfo:
            cdf(math.sqrt, 1.0, tolerance=0.0, max_steps=8)

        err = excinfo.value
        assert err.steps == 8
        assert err.estimate == pytest.approx(2.0 / 3.0, rel=1e-2)
        assert err.delta > 0

    def test_invalid_max_steps(self):
        """Test that fewer than two levels is rejected."""
        with pytest.raises(ValueError, match="max_steps"):
            cdf(lambda x: x, 1.0, max_steps=1)


class TestCumulativeTables:
    """Tests for table construction and inversion."""

    def test_cdf_table_monotone(self):
        """Test that a tabulated CDF starts at 0 and never decreases."""
        table, cf_range = build_cdf_table(scalelength_cdf, 1.0, 0.3, 3.5, table_size=200)

        assert table.shape == (201,)
        assert table[0] == 0.0
        assert np.all(np.diff(table) >= 0)
        assert table[-1] == cf_range

    def test_integrated_table_monotone(self):
        """Test the quadrature-built ellipticity table."""
        table = build_integrated_table(e_pdf, E_MAX, table_size=50)

        assert table.shape == (51,)
        assert table[0] == 0.0
        assert np.all(np.diff(table) >= 0)
        assert table[-1] > 0

    def test_parallel_table_matches_serial(self):
        """Test that the thread pool fills the same table."""
        serial, _ = build_cdf_table(scalelength_cdf, 1.0, 0.3, 3.5, table_size=500)
        parallel, _ = build_cdf_table(
            scalelength_cdf, 1.0, 0.3, 3.5, table_size=500, parallel=True, max_workers=4
        )
        assert np.array_equal(serial, parallel)

    def test_invert_linear_table(self):
        """Test inversion of a uniform distribution table."""
        table = np.linspace(0.0, 1.0, 11)
        values = invert_table(table, np.array([0.05, 0.5, 0.95]), 0.0, 0.1)
        np.testing.assert_allclose(values, [0.05, 0.5, 0.95])

    def test_invert_skips_flat_region(self):
        """Test that a plateau is not selected for u above it."""
        table = np.array([0.0, 0.5, 0.5, 1.0])
        values = invert_table(table, np.array([0.75]), 0.0, 1.0)
        np.testing.assert_allclose(values, [2.5])

    def test_invert_leading_plateau(self):
        """Test that u == 0 on a leading plateau maps to where the mass starts."""
        table = np.array([0.0, 0.0, 1.0])
        values = invert_table(table, np.array([0.0, 0.5]), 0.0, 1.0)
        np.testing.assert_allclose(values, [1.0, 1.5])

    def test_invert_flat_table_raises(self):
        """Test that a table without mass is reported."""
        table = np.zeros(3)
        with pytest.raises(DegenerateDistributionError) as excinfo:
            invert_table(table, np.array([0.0]), 0.0, 1.0)
        assert excinfo.value.index == 2

    def test_integrated_table_monotone_past_support(self):
        """Test the table stays monotone where the density is zero."""
        table = build_integrated_table(e_pdf, 0.9, table_size=1000)

        assert np.all(np.diff(table) >= 0)
        # flat, up to quadrature tolerance, beyond the density's cutoff
        tail = table[int(np.ceil(E_MAX / 0.9 * 1000)) + 1:]
        assert np.ptp(tail) <= 1e-4 * table[-1]


class TestGenerateRandomData:
    """Tests for the range sampler."""

    def test_uniform_distribution(self):
        """Test that a linear CDF gives uniform samples (chi-square)."""
        rng = np.random.default_rng(42)
        nr = 100_000
        data = generate_random_data(lambda p, x: p * x, 1.0, nr, 0.0, 10.0, rng=rng)

        assert data.shape == (nr,)
        assert data.min() >= 0.0
        assert data.max() <= 10.0

        counts, _ = np.histogram(data, bins=20, range=(0.0, 10.0))
        _, p_value = chisquare(counts)
        assert p_value > 1e-3

    def test_linear_ramp_distribution(self):
        """Test samples from density 2x/100 on [0, 10]."""
        rng = np.random.default_rng(7)
        nr = 100_000
        data = generate_random_data(lambda p, x: p * x * x / 2, 1.0, nr, 0.0, 10.0, rng=rng)

        # mean of p(x) = x / 50 on [0, 10] is 20/3
        assert np.mean(data) == pytest.approx(20.0 / 3.0, rel=0.01)

        edges = np.linspace(0.0, 10.0, 21)
        counts, _ = np.histogram(data, bins=edges)
        expected = nr * np.diff(edges ** 2) / 100.0
        _, p_value = chisquare(counts, expected)
        assert p_value > 1e-3

    def test_scalelength_range(self):
        """Test that scalelengths stay inside the requested range."""
        rng = np.random.default_rng(1)
        data = generate_random_data(scalelength_cdf, 1.0, 5000, 0.3, 3.5, rng=rng)

        assert np.all(data >= 0.3)
        assert np.all(data <= 3.5)

    def test_reproducible(self):
        """Test that the same seed gives the same samples, serial or parallel."""
        a = generate_random_data(scalelength_cdf, 1.0, 1000, 0.3, 3.5,
                                 rng=np.random.default_rng(3))
        b = generate_random_data(scalelength_cdf, 1.0, 1000, 0.3, 3.5,
                                 rng=np.random.default_rng(3), parallel=True, max_workers=3)
        assert np.array_equal(a, b)

    def test_out_buffer(self):
        """Test that an output buffer is filled in place."""
        out = np.zeros(100)
        result = generate_random_data(lambda p, x: x, 0.0, 100, 1.0, 2.0,
                                      rng=np.random.default_rng(0), out=out)
        assert result is out
        assert np.all((out >= 1.0) & (out <= 2.0))

    def test_out_buffer_wrong_shape(self):
        """Test that a mis-sized buffer is rejected."""
        with pytest.raises(ValueError, match="out must have shape"):
            generate_random_data(lambda p, x: x, 0.0, 10, 0.0, 1.0, out=np.zeros(5))

    def test_zero_samples(self):
        """Test that nr = 0 returns an empty array."""
        data = generate_random_data(lambda p, x: x, 0.0, 0, 0.0, 1.0)
        assert data.shape == (0,)

    def test_invalid_arguments(self):
        """Test argument validation."""
        with pytest.raises(ValueError, match="non-negative"):
            generate_random_data(lambda p, x: x, 0.0, -1, 0.0, 1.0)
        with pytest.raises(ValueError, match="Empty range"):
            generate_random_data(lambda p, x: x, 0.0, 10, 1.0, 1.0)

    def test_draw_at_start_of_leading_plateau(self):
        """Test that u == 0 maps to where the mass starts, not an error."""
        class ZeroUniforms:
            def random(self, size):
                return np.zeros(size)

        values = generate_random_data(
            lambda p, x: max(x - 5.0, 0.0), 0.0, 4, 0.0, 10.0, rng=ZeroUniforms(), table_size=10
        )
        np.testing.assert_array_equal(values, [5.0, 5.0, 5.0, 5.0])

    def test_constant_cdf_is_degenerate(self):
        """Test that a CDF without mass over the range raises."""
        with pytest.raises(DegenerateDistributionError, match="no mass"):
            generate_random_data(lambda p, x: 1.0, 0.0, 10, 0.0, 1.0)

    def test_decreasing_cdf_rejected(self):
        """Test that a non-monotone CDF is rejected."""
        with pytest.raises(ValueError, match="decreases"):
            generate_random_data(lambda p, x: x + 2 * math.sin(x), 0.0, 10, 0.0, 10.0)


class TestGenerateEllipticity:
    """Tests for the ellipticity generator."""

    def test_output_length(self):
        """Test that 2 * ne * NP components are produced."""
        e1, e2 = generate_ellipticity(10, 3, rng=np.random.default_rng(0), table_size=50)

        assert e1.shape == (60,)
        assert e2.shape == (60,)

    def test_antipodal_pairs(self):
        """Test that every odd entry is the exact negation of the previous one."""
        e1, e2 = generate_ellipticity(50, 4, rng=np.random.default_rng(5), table_size=50)

        assert np.array_equal(e1[1::2], -e1[0::2])
        assert np.array_equal(e2[1::2], -e2[0::2])

    def test_moduli_in_range(self):
        """Test that all moduli lie in [0, 0.804]."""
        e1, e2 = generate_ellipticity(500, 2, rng=np.random.default_rng(11), table_size=50)
        modulus = np.hypot(e1, e2)

        assert np.all(modulus >= 0.0)
        assert np.all(modulus <= E_MAX + 1e-12)

    def test_ring_structure(self):
        """Test that a galaxy's points share a modulus and are pi/NP apart."""
        n_points = 3
        e1, e2 = generate_ellipticity(1, n_points, rng=np.random.default_rng(2), table_size=50)

        modulus = np.hypot(e1, e2)
        np.testing.assert_allclose(modulus, modulus[0])

        angles = np.arctan2(e2[0::2], e1[0::2])
        steps = np.mod(np.diff(angles), 2 * np.pi)
        np.testing.assert_allclose(steps, np.pi / n_points)

    def test_custom_density(self):
        """Test moduli drawn from pdf(e) = e on [0, 1] have mean 2/3."""
        e1, e2 = generate_ellipticity(
            20_000, 1, rng=np.random.default_rng(9), pdf=lambda e: e, e_max=1.0, table_size=100
        )
        modulus = np.hypot(e1[0::2], e2[0::2])
        assert np.mean(modulus) == pytest.approx(2.0 / 3.0, rel=0.01)

    def test_reproducible(self):
        """Test that the same seed gives the same ellipticities."""
        a = generate_ellipticity(20, 2, rng=np.random.default_rng(4), table_size=50)
        b = generate_ellipticity(20, 2, rng=np.random.default_rng(4), table_size=50)

        assert np.array_equal(a[0], b[0])
        assert np.array_equal(a[1], b[1])

    def test_e_max_beyond_density_cutoff(self):
        """Test sampling over a range wider than the default density's support."""
        e1, e2 = generate_ellipticity(
            200, 1, rng=np.random.default_rng(3), e_max=0.9, table_size=1000
        )
        modulus = np.hypot(e1, e2)

        assert np.all(modulus <= E_MAX + 0.9 / 1000)

    def test_zero_density_is_degenerate(self):
        """Test that a density without mass raises."""
        with pytest.raises(DegenerateDistributionError):
            generate_ellipticity(5, 1, pdf=lambda e: 0.0, table_size=10)

    def test_invalid_points_per_ring(self):
        """Test that n_points < 1 is rejected."""
        with pytest.raises(ValueError, match="n_points"):
            generate_ellipticity(5, 0)


class TestDistributions:
    """Tests for the default densities."""

    def test_e_pdf_support(self):
        """Test that e_pdf vanishes at both ends and is positive inside."""
        assert e_pdf(0.0) == 0.0
        assert e_pdf(E_MAX) == 0.0
        assert all(e_pdf(e) > 0 for e in np.linspace(0.01, 0.8, 20))

    def test_scalelength_cdf_limits(self):
        """Test the scalelength CDF limits."""
        assert scalelength_cdf(1.0, 0.0) == 0.0
        assert scalelength_cdf(1.0, 50.0) == pytest.approx(1.0)

    def test_scalelength_cdf_derivative(self):
        """Test that the CDF derivative matches the pdf."""
        h = 1e-6
        for r in (0.2, 1.0, 2.5):
            slope = (scalelength_cdf(1.0, r + h) - scalelength_cdf(1.0, r - h)) / (2 * h)
            assert slope == pytest.approx(scalelength_pdf(1.0, r), rel=1e-5)

    def test_scalelength_cdf_invalid_scale(self):
        """Test that a non-positive scale is rejected."""
        with pytest.raises(ValueError, match="scale"):
            scalelength_cdf(0.0, 1.0)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

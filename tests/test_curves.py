"""Tests for the SplineCurve representation and its serialization."""

import numpy as np
import pytest

from spline_fit.splines import SplineCurve


def make_curve(dim=1, rms_error=None):
    """Cubic curve with two interior knots."""
    t = np.array([0, 0, 0, 0, 1, 2, 3, 3, 3, 3], dtype=float)
    n_coef = len(t) - 3 - 1
    c = np.arange(dim * n_coef, dtype=float)
    return SplineCurve(t, c, k=3, dim=dim, rms_error=rms_error)


class TestSplineCurve:
    """Tests for construction-time invariants."""

    def test_coefficient_length(self):
        """Test len(c) == dim * (len(t) - k - 1)."""
        curve = make_curve(dim=2)

        assert curve.n_knots == 10
        assert curve.n_coefficients == 6
        assert len(curve.c) == curve.dim * (len(curve.t) - curve.k - 1)

    def test_wrong_coefficient_length(self):
        """Test that the old dim * len(t) layout is rejected."""
        t = np.array([0, 0, 0, 0, 1, 1, 1, 1], dtype=float)

        with pytest.raises(ValueError, match="len\\(c\\) must equal"):
            SplineCurve(t, np.zeros(len(t)), k=3, dim=1)

    def test_invalid_dimension(self):
        """Test dimension bounds."""
        t = np.array([0, 0, 1, 1], dtype=float)

        with pytest.raises(ValueError, match="dim should be between"):
            SplineCurve(t, np.zeros(0), k=1, dim=0)
        with pytest.raises(ValueError, match="dim should be between"):
            SplineCurve(t, np.zeros(22), k=1, dim=11)

    def test_decreasing_knots(self):
        """Test that knots must be non-decreasing."""
        t = np.array([0, 0, 2, 1], dtype=float)

        with pytest.raises(ValueError, match="non-decreasing"):
            SplineCurve(t, np.zeros(2), k=1)

    def test_immutable(self):
        """Test that curves cannot be modified after construction."""
        t = np.array([0, 0, 1, 1], dtype=float)
        c = np.array([1.0, 2.0])
        curve = SplineCurve(t, c, k=1)

        # The caller's arrays are copied
        c[0] = 10.0
        assert curve.c[0] == 1.0

        with pytest.raises(ValueError):
            curve.c[0] = 5.0
        with pytest.raises(AttributeError):
            curve.k = 2

    def test_domain_and_coefficients_by_dim(self):
        """Test derived accessors."""
        curve = make_curve(dim=2)

        assert curve.domain == (0.0, 3.0)
        by_dim = curve.coefficients_by_dim()
        assert by_dim.shape == (2, 6)
        np.testing.assert_array_equal(by_dim[1], np.arange(6, 12))

    def test_to_bspline(self):
        """Test agreement with scipy's BSpline."""
        curve = make_curve(dim=2)
        x = np.linspace(0, 3, 13)

        np.testing.assert_allclose(curve(x), curve.to_bspline()(x), atol=1e-12)

    def test_repr(self):
        """Test string representation."""
        curve = make_curve(rms_error=0.125)

        assert repr(curve) == "SplineCurve(k=3, dim=1, n_knots=10, rms=0.125)"


class TestSerialization:
    """Tests for dictionary and JSON serialization."""

    def test_to_dict(self):
        """Test document fields."""
        data = make_curve(dim=2, rms_error=0.5).to_dict()

        assert set(data) == {'t', 'c', 'k', 'dim', 'rms_error'}
        assert data['k'] == 3
        assert data['dim'] == 2
        assert len(data['c']) == 12

    def test_rms_error_optional(self):
        """Test that rms_error is omitted when unknown."""
        data = make_curve().to_dict()

        assert 'rms_error' not in data
        assert SplineCurve.from_dict(data).rms_error is None

    def test_json_round_trip(self):
        """Test to_json / from_json."""
        curve = make_curve(dim=2, rms_error=0.25)
        restored = SplineCurve.from_json(curve.to_json())

        np.testing.assert_array_equal(restored.t, curve.t)
        np.testing.assert_array_equal(restored.c, curve.c)
        assert restored.k == curve.k
        assert restored.dim == curve.dim
        assert restored.rms_error == pytest.approx(0.25)

    def test_save_load(self, tmp_path):
        """Test saving to and loading from a file."""
        curve = make_curve(dim=2)
        path = tmp_path / "nested" / "curve.json"

        curve.save(path)
        restored = SplineCurve.load(path)

        assert path.exists()
        np.testing.assert_array_equal(restored.c, curve.c)

    def test_from_dict_validates(self):
        """Test that malformed documents are rejected."""
        data = make_curve().to_dict()
        data['c'] = data['c'][:-1]

        with pytest.raises(ValueError):
            SplineCurve.from_dict(data)

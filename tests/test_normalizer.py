"""Tests for embedding L2 normalization."""

import numpy as np
import pytest

from facenet_match.normalizer import normalize


class TestNormalize:
    """Test cases for normalize()."""

    def test_unit_norm(self, random_embedding):
        v = random_embedding() * 37.5

        out = normalize(v)

        assert abs(np.linalg.norm(out) - 1.0) < 1e-5

    def test_idempotent(self):
        rng = np.random.default_rng(3)
        v = rng.standard_normal(512) * 4

        once = normalize(v)
        twice = normalize(once)

        np.testing.assert_allclose(once, twice, atol=1e-6)

    def test_zero_vector_unchanged(self):
        out = normalize([0.0] * 512)

        assert out.shape == (512,)
        assert np.all(out == 0.0)
        assert not np.any(np.isnan(out))

    def test_preserves_order_and_direction(self):
        out = normalize([3.0, 0.0, -4.0])

        np.testing.assert_allclose(out, [0.6, 0.0, -0.8], rtol=1e-6)

    def test_accepts_batch_shape(self):
        """Model outputs shaped (1, D) are flattened."""
        out = normalize(np.ones((1, 4)))

        assert out.shape == (4,)
        np.testing.assert_allclose(out, [0.5] * 4)

    def test_does_not_mutate_input(self):
        v = np.array([2.0, 0.0], dtype=np.float32)
        normalize(v)
        assert v[0] == 2.0

    def test_returns_float32(self):
        assert normalize([1, 2, 3]).dtype == np.float32
        assert normalize([0, 0]).dtype == np.float32

    @pytest.mark.parametrize("scale", [1e-20, 1.0, 1e20])
    def test_extreme_scales(self, scale):
        v = np.array([1.0, 1.0], dtype=np.float64) * scale
        out = normalize(v)
        assert abs(np.linalg.norm(out) - 1.0) < 1e-5

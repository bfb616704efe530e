"""
Tests for frame -> tensor preprocessing.
"""

import numpy as np
import pytest

from inference.preprocess import preprocess
from models.errors import PreprocessError
from models.frame import Frame


class TestPreprocess:

    def test_output_shape_and_dtype(self, rgb_frame):
        tensor = preprocess(rgb_frame, 224, 224)

        assert tensor.shape == (1, 224, 224, 3)
        assert tensor.dtype == np.float32
        assert tensor.size == 224 * 224 * 3

    def test_values_scaled_to_unit_range(self, rgb_frame):
        tensor = preprocess(rgb_frame, 224, 224)

        assert tensor.min() >= 0.0
        assert tensor.max() <= 1.0

    def test_same_size_frame_is_not_resampled(self):
        data = np.full((224, 224, 3), 255, dtype=np.uint8)
        tensor = preprocess(Frame(data=data), 224, 224)

        assert np.allclose(tensor, 1.0)

    def test_non_square_target(self, rgb_frame):
        tensor = preprocess(rgb_frame, 320, 160)

        assert tensor.shape == (1, 160, 320, 3)

    def test_upscale_small_frame(self):
        data = np.zeros((10, 12, 3), dtype=np.uint8)
        tensor = preprocess(Frame(data=data), 224, 224)

        assert tensor.shape == (1, 224, 224, 3)

    def test_rgba_alpha_is_dropped(self):
        data = np.zeros((100, 100, 4), dtype=np.uint8)
        data[:, :, 3] = 255
        tensor = preprocess(Frame(data=data), 224, 224)

        assert tensor.shape == (1, 224, 224, 3)
        assert np.allclose(tensor, 0.0)

    def test_grayscale_is_expanded(self):
        data = np.full((50, 50), 128, dtype=np.uint8)
        tensor = preprocess(Frame(data=data), 224, 224)

        assert tensor.shape == (1, 224, 224, 3)
        assert np.allclose(tensor, 128 / 255.0, atol=1e-6)

    def test_source_frame_not_mutated(self, rgb_frame):
        before = rgb_frame.data.copy()
        preprocess(rgb_frame, 224, 224)

        assert np.array_equal(rgb_frame.data, before)

    def test_none_frame_raises(self):
        with pytest.raises(PreprocessError):
            preprocess(None, 224, 224)

    def test_zero_sized_frame_raises(self):
        with pytest.raises(PreprocessError):
            preprocess(Frame(data=np.zeros((0, 0, 3), dtype=np.uint8)), 224, 224)

    def test_released_frame_raises(self, rgb_frame):
        rgb_frame.release()
        with pytest.raises(PreprocessError):
            preprocess(rgb_frame, 224, 224)

    def test_unsupported_channel_count_raises(self):
        with pytest.raises(PreprocessError):
            preprocess(Frame(data=np.zeros((10, 10, 2), dtype=np.uint8)), 224, 224)

    def test_invalid_target_size_raises(self, rgb_frame):
        with pytest.raises(PreprocessError):
            preprocess(rgb_frame, 0, 224)

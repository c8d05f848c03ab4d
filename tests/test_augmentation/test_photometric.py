"""
Tests for brightness, contrast and saturation
"""
import numpy as np
import pytest

from annotator.services.augmentation import adjust


@pytest.fixture
def gray():
    return np.full((2, 2, 3), 100, dtype=np.uint8)


class TestAdjust:
    """Tests for photometric adjustment"""

    def test_identity_copies(self, gray):
        """Test zero offsets return an equal copy"""
        result = adjust(gray)

        assert (result == gray).all()
        assert result is not gray

    def test_brightness_monotonic(self, gray):
        """Test brighter settings never darken"""
        values = [int(adjust(gray, brightness=b)[0, 0, 0]) for b in (-50, -10, 0, 10, 50)]

        assert values == sorted(values)
        assert values[3] == 126

    def test_clamped(self, gray):
        """Test results stay in [0, 255]"""
        assert (adjust(gray, brightness=100) == 255).all()
        assert (adjust(gray, brightness=-100) == 0).all()

    def test_contrast_flattens(self):
        """Test contrast -100 collapses everything to mid-gray"""
        array = np.array([[[0, 60, 255]]], dtype=np.uint8)

        assert adjust(array, contrast=-100).tolist() == [[[128, 128, 128]]]

    def test_contrast_spreads(self):
        """Test positive contrast pushes values away from mid-gray"""
        array = np.array([[[100, 200, 128]]], dtype=np.uint8)
        result = adjust(array, contrast=50)[0, 0]

        assert result[0] < 100
        assert result[1] > 200

    def test_desaturate(self):
        """Test saturation -100 gives luma gray"""
        array = np.array([[[255, 0, 0]]], dtype=np.uint8)

        assert adjust(array, saturation=-100).tolist() == [[[76, 76, 76]]]

    def test_alpha_untouched(self):
        """Test the alpha channel passes through"""
        array = np.zeros((3, 3, 4), dtype=np.uint8)
        array[..., 3] = 7
        result = adjust(array, brightness=40, contrast=20, saturation=-30)

        assert (result[..., 3] == 7).all()
        assert (result[..., :3] > 0).all()

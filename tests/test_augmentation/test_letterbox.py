"""
Tests for letterbox preprocessing
"""
import pytest
from PIL import Image

from annotator.services.annotation import OrientedBoxAnnotation
from annotator.services.augmentation import (
    adjust_annotations,
    compute_padding,
    letterbox,
    needs_letterbox,
    recommended_size,
)


class TestPadding:
    """Tests for placement on the square canvas"""

    def test_resize_strategy(self):
        """Test resizing scales the long side to the target"""
        padding = compute_padding(200, 100, 400)

        assert (padding.draw_width, padding.draw_height) == (400, 200)
        assert (padding.left, padding.right, padding.top, padding.bottom) == (0, 0, 100, 100)
        assert padding.scale_x == padding.scale_y == 2.0

    def test_pad_strategy(self):
        """Test padding keeps the source size centered"""
        padding = compute_padding(200, 100, 256, strategy="pad")

        assert (padding.left, padding.right, padding.top, padding.bottom) == (28, 28, 78, 78)
        assert padding.scale_x == 1.0

    def test_odd_remainder(self):
        """Test an odd padding puts the extra pixel right / bottom"""
        padding = compute_padding(201, 100, strategy="pad")

        assert padding.target_size == 201
        assert (padding.top, padding.bottom) == (50, 51)

    def test_invalid(self):
        """Test bad arguments are rejected"""
        with pytest.raises(ValueError, match="smaller than the image"):
            compute_padding(200, 100, 150, strategy="pad")
        with pytest.raises(ValueError, match="Unknown letterbox strategy"):
            compute_padding(200, 100, 400, strategy="stretch")
        with pytest.raises(ValueError, match="positive"):
            compute_padding(0, 100)

    def test_recommended_size(self):
        """Test standard sizes and stride rounding"""
        assert recommended_size(300, 200) == 416
        assert recommended_size(640, 480) == 640
        assert recommended_size(2000, 10) == 2016

    def test_needs_letterbox(self):
        assert needs_letterbox(200, 100)
        assert not needs_letterbox(64, 64)


class TestLetterbox:
    """Tests for the image and annotation transforms"""

    def test_image(self):
        """Test the image is centered on the padding color"""
        image = Image.new("RGB", (200, 100), (255, 0, 0))
        squared, padding = letterbox(image, 400, padding_color="#00ff00")

        assert squared.size == (400, 400)
        assert squared.mode == "RGB"
        assert squared.getpixel((5, 5)) == (0, 255, 0)
        assert squared.getpixel((200, 200)) == (255, 0, 0)

    def test_rgba_padding_opaque(self):
        """Test RGBA sources get an opaque padding"""
        image = Image.new("RGBA", (20, 10), (0, 0, 255, 255))
        squared, _ = letterbox(image, strategy="pad")

        assert squared.getpixel((0, 0)) == (0, 0, 0, 255)
        assert squared.getpixel((10, 10)) == (0, 0, 255, 255)

    def test_boxes_scaled_and_shifted(self, sample_box):
        """Test boxes follow the resize and the offset"""
        padding = compute_padding(200, 100, 400)
        adjusted = adjust_annotations([sample_box], padding)

        assert adjusted[0].bounds() == pytest.approx((20, 120, 100, 60))
        assert sample_box.bounds() == (10, 10, 50, 30)

    def test_pad_only_shifts(self, sample_annotations):
        """Test the pad strategy only translates"""
        padding = compute_padding(200, 100, 256, strategy="pad")
        adjusted = adjust_annotations(sample_annotations, padding)

        assert len(adjusted) == len(sample_annotations)
        assert adjusted[0].bounds() == pytest.approx((38, 88, 50, 30))
        assert adjusted[4].contains(130, 118)

    def test_oriented_box_scaled(self):
        """Test oriented boxes keep their angle and scale their size"""
        obb = OrientedBoxAnnotation(id=1, cx=50, cy=40, width=60, height=20, angle=0)
        adjusted = adjust_annotations([obb], compute_padding(200, 100, 400))[0]

        assert (adjusted.cx, adjusted.cy) == pytest.approx((100, 180))
        assert (adjusted.width, adjusted.height) == pytest.approx((120, 40))
        assert adjusted.angle == pytest.approx(0)

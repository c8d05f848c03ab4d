"""
Tests for augmentation recipes
"""
import pytest

from annotator.services.augmentation import AugmentationConfig


class TestAugmentationConfig:
    """Tests for recipe validation and naming"""

    def test_suffix(self):
        """Test the file suffix lists every applied step"""
        augmentation = AugmentationConfig(flip_horizontal=True, rotation=90, brightness=20, contrast=-10)

        assert augmentation.suffix() == "_fh_r90_bp20_cm10"
        assert AugmentationConfig(rotation=12.5, saturation=5).suffix() == "_r12.5_sp5"
        assert AugmentationConfig().suffix() == "_aug"

    def test_flags(self):
        """Test the geometry / photometric split"""
        assert AugmentationConfig().is_identity
        assert not AugmentationConfig(rotation=360).has_geometry
        assert AugmentationConfig(flip_vertical=True).has_geometry
        assert AugmentationConfig(contrast=1).has_photometric

    @pytest.mark.parametrize("kwargs", [
        {"brightness": 101},
        {"contrast": -101},
        {"saturation": 500},
        {"rotation": float("nan")},
        {"rotation": float("inf")},
    ])
    def test_validate_rejects(self, kwargs):
        """Test out-of-range values raise ValueError"""
        with pytest.raises(ValueError):
            AugmentationConfig(**kwargs).validate()

    def test_validate_bounds_inclusive(self):
        AugmentationConfig(brightness=100, contrast=-100, saturation=100, rotation=-725).validate()

    def test_roundtrip(self):
        """Test serialization roundtrip"""
        augmentation = AugmentationConfig(flip_vertical=True, rotation=45.0, saturation=-30)

        assert AugmentationConfig.from_dict(augmentation.to_dict()) == augmentation
        assert AugmentationConfig.from_dict({}) == AugmentationConfig()

"""
Tests for the command line interface
"""
import json

import pytest
from PIL import Image

from annotator.cli import build_parser, main


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGB", (200, 100), (40, 80, 120)).save(path)
    return path


@pytest.fixture
def annotation_file(tmp_path):
    path = tmp_path / "photo.json"
    entries = [
        {"id": 1, "type": "bbox", "class": 0, "data": {"x": 10, "y": 10, "width": 50, "height": 30}},
        {"id": 2, "type": "bbox", "class": 1, "data": {"x": 150, "y": 60, "width": 20, "height": 20}},
    ]
    path.write_text(json.dumps({"annotations": entries}), encoding="utf-8")
    return path


class TestAugmentCommand:
    """Tests for `annotator augment`"""

    def test_writes_image_and_annotations(self, tmp_path, image_file, annotation_file):
        """Test outputs are named after the recipe"""
        out_dir = tmp_path / "out"
        code = main([
            "augment", str(image_file), str(annotation_file),
            "--out-dir", str(out_dir), "--flip-horizontal", "--brightness", "20",
        ])

        assert code == 0
        with Image.open(out_dir / "photo_fh_bp20.png") as image:
            assert image.size == (200, 100)
        payload = json.loads((out_dir / "photo_fh_bp20.json").read_text(encoding="utf-8"))
        assert payload["image"] == {"width": 200, "height": 100}
        assert payload["augmentation"]["flip_horizontal"] is True
        assert payload["annotations"][0]["data"]["x"] == pytest.approx(140)
        assert payload["dropped"] == []

    def test_without_annotations(self, tmp_path, image_file):
        """Test the annotation file is optional"""
        out_dir = tmp_path / "out"

        assert main(["augment", str(image_file), "--out-dir", str(out_dir), "--rotation", "90"]) == 0
        payload = json.loads((out_dir / "photo_r90.json").read_text(encoding="utf-8"))
        assert payload["image"] == {"width": 100, "height": 200}
        assert payload["annotations"] == []

    def test_bad_image(self, tmp_path):
        """Test undecodable images exit with 1"""
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not an image")

        assert main(["augment", str(bad), "--out-dir", str(tmp_path / "out")]) == 1
        assert not (tmp_path / "out").exists()

    def test_missing_files(self, tmp_path, image_file):
        """Test missing inputs exit with 1 instead of raising"""
        out_dir = tmp_path / "out"

        assert main(["augment", str(tmp_path / "nope.png"), "--out-dir", str(out_dir)]) == 1
        assert main(["augment", str(image_file), str(tmp_path / "nope.json"), "--out-dir", str(out_dir)]) == 1
        assert main(["letterbox", str(tmp_path / "nope.png"), "--out-dir", str(out_dir)]) == 1
        assert not out_dir.exists()

    def test_out_of_range(self, tmp_path, image_file):
        """Test invalid recipes exit with 2"""
        assert main(["augment", str(image_file), "--out-dir", str(tmp_path), "--contrast", "300"]) == 2

    def test_out_dir_required(self, image_file):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["augment", str(image_file)])


class TestLetterboxCommand:
    """Tests for `annotator letterbox`"""

    def test_recommended_size(self, tmp_path, image_file, annotation_file):
        """Test the recommended size is used when none is given"""
        out_dir = tmp_path / "out"

        assert main(["letterbox", str(image_file), str(annotation_file), "--out-dir", str(out_dir)]) == 0
        with Image.open(out_dir / "photo_lb416.png") as image:
            assert image.size == (416, 416)
        payload = json.loads((out_dir / "photo_lb416.json").read_text(encoding="utf-8"))
        assert payload["padding"]["top"] == 104
        assert len(payload["annotations"]) == 2

    def test_pad_strategy(self, tmp_path, image_file):
        """Test explicit size and strategy"""
        out_dir = tmp_path / "out"

        assert main([
            "letterbox", str(image_file), "--out-dir", str(out_dir), "--size", "256", "--strategy", "pad",
        ]) == 0
        payload = json.loads((out_dir / "photo_lb256.json").read_text(encoding="utf-8"))
        assert payload["padding"]["left"] == 28

    def test_pad_too_small(self, tmp_path, image_file):
        """Test a canvas smaller than the image exits with 2"""
        assert main([
            "letterbox", str(image_file), "--out-dir", str(tmp_path), "--size", "64", "--strategy", "pad",
        ]) == 2

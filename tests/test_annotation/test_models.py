"""
Tests for annotation data models
"""
import pytest

from annotator.services.annotation import (
    UNKNOWN_CLASS,
    Annotation,
    AnnotationClass,
    BoxAnnotation,
    ImageRecord,
    Keypoint,
    KeypointAnnotation,
    MaskAnnotation,
    MaskRaster,
    OrientedBoxAnnotation,
    Point,
    PolygonAnnotation,
    Visibility,
    load_annotations,
    resolve_class,
)


class TestPoint:
    """Tests for Point dataclass"""

    def test_point_to_dict(self):
        """Test Point serialization to dict"""
        assert Point(x=15.0, y=25.0).to_dict() == {"x": 15.0, "y": 25.0}

    def test_point_coerce(self):
        """Test Point accepts pairs, dicts and points"""
        assert Point.coerce([1, 2]) == Point(1.0, 2.0)
        assert Point.coerce({"x": 3, "y": 4}) == Point(3.0, 4.0)
        point = Point(5, 6)
        assert Point.coerce(point) == point


class TestBoxAnnotation:
    """Tests for axis-aligned boxes"""

    def test_negative_extents_normalized(self):
        """Test a box dragged up-left is stored with positive size"""
        box = BoxAnnotation(x=60, y=40, width=-50, height=-30)

        assert box.bounds() == (10, 10, 50, 30)

    def test_degenerate_threshold(self):
        """Test boxes at or below the minimum size are degenerate"""
        assert BoxAnnotation(width=5, height=50).is_degenerate()
        assert BoxAnnotation(width=50, height=5).is_degenerate()
        assert not BoxAnnotation(width=6, height=6).is_degenerate()

    def test_contains(self, sample_box):
        """Test hit testing includes the edges"""
        assert sample_box.contains(10, 10)
        assert sample_box.contains(60, 40)
        assert not sample_box.contains(61, 40)
        assert sample_box.contains(61, 40, tolerance=2)

    def test_to_dict(self, sample_box):
        """Test persisted shape"""
        sample_box.id = 7
        data = sample_box.to_dict()

        assert data == {
            "id": 7,
            "type": "bbox",
            "class": 0,
            "data": {"x": 10, "y": 10, "width": 50, "height": 30},
        }

    def test_from_dict(self):
        """Test deserialization picks the concrete type"""
        annotation = Annotation.from_dict({
            "id": 3, "type": "bbox", "class": 2,
            "data": {"x": 1, "y": 2, "width": 30, "height": 40},
        })

        assert isinstance(annotation, BoxAnnotation)
        assert annotation.id == 3
        assert annotation.class_id == 2
        assert annotation.bounds() == (1.0, 2.0, 30.0, 40.0)

    def test_editable_fields(self):
        """Test ids are not editable"""
        assert BoxAnnotation.editable_fields() == ["class_id", "x", "y", "width", "height"]


class TestOrientedBoxAnnotation:
    """Tests for rotated boxes"""

    def test_angle_normalized(self):
        """Test angles wrap into [0, 360)"""
        assert OrientedBoxAnnotation(width=20, height=20, angle=-90).angle == 270
        assert OrientedBoxAnnotation(width=20, height=20, angle=450).angle == 90

    def test_corners_rotate_clockwise(self):
        """Test a 90 degree box swaps its extents"""
        obb = OrientedBoxAnnotation(cx=50, cy=50, width=40, height=20, angle=90)
        x, y, w, h = obb.bounds()

        assert x == pytest.approx(40)
        assert y == pytest.approx(30)
        assert w == pytest.approx(20)
        assert h == pytest.approx(40)

    def test_contains_uses_local_frame(self):
        """Test a point inside the bounds but outside the rotated box misses"""
        obb = OrientedBoxAnnotation(cx=50, cy=50, width=80, height=10, angle=45)

        assert obb.contains(50, 50)
        assert obb.contains(70, 70)
        assert not obb.contains(70, 30)

    def test_rotate(self):
        """Test rotate wraps around"""
        obb = OrientedBoxAnnotation(width=20, height=20, angle=350)
        obb.rotate(15)

        assert obb.angle == pytest.approx(5)

    def test_degenerate(self):
        """Test oriented boxes use their own minimum"""
        assert OrientedBoxAnnotation(width=10, height=40).is_degenerate()
        assert not OrientedBoxAnnotation(width=11, height=11).is_degenerate()


class TestPolygonAnnotation:
    """Tests for polygons"""

    def test_points_coerced(self, sample_polygon):
        """Test vertex pairs become Points"""
        assert all(isinstance(p, Point) for p in sample_polygon.points)
        assert sample_polygon.vertices()[1] == (40.0, 0.0)

    def test_contains(self, sample_polygon):
        """Test ray casting and vertex tolerance"""
        assert sample_polygon.contains(20, 10)
        assert not sample_polygon.contains(2, 25)
        assert sample_polygon.contains(42, 1, tolerance=3)

    def test_degenerate(self):
        """Test too few or collinear vertices are degenerate"""
        assert PolygonAnnotation(points=[(0, 0), (10, 0)]).is_degenerate()
        assert PolygonAnnotation(points=[(0, 0), (10, 0), (20, 0)]).is_degenerate()
        assert not PolygonAnnotation(points=[(0, 0), (10, 0), (5, 5)]).is_degenerate()

    def test_vertex_at_nearest(self):
        """Test the nearest vertex within tolerance wins"""
        polygon = PolygonAnnotation(points=[(0, 0), (4, 0), (2, 10)])

        assert polygon.vertex_at(3, 0, tolerance=5) == 1
        assert polygon.vertex_at(50, 50, tolerance=5) is None

    def test_roundtrip(self, sample_polygon):
        """Test serialization roundtrip"""
        restored = Annotation.from_dict(sample_polygon.to_dict())

        assert restored == sample_polygon


class TestKeypoints:
    """Tests for keypoint instances"""

    def test_visibility_cycle(self):
        """Test visible -> occluded -> absent -> visible"""
        assert Visibility.VISIBLE.next() == Visibility.OCCLUDED
        assert Visibility.OCCLUDED.next() == Visibility.ABSENT
        assert Visibility.ABSENT.next() == Visibility.VISIBLE

    def test_keypoint_from_dict_defaults(self):
        """Test placed joints default to visible"""
        assert Keypoint.from_dict({"x": 1, "y": 2}).visibility == Visibility.VISIBLE
        assert Keypoint.from_dict({"x": None, "y": None}).visibility == Visibility.ABSENT

    def test_empty_instance_is_degenerate(self):
        """Test an instance needs at least one labeled joint"""
        instance = KeypointAnnotation.empty(17)

        assert len(instance.keypoints) == 17
        assert instance.is_degenerate()

        instance.keypoints[0] = Keypoint(10, 10, Visibility.VISIBLE)
        assert not instance.is_degenerate()

    def test_bounds_from_placed_joints(self):
        """Test the instance box is derived from placed joints"""
        instance = KeypointAnnotation(keypoints=[
            Keypoint(10, 20, Visibility.VISIBLE),
            Keypoint(),
            Keypoint(30, 60, Visibility.OCCLUDED),
        ])

        assert instance.bounds() == (10, 20, 20, 40)
        assert instance.data_dict()["bbox"] == {"x": 10, "y": 20, "width": 20, "height": 40}

    def test_translate_skips_unplaced(self):
        """Test unplaced joints stay unplaced when moved"""
        instance = KeypointAnnotation(keypoints=[Keypoint(10, 20, Visibility.VISIBLE), Keypoint()])
        instance.translate(5, 5)

        assert (instance.keypoints[0].x, instance.keypoints[0].y) == (15, 25)
        assert not instance.keypoints[1].is_placed


class TestMaskAnnotation:
    """Tests for mask annotations"""

    def test_roundtrip(self, painted_raster):
        """Test mask coverage survives serialization"""
        mask = MaskAnnotation(id=4, class_id=1, raster=painted_raster)
        restored = Annotation.from_dict(mask.to_dict(), image_size=(200, 100))

        assert isinstance(restored, MaskAnnotation)
        assert restored.raster.bounds() == painted_raster.bounds()
        assert (restored.raster.to_array(200, 100) == painted_raster.to_array(200, 100)).all()

    def test_copy_is_independent(self, painted_raster):
        """Test copies never share a pixel buffer"""
        mask = MaskAnnotation(raster=painted_raster)
        clone = mask.copy()
        clone.raster.erase(50, 50, 30)

        assert not mask.raster.is_empty()
        assert clone.raster.is_empty()

    def test_translate_whole_pixels(self, painted_raster):
        """Test masks move by rounded offsets"""
        mask = MaskAnnotation(raster=painted_raster)
        x, y, _, _ = mask.bounds()
        mask.translate(3.4, -2.6)

        assert mask.bounds()[:2] == (x + 3, y - 3)


class TestClasses:
    """Tests for class resolution"""

    def test_resolve_unknown(self, sample_classes):
        """Test stale class ids degrade to the placeholder"""
        assert resolve_class(sample_classes, 1).name == "dog"
        assert resolve_class(sample_classes, 42) is UNKNOWN_CLASS

    def test_default_skeleton(self):
        """Test classes without a skeleton fall back to COCO"""
        assert len(AnnotationClass(id=0, name="person").get_skeleton()) == 17

    def test_roundtrip_with_skeleton(self):
        """Test class serialization keeps the skeleton"""
        cls = AnnotationClass(id=0, name="person")
        cls.skeleton = cls.get_skeleton()
        restored = AnnotationClass.from_dict(cls.to_dict())

        assert restored.skeleton.keypoints == cls.skeleton.keypoints
        assert restored.skeleton.connections == cls.skeleton.connections


class TestLoading:
    """Tests for tolerant loading"""

    def test_corrupt_entries_skipped(self):
        """Test corrupt entries are dropped and the rest kept"""
        entries = [
            {"id": 1, "type": "bbox", "class": 0, "data": {"x": 0, "y": 0, "width": 10, "height": 10}},
            {"id": 2, "type": "hexagon", "class": 0, "data": {}},
            {"id": 3, "type": "bbox", "class": 0, "data": {"x": 0}},
            {"id": 4, "type": "polygon", "class": 1, "data": {"points": [[0, 0], [5, 0], [0, 5]]}},
        ]
        loaded = load_annotations(entries)

        assert [a.id for a in loaded] == [1, 4]

    def test_malformed_keypoint_entry(self):
        """Test a keypoint given as a list skips only its own annotation"""
        entries = [
            {"id": 1, "type": "bbox", "class": 0, "data": {"x": 0, "y": 0, "width": 10, "height": 10}},
            {"id": 2, "type": "keypoints", "class": 0, "data": {"keypoints": [[1, 2]]}},
        ]

        assert [a.id for a in load_annotations(entries)] == [1]

        record = ImageRecord.from_dict({"id": "img_a", "width": 50, "height": 50, "annotations": entries})
        assert [a.id for a in record.annotations] == [1]

    def test_keypoint_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            Keypoint.from_dict([1, 2])

    def test_image_record_assigns_missing_ids(self):
        """Test annotations without ids or with duplicates get fresh ones"""
        record = ImageRecord(annotations=[
            BoxAnnotation(id=3, width=10, height=10),
            BoxAnnotation(id=0, width=10, height=10),
            BoxAnnotation(id=3, width=10, height=10),
        ])

        assert [a.id for a in record.annotations] == [3, 4, 5]
        assert record.next_annotation_id == 6

    def test_image_record_roundtrip(self, sample_box):
        """Test record serialization (the blob is stored separately)"""
        record = ImageRecord(id="img_abc123", width=200, height=100, annotations=[sample_box])
        restored = ImageRecord.from_dict(record.to_dict(), blob=b"png")

        assert restored.id == "img_abc123"
        assert restored.blob == b"png"
        assert restored.size == (200, 100)
        assert restored.annotations == record.annotations

import pytest

from annotator.errors import ConflictError, InvalidReferenceError, RangeError, ValidationError
from annotator.services import annotation_svc, image_svc, label_svc


@pytest.fixture()
def cat(db):
    label, _ = label_svc.create_label(db, {"label_name": "cat"})
    return label


@pytest.mark.parametrize("confidence", [0.0, 1.0, 0.5, 0, 1])
def test_confidence_boundaries_accepted(db, make_image, cat, confidence):
    img = make_image()
    ann = annotation_svc.create_annotation(db, img.image_id, cat.label_id, confidence)
    assert ann.confidence == float(confidence)


@pytest.mark.parametrize("confidence", [-0.01, 1.01, 100])
def test_confidence_out_of_range_rejected(db, make_image, cat, confidence):
    img = make_image()
    with pytest.raises(RangeError):
        annotation_svc.create_annotation(db, img.image_id, cat.label_id, confidence)
    assert annotation_svc.get_annotations_by_image(db, img.image_id) == []


def test_confidence_defaults_to_one(db, make_image, cat):
    img = make_image()
    ann = annotation_svc.create_annotation(db, img.image_id, cat.label_id)
    assert ann.confidence == 1.0


def test_non_numeric_confidence(db, make_image, cat):
    img = make_image()
    with pytest.raises(ValidationError):
        annotation_svc.create_annotation(db, img.image_id, cat.label_id, "high")


def test_duplicate_pair_conflicts(db, make_image, cat):
    img = make_image()
    annotation_svc.create_annotation(db, img.image_id, cat.label_id, 0.3)
    with pytest.raises(ConflictError):
        annotation_svc.create_annotation(db, img.image_id, cat.label_id, 0.9)
    [only] = annotation_svc.get_annotations_by_image(db, img.image_id)
    assert only.confidence == 0.3


def test_missing_image_or_label(db, make_image, cat):
    img = make_image()
    with pytest.raises(InvalidReferenceError):
        annotation_svc.create_annotation(db, 999, cat.label_id)
    with pytest.raises(InvalidReferenceError):
        annotation_svc.create_annotation(db, img.image_id, 999)


def test_create_annotation_tracks_user_and_touches_image(db, make_image, cat):
    img = make_image()
    db.run("UPDATE images SET updated_at = '2000-01-01 00:00:00' WHERE image_id = ?", (img.image_id,))
    ann = annotation_svc.create_annotation(db, img.image_id, cat.label_id, 0.7, user="ann@x")
    assert ann.created_by == "ann@x"
    after = image_svc.get_image(db, img.image_id)
    assert after.updated_at != "2000-01-01 00:00:00"
    assert after.last_edited_by == "ann@x"


def test_annotate_by_name_creates_label_on_demand(db, make_image):
    img = make_image()
    ann, created = annotation_svc.annotate_by_name(db, img.image_id, " bird ", 0.4)
    assert created is True
    assert annotation_svc.get_label_id_by_name(db, "bird") == ann.label_id

    other = make_image()
    ann2, created = annotation_svc.annotate_by_name(db, other.image_id, "bird")
    assert created is False
    assert ann2.label_id == ann.label_id


def test_annotate_by_name_rolls_back_new_label_on_failure(db):
    with pytest.raises(InvalidReferenceError):
        annotation_svc.annotate_by_name(db, 999, "ghost")
    assert annotation_svc.get_label_id_by_name(db, "ghost") is None


def test_update_confidence(db, make_image, cat):
    img = make_image()
    annotation_svc.create_annotation(db, img.image_id, cat.label_id, 0.2)
    out = annotation_svc.update_annotation_confidence(db, img.image_id, cat.label_id, 0.8, user="ed@x")
    assert out.confidence == 0.8
    assert out.last_edited_by == "ed@x"

    with pytest.raises(RangeError):
        annotation_svc.update_annotation_confidence(db, img.image_id, cat.label_id, 1.5)
    assert annotation_svc.update_annotation_confidence(db, 999, cat.label_id, 0.5) is None


def test_delete_annotation(db, make_image, cat):
    img = make_image()
    annotation_svc.create_annotation(db, img.image_id, cat.label_id)
    assert annotation_svc.delete_annotation(db, img.image_id, cat.label_id) is True
    assert annotation_svc.delete_annotation(db, img.image_id, cat.label_id) is False
    # both ends survive
    assert image_svc.get_image(db, img.image_id) is not None
    assert label_svc.get_label(db, cat.label_id) is not None


def test_annotations_by_image_sorted_by_confidence(db, make_image):
    img = make_image()
    annotation_svc.annotate_by_name(db, img.image_id, "low", 0.1)
    annotation_svc.annotate_by_name(db, img.image_id, "high", 0.9)
    items = annotation_svc.get_annotations_by_image(db, img.image_id)
    assert [a.label_name for a in items] == ["high", "low"]
    with pytest.raises(ValidationError):
        annotation_svc.get_annotations_by_image(db, 0)

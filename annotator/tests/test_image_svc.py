import pytest

from annotator.errors import ConflictError, PayloadTooLargeError, RangeError, ValidationError
from annotator.services import annotation_svc, image_svc


def test_create_and_get_image(db, make_image):
    img = make_image("a.jpg", created_by="alice@example.com")
    assert img.image_id > 0
    assert img.filename == "a.jpg"
    assert img.created_by == "alice@example.com"
    assert img.uploaded_at is not None

    detail = image_svc.get_image(db, img.image_id)
    assert detail.filename == "a.jpg"
    assert detail.annotations == []


def test_get_missing_image_returns_none(db):
    assert image_svc.get_image(db, 12345) is None


def test_duplicate_filename_conflicts(db, make_image):
    make_image("a.jpg")
    with pytest.raises(ConflictError):
        make_image("a.jpg")


@pytest.mark.parametrize(
    "overrides, exc",
    [
        ({"filename": ""}, ValidationError),
        ({"original_name": "   "}, ValidationError),
        ({"file_path": None}, ValidationError),
        ({"file_size": 0}, RangeError),
        ({"file_size": -5}, RangeError),
        ({"file_size": "big"}, ValidationError),
        ({"mime_type": "application/pdf"}, ValidationError),
    ],
)
def test_create_image_validation(db, make_image, overrides, exc):
    with pytest.raises(exc):
        make_image(**overrides)
    assert image_svc.get_all_images(db) == []


def test_get_all_images_aggregates_labels_in_annotation_order(db, make_image):
    img = make_image("a.jpg")
    annotation_svc.annotate_by_name(db, img.image_id, "cat", 0.9)
    annotation_svc.annotate_by_name(db, img.image_id, "animal", 0.5)
    other = make_image("b.jpg")

    items = {i.filename: i for i in image_svc.get_all_images(db)}
    assert items["a.jpg"].labels == ["cat", "animal"]
    assert items["a.jpg"].confidences == [0.9, 0.5]
    assert items["a.jpg"].label_count == 2
    assert items["b.jpg"].labels == [] and items["b.jpg"].confidences == []
    assert other.image_id != img.image_id


def test_single_annotation_scenario(db, make_image):
    label_id = db.run("INSERT INTO labels(label_name) VALUES ('cat')").inserted_id
    img = make_image("a.jpg")
    annotation_svc.create_annotation(db, img.image_id, label_id, 0.9)
    [only] = image_svc.get_all_images(db)
    assert only.labels == ["cat"]
    assert only.confidences == [0.9]


def test_list_images_paginates_newest_first(db, make_image):
    for i in range(5):
        make_image(f"{i}.jpg")
    total, page1 = image_svc.list_images(db, page=1, size=2)
    assert total == 5
    assert [i.filename for i in page1] == ["4.jpg", "3.jpg"]
    _, page3 = image_svc.list_images(db, page=3, size=2)
    assert [i.filename for i in page3] == ["0.jpg"]


def test_update_image_only_touches_editable_fields(db, make_image):
    img = make_image("a.jpg")
    out = image_svc.update_image(
        db,
        img.image_id,
        {"original_name": "renamed.jpg", "filename": "hacked.jpg", "last_edited_by": "bob"},
    )
    assert out.original_name == "renamed.jpg"
    assert out.filename == "a.jpg"
    assert out.last_edited_by == "bob"


def test_update_image_errors(db, make_image):
    assert image_svc.update_image(db, 999, {"original_name": "x"}) is None
    img = make_image()
    with pytest.raises(ValidationError):
        image_svc.update_image(db, img.image_id, {"filename": "only-non-editable.jpg"})
    with pytest.raises(ValidationError):
        image_svc.update_image(db, img.image_id, {"original_name": "  "})


def test_delete_image_cascades_annotations(db, make_image):
    img = make_image("a.jpg")
    other = make_image("b.jpg")
    for name in ("cat", "animal", "indoor"):
        annotation_svc.annotate_by_name(db, img.image_id, name)
    annotation_svc.annotate_by_name(db, other.image_id, "cat")
    assert len(annotation_svc.get_annotations_by_image(db, img.image_id)) == 3

    assert image_svc.delete_image(db, img.image_id) is True
    assert db.query("SELECT * FROM annotations WHERE image_id = ?", (img.image_id,)) == []
    # labels and the other image's annotation survive
    assert db.query_one("SELECT COUNT(*) AS c FROM labels")["c"] == 3
    assert len(annotation_svc.get_annotations_by_image(db, other.image_id)) == 1
    assert image_svc.delete_image(db, img.image_id) is False


def test_search_images_by_label(db, make_image):
    a = make_image("a.jpg")
    b = make_image("b.jpg")
    annotation_svc.annotate_by_name(db, a.image_id, "cat")
    annotation_svc.annotate_by_name(db, a.image_id, "indoor")
    annotation_svc.annotate_by_name(db, b.image_id, "dog")

    found = image_svc.search_images_by_label(db, "cat")
    assert [i.filename for i in found] == ["a.jpg"]
    assert found[0].labels == ["cat", "indoor"]
    assert image_svc.search_images_by_label(db, "bird") == []
    with pytest.raises(ValidationError):
        image_svc.search_images_by_label(db, " ")


def test_image_stats(db, make_image):
    a = make_image("a.jpg", file_size=100)
    make_image("b.jpg", file_size=300)
    annotation_svc.annotate_by_name(db, a.image_id, "cat", 0.5)
    stats = image_svc.get_image_stats(db)
    assert stats["total_images"] == 2
    assert stats["avg_file_size"] == 200
    assert stats["total_annotations"] == 1
    assert stats["annotated_images"] == 1
    assert stats["unannotated_images"] == 1


def test_store_upload_writes_file_and_row(db, tmp_path):
    upload_dir = tmp_path / "up"
    img = image_svc.store_upload(db, b"\x89PNG....", "shot.png", "image/png", str(upload_dir), 1024, user="u@x")
    assert img.original_name == "shot.png"
    assert img.file_size == 8
    assert img.filename.endswith(".png")
    assert (upload_dir / img.filename).read_bytes() == b"\x89PNG...."
    assert img.created_by == "u@x"


def test_store_upload_extension_comes_from_mime_type(db, tmp_path):
    upload_dir = tmp_path / "up"
    img = image_svc.store_upload(db, b"<html>", "x.html", "image/png", str(upload_dir), 1024)
    assert img.filename.endswith(".png")
    assert img.original_name == "x.html"
    assert [p.suffix for p in upload_dir.iterdir()] == [".png"]

    jpg = image_svc.store_upload(db, b"\xff\xd8", "photo", "image/jpeg", str(upload_dir), 1024)
    assert jpg.filename.endswith(".jpg")


def test_store_upload_rejects_bad_input(db, tmp_path):
    upload_dir = tmp_path / "up"
    with pytest.raises(ValidationError):
        image_svc.store_upload(db, b"data", "doc.pdf", "application/pdf", str(upload_dir), 1024)
    with pytest.raises(PayloadTooLargeError):
        image_svc.store_upload(db, b"x" * 2048, "big.jpg", "image/jpeg", str(upload_dir), 1024)
    with pytest.raises(ValidationError):
        image_svc.store_upload(db, b"", "empty.jpg", "image/jpeg", str(upload_dir), 1024)
    assert image_svc.get_all_images(db) == []

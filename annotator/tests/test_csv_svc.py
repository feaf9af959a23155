import io

import pandas as pd
import pytest

from annotator.errors import ValidationError
from annotator.services import annotation_svc, csv_svc, image_svc


def _populate(db, make_image):
    a = make_image("a.jpg", created_by="alice")
    b = make_image("b.jpg")
    annotation_svc.annotate_by_name(db, a.image_id, "cat", 0.9, user="alice")
    annotation_svc.annotate_by_name(db, a.image_id, "indoor", 0.5, user="bob")
    return a, b


def test_export_layout(db, make_image):
    a, b = _populate(db, make_image)
    df = pd.read_csv(io.StringIO(csv_svc.export_csv(db)), dtype=str, keep_default_na=False)
    assert list(df.columns) == csv_svc.CSV_COLUMNS
    assert len(df) == 2
    row = df[df["filename"] == "a.jpg"].iloc[0]
    assert row["labels"] == "cat,indoor"
    assert [float(c) for c in row["confidences"].split(",")] == [0.9, 0.5]
    assert row["annotation_creators"] == "alice,bob"
    assert row["image_created_by"] == "alice"
    assert df[df["filename"] == "b.jpg"].iloc[0]["labels"] == ""


def test_export_then_import_into_empty_database(db, make_image, raw_db_factory):
    _populate(db, make_image)
    content = csv_svc.export_csv(db)
    before = {i.filename: (i.image_id, i.labels, i.confidences) for i in image_svc.get_all_images(db)}

    target = raw_db_factory()
    out = csv_svc.import_csv(target, content.encode("utf-8"))
    assert out["imported"] == 2 and out["skipped"] == 0 and out["errors"] == 0

    after = {i.filename: (i.image_id, i.labels, i.confidences) for i in image_svc.get_all_images(target)}
    assert after == before


def test_import_skips_existing_images(db, make_image):
    _populate(db, make_image)
    out = csv_svc.import_csv(db, csv_svc.export_csv(db))
    assert out["imported"] == 0
    assert out["skipped"] == 2
    assert "0 imported, 2 skipped" in out["message"]


def test_import_collects_row_errors(db):
    content = (
        "image_id,filename,file_path,file_size,mime_type,labels,confidences\n"
        "1,ok.jpg,uploads/ok.jpg,10,image/jpeg,cat,0.5\n"
        ",missing-id.jpg,uploads/m.jpg,10,image/jpeg,,\n"
        "3,bad-size.jpg,uploads/b.jpg,0,image/jpeg,,\n"
        "4,bad-conf.jpg,uploads/c.jpg,10,image/jpeg,dog,2.0\n"
        "x,not-a-number.jpg,uploads/n.jpg,10,image/jpeg,,\n"
    )
    out = csv_svc.import_csv(db, content)
    assert out["imported"] == 1
    assert out["errors"] == 4
    assert out["error_details"][0].startswith("Row 3:")
    # failed rows leave nothing behind
    assert [i.filename for i in image_svc.get_all_images(db)] == ["ok.jpg"]
    assert annotation_svc.get_label_id_by_name(db, "dog") is None


def test_import_applies_image_rules(db):
    content = (
        "image_id,filename,original_name,file_path,file_size,mime_type,uploaded_at,labels\n"
        "1,evil.pdf,evil.pdf,uploads/evil.pdf,10,application/pdf,,\n"
        "2,nowhere.jpg,nowhere.jpg,,10,image/jpeg,,\n"
        "3,fine.png,fine.png,uploads/fine.png,10,image/png,,cat\n"
    )
    out = csv_svc.import_csv(db, content)
    assert out["imported"] == 1
    assert out["errors"] == 2
    assert out["error_details"][0].startswith("Row 2:") and "mime_type" in out["error_details"][0]
    assert out["error_details"][1].startswith("Row 3:") and "file_path" in out["error_details"][1]

    [only] = image_svc.get_all_images(db)
    assert only.filename == "fine.png"
    assert only.mime_type == "image/png"
    # blank uploaded_at falls back to the column default
    assert only.uploaded_at is not None
    assert only.labels == ["cat"]


def test_import_requires_headers(db):
    with pytest.raises(ValidationError):
        csv_svc.import_csv(db, "filename,labels\na.jpg,cat\n")
    with pytest.raises(ValidationError):
        csv_svc.import_csv(db, "")
    with pytest.raises(ValidationError):
        csv_svc.import_csv(db, "image_id,filename,labels\n")


def test_error_details_are_capped(db):
    rows = "".join(f",f{i}.jpg,\n" for i in range(15))
    out = csv_svc.import_csv(db, "image_id,filename,labels\n" + rows)
    assert out["errors"] == 15
    assert len(out["error_details"]) == csv_svc.MAX_ERROR_DETAILS

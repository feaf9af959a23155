import os
import sys
from pathlib import Path

import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from annotator.db import Database  # noqa: E402
from annotator.migrations import run_migrations  # noqa: E402

SEEDS_DIR = str(_PROJECT_ROOT / "annotator" / "seeds")


@pytest.fixture(scope="session", autouse=True)
def _isolated_db_env(tmp_path_factory):
    # Keep the module-level app in annotator.api away from any real database
    path = tmp_path_factory.mktemp("default") / "annotations.db"
    os.environ["ANNOTATOR_DB_PATH"] = str(path)
    yield


@pytest.fixture()
def raw_db(tmp_path):
    """Empty database file, no schema."""
    db = Database(str(tmp_path / "annotator_test.db"))
    yield db
    db.close()


@pytest.fixture()
def db(raw_db):
    """Database with all migrations applied."""
    run_migrations(raw_db)
    return raw_db


@pytest.fixture()
def raw_db_factory(tmp_path):
    """Extra migrated databases, for copy/transfer tests."""
    made = []

    def _make():
        d = Database(str(tmp_path / f"extra_{len(made)}.db"))
        run_migrations(d)
        made.append(d)
        return d

    yield _make
    for d in made:
        d.close()


@pytest.fixture()
def make_image(db):
    counter = {"n": 0}

    def _make(filename=None, **overrides):
        from annotator.services.image_svc import create_image

        counter["n"] += 1
        data = {
            "filename": f"img-{counter['n']}.jpg" if filename is None else filename,
            "original_name": f"original-{counter['n']}.jpg",
            "file_path": f"uploads/img-{counter['n']}.jpg",
            "file_size": 1024,
            "mime_type": "image/jpeg",
        }
        data.update(overrides)
        return create_image(db, data)

    return _make


@pytest.fixture()
def client(db, tmp_path):
    from fastapi.testclient import TestClient
    from annotator.api import create_app

    app = create_app(db, {"upload_dir": str(tmp_path / "uploads"), "seeds_dir": SEEDS_DIR})
    with TestClient(app) as c:
        yield c

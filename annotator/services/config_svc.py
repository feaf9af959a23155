# annotator/services/config_svc.py
import os

from ..db import read_config_yaml, _PROJECT_ROOT
from ..domain.rules import MAX_UPLOAD_BYTES

DEFAULTS = {
    "upload_dir": os.path.join(_PROJECT_ROOT, "uploads"),
    "seeds_dir": os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "seeds"),
    "max_upload_bytes": MAX_UPLOAD_BYTES,
    # Vite dev server ports used by the UI
    "cors_origins": [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
}

# env var -> config key
_ENV_OVERRIDES = {
    "ANNOTATOR_UPLOAD_DIR": "upload_dir",
    "ANNOTATOR_SEEDS_DIR": "seeds_dir",
    "ANNOTATOR_MAX_UPLOAD_BYTES": "max_upload_bytes",
}


def get_config() -> dict:
    """config.yaml values layered over DEFAULTS, then environment overrides."""
    cfg = read_config_yaml()
    out = dict(DEFAULTS)
    for k in DEFAULTS:
        v = cfg.get(k)
        if v is not None and v != "":
            out[k] = v
    for env, key in _ENV_OVERRIDES.items():
        v = os.environ.get(env)
        if v:
            out[key] = v

    out["max_upload_bytes"] = int(out["max_upload_bytes"])
    if isinstance(out["cors_origins"], str):
        out["cors_origins"] = [o.strip() for o in out["cors_origins"].split(",") if o.strip()]
    return out

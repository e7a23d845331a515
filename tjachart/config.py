import json
from pathlib import Path

from .constants import KATSU_BIAS_RANGE, SENSITIVITY_RANGE
from .utils import clamp

DEFAULT_CONFIG = {
    # Analysis
    "sensitivity": 0.6,
    # Notes
    "snap_divisions": 16,
    "katsu_bias": 0.0,
    # Chart
    "title": None,
    "level": 7,
    "balloon": [16, 16],
    "course": None,
}


def load_profile(path: str | Path) -> dict:
    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Profile not found: {path}")
    with open(path, "r") as f:
        profile = json.load(f)
    if not isinstance(profile, dict):
        raise ValueError(f"Profile must be a JSON object: {path}")
    unknown = sorted(set(profile) - set(DEFAULT_CONFIG))
    if unknown:
        raise ValueError(f"Unknown profile keys in {path}: {', '.join(unknown)}")
    return profile


def build_config(profile: dict | None = None, **overrides) -> dict:
    """Defaults <- profile <- explicit overrides (None means 'not given')."""
    cfg = dict(DEFAULT_CONFIG)
    cfg.update(profile or {})
    cfg.update({k: v for k, v in overrides.items() if v is not None})

    cfg["sensitivity"] = clamp(float(cfg["sensitivity"]), *SENSITIVITY_RANGE)
    cfg["katsu_bias"] = clamp(float(cfg["katsu_bias"]), *KATSU_BIAS_RANGE)
    cfg["snap_divisions"] = int(cfg["snap_divisions"])
    cfg["level"] = int(cfg["level"])
    return cfg

from typing import Any, Dict
from importlib import resources
import os
import yaml


def deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in (b or {}).items():
        if isinstance(out.get(k), dict) and isinstance(v, dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _yaml_load_text(path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def load_settings() -> Dict[str, Any]:
    """
    Load default.yml, overlay dev.yml if present, then apply env overrides using
    RELAY__A__B=val -> cfg['a']['b']=parsed(val)
    """
    pkg_root = resources.files("relay_service.config")
    cfg = _yaml_load_text(pkg_root / "default.yml")

    ignore_dev_config = os.environ.get("RELAY_IGNORE_DEV_CONFIG", "false").lower() in (
        "true",
        "1",
        "yes",
    )

    dev_file = pkg_root / "dev.yml"
    if not ignore_dev_config and dev_file.is_file():
        dev_cfg = _yaml_load_text(dev_file)
        # `_replaces_default: true` makes dev.yml the base instead of an overlay
        if dev_cfg.pop("_replaces_default", False):
            cfg = dev_cfg
        else:
            cfg = deep_merge(cfg, dev_cfg)

    prefix = "RELAY__"
    for key, val in os.environ.items():
        if not key.startswith(prefix):
            continue
        parts = key[len(prefix) :].split("__")
        parts = [p.strip().lower() for p in parts if p.strip()]
        if not parts:
            continue
        sub = cfg
        for p in parts[:-1]:
            sub = sub.setdefault(p, {})
        # parse value as YAML for numbers/bools/lists/dicts support
        try:
            parsed = yaml.safe_load(val)
        except yaml.YAMLError:
            parsed = val
        sub[parts[-1]] = parsed

    return cfg


def get_section(cfg: Dict[str, Any], *path: str) -> Dict[str, Any]:
    """Walk nested config sections, returning {} for anything missing."""
    sub: Any = cfg
    for key in path:
        sub = (sub or {}).get(key) if isinstance(sub, dict) else None
    return sub if isinstance(sub, dict) else {}

"""Layered YAML configuration and per-site selector profiles."""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .log import log_debug, log_warn

PACKAGE_DIR = Path(__file__).resolve().parent
MODELS_DIR = PACKAGE_DIR / "models"
DEFAULT_PROFILE = "gemini"

DEFAULTS = {
    "profile": DEFAULT_PROFILE,
    "timing": {
        "poll_interval": 0.2,
        "stable_ticks": 6,
        "appear_timeout": 30.0,
        "hard_timeout": 120.0,
        "copy_wait_ms": 50,
        "ready_timeout": 300.0,
    },
    "walker": {"max_depth": 200},
    "clip": {"enabled": False},
    "output": {"stream": True},
}


def deep_merge(target, source):
    for k, v in source.items():
        if k in target and isinstance(target[k], dict) and isinstance(v, dict):
            deep_merge(target[k], v)
        else:
            target[k] = v
    return target


def _normalize(d):
    if isinstance(d, dict):
        return {k: _normalize(v) for k, v in d.items()}
    if isinstance(d, list):
        return [_normalize(i) for i in d]
    if isinstance(d, str) and d.lower() in ("true", "false"):
        return d.lower() == "true"
    return d


def load_file(path) -> dict:
    if not path or not Path(path).exists():
        return {}
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        log_warn(f"Failed to load {path.name}: {e}")
        return {}
    if not isinstance(data, dict):
        log_warn(f"Ignoring {path.name}: top level is not a mapping")
        return {}
    return _normalize(data)


def get_config_paths() -> dict:
    """Candidate locations for the user config, most specific first."""
    appdata = os.environ.get("APPDATA") or os.environ.get("XDG_CONFIG_HOME")
    if not appdata:
        appdata = str(Path.home() / ".config")
    return {
        "local": Path.cwd() / "config.yaml",
        "appdata": Path(appdata) / "chat-capture" / "config.yaml",
        "default": PACKAGE_DIR / "config.default.yaml",
    }


def load_config(path=None) -> dict:
    """Merge built-in defaults, the packaged defaults file and one user file."""
    paths = get_config_paths()
    config = copy.deepcopy(DEFAULTS)

    # 1. Packaged defaults
    deep_merge(config, load_file(paths["default"]))

    # 2. User overrides (Priority: explicit > local > appdata)
    if path:
        if not Path(path).exists():
            log_warn(f"Config file not found: {path}")
        deep_merge(config, load_file(path))
    elif paths["local"].exists():
        deep_merge(config, load_file(paths["local"]))
    elif paths["appdata"].exists():
        deep_merge(config, load_file(paths["appdata"]))
    return config


def load_profiles(models_dir: Path = MODELS_DIR) -> dict[str, dict]:
    profiles = {}
    if not models_dir.exists():
        return {}
    for p_path in sorted(models_dir.glob("*.yaml")):
        data = load_file(p_path)
        if data:
            profiles[p_path.stem] = data
    return profiles


def _as_list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


@dataclass
class CaptureSettings:
    name: str = DEFAULT_PROFILE
    url: str = ""
    match: str = ""
    reply_selector: str = ".model-response-text, .markdown, .message-content"
    container_selector: str = "response-container, .response-container"
    copy_selector: str = 'button[data-test-id="copy-button"]'
    complete_markers: list[str] = field(default_factory=lambda: ["regenerate-button", "thumb-up-button"])
    input_selectors: list[str] = field(default_factory=lambda: ['div[contenteditable="true"]', "textarea"])
    poll_interval: float = 0.2
    stable_ticks: int = 6
    appear_timeout: float = 30.0
    hard_timeout: float = 120.0
    copy_wait_ms: int = 50
    ready_timeout: float = 300.0
    max_depth: int = 200

    @classmethod
    def from_config(cls, config: dict, profile: Optional[dict] = None, name: Optional[str] = None):
        profile = profile or {}
        timing = config.get("timing", {}) or {}
        walker = config.get("walker", {}) or {}
        base = cls()
        settings = cls(
            name=name or profile.get("name") or config.get("profile") or base.name,
            url=profile.get("url", base.url),
            match=profile.get("match", base.match),
            reply_selector=profile.get("reply_selector", base.reply_selector),
            container_selector=profile.get("container_selector", base.container_selector),
            copy_selector=profile.get("copy_selector", base.copy_selector),
            complete_markers=_as_list(profile.get("complete_markers", base.complete_markers)),
            input_selectors=_as_list(profile.get("input_selectors", base.input_selectors)),
            poll_interval=float(timing.get("poll_interval", base.poll_interval)),
            stable_ticks=int(timing.get("stable_ticks", base.stable_ticks)),
            appear_timeout=float(timing.get("appear_timeout", base.appear_timeout)),
            hard_timeout=float(timing.get("hard_timeout", base.hard_timeout)),
            copy_wait_ms=int(timing.get("copy_wait_ms", base.copy_wait_ms)),
            ready_timeout=float(timing.get("ready_timeout", base.ready_timeout)),
            max_depth=int(walker.get("max_depth", base.max_depth)),
        )
        log_debug(f"Settings for profile '{settings.name}': {settings}")
        return settings


def resolve_settings(config: dict, profile_name: Optional[str] = None) -> CaptureSettings:
    """Pick the named (or configured) profile and fold it into settings."""
    profiles = load_profiles()
    key = profile_name or config.get("profile") or DEFAULT_PROFILE
    profile = profiles.get(key)
    if profile is None:
        log_warn(f"Unknown profile '{key}'; using built-in {DEFAULT_PROFILE} selectors")
        profile = profiles.get(DEFAULT_PROFILE, {})
        key = DEFAULT_PROFILE
    # Per-profile overrides from the user config, e.g. profiles: {gemini: {...}}
    overrides = (config.get("profiles") or {}).get(key) or {}
    merged = deep_merge(dict(profile), overrides)
    return CaptureSettings.from_config(config, merged, name=merged.get("name", key))

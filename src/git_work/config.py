from __future__ import annotations

import json
import os
from pathlib import Path

from .errors import ConfigurationError
from .git import read_config_identity
from .identity import AuthorIdentity

CONFIG_ENV_VAR = "GIT_WORK_CONFIG"


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return Path("~/.config/git-work/config.json").expanduser()


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"cannot read config {config_path}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigurationError(f"config {config_path} must contain a JSON object")
    return config


def config_str_list(config: dict, key: str) -> list[str]:
    values = config.get(key) or []
    if not isinstance(values, list):
        raise ConfigurationError(f"config key {key!r} must be a list of strings")
    return [str(v).strip() for v in values if str(v).strip()]


def config_int(config: dict, key: str, default: int) -> int:
    value = config.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"config key {key!r} must be an integer, got {value!r}") from e


def resolve_identity(*, all_authors: bool, cwd: Path, config: dict) -> AuthorIdentity | None:
    """
    Resolve the author filter once for the run; None means "all authors".

    The primary identity is git's effective `user.email` / `user.name` seen
    from `cwd`; `me_emails` / `me_names` in the config add aliases.
    """
    if all_authors:
        return None

    email, name = read_config_identity(cwd)
    identity = AuthorIdentity(
        email=email,
        name=name,
        extra_emails=tuple(config_str_list(config, "me_emails")),
        extra_names=tuple(config_str_list(config, "me_names")),
    )
    if identity.is_empty():
        raise ConfigurationError(
            "no author identity: set git config user.email / user.name "
            "(or me_emails / me_names in the config), or pass --all"
        )
    return identity

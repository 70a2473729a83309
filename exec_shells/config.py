from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ExecConfigError
from .record import ColorPolicy

DEFAULT_PURGE_DELAY = 0


def _truthy(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    val = str(raw).strip().lower()
    return val in {"1", "true", "yes", "y", "on"}


def _default_config_path() -> Path:
    return Path.home() / ".config" / "exec_shells" / "exec.yaml"


@dataclass
class ExecConfig:
    """Settings consumed by the exec core.

    Values are read on each use (e.g. `purge_delay` at every command end),
    so `reload()` takes effect for commands that have not ended yet.
    """

    # seconds before a finished command is removed; negative keeps it forever
    purge_delay: int = DEFAULT_PURGE_DELAY
    default_color: ColorPolicy = ColorPolicy.ANSI
    display_rc: bool = True
    shell: str = "sh"
    api_token: Optional[str] = None
    path: Optional[Path] = field(default=None, compare=False)

    def update(self, raw: Mapping[str, Any]) -> None:
        command = raw.get("command") if isinstance(raw.get("command"), dict) else {}
        color = raw.get("color") if isinstance(raw.get("color"), dict) else {}
        api = raw.get("api") if isinstance(raw.get("api"), dict) else {}

        if "purge_delay" in command:
            try:
                self.purge_delay = int(command["purge_delay"])
            except (TypeError, ValueError) as exc:
                raise ExecConfigError(f"command.purge_delay must be an integer, got {command['purge_delay']!r}") from exc
        if "display_rc" in command:
            self.display_rc = _truthy(command["display_rc"])
        if command.get("shell"):
            self.shell = str(command["shell"])
        if "default" in color:
            policy = ColorPolicy.search(str(color["default"]))
            if policy is None:
                raise ExecConfigError(f"color.default must be one of ansi/decode/strip, got {color['default']!r}")
            self.default_color = policy
        if api.get("token"):
            self.api_token = str(api["token"])

    def apply_env(self, env: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if env is None else env
        raw: Dict[str, Dict[str, Any]] = {"command": {}, "color": {}, "api": {}}
        if env.get("EXEC_SHELLS_PURGE_DELAY"):
            raw["command"]["purge_delay"] = env["EXEC_SHELLS_PURGE_DELAY"].strip()
        if env.get("EXEC_SHELLS_SHELL"):
            raw["command"]["shell"] = env["EXEC_SHELLS_SHELL"]
        if env.get("EXEC_SHELLS_COLOR"):
            raw["color"]["default"] = env["EXEC_SHELLS_COLOR"]
        if env.get("EXEC_SHELLS_API_TOKEN"):
            raw["api"]["token"] = env["EXEC_SHELLS_API_TOKEN"]
        self.update(raw)

    def reload(self) -> None:
        fresh = load_config(self.path)
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(fresh, name))


def load_config(
    path: Optional[Union[str, Path]] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> ExecConfig:
    """Load settings from YAML, then apply EXEC_SHELLS_* environment overrides.

    File shape::

        command:
          purge_delay: 0
          display_rc: true
          shell: sh
        color:
          default: ansi
        api:
          token: ...
    """
    env_map = os.environ if env is None else env
    if path is None and env_map.get("EXEC_SHELLS_CONFIG"):
        path = os.path.expanduser(env_map["EXEC_SHELLS_CONFIG"])
    p = Path(path) if path is not None else _default_config_path()

    config = ExecConfig(path=p)
    if p.exists():
        try:
            with p.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ExecConfigError(f"invalid YAML in {p}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ExecConfigError(f"{p} must contain a mapping")
        config.update(raw)
    config.apply_env(env_map)
    return config

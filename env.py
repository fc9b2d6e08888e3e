from __future__ import annotations

import os
from pathlib import Path

_KEYS = ("OPENAI_API_KEY", "REMOVEBG_API_KEY", "NOTION_API_KEY")


def load_env(env_path: Path | None = None) -> None:
    """Minimal .env loader (KEY=VALUE). Skips if every API key is already set."""
    if all(os.getenv(k) for k in _KEYS):
        return

    env_path = env_path or Path(__file__).resolve().parent / ".env"
    if not env_path.exists():
        return

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = val

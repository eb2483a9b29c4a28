from __future__ import annotations

import json
import random
import time
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Sequence

from prayer_dispatch.errors import ConfigurationError
from prayer_dispatch.windows import ActiveWindow, WindowKind

BASE_DIR = Path(__file__).resolve().parent / "message_packs"

PLACEHOLDER = "{prayer}"


def _load_json(path: Path, fallback):
    if not path.exists():
        return fallback
    return json.loads(path.read_text(encoding="utf-8-sig"))


def _freeze(value):
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def load_message_pack(pack_key: str = "default") -> Mapping:
    pack_file = BASE_DIR / f"{pack_key or 'default'}.json"
    if not pack_file.exists():
        pack_file = BASE_DIR / "default.json"
    raw = _load_json(pack_file, {})
    for key in ("prayer_start", "prayer_ending", "dua"):
        if key not in raw:
            raise ConfigurationError(f"Message pack {pack_file.name} is missing '{key}'")
    return _freeze(raw)


# Read-only for the life of the process.
MESSAGES = load_message_pack()


def select_from_pool(pool: Sequence[str], rng: random.Random | None = None) -> str:
    if not pool:
        raise ConfigurationError("Message pool is empty")
    rng = rng or random
    return pool[rng.randrange(len(pool))]


def render_template(template: str, event_name: str) -> str:
    return template.replace(PLACEHOLDER, event_name)


def _pool(section: str, key: str | None = None) -> Sequence[str]:
    pool = MESSAGES[section]
    if key is None:
        return pool
    if key not in pool:
        raise ConfigurationError(f"No '{section}' messages for {key}")
    return pool[key]


def prayer_start_message(prayer: str, rng: random.Random | None = None) -> str:
    return select_from_pool(_pool("prayer_start", prayer), rng)


def prayer_ending_message(prayer: str, rng: random.Random | None = None) -> str:
    return render_template(select_from_pool(_pool("prayer_ending"), rng), prayer)


def dua_message(slot: str, rng: random.Random | None = None) -> str:
    return select_from_pool(_pool("dua", slot), rng)


def message_for(window: ActiveWindow, rng: random.Random | None = None) -> str:
    if window.kind is WindowKind.START:
        return prayer_start_message(window.name, rng)
    if window.kind is WindowKind.ENDING_SOON:
        return prayer_ending_message(window.name, rng)
    return dua_message(window.name, rng)


def payload_for(window: ActiveWindow, message: str) -> dict:
    """Title, body, deep link and collapse tag for one active window."""
    stamp = int(time.time() * 1000)
    if window.kind is WindowKind.START:
        return {
            "title": f"{window.name} Time! 🕌",
            "body": message,
            "url": "/quran",
            "tag": f"prayer-start-{window.name}-{stamp}",
        }
    if window.kind is WindowKind.ENDING_SOON:
        return {
            "title": f"⏰ {window.name} Ending Soon!",
            "body": message,
            "url": "/quran",
            "tag": f"prayer-ending-{window.name}-{stamp}",
        }
    return {
        "title": f"{window.name.capitalize()} Dua Time 🤲",
        "body": message,
        "url": "/dashboard",
        "tag": f"dua-{window.name}-{stamp}",
    }

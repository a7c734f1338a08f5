# templates.py
import json
from pathlib import Path
from typing import Any, Dict

ROOT = Path(__file__).resolve().parent
TEMPLATES_PATH = ROOT / "templates.json"

_cache: Dict[str, Any] = {}


def load() -> Dict[str, Any]:
    global _cache
    if _cache:
        return _cache
    with open(TEMPLATES_PATH, "r", encoding="utf-8") as f:
        _cache = json.load(f)
    return _cache


def t(key: str, **kwargs) -> str:
    """Reply text for `key`; `{{name}}` placeholders are filled from kwargs."""
    node = load()["templates"][key]
    if isinstance(node, list):
        node = "\n".join(node)
    for k, v in kwargs.items():
        node = node.replace("{{" + k + "}}", str(v))
    return node

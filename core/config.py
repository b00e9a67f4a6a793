from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from .fetch import DEFAULT_TIMEOUT, USER_AGENT
from .m3u import HEADER_MARKER, AttributeMap

# Config persistante (data/config.json) : chemins, réseau, noms d'attributs EXTINF.

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("data/config.json")


def _default_attributes() -> dict[str, list[str]]:
    return {k: list(v) for k, v in asdict(AttributeMap()).items()}


@dataclass
class Settings:
    db_path: str = "data/m3u.db"
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    max_workers: int = 4
    log_level: str = "INFO"
    header_marker: str = HEADER_MARKER
    attributes: dict[str, list[str]] = field(default_factory=_default_attributes)

    def attribute_map(self) -> AttributeMap:
        return AttributeMap.from_dict(self.attributes)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    path = Path(path)
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("config %s unreadable (%s), using defaults", path, e)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("config %s is not a JSON object, using defaults", path)
        return Settings()

    settings = Settings()
    for key, value in data.items():
        if key not in Settings.__dataclass_fields__:
            continue
        try:
            setattr(settings, key, _coerce(key, value))
        except (TypeError, ValueError) as e:
            # Valeur invalide : on garde la valeur par défaut de ce champ.
            logger.warning("config %s: invalid %s (%s), using default", path, key, e)
    return settings


def _coerce(key: str, value):
    if isinstance(value, bool):
        raise TypeError(f"unexpected boolean {value!r}")
    if key == "timeout":
        value = float(value)
        if value <= 0:
            raise ValueError("must be > 0")
        return value
    if key == "max_workers":
        value = int(value)
        if value < 1:
            raise ValueError("must be >= 1")
        return value
    if key == "attributes":
        if not isinstance(value, dict):
            raise TypeError("expected an object")
        merged = _default_attributes()
        for name, names in value.items():
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                raise TypeError(f"{name}: expected a string or a list of strings")
            # Les champs absents du fichier gardent leurs noms par défaut.
            merged[name] = names
        return merged
    if not isinstance(value, str) or not value:
        raise TypeError("expected a non-empty string")
    return value


def save_config(settings: Settings, path: str | Path = DEFAULT_CONFIG_PATH) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")

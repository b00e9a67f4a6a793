from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union
from urllib.parse import urlparse

from .models import M3U, Live

# Lecture/écriture des playlists M3U (en-tête #EXTM3U, blocs EXTINF + URL).

logger = logging.getLogger(__name__)

HEADER_MARKER = "#EXTM3U"
EXTINF_PREFIX = "#EXTINF:"
EXTGRP_PREFIX = "#EXTGRP:"
EXTVLCOPT_PREFIX = "#EXTVLCOPT:"

ATTR_RE = re.compile(r'([A-Za-z0-9][\w\-]*)="([^"]*)"')

Source = Union[str, bytes, Iterable[str]]


class MalformedPlaylist(ValueError):
    """La playlist ne commence pas par l'en-tête attendu : rien n'est émis."""


@dataclass(frozen=True)
class AttributeMap:
    """
    Noms d'attributs EXTINF (sensibles à la casse) lus pour chaque champ de M3U.
    Le premier nom présent sur la ligne gagne.
    """
    id: tuple[str, ...] = ("tvg-id",)
    name: tuple[str, ...] = ("tvg-name",)
    cover: tuple[str, ...] = ("tvg-logo", "logo")
    group: tuple[str, ...] = ("group-title",)

    @classmethod
    def from_dict(cls, data: dict) -> "AttributeMap":
        names = {f.name for f in fields(cls)}
        known = {}
        for key, value in (data or {}).items():
            if key in names:
                known[key] = (value,) if isinstance(value, str) else tuple(value)
        return cls(**known)

    def lookup(self, attrs: dict[str, str], names: tuple[str, ...]) -> str:
        for n in names:
            value = attrs.get(n)
            if value:
                return value.strip()
        return ""


DEFAULT_ATTRIBUTES = AttributeMap()


@dataclass
class ExtInf:
    duration: float = -1.0
    attrs: dict[str, str] = field(default_factory=dict)
    title: str = ""


@dataclass
class ParseStats:
    # skipped: entrées abandonnées (EXTINF sans URL, URL invalide)
    # stray: URL sans EXTINF devant
    skipped: int = 0
    stray: int = 0


@dataclass
class ParseResult:
    lives: List[Live]
    skipped: int = 0
    stray: int = 0


def _split_title(body: str) -> tuple[str, str]:
    # La virgule séparant le titre est la première hors guillemets (group-title="News, Sport").
    in_quotes = False
    for i, ch in enumerate(body):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            return body[:i], body[i + 1:]
    return body, ""


def parse_extinf(line: str) -> ExtInf:
    """Découpe une ligne #EXTINF en durée, attributs key="value" et titre."""
    body = line[len(EXTINF_PREFIX):] if line.startswith(EXTINF_PREFIX) else line
    head, title = _split_title(body)

    duration = -1.0
    tokens = head.split(None, 1)
    if tokens:
        try:
            duration = float(tokens[0])
        except ValueError:
            pass

    return ExtInf(duration=duration, attrs=dict(ATTR_RE.findall(head)), title=title.strip())


def _iter_lines(source: Source) -> Iterator[str]:
    if isinstance(source, bytes):
        source = source.decode("utf-8-sig", errors="replace")
    if isinstance(source, str):
        # Fins de ligne : \n, \r\n et \r uniquement.
        source = io.StringIO(source, newline=None)
    for raw in source:
        yield raw.strip()


def _is_header(line: str, marker: str) -> bool:
    # "#EXTM3U" seul ou suivi d'attributs, pas "#EXTM3UX".
    if not line.startswith(marker):
        return False
    rest = line[len(marker):]
    return not rest or rest[0].isspace()


def _is_playable(url: str) -> bool:
    scheme = urlparse(url).scheme
    # "C:\..." donne un scheme d'une lettre : ce n'est pas une URL.
    return len(scheme) > 1


def _build_entry(info: ExtInf, url: str, extgrp: str, vlc_opts: list[str], attribute_map: AttributeMap) -> M3U:
    attrs = info.attrs
    return M3U(
        id=attribute_map.lookup(attrs, attribute_map.id),
        name=attribute_map.lookup(attrs, attribute_map.name),
        cover=attribute_map.lookup(attrs, attribute_map.cover),
        group=attribute_map.lookup(attrs, attribute_map.group) or extgrp,
        title=info.title,
        url=url,
        duration=info.duration,
        attrs=attrs,
        vlc_opts=vlc_opts,
    )


def iter_entries(
    source: Source,
    *,
    attribute_map: Optional[AttributeMap] = None,
    header_marker: str = HEADER_MARKER,
    stats: Optional[ParseStats] = None,
) -> Iterator[M3U]:
    """
    Parcours en une passe : chaque #EXTINF ouvre une entrée, la ligne non vide
    suivante qui n'est pas un commentaire en donne l'URL.
    Supporte #EXTGRP et #EXTVLCOPT entre EXTINF et l'URL.
    """
    attribute_map = attribute_map or DEFAULT_ATTRIBUTES
    stats = stats if stats is not None else ParseStats()
    lines = enumerate(_iter_lines(source), start=1)

    for _, line in lines:
        line = line.lstrip("\ufeff").strip()
        if line:
            if not _is_header(line, header_marker):
                raise MalformedPlaylist(f"missing {header_marker} header")
            break
    else:
        raise MalformedPlaylist("empty playlist")

    pending: Optional[ExtInf] = None
    pending_no = 0
    extgrp = ""
    vlc_opts: list[str] = []
    emitted = 0

    for lineno, line in lines:
        if not line:
            continue

        if line.startswith(EXTINF_PREFIX):
            if pending is not None:
                logger.debug("line %d: EXTINF without url, skipped", pending_no)
                stats.skipped += 1
            pending, pending_no = parse_extinf(line), lineno
            extgrp, vlc_opts = "", []
            continue

        if line.startswith("#"):
            if pending is None:
                continue
            if line.startswith(EXTGRP_PREFIX):
                extgrp = line[len(EXTGRP_PREFIX):].strip()
            elif line.upper().startswith(EXTVLCOPT_PREFIX):
                opt = line.split(":", 1)[1].strip()
                if opt:
                    vlc_opts.append(opt)
            continue

        if pending is None:
            logger.debug("line %d: url without EXTINF, ignored", lineno)
            stats.stray += 1
            continue

        info, pending = pending, None
        if not _is_playable(line):
            logger.debug("line %d: invalid stream url %r, skipped", lineno, line)
            stats.skipped += 1
            continue

        emitted += 1
        yield _build_entry(info, line, extgrp, vlc_opts, attribute_map)

    if pending is not None:
        logger.debug("line %d: EXTINF without url at end of input, skipped", pending_no)
        stats.skipped += 1

    logger.debug("parsed %d entries (%d skipped, %d stray)", emitted, stats.skipped, stats.stray)


def parse_lives(
    source: Source,
    subscription_url: str,
    *,
    attribute_map: Optional[AttributeMap] = None,
    header_marker: str = HEADER_MARKER,
    stats: Optional[ParseStats] = None,
) -> Iterator[Live]:
    """Itérateur paresseux de Live, tous marqués avec `subscription_url`."""
    if not subscription_url:
        raise ValueError("subscription_url must not be empty")
    entries = iter_entries(source, attribute_map=attribute_map, header_marker=header_marker, stats=stats)
    return (entry.to_live(subscription_url) for entry in entries)


def parse_m3u(source: Source, subscription_url: str, **kwargs) -> List[Live]:
    return list(parse_lives(source, subscription_url, **kwargs))


def parse_playlist(
    source: Source,
    subscription_url: str,
    *,
    attribute_map: Optional[AttributeMap] = None,
    header_marker: str = HEADER_MARKER,
) -> ParseResult:
    stats = ParseStats()
    lives = list(parse_lives(
        source, subscription_url, attribute_map=attribute_map, header_marker=header_marker, stats=stats
    ))
    return ParseResult(lives=lives, skipped=stats.skipped, stray=stats.stray)


def _quote(value: str) -> str:
    return value.replace('"', "'")


def format_m3u(lives: Iterable[Live]) -> str:
    out = [HEADER_MARKER]
    for live in lives:
        if not live.url:
            continue
        attrs = ""
        if live.cover:
            attrs += f' tvg-logo="{_quote(live.cover)}"'
        if live.group:
            attrs += f' group-title="{_quote(live.group)}"'
        out.append(f"{EXTINF_PREFIX}-1{attrs},{live.title}")
        out.append(live.url)
    return "\n".join(out) + "\n"


def write_m3u(lives: Iterable[Live], path: Path):
    """Écrit une playlist M3U minimale à partir d'une liste de Live."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(format_m3u(lives))

from __future__ import annotations
from dataclasses import dataclass, field

# Structures de données partagées entre parseur, stockage et refresh des abonnements.


@dataclass(frozen=True)
class Live:
    """Une chaîne jouable issue d'une playlist, rattachée à son abonnement d'origine."""
    url: str
    title: str = ""
    group: str = ""
    cover: str = ""
    subscription_url: str = ""
    # Vide à la sortie du parseur : l'id est attribué par le stockage.
    id: str = ""


@dataclass
class M3U:
    """Représente une entrée #EXTINF + URL telle que lue dans la playlist."""
    id: str = ""
    name: str = ""
    cover: str = ""
    group: str = ""
    title: str = ""
    url: str = ""
    duration: float = -1.0
    attrs: dict[str, str] = field(default_factory=dict)
    # Options VLC associées au flux (lignes #EXTVLCOPT:... entre EXTINF et URL)
    vlc_opts: list[str] = field(default_factory=list)

    def to_live(self, subscription_url: str) -> Live:
        return Live(
            url=self.url,
            group=self.group,
            title=self.title,
            cover=self.cover,
            subscription_url=subscription_url,
        )


@dataclass
class Subscription:
    id: int
    title: str
    url: str

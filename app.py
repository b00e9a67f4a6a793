from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from core.config import DEFAULT_CONFIG_PATH, load_config
from core.fetch import FetchError, fetch_playlist
from core.m3u import parse_playlist, write_m3u
from core.subscriptions import RefreshError, SubscriptionService
from storage import Storage
from workers.refresh_worker import RefreshWorker

# Point d'entrée ligne de commande : parsing ponctuel, gestion des abonnements,
# refresh (parallèle) et export M3U.


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="m3u-live", description="Abonnements M3U -> chaînes")
    ap.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Fichier de config JSON")
    ap.add_argument("--db", default="", help="Base SQLite (défaut: valeur de la config)")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Parse une playlist sans rien enregistrer")
    p.add_argument("source", help="Fichier ou URL de la playlist")
    p.add_argument("--subscription", default="", help="URL d'abonnement à apposer (défaut: source)")
    p.add_argument("--json", action="store_true", help="Sortie JSON")

    p = sub.add_parser("subscribe", help="Ajoute un abonnement et le rafraîchit")
    p.add_argument("url")
    p.add_argument("--title", default="")

    p = sub.add_parser("refresh", help="Rafraîchit un ou plusieurs abonnements (tous par défaut)")
    p.add_argument("urls", nargs="*")

    p = sub.add_parser("list", help="Liste les abonnements, ou les chaînes d'un abonnement")
    p.add_argument("url", nargs="?", default="")

    p = sub.add_parser("export", help="Exporte les chaînes d'un abonnement en M3U")
    p.add_argument("url")
    p.add_argument("out")

    p = sub.add_parser("unsubscribe", help="Supprime un abonnement et ses chaînes")
    p.add_argument("url")
    return ap


def _cmd_parse(args, settings) -> int:
    text = fetch_playlist(args.source, timeout=settings.timeout, user_agent=settings.user_agent)
    result = parse_playlist(
        text,
        args.subscription or args.source,
        attribute_map=settings.attribute_map(),
        header_marker=settings.header_marker,
    )
    if args.json:
        print(json.dumps([asdict(l) for l in result.lives], indent=2, ensure_ascii=False))
    else:
        for live in result.lives:
            print(f"{live.group or '-'}\t{live.title}\t{live.url}")
    print(f"{len(result.lives)} chaînes, {result.skipped} ignorées", file=sys.stderr)
    return 0


def _cmd_refresh(args, settings, service: SubscriptionService, db: Storage) -> int:
    urls = args.urls or [s.url for s in db.list_subscriptions()]
    if not urls:
        print("Aucun abonnement.", file=sys.stderr)
        return 0

    worker = RefreshWorker(service, urls, max_workers=settings.max_workers)
    failed = 0
    for url, outcome in worker.run().items():
        if isinstance(outcome, Exception):
            failed += 1
            print(f"KO {url}: {outcome}", file=sys.stderr)
        else:
            print(f"OK {url}: {outcome.count} chaînes ({outcome.skipped} ignorées)")
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_config(args.config)

    level = logging.DEBUG if args.verbose else getattr(logging, str(settings.log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s")

    def fetcher(url: str) -> str:
        return fetch_playlist(url, timeout=settings.timeout, user_agent=settings.user_agent)

    try:
        if args.command == "parse":
            return _cmd_parse(args, settings)

        db = Storage(args.db or settings.db_path)
        service = SubscriptionService(
            db, fetcher=fetcher, attribute_map=settings.attribute_map(), header_marker=settings.header_marker
        )

        if args.command == "subscribe":
            result = service.subscribe(args.url, args.title)
            print(f"OK {result.subscription_url}: {result.count} chaînes ({result.skipped} ignorées)")
        elif args.command == "refresh":
            return _cmd_refresh(args, settings, service, db)
        elif args.command == "list":
            if args.url:
                for live in service.lives(args.url):
                    print(f"{live.id}\t{live.group or '-'}\t{live.title}\t{live.url}")
            else:
                for s in db.list_subscriptions():
                    print(f"{s.id}\t{s.title or '-'}\t{s.url}\t{db.count_lives(s.url)}")
        elif args.command == "export":
            lives = service.lives(args.url)
            write_m3u(lives, Path(args.out))
            print(f"Exporté: {len(lives)} chaînes -> {args.out}")
        elif args.command == "unsubscribe":
            service.unsubscribe(args.url)
        return 0
    # MalformedPlaylist est une ValueError.
    except (RefreshError, FetchError, ValueError) as e:
        print(f"Erreur: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

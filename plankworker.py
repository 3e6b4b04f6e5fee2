#!/usr/bin/env python3
from __future__ import annotations
import argparse
import shutil
import sys
from typing import Any, Dict, List, Optional, Sequence

from config.constants import DEFAULT_CONFIG, EXIT_CODES, get_version
from src.core.cache_store import CacheStorage
from src.core.lifecycle import evict_stale_generations
from src.core.notifications import NotificationCenter
from src.core.policy import CachePolicy
from src.core.push_renderer import PushRenderer
from src.core.router import resolve
from src.models.config import AgentConfig, STRATEGY_NAMES
from src.models.exceptions import CacheStorageException, ConfigurationException, ValidationException
from src.models.http import Request
from src.utils.logger import get_logger, setup_logging
from src.utils.output_formatter import output_formatter

logger = get_logger("cli")

TITLE = "PlankWorker - offline-first background agent toolkit"

RENDER_COLUMNS = ("title", "body", "category", "icon", "vibrate", "actions", "tag", "push_id")
CLASSIFY_COLUMNS = ("method", "url", "rule", "strategy", "store_response")
ROUTE_COLUMNS = ("action", "category", "kind", "url")
CACHE_COLUMNS = ("name", "entries", "current")
EVICT_COLUMNS = ("name", "status")


class WideFormatter(argparse.RawTextHelpFormatter):
    def __init__(self, prog):
        width = shutil.get_terminal_size((100, 20)).columns
        super().__init__(prog, max_help_position=32, width=max(90, min(width, 140)))


class PlankWorkerCLI:
    def __init__(self):
        self.parser = self._create_parser()
        self.config: AgentConfig | None = None

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(prog="plankworker", description=TITLE, formatter_class=WideFormatter)
        parser.add_argument("-V", "--version", action="store_true", help="Show version information and exit")

        ops = parser.add_argument_group("Operations")
        ops.add_argument("--render", metavar="PAYLOAD", help="Build the notification for a push payload ('-' reads stdin)")
        ops.add_argument("--classify", metavar="URL", help="Show which cache rule handles a request")
        ops.add_argument("--route", action="store_true", help="Resolve a notification click to its target")
        ops.add_argument("--list-caches", action="store_true", help="List cache generations in the cache directory")
        ops.add_argument("--evict-stale", action="store_true", help="Delete every cache generation except the current one")

        req = parser.add_argument_group("Request Options (--classify)")
        req.add_argument("--method", default="GET", help="HTTP method (default: GET)")
        req.add_argument("--auth", action="store_true", help="Attach an Authorization header")
        req.add_argument("--navigate", action="store_true", help="Treat as a top-level navigation")
        req.add_argument("--destination", default="", help="Request destination (image, script, style, ...)")

        click = parser.add_argument_group("Click Options (--route)")
        click.add_argument("--action", default=None, help="Notification action id (omit for a bare click)")
        click.add_argument("--category", default=None, help="Notification category")

        cfg = parser.add_argument_group("Configuration")
        cfg.add_argument("--origin", help=f"App origin (default: {DEFAULT_CONFIG['origin']})")
        cfg.add_argument("--backend-url", help=f"Backend base URL (default: {DEFAULT_CONFIG['backend_url']})")
        cfg.add_argument("--cache-dir", help="Directory holding persisted cache generations")
        cfg.add_argument("--cache-version", help=f"Current cache version (default: {DEFAULT_CONFIG['cache_version']})")
        cfg.add_argument("--static-strategy", choices=STRATEGY_NAMES, help="Strategy for static assets")

        out = parser.add_argument_group("Output Options")
        out.add_argument("--json", action="store_true", help="Emit JSON instead of TSV")
        out.add_argument("--no-header", action="store_true", help="Omit the TSV header line")
        out.add_argument("-o", "--output", help="Write results to file")
        out.add_argument("--quiet", action="store_true", help="Only log errors")
        out.add_argument("--verbose", action="store_true", help="Debug logging")
        out.add_argument("--log-file", help="Also log to this file")
        return parser

    def parse_arguments(self, argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
        return self.parser.parse_args(argv)

    def _create_config(self, args: argparse.Namespace) -> AgentConfig:
        return AgentConfig.from_env(
            origin=args.origin,
            backend_url=args.backend_url,
            cache_dir=args.cache_dir,
            cache_version=args.cache_version,
            static_strategy=args.static_strategy,
        )

    def _render(self, payload: str) -> List[Dict[str, Any]]:
        if payload == "-":
            payload = sys.stdin.read()
        renderer = PushRenderer(NotificationCenter(), self.config.max_notification_actions)
        d = renderer.build_descriptor(payload)
        record = d.to_dict()
        record.update({"category": d.category, "push_id": d.push_id, "actions": d.action_ids})
        return [record]

    def _classify(self, args: argparse.Namespace) -> List[Dict[str, Any]]:
        headers = {"Authorization": "Bearer <redacted>"} if args.auth else {}
        request = Request(
            args.classify,
            method=args.method,
            headers=headers,
            mode="navigate" if args.navigate else "cors",
            destination=args.destination,
        )
        rule = CachePolicy.default(self.config).classify(request)
        record: Dict[str, Any] = {"method": request.method, "url": request.url}
        if rule is None:
            record.update({"rule": "pass-through", "strategy": "", "store_response": False})
        else:
            record.update(rule.to_dict())
        return [record]

    def _route(self, args: argparse.Namespace) -> List[Dict[str, Any]]:
        target = resolve(args.action, args.category)
        return [{
            "action": args.action or "click",
            "category": args.category or "",
            "kind": target.kind,
            "url": target.url or "",
        }]

    def _storage(self) -> CacheStorage:
        if not self.config.cache_dir:
            raise ConfigurationException("A cache directory is required (--cache-dir or PLANKWORKER_CACHE_DIR)")
        return CacheStorage(self.config.cache_dir)

    def _list_caches(self) -> List[Dict[str, Any]]:
        storage = self._storage()
        current = self.config.cache_name
        return [
            {"name": name, "entries": len(storage.open(name)), "current": name == current}
            for name in storage.list_generations()
        ]

    def _evict_stale(self) -> List[Dict[str, Any]]:
        evicted, failed = evict_stale_generations(self._storage(), self.config.cache_name)
        return [{"name": n, "status": "evicted"} for n in evicted] + [{"name": n, "status": "failed"} for n in failed]

    def _write(self, records: List[Dict[str, Any]], columns: Sequence[str], args: argparse.Namespace) -> None:
        fmt = "json" if args.json else "tsv"
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                output_formatter.write_records(records, columns, f, fmt, include_header=not args.no_header)
        else:
            output_formatter.write_records(records, columns, sys.stdout, fmt, include_header=not args.no_header)

    def run(self, args: argparse.Namespace) -> int:
        level = "ERROR" if args.quiet else ("DEBUG" if args.verbose else "INFO")
        setup_logging(level=level, log_file=args.log_file)

        try:
            self.config = self._create_config(args)
        except ConfigurationException as e:
            logger.error(f"Invalid configuration: {e}")
            return EXIT_CODES["CONFIG_ERROR"]

        try:
            if args.render is not None:
                self._write(self._render(args.render), RENDER_COLUMNS, args)
            elif args.classify:
                self._write(self._classify(args), CLASSIFY_COLUMNS, args)
            elif args.route:
                self._write(self._route(args), ROUTE_COLUMNS, args)
            elif args.list_caches:
                self._write(self._list_caches(), CACHE_COLUMNS, args)
            elif args.evict_stale:
                rows = self._evict_stale()
                self._write(rows, EVICT_COLUMNS, args)
                if any(r["status"] == "failed" for r in rows):
                    return EXIT_CODES["CACHE_ERROR"]
            else:
                self.parser.print_usage(sys.stderr)
                logger.error("No operation given")
                return EXIT_CODES["USAGE_ERROR"]
        except (ConfigurationException, ValidationException) as e:
            logger.error(str(e))
            return EXIT_CODES["CONFIG_ERROR"]
        except CacheStorageException as e:
            logger.error(str(e))
            return EXIT_CODES["CACHE_ERROR"]
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return EXIT_CODES["UNKNOWN_ERROR"]
        return EXIT_CODES["SUCCESS"]


def main(argv: Optional[Sequence[str]] = None):
    cli = PlankWorkerCLI()
    args = cli.parse_arguments(argv)

    if args.version:
        print(f"PlankWorker v{get_version()}")
        sys.exit(EXIT_CODES["SUCCESS"])

    sys.exit(cli.run(args))


if __name__ == "__main__":
    main()

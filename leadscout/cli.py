# leadscout/cli.py
from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any

from leadscout.config import PLANS
from leadscout.crawl import CrawlScheduler, CrawlWorker
from leadscout.extract import extract, load_lexicon
from leadscout.feedback import InMemoryFeedback
from leadscout.models import (
    Cadence,
    CrawlResult,
    LeadQuery,
    OrgCaps,
    OrgProfile,
    QuietHours,
    Region,
    SearchResult,
    UserDiscoveryInput,
)
from leadscout.providers import SearchProvider, StaticProvider, providers_from_env
from leadscout.queueing import InMemoryOrgStore, InMemoryTaskQueue, OrgSweepScheduler, RedisTaskQueue
from leadscout.queueing.redis_conn import get_redis
from leadscout.scoring import LeadRouter


def _setup_logging(level: str) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=level.upper(), format="%(levelname)s %(name)s %(message)s")


def _section(title: str) -> None:
    print(f"=== {title} ===")


# ---- argument helpers ----
def parse_region(text: str) -> Region:
    """'Canada' | 'Ontario, Canada' | 'Toronto, Ontario, Canada'."""
    parts = [p.strip() for p in text.split(",") if p.strip()]
    if len(parts) >= 3:
        return Region(city=parts[-3], state=parts[-2], country=parts[-1])
    if len(parts) == 2:
        return Region(state=parts[0], country=parts[1])
    return Region(country=parts[0] if parts else None)


def _load_static_results(path: str) -> list[SearchResult]:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    out: list[SearchResult] = []
    for item in raw:
        if isinstance(item, str):
            out.append(SearchResult(url=item))
        else:
            out.append(
                SearchResult(
                    url=item["url"],
                    title=item.get("title"),
                    snippet=item.get("snippet"),
                    relevance=item.get("relevance"),
                    tags=tuple(item.get("tags") or ()),
                )
            )
    return out


def org_from_dict(d: dict[str, Any]) -> OrgProfile:
    lq = d.get("lead_query")
    cadence = d.get("cadence") or {}
    caps = d.get("caps") or {}
    quiet = cadence.get("quiet_hours")
    return OrgProfile(
        org_id=str(d["org_id"]),
        plan=str(d.get("plan", "free")),
        timezone=str(d.get("timezone") or "UTC"),
        lead_query=LeadQuery(**{k: tuple(v) for k, v in lq.items()}) if lq else None,
        cadence=Cadence(
            daily_discovery_target=cadence.get("daily_discovery_target"),
            daily_refresh_target=cadence.get("daily_refresh_target"),
            quiet_hours=QuietHours(int(quiet["start"]), int(quiet["end"])) if quiet else None,
        ),
        caps=OrgCaps(
            max_daily_tasks=caps.get("max_daily_tasks"),
            max_concurrent_tasks=caps.get("max_concurrent_tasks"),
        ),
        tags=tuple(d.get("tags") or ()),
    )


# ---- discover ----
def _cmd_discover(args: argparse.Namespace) -> int:
    providers: list[SearchProvider] = []
    if args.static:
        providers.append(StaticProvider(_load_static_results(args.static)))
    providers.extend(providers_from_env())
    if not providers:
        print("No search providers configured (set BRAVE_API_KEY / BING_KEY / GOOGLE_CSE_* or pass --static).")
        return 2

    intent = UserDiscoveryInput(
        website=args.website,
        geo=tuple(parse_region(g) for g in args.geo),
        focuses=tuple(args.focus),
        extra_keywords=tuple(args.extra),
        banned_competitors=tuple(args.ban),
        playbook=args.playbook,
    )

    results: list[CrawlResult] = []
    worker = CrawlWorker(results.append, feedback=InMemoryFeedback())
    scheduler = CrawlScheduler(worker, providers, autostart=False)
    tasks = scheduler.discover_and_schedule(intent, args.plan)
    worker.run_pending(max_tasks=args.limit)

    router = LeadRouter()
    rows: list[dict[str, Any]] = []
    for r in results:
        row: dict[str, Any] = {"url": r.url, "status": r.status.value, "reason": r.reason}
        if r.lead is not None:
            d = router.route(r.lead, intent, args.plan)
            row.update(
                company=r.lead.company_guess,
                tier=d.tier.value,
                score=d.score,
                match=round(d.match, 3),
                channels=list(d.preferred_channels),
                reasons=list(d.reasons),
                next_actions=list(d.next_actions),
            )
        rows.append(row)
    rows.sort(key=lambda x: x.get("score", -1), reverse=True)

    if args.json:
        print(json.dumps({"tasks": len(tasks), "leads": rows}, indent=2, sort_keys=True))
        return 0

    _section(f"Discovery ({args.plan})")
    print(f"  Tasks scheduled: {len(tasks)}")
    print(f"  Pages crawled  : {len(results)}")
    print()
    _section("Leads")
    if not rows:
        print("  (no leads)")
        return 0
    header = f"{'tier':6} {'score':>5} {'match':>6}  url"
    print("  " + header)
    print("  " + "-" * len(header))
    for row in rows:
        if "tier" in row:
            print(f"  {row['tier']:6} {row['score']:5d} {row['match']:6.2f}  {row['url']}")
        else:
            print(f"  {row['status']:6} {'':5} {'':6}  {row['url']} ({row['reason']})")
    return 0


# ---- extract ----
def _cmd_extract(args: argparse.Namespace) -> int:
    html = Path(args.file).read_bytes()
    lexicon = load_lexicon(args.lexicon) if args.lexicon else None
    signals = extract(html, args.url, lexicon=lexicon)
    print(json.dumps(signals.to_dict(), indent=2, sort_keys=True, default=str))
    return 0


# ---- sweep ----
def _cmd_sweep(args: argparse.Namespace) -> int:
    raw = json.loads(Path(args.orgs).read_text(encoding="utf-8"))
    store = InMemoryOrgStore(org_from_dict(d) for d in raw)
    queue = RedisTaskQueue(get_redis()) if args.redis else InMemoryTaskQueue()
    sweeper = OrgSweepScheduler(queue, store)

    if not args.once:
        sweeper.start()
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            sweeper.stop()
            sweeper.join(5.0)
        return 0

    outcomes = sweeper.sweep()
    if args.json:
        payload: dict[str, Any] = {"outcomes": [asdict(o) for o in outcomes]}
        if isinstance(queue, InMemoryTaskQueue):
            payload["envelopes"] = [e.to_dict() for e in queue.pending()]
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0

    _section("Sweep")
    header = f"{'org':20} {'discover':>8} {'refresh':>8}  skipped"
    print("  " + header)
    print("  " + "-" * len(header))
    for o in outcomes:
        print(f"  {o.org_id:20} {o.discover:8d} {o.refresh:8d}  {o.skipped or ''}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leadscout",
        description="Lead discovery, crawl and scoring CLI.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    d = subparsers.add_parser("discover", help="Run one discovery + crawl and print routed leads.")
    d.add_argument("--focus", action="append", default=[], help="Focus term (repeatable).")
    d.add_argument("--geo", action="append", default=[], help="Region, e.g. 'Toronto, Ontario, Canada'.")
    d.add_argument("--plan", choices=PLANS, default="free")
    d.add_argument("--website", default=None, help="Your own site, for competitor-mining queries.")
    d.add_argument("--extra", action="append", default=[], help="Extra keyword query (repeatable).")
    d.add_argument("--ban", action="append", default=[], help="Competitor host to exclude (repeatable).")
    d.add_argument("--playbook", default=None, help="Weight preset (balanced, fast-close, ...).")
    d.add_argument("--static", default=None, help="JSON file of canned search results.")
    d.add_argument("--limit", type=int, default=None, help="Crawl at most this many pages.")
    d.add_argument("--json", action="store_true", help="Emit JSON instead of a table.")
    d.set_defaults(func=_cmd_discover)

    e = subparsers.add_parser("extract", help="Print the signal bundle of a local HTML file.")
    e.add_argument("file")
    e.add_argument("--url", required=True, help="URL the HTML was fetched from.")
    e.add_argument("--lexicon", default=None, help="YAML lexicon override.")
    e.set_defaults(func=_cmd_extract)

    s = subparsers.add_parser("sweep", help="Run the org sweep loop against a JSON org file.")
    s.add_argument("--orgs", required=True, help="JSON list of org profiles.")
    s.add_argument("--once", action="store_true", help="Run a single tick and exit.")
    s.add_argument("--redis", action="store_true", help="Push envelopes to the Redis task queue.")
    s.add_argument("--json", action="store_true", help="Emit JSON (with --once).")
    s.set_defaults(func=_cmd_sweep)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.log_level)

    func = getattr(args, "func", None)
    if func is None:
        parser.error("no command specified")
        return 1

    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())

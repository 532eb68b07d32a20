import argparse
import asyncio

from webfuzzer.core.config import PROFILES, ScanConfig
from webfuzzer.core.engine import Engine
from webfuzzer.core.errors import ConfigurationError
from webfuzzer.parsers.request import Request
from webfuzzer.payloads import lfi
from webfuzzer.reporters.console import Log
from webfuzzer.reporters.export import payload_stats, to_json, to_markdown


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Web Injection Fuzzer")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--url", help="Start URL to crawl and fuzz")
    src.add_argument("--request", help="Raw request file")
    p.add_argument("--request-proto", default="https",
                   choices=["http", "https"])
    p.add_argument("--proxy", help="Proxy (e.g. http://127.0.0.1:8080)")
    p.add_argument("--profile", choices=sorted(PROFILES),
                   help="Preset for concurrency, delays and crawl depth")
    p.add_argument("--max-concurrent", type=int, help="Parallel test units per batch")
    p.add_argument("--target-file", action="append", dest="target_files",
                   help="File to aim path traversal payloads at (repeatable)")
    p.add_argument("--target-group", action="append", choices=sorted(lfi.JUICY_FILES),
                   help="Add a group of well-known sensitive files as targets (repeatable)")
    p.add_argument("--payload-file", action="append", dest="payload_files",
                   help="Import an exported payload library before scanning (repeatable)")
    p.add_argument("--json", help="Write the JSON report to this path")
    p.add_argument("--markdown", help="Write the markdown report to this path")
    p.add_argument("-v", "--verbose", action="count", default=1,
                   help="-v, -vv")
    return p


def build_config(args) -> ScanConfig:
    overrides = {}
    if args.proxy:
        overrides["proxy"] = args.proxy
    if args.max_concurrent is not None:
        overrides["max_concurrent"] = args.max_concurrent
    targets = list(args.target_files or [])
    for group in args.target_group or []:
        targets += [f for f in lfi.JUICY_FILES[group] if f not in targets]
    if targets:
        overrides["target_files"] = targets
    if args.profile:
        return ScanConfig.from_profile(args.profile, **overrides)
    return ScanConfig(**overrides)


async def run(args, log: Log) -> int:
    config = build_config(args)
    pages = None
    headers = {}
    url = args.url
    if args.request:
        req = Request(args.request)
        req.parse()
        log.debug(f"Parsed request:\n{req}")
        pages = [req.to_page(args.request_proto)]
        headers = req.replay_headers()
        url = req.url(args.request_proto)

    engine = Engine(config, logger=log, headers=headers)
    for path in args.payload_files or []:
        with open(path, "r", encoding="utf-8") as f:
            engine.library.import_json(f.read())
    session = engine.new_session()
    try:
        report = await engine.scan(url, session=session, pages=pages)
    finally:
        await engine.aclose()

    for category, row in payload_stats(session.completed).items():
        log.info(f"  {category}: " + ", ".join(f"{k}={v}" for k, v in row.items()))
    if args.json:
        with open(args.json, "w", encoding="utf-8") as f:
            f.write(to_json(report))
        log.ok(f"JSON report written to {args.json}")
    if args.markdown:
        with open(args.markdown, "w", encoding="utf-8") as f:
            f.write(to_markdown(report))
        log.ok(f"Markdown report written to {args.markdown}")
    return 1 if report.vulnerable else 0


def main():
    args = build_parser().parse_args()
    log = Log(verbose=args.verbose)
    try:
        code = asyncio.run(run(args, log))
    except ConfigurationError as exc:
        log.fail(f"Configuration error: {exc}")
        code = 2
    raise SystemExit(code)


if __name__ == "__main__":
    main()

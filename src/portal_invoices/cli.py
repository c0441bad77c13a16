from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import AppConfig, load_config
from .errors import PortalError
from .logging_config import configure_logging
from .models import DiscoveryResult
from .service import PortalService
from .util.dates import parse_period
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("portal_invoices")

DEFAULT_MAX_CHARS = 8000


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="portal_invoices")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--config", default="config.yaml", help="Path to optional YAML config (default: config.yaml)")
    p.add_argument("--headful", action="store_true", help="Run the browser headful (debug)")

    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser(
        "login",
        help="Log into the portal (reuses the stored session when it is still valid).",
    )

    list_docs = sub.add_parser("list-documents", help="List downloadable billing documents on the portal")
    list_docs.add_argument(
        "--period",
        default="",
        help="Only show documents for this billing month (e.g. 2026-01, 01/2026, 'Jan 2026').",
    )
    list_docs.add_argument("--json", action="store_true", help="Print the full discovery result as JSON")

    download = sub.add_parser("download", help="Download a document by URL (from list-documents)")
    download.add_argument("url", help="Document target URL")
    download.add_argument("--name", default="", help="File name to save as (extension added automatically)")
    download.add_argument(
        "--via",
        choices=("auto", "browser", "http"),
        default="auto",
        help="Transport: browser download with HTTP fallback (auto, default), or force one of them.",
    )

    read = sub.add_parser("read", help="Print the text content of a downloaded document")
    read.add_argument("path", help="Path, or a bare file name inside the downloads directory")
    read.add_argument(
        "--max-chars",
        type=int,
        default=DEFAULT_MAX_CHARS,
        help=f"Truncate output to this many characters (default: {DEFAULT_MAX_CHARS}; 0 = no limit)",
    )

    list_files = sub.add_parser("list-files", help="List previously downloaded documents (newest first)")
    list_files.add_argument("--json", action="store_true", help="Print as JSON")

    bundle = sub.add_parser(
        "debug-bundle",
        help="Zip diagnostic screenshots + log file for support (never includes the session file).",
    )
    bundle.add_argument("--out-dir", default="data", help="Where to write the zip (default: data)")
    bundle.add_argument(
        "--include-documents",
        action="store_true",
        help="Also include downloaded documents (they may contain account details).",
    )

    return p


def _print_discovery(result: DiscoveryResult) -> None:
    print(f"Page: {result.source_url}")
    if not result.documents:
        print("No document links found. Other links on the page:")
        for link in result.other_links:
            print(f"- {link.label}\t{link.url}")
        print()
        print(f"Page text: {result.page_text}")
        return

    print(f"Found {len(result.documents)} document(s):")
    for i, doc in enumerate(result.documents, start=1):
        period = f" [{doc.period}]" if doc.period else ""
        print(f"{i:>3}. {doc.label}{period}\t{doc.file_type}\t{doc.target_url}")


async def _run(args: argparse.Namespace, cfg: AppConfig) -> int:
    async with PortalService(cfg) as svc:
        if args.cmd == "login":
            res = await svc.login()
            if res.is_new_login:
                print("✅ Logged into the portal. Session saved.")
            else:
                print("✅ Session is active. No new login needed.")
            return 0

        if args.cmd == "list-documents":
            result = await svc.list_documents()
            if args.period:
                period = parse_period(args.period)
                result = result.model_copy(
                    update={"documents": [d for d in result.documents if d.period == period]}
                )
            if args.json:
                print(result.model_dump_json(indent=2))
            else:
                _print_discovery(result)
            return 0

        if args.cmd == "download":
            path = await svc.download_document(args.url, args.name or None, method=args.via)
            print(f"✅ Downloaded: {path}")
            return 0

    raise SystemExit(f"Unknown command: {args.cmd}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    try:
        cfg = load_config(args.config)
    except ValueError as e:
        print(f"❌ Invalid configuration ({args.config} / environment): {e}")
        return 2
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path or None)
    if args.headful:
        cfg = cfg.model_copy(update={"browser": cfg.browser.model_copy(update={"headless": False})})

    try:
        if args.cmd == "read":
            svc = PortalService(cfg)
            content = svc.read_document(args.path)
            if args.max_chars and len(content) > args.max_chars:
                content = content[: args.max_chars] + "\n\n[... truncated ...]"
            print(content)
            return 0

        if args.cmd == "list-files":
            files = PortalService(cfg).list_retrieved_files()
            if args.json:
                print(json.dumps([f.model_dump(mode="json") for f in files], ensure_ascii=False, indent=2))
                return 0
            if not files:
                print(f"No downloaded files in {cfg.storage.downloads_dir}/.")
                return 0
            for f in files:
                print(f"{f.name}\t{f.size_label}\t{f.modified:%Y-%m-%d %H:%M}")
            return 0

        if args.cmd == "debug-bundle":
            out_zip = create_debug_bundle(
                downloads_dir=cfg.storage.downloads_dir,
                log_file=cfg.logging.file_path,
                out_dir=args.out_dir,
                include_documents=args.include_documents,
            )
            print(f"✅ Debug bundle written: {out_zip}")
            return 0

        return asyncio.run(_run(args, cfg))
    except PortalError as e:
        logger.error("%s failed: %s", args.cmd, e)
        print(f"❌ {e}")
        return 2
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ {e}")
        return 2
    except KeyboardInterrupt:
        print("Interrupted.")
        return 130
    except Exception:
        logger.exception("%s failed with an unexpected error", args.cmd)
        return 1

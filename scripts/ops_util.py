#!/usr/bin/env python3
"""
Operations utilities - CLI for indexing control against a running docrag server.
"""

import argparse
import json
import os
import sys

import requests

API_BASE = os.getenv("DOCRAG_API_URL", "http://127.0.0.1:8000")
TIMEOUT_SEC = 60


def _call(method: str, path: str, api_base: str, payload=None):
    response = requests.request(method, f"{api_base}{path}", json=payload, timeout=TIMEOUT_SEC)
    if response.status_code >= 400:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        raise RuntimeError(f"{method} {path} failed ({response.status_code}): {detail}")
    return response.json()


def stats_command(args):
    stats = _call("GET", "/stats", args.api)
    print("📊 Index statistics")
    for key, value in stats.items():
        print(f"   {key}: {value}")
    return stats


def run_command(args):
    report = _call("POST", "/index/run", args.api)
    if report["skipped"]:
        print("⏳ A scan is already in progress, nothing started")
    else:
        print(f"✅ Scanned {report['found']} pending documents: "
              f"{len(report['completed'])} completed, {len(report['failed'])} failed")
    return report


def reindex_command(args):
    if not args.force:
        response = input("This clears the vector index and re-queues every document. Continue? (yes/no): ").strip().lower()
        if response != "yes":
            print("Re-index cancelled.")
            return None

    result = _call("POST", "/index/reindex", args.api)
    print(f"🔄 Marked {result['count']} documents for re-indexing")
    return result


def reset_stuck_command(args):
    result = _call("POST", "/index/reset-stuck", args.api)
    print(f"🩹 Reset {result['count']} documents stuck in processing")
    return result


def queue_all_command(args):
    path = "/index/queue-all?include_errors=true" if args.include_errors else "/index/queue-all"
    result = _call("POST", path, args.api)
    print(f"📥 Queued {result['count']} unindexed documents")
    return result


def index_command(args):
    document = _call("POST", f"/documents/{args.document_id}/index", args.api)
    print(f"✅ {document['title']}: {document['status']}")
    return document


def search_command(args):
    result = _call("POST", "/search", args.api, {"query": args.query, "limit": args.limit})
    if not result["results"]:
        print("No matches.")
    for rank, hit in enumerate(result["results"], start=1):
        print(f"{rank}. [{hit['score']:.3f}] {hit.get('title') or hit.get('document_id')}")
        print(f"   {hit['snippet']}")
    if args.json:
        print(json.dumps(result, indent=2))
    return result


def build_parser():
    parser = argparse.ArgumentParser(description="docrag indexing operations")
    parser.add_argument("--api", default=API_BASE, help=f"API base URL (default: {API_BASE})")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Show document and index statistics").set_defaults(func=stats_command)
    sub.add_parser("run", help="Run one indexing scan now").set_defaults(func=run_command)

    reindex = sub.add_parser("reindex", help="Clear the index and re-queue all documents")
    reindex.add_argument("--force", action="store_true", help="Skip the confirmation prompt")
    reindex.set_defaults(func=reindex_command)

    sub.add_parser("reset-stuck", help="Move 'processing' documents back to 'pending'").set_defaults(func=reset_stuck_command)

    queue_all = sub.add_parser("queue-all", help="Queue every unindexed document")
    queue_all.add_argument("--include-errors", action="store_true", help="Also re-queue documents in error")
    queue_all.set_defaults(func=queue_all_command)

    index = sub.add_parser("index", help="Index one document immediately")
    index.add_argument("document_id")
    index.set_defaults(func=index_command)

    search = sub.add_parser("search", help="Semantic search")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=5)
    search.add_argument("--json", action="store_true", help="Also print the raw response")
    search.set_defaults(func=search_command)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (requests.RequestException, RuntimeError) as e:
        print(f"❌ ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

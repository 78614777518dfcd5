# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Run a sampling pass against a MongoDB collection from a shell
#   and print the live progress and the resulting schema.
#
# COMMANDS:
# ---------
# 1. Sample a collection:
#    schema-sampler sample shop.orders
#    schema-sampler sample shop.orders --filter '{"status": "paid"}' --size 500
#    schema-sampler sample shop.orders --max-time-ms 5000 --json
#
# 2. List collections of a database:
#    schema-sampler collections shop
#
# Also runnable as `python -m schema_sampler.cli ...`.
#
# EXIT CODES:
#   0 complete, 1 sampling error, 2 bad arguments, 130 interrupted
#
# ==============================================

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from bson import json_util
from pymongo.errors import PyMongoError

from schema_sampler.config import get_config
from schema_sampler.sampler import SchemaSampler
from schema_sampler.sampling import InvalidArgument, Namespace, SamplingPhase, SamplingState
from schema_sampler.storage import MongoClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-sampler",
        description="Infer the schema of a MongoDB collection from a random sample."
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sample = subparsers.add_parser("sample", help="Sample a collection and print its schema")
    sample.add_argument("namespace", help="database.collection")
    sample.add_argument("--filter", default=None, help="Query as (extended) JSON")
    sample.add_argument("--size", type=int, default=None, help="Maximum number of documents to sample")
    sample.add_argument("--max-time-ms", type=int, default=None, help="Server-side time limit per operation")
    sample.add_argument("--read-preference", default=None, help="primary, primaryPreferred, secondary, ...")
    sample.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")
    sample.add_argument("--json", action="store_true", help="Print the schema as JSON only")

    collections = subparsers.add_parser("collections", help="List collections in a database")
    collections.add_argument("database")

    return parser


def _print_progress(state: SamplingState) -> None:
    if state.phase is SamplingPhase.COUNTING:
        print("   → Counting documents...", end="\r", flush=True)
    elif state.phase in (SamplingPhase.SAMPLING, SamplingPhase.ANALYZING):
        print(f"   → {state.phase.value.capitalize()}: {state.progress_percent:3d}% "
              f"({state.elapsed_ms / 1000:.1f}s)", end="\r", flush=True)


def _print_schema(schema: dict) -> None:
    print(f"\n📊 Schema ({schema.get('count', 0)} documents sampled):")
    for field in schema.get("fields", []):
        types = ", ".join(f"{name}: {count}" for name, count in field["types"].items())
        print(f"   → {field['path']:<40} {field['probability'] * 100:6.1f}%   [{types}]")


def run_sample(args: argparse.Namespace) -> int:
    try:
        config = get_config()
        sampling = replace(
            config.sampling,
            sample_size=args.size if args.size is not None else config.sampling.sample_size,
            max_time_ms=args.max_time_ms if args.max_time_ms is not None else config.sampling.max_time_ms,
            read_preference=args.read_preference or config.sampling.read_preference
        )
        filter = json_util.loads(args.filter) if args.filter else {}
        if not isinstance(filter, dict):
            raise InvalidArgument("--filter must be a JSON object")
        if not Namespace.parse(args.namespace).has_collection:
            raise InvalidArgument(f"{args.namespace!r} does not name a collection")
    except (InvalidArgument, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    with SchemaSampler(replace(config, sampling=sampling)) as sampler:
        if not args.json:
            print(f"🚀 Sampling {args.namespace} (up to {sampling.sample_size} documents)")
            sampler.subscribe(_print_progress)
        try:
            state = sampler.sample(args.namespace, filter, timeout=args.timeout)
        except PyMongoError as e:
            print(f"\n✗ MongoDB error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            sampler.stop()
            print("\n⚠ Interrupted by user", file=sys.stderr)
            return 130

    if state.phase is not SamplingPhase.COMPLETE:
        detail = state.error.message if state.error else f"stopped while {state.phase.value}"
        print(f"\n✗ Sampling failed: {detail}", file=sys.stderr)
        return 1

    if args.json:
        print(json_util.dumps(state.schema, indent=2))
    else:
        print(f"\n✓ Complete in {state.elapsed_ms / 1000:.2f}s")
        if state.schema:
            _print_schema(state.schema)
    return 0


def run_collections(args: argparse.Namespace) -> int:
    try:
        mongo = get_config().mongo
    except InvalidArgument as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        with MongoClient(mongo.host, mongo.port, mongo.user, mongo.password, uri=mongo.uri) as client:
            for name in client.list_collections(args.database):
                print(f"{args.database}.{name}")
    except PyMongoError as e:
        print(f"✗ MongoDB error: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        level = (args.log_level or get_config().log_level).upper()
    except InvalidArgument as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.command == "sample":
        return run_sample(args)
    if args.command == "collections":
        return run_collections(args)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())

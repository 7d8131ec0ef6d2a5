"""Command line interface for dbmigrate."""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .connectors.factory import create_connector
from .exceptions import ConfigurationError, MigrationError
from .models.config import MigrationConfig
from .models.status import StatusSnapshot
from .pipeline import MigrationPipeline
from .services.transformer import RecordTransformer

logger = logging.getLogger(__name__)


def _load_config(path: str) -> Optional[MigrationConfig]:
    """Load a config file, printing every problem and returning None if invalid."""
    try:
        return MigrationConfig.from_json_file(path)
    except ConfigurationError as e:
        _print_errors(e)
    except (OSError, ValueError) as e:
        print(f"Could not read config file {path}: {e}")
    return None


def _print_errors(error: ConfigurationError) -> None:
    print(f"Invalid configuration ({len(error.errors)} error(s)):")
    for item in error.errors:
        print(f"  - {item['loc']}: {item['msg']}")


def _print_progress(snapshot: StatusSnapshot) -> None:
    total = snapshot.total_records if snapshot.total_records is not None else "?"
    mapping = snapshot.current_mapping or "-"
    print(
        f"[{snapshot.state.value}] {mapping}: "
        f"{snapshot.processed_records}/{total} records ({snapshot.progress:.1f}%)"
    )


def run_migration(args) -> int:
    """Run a migration from a config file."""
    config = _load_config(args.config)
    if config is None:
        return 1

    if args.dry_run:
        settings = config.settings.model_copy(update={"dry_run": True})
        config = config.model_copy(update={"settings": settings})

    final: Optional[StatusSnapshot] = None
    failure: Optional[Exception] = None

    with create_connector(config.source) as source, create_connector(config.destination) as destination:
        pipeline = MigrationPipeline(source, destination, config)
        try:
            for snapshot in pipeline.run():
                final = snapshot
                # The terminal snapshot is reported by the summary below
                if not snapshot.is_terminal:
                    _print_progress(snapshot)
        except MigrationError as e:
            failure = e
        except Exception as e:
            logger.exception("Unexpected error during migration")
            failure = e

    print("\n" + "=" * 60)
    print("MIGRATION COMPLETE" if failure is None else "MIGRATION FAILED")
    print("=" * 60)
    if final is not None:
        print(f"Status: {final.state.value}")
        print(f"Records Processed: {final.processed_records}")
        print(f"Errors: {len(final.errors)}")
        for error in final.errors[:10]:
            print(f"  - {error.message}")
    if failure is not None:
        print(f"Error: {failure}")
        return 1
    return 0


def run_validation(args) -> int:
    """Validate a migration config file."""
    config = _load_config(args.config)
    if config is None:
        return 1

    print(f"Configuration is valid: {len(config.mappings)} mapping(s)")
    for mapping in config.mappings:
        print(
            f"  {mapping.source_collection} -> {mapping.target_table} "
            f"({len(mapping.field_mappings)} fields)"
        )
    return 0


def run_preview(args) -> int:
    """Preview transformed records for each mapping."""
    config = _load_config(args.config)
    if config is None:
        return 1

    transformer = RecordTransformer()
    output = []

    with create_connector(config.source) as source:
        for mapping in config.mappings:
            records = source.preview(mapping.source_collection, limit=args.limit)
            output.append({
                "source_collection": mapping.source_collection,
                "target_table": mapping.target_table,
                "records": transformer.preview(records, mapping),
                "warnings": transformer.drain_warnings(),
            })

    print(json.dumps(output, indent=2, default=str))
    return 0


def run_server(args) -> int:
    """Serve the HTTP API."""
    import uvicorn

    uvicorn.run("dbmigrate.api.main:app", host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="dbmigrate - Migrate data between databases"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run migration
    run_parser = subparsers.add_parser("run", help="Run a migration")
    run_parser.add_argument("--config", required=True, help="Path to migration config file")
    run_parser.add_argument("--dry-run", action="store_true", help="Read and transform without writing")
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    # Validate config
    validate_parser = subparsers.add_parser("validate", help="Validate a migration config")
    validate_parser.add_argument("--config", required=True, help="Path to migration config file")

    # Preview transformation
    preview_parser = subparsers.add_parser("preview", help="Preview transformed records")
    preview_parser.add_argument("--config", required=True, help="Path to migration config file")
    preview_parser.add_argument("--limit", type=int, default=5, help="Records per mapping")

    # Serve API
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args(argv)

    # Set up logging
    if getattr(args, "verbose", False):
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command == "run":
        return run_migration(args)
    elif args.command == "validate":
        return run_validation(args)
    elif args.command == "preview":
        return run_preview(args)
    elif args.command == "serve":
        return run_server(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Main CLI entry point for the draftcast auction service.
"""

import argparse
import logging
import sys
from pathlib import Path

from . import config
from .auction.errors import AppError
from .auction.service import TournamentService, get_services


def setup_logging(verbose: bool = False):
    """
    Configure logging for the application.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=config.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Draftcast live player auction service',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the API server
  python -m draftcast.main serve --port 8000

  # List tournaments due for archival or deletion
  python -m draftcast.main sweep

  # Archive and delete them
  python -m draftcast.main sweep --apply

  # Export a tournament's audit log
  python -m draftcast.main export-audit summer-cup --output audit.csv

  # Show where a tournament is in its lifecycle, then give it 30 more days
  python -m draftcast.main status summer-cup
  python -m draftcast.main extend summer-cup --days 30
        """
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', type=str, default=config.API_HOST, help='Bind address')
    serve.add_argument('--port', type=int, default=config.API_PORT, help='Bind port')
    serve.add_argument('--reload', action='store_true', help='Reload on code changes (development)')

    sweep = subparsers.add_parser('sweep', help='Archive / delete tournaments past retention')
    sweep.add_argument(
        '--apply',
        action='store_true',
        help='Archive and delete instead of only reporting'
    )

    export = subparsers.add_parser('export-audit', help='Write a tournament audit log to CSV')
    export.add_argument('tournament_id', type=str, help='Tournament slug')
    export.add_argument(
        '--output',
        type=str,
        default=None,
        help=f'Output path (default: {config.EXPORT_DIR}/audit_<id>.csv)'
    )

    status = subparsers.add_parser('status', help="Show a tournament's lifecycle status")
    status.add_argument('tournament_id', type=str, help='Tournament slug')

    extend = subparsers.add_parser('extend', help="Push a tournament's expiry forward")
    extend.add_argument('tournament_id', type=str, help='Tournament slug')
    extend.add_argument('--days', type=int, required=True, help='Days to add to the expiry')

    return parser.parse_args(argv)


def run_server(args):
    """Serve the FastAPI app with uvicorn."""
    import uvicorn

    logger = logging.getLogger(__name__)
    logger.info(f"Starting draftcast API on {args.host}:{args.port}")

    uvicorn.run(
        "draftcast.auction.api_server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level='debug' if args.verbose else 'info',
    )


def run_sweep(args) -> int:
    """Report (or apply) retention: archive completed, delete stale."""
    logger = logging.getLogger(__name__)
    service = TournamentService(get_services())

    result = service.sweep(apply=args.apply)

    logger.info("="*60)
    logger.info(f"To archive ({len(result['archive'])}): {', '.join(result['archive']) or '-'}")
    logger.info(f"To delete  ({len(result['delete'])}): {', '.join(result['delete']) or '-'}")
    if not args.apply and (result['archive'] or result['delete']):
        logger.info("Dry run. Re-run with --apply to archive and delete.")
    logger.info("="*60)
    return 0


def run_export_audit(args) -> int:
    """Write one tournament's audit entries to CSV."""
    logger = logging.getLogger(__name__)
    service = TournamentService(get_services())

    output = Path(args.output) if args.output else Path(config.EXPORT_DIR) / f"audit_{args.tournament_id}.csv"
    path = service.export_audit(args.tournament_id, output)

    logger.info(f"Audit log written to {path}")
    return 0


def run_status(args) -> int:
    """Log a tournament's lifecycle classification."""
    logger = logging.getLogger(__name__)
    service = TournamentService(get_services())

    info = service.lifecycle_of(args.tournament_id)

    logger.info(f"{args.tournament_id}: {info['status']}")
    for key, value in info.items():
        if key != 'status':
            logger.info(f"  {key}: {value}")
    return 0


def run_extend(args) -> int:
    """Extend a tournament's expiry by a number of days."""
    logger = logging.getLogger(__name__)
    service = TournamentService(get_services())

    new_expiry = service.extend_tournament(args.tournament_id, args.days)

    logger.info(f"{args.tournament_id} now expires at {new_expiry} (+{args.days} days)")
    return 0


def main(argv=None):
    """Main execution function with command branching."""
    args = parse_arguments(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        if args.command == 'serve':
            run_server(args)
            return 0
        if args.command == 'sweep':
            return run_sweep(args)
        if args.command == 'status':
            return run_status(args)
        if args.command == 'extend':
            return run_extend(args)
        return run_export_audit(args)

    except AppError as e:
        logger.error(f"{e.code}: {e.message}")
        return 1
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())

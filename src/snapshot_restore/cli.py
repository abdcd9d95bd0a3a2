"""
Command-line interface.

    snapshot-restore restore SOURCE DESTINATION [--timestamp T]
    snapshot-restore list SOURCE
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from .config import RestoreConfig
from .engine import Restorer
from .errors import RestoreError
from .model.snapshot import parse_timestamp

RESTORE_DESCRIPTION = """\
Restores your file to the closest available backup before the requested
timestamp (default: now). Existing chunks of the destination are compared
with the backup and only the necessary data is downloaded. Optimized for
large and sparse files such as virtual machine disks or node state.

  SOURCE:      backup set path (ex: /var/backups/node) or URL
               (ex: s3://mybackups/projectname, gs://mybackups/projectname)
  DESTINATION: file path (ex: ../mydata/disk.img) or file:// URL
"""

RESTORE_EXAMPLE = """\
example:
  snapshot-restore restore gs://mybackups/projectname /var/lib/node/state.bin \\
      --timestamp $(date -d "2 hours ago" +%s)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='snapshot-restore',
        description="Point-in-time restore of large files from chunked backups.",
    )
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help="increase log verbosity (-v info, -vv debug)")
    sub = parser.add_subparsers(dest='command', required=True)

    restore = sub.add_parser(
        'restore',
        help="restore a file to a point in time (default: latest available)",
        description=RESTORE_DESCRIPTION,
        epilog=RESTORE_EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    restore.add_argument('source', metavar='SOURCE')
    restore.add_argument('destination', metavar='DESTINATION')
    restore.add_argument('-t', '--timestamp', default=None,
                         help="Unix timestamp (optionally signed) before which we want the latest available backup")
    restore.add_argument('-c', '--concurrency', type=int, default=None,
                         help="number of chunks processed in parallel")
    restore.add_argument('--max-retries', type=int, default=None,
                         help="retries per backend operation on transient errors")
    restore.add_argument('--no-punch-holes', dest='punch_holes', action='store_false',
                         default=None, help="write explicit zeros instead of punching holes")

    listing = sub.add_parser('list', help="list snapshots available in a backup set")
    listing.add_argument('source', metavar='SOURCE')

    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )


def run_restore(args, config: RestoreConfig) -> int:
    # "now" is taken when the command runs, not when the module loads
    if args.timestamp is None:
        target = int(time.time())
    else:
        target = parse_timestamp(args.timestamp)

    report = Restorer(config).restore_from_backup(args.source, args.destination, target)
    print(
        f"Restored snapshot {report.snapshot.timestamp} "
        f"({report.snapshot.created_at.isoformat()}): "
        f"{report.fetched} chunks fetched ({report.bytes_fetched} bytes), "
        f"{report.skipped} unchanged, {report.zero_filled} zero-filled"
    )
    return 0


def run_list(args, config: RestoreConfig) -> int:
    for snapshot in Restorer(config).list_snapshots(args.source):
        print(f"{snapshot.timestamp}\t{snapshot.created_at.isoformat()}\t{snapshot.manifest_hash}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = RestoreConfig.from_env().with_overrides(
            concurrency=getattr(args, 'concurrency', None),
            max_retries=getattr(args, 'max_retries', None),
            punch_holes=getattr(args, 'punch_holes', None),
        )
        if args.command == 'restore':
            return run_restore(args, config)
        return run_list(args, config)
    except (RestoreError, ValueError) as e:
        print(f"Got error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Got error: interrupted", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

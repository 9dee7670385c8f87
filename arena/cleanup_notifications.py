"""CLI utility to purge notifications past the retention window."""

import argparse
import json

from arena.app import create_app
from arena.services.cascade import cleanup_old_notifications
from arena.storage import get_storage
from arena.time_utils import hours_ago


def _build_parser():
    parser = argparse.ArgumentParser(
        description='Delete notifications (and their read markers) older than the retention window.',
    )
    parser.add_argument(
        '--hours',
        type=int,
        help='Retention window in hours (default: NOTIFICATION_RETENTION_HOURS from config).',
    )
    parser.add_argument(
        '--env',
        default='development',
        choices=['development', 'testing', 'production'],
        help='App config environment to use (default: development).',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report how many notifications would be removed without deleting them.',
    )
    return parser


def main(argv=None, app=None):
    args = _build_parser().parse_args(argv)
    app = app or create_app(args.env)

    with app.app_context():
        hours = args.hours if args.hours is not None else app.config.get('NOTIFICATION_RETENTION_HOURS', 24)
        if hours < 0:
            raise SystemExit('--hours must not be negative.')

        cutoff = hours_ago(hours)
        storage = get_storage()
        if args.dry_run:
            result = {'would_remove': len(storage.list_notifications_older_than(cutoff)), 'dry_run': True}
        else:
            result = {'removed': cleanup_old_notifications(storage, cutoff)}
        result['cutoff'] = cutoff.isoformat()
        result['retention_hours'] = hours
        print(json.dumps(result, indent=2))
        return 0


if __name__ == '__main__':
    raise SystemExit(main())

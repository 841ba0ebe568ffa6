"""
Rebuild the standings table by replaying every current-season match result.
Run with: python reconcile_standings.py [--mode CLASSIC] [--test | --live] [--dry-run]
"""

import argparse

from app import app
from models import TOURNAMENT_MODES
from standings import rebuild_standings


def _print_line(label, line):
    print(
        f"  {label:<9} P{line['played']} W{line['won']} D{line['drawn']} L{line['lost']} "
        f"GF{line['goalsFor']} GA{line['goalsAgainst']} Pts{line['points']} "
        f"SO {line['shootoutWins']}-{line['shootoutLosses']}"
    )


def reconcile(mode=None, is_test=None, dry_run=False):
    with app.app_context():
        report = rebuild_standings(tournament_mode=mode, is_test=is_test, dry_run=dry_run)

    print(f"\n=== Standings replay ({'dry run' if dry_run else 'applied'}) ===")
    print(f"Replayed {report['replayedResults']} results into {report['rows']} rows")

    if not report['differences']:
        print("✅ Stored standings already match the replay")
        return report

    print(f"⚠️  {len(report['differences'])} row(s) differed:")
    for diff in report['differences']:
        scope = f"{diff['tournamentMode']}{' (test)' if diff['isTest'] else ''}"
        print(f"\n{diff['teamId']} in {scope}")
        _print_line('BEFORE:', diff['stored'])
        _print_line('AFTER:', diff['replayed'])
    return report


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument('--mode', choices=TOURNAMENT_MODES, help='only this tournament mode')
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument('--test', dest='is_test', action='store_const', const=True, help='only test fixtures')
    scope.add_argument('--live', dest='is_test', action='store_const', const=False, help='only live fixtures')
    parser.add_argument('--dry-run', action='store_true', help='report differences without writing')
    args = parser.parse_args(argv)
    reconcile(args.mode, args.is_test, args.dry_run)


if __name__ == "__main__":
    main()

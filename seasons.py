from flask import current_app

from models import (
    db,
    Team,
    Player,
    Match,
    Standing,
    SeasonArchive,
    RecordConflict,
    STATUS_IN_PROGRESS,
    parse_text,
)


def end_season(name: str) -> SeasonArchive:
    """Archive the running season under ``name``.

    Matches and results are kept and stamped with the archive id; standings
    rows are derived data and are dropped so the next season starts at zero.
    """
    name = parse_text(name, 'Season name', required=True)
    if SeasonArchive.query.filter_by(name=name).first():
        raise RecordConflict(f'A season named "{name}" has already been archived')

    matches = Match.query.filter(Match.season_id.is_(None)).all()
    live = [m for m in matches if m.status == STATUS_IN_PROGRESS]
    if live:
        raise RecordConflict(f'{len(live)} match(es) are still in progress')

    results = [m.result for m in matches if m.result is not None]
    archive = SeasonArchive(
        name=name,
        summary={
            'totalTeams': Team.query.count(),
            'totalPlayers': Player.query.filter_by(is_active=True).count(),
            'totalMatches': len(matches),
            'totalResults': len(results),
            'totalGoals': sum(r.home_score + r.away_score for r in results),
        },
    )
    db.session.add(archive)
    db.session.flush()

    for match in matches:
        match.season_id = archive.id
    cleared = Standing.query.delete()

    for team in Team.query.filter_by(is_active=True).all():
        team.notify(
            f'Season "{name}" has ended. Thanks for playing!',
            kind='season',
            context_type='season',
            context_ref=str(archive.id),
        )

    db.session.commit()
    current_app.logger.info(
        'Archived season "%s": %d matches, %d results, %d standings rows cleared',
        name, len(matches), len(results), cleared,
    )
    return archive

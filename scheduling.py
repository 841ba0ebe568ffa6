"""Fixture generation for CLASSIC leagues and the 10-team mini-league."""

from dataclasses import dataclass
from datetime import date, time, timedelta
import random

from flask import current_app

from models import (
    db,
    Team,
    Match,
    LeagueValidationError,
    RecordNotFound,
    RecordConflict,
    MODE_CLASSIC,
    MODE_MINI_LEAGUE,
    TOURNAMENT_MODES,
    STATUS_SCHEDULED,
    STATUS_COMPLETED,
    STAGE_LEAGUE,
    STAGE_QUALIFICATION,
    STAGE_GRAND_FINAL,
    STAGE_SMALL_FINAL,
    FINAL_STAGES,
    parse_text,
)
from standings import project_standings, rank_lines

MINI_LEAGUE_TEAM_COUNT = 10
MINI_LEAGUE_QUALIFICATION_DAYS = 5
MINI_LEAGUE_FINALS_ROUND = MINI_LEAGUE_QUALIFICATION_DAYS + 1
MINI_LEAGUE_FINALISTS = 4
SMALL_FINAL_LEAD_MINUTES = 60

STATE_NOT_GENERATED = 'not_generated'
STATE_QUALIFICATION_PENDING = 'qualification_pending'
STATE_QUALIFICATION_COMPLETE = 'qualification_complete'
STATE_FINALS_GENERATED = 'finals_generated'

WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


def shift_time(start: time, minutes: int) -> time:
    total = start.hour * 60 + start.minute + minutes
    # the hour wraps at midnight, the match keeps its round date
    return time((total // 60) % 24, total % 60)


@dataclass
class Fixture:
    home_team_id: str
    away_team_id: str
    round_number: int
    date: date
    time: time


class IntervalPolicy:
    """First kickoff at ``start``; each later match of the round ``interval_minutes`` after."""

    name = 'interval'

    def __init__(self, start: time, interval_minutes: int):
        if interval_minutes is None or interval_minutes <= 0:
            raise LeagueValidationError('intervalMinutes must be a positive number of minutes')
        self.start = start
        self.interval_minutes = interval_minutes

    def kickoff_for(self, slot: int) -> time:
        return shift_time(self.start, slot * self.interval_minutes)


class ExplicitTimesPolicy:
    name = 'explicit'

    def __init__(self, times: list[time]):
        if not times:
            raise LeagueValidationError('times must list at least one kickoff time')
        self.times = list(times)

    def kickoff_for(self, slot: int) -> time:
        return self.times[slot % len(self.times)]


def build_time_policy(policy_name, start_time: time, interval_minutes=None, times=None):
    policy_name = (parse_text(policy_name, 'timePolicy') or IntervalPolicy.name).lower()
    if policy_name == IntervalPolicy.name:
        if interval_minutes is None:
            interval_minutes = current_app.config['DEFAULT_MATCH_INTERVAL_MINUTES']
        return IntervalPolicy(start_time, interval_minutes)
    if policy_name == ExplicitTimesPolicy.name:
        return ExplicitTimesPolicy(times or [])
    raise LeagueValidationError("timePolicy must be 'interval' or 'explicit'")


def double_round_robin(team_ids: list[str], rng=None) -> list[tuple[str, str]]:
    """Every ordered (home, away) pair once, shuffled for schedule variety."""
    if len(team_ids) < 2:
        raise LeagueValidationError('At least 2 teams are required to generate matches')
    pairs = [(home, away) for home in team_ids for away in team_ids if home != away]
    (rng or random).shuffle(pairs)
    return pairs


def circle_rounds(team_ids: list[str]) -> list[list[tuple[str, str]]]:
    """Single round-robin by the circle method: every team plays once per round."""
    slots = list(team_ids)
    if len(slots) % 2 == 1:
        slots.append(None)
    count = len(slots)
    half = count // 2

    rounds = []
    for index in range(count - 1):
        pairings = []
        for i in range(half):
            home, away = slots[i], slots[count - 1 - i]
            if home is None or away is None:
                continue
            pairings.append((away, home) if index % 2 else (home, away))
        rounds.append(pairings)
        # first slot stays fixed, the rest rotate
        slots = [slots[0], slots[-1]] + slots[1:-1]
    return rounds


def assign_schedule(
    pairs: list[tuple[str, str]],
    start_date: date,
    matches_per_day: int,
    policy,
    round_interval_days: int = 7,
) -> list[Fixture]:
    """Group consecutive pairs into rounds and give each a date and kickoff."""
    if matches_per_day < 1:
        raise LeagueValidationError('matchesPerDay must be at least 1')

    fixtures = []
    for index, (home, away) in enumerate(pairs):
        round_index, slot = divmod(index, matches_per_day)
        fixtures.append(
            Fixture(
                home_team_id=home,
                away_team_id=away,
                round_number=round_index + 1,
                date=start_date + timedelta(days=round_index * round_interval_days),
                time=policy.kickoff_for(slot),
            )
        )
    return fixtures


def load_teams(team_ids) -> list[Team]:
    if not isinstance(team_ids, list) or not all(isinstance(t, str) and t.strip() for t in team_ids):
        raise LeagueValidationError('teamIds must be a list of team identifiers')
    team_ids = [t.strip() for t in team_ids]
    if len(set(team_ids)) != len(team_ids):
        raise LeagueValidationError('teamIds must not contain duplicates')

    teams = {team.team_id: team for team in Team.query.filter(Team.team_id.in_(team_ids)).all()}
    missing = [team_id for team_id in team_ids if team_id not in teams]
    if missing:
        raise RecordNotFound(f"Unknown team(s): {', '.join(missing)}")

    inactive = [teams[team_id].name for team_id in team_ids if not teams[team_id].is_active]
    if inactive:
        raise LeagueValidationError(f"Inactive team(s) cannot be scheduled: {', '.join(inactive)}")
    return [teams[team_id] for team_id in team_ids]


def check_rosters(teams: list[Team], minimum: int = None) -> None:
    """Reject the whole request if any team is short of players."""
    if minimum is None:
        minimum = current_app.config['LEAGUE_MIN_ROSTER_SIZE']
    for team in teams:
        if team.roster_size < minimum:
            raise LeagueValidationError(
                f'Team "{team.name}" must have at least {minimum} players '
                f'(currently {team.roster_size})'
            )


def check_match_day(match_date: date, field='startDate') -> None:
    weekday = current_app.config.get('LEAGUE_MATCH_WEEKDAY')
    if weekday is not None and match_date.weekday() != weekday:
        raise LeagueValidationError(f'{field} must fall on a {WEEKDAY_NAMES[weekday]}')


def generate_fixtures(
    mode: str,
    team_ids,
    start_date: date,
    policy,
    matches_per_day: int = None,
    is_test: bool = False,
    venue: str = None,
    rng=None,
) -> list[Match]:
    mode = (mode or MODE_CLASSIC).upper()
    if mode not in TOURNAMENT_MODES:
        raise LeagueValidationError(f"mode must be one of {', '.join(TOURNAMENT_MODES)}")
    if mode == MODE_MINI_LEAGUE:
        return generate_mini_league_qualification(
            team_ids, start_date, policy, is_test=is_test, venue=venue, rng=rng
        )
    return generate_classic_fixtures(
        team_ids, start_date, policy, matches_per_day, is_test=is_test, venue=venue, rng=rng
    )


def generate_classic_fixtures(
    team_ids, start_date, policy, matches_per_day, is_test=False, venue=None, rng=None
) -> list[Match]:
    max_per_day = current_app.config['MAX_MATCHES_PER_DAY']
    if matches_per_day is None or not 1 <= matches_per_day <= max_per_day:
        raise LeagueValidationError(f'matchesPerDay must be between 1 and {max_per_day}')
    if not isinstance(team_ids, list) or len(team_ids) < 2:
        raise LeagueValidationError('At least 2 teams are required to generate matches')
    check_match_day(start_date)

    teams = load_teams(team_ids)
    check_rosters(teams)

    pairs = double_round_robin([team.team_id for team in teams], rng=rng)
    fixtures = assign_schedule(
        pairs,
        start_date,
        matches_per_day,
        policy,
        current_app.config['LEAGUE_ROUND_INTERVAL_DAYS'],
    )
    matches = _persist_fixtures(fixtures, MODE_CLASSIC, STAGE_LEAGUE, is_test, venue)
    _notify_scheduled(teams, matches)
    db.session.commit()

    current_app.logger.info(
        'Generated %d CLASSIC fixtures for %d teams over %d rounds (test=%s)',
        len(matches), len(teams), fixtures[-1].round_number, is_test,
    )
    return matches


def generate_mini_league_qualification(
    team_ids, start_date, policy, is_test=False, venue=None, rng=None
) -> list[Match]:
    """Create the qualification days only; finals wait for generate_mini_league_finals."""
    if not isinstance(team_ids, list) or len(team_ids) != MINI_LEAGUE_TEAM_COUNT:
        raise LeagueValidationError(
            f'Mini-league requires exactly {MINI_LEAGUE_TEAM_COUNT} teams'
        )
    check_match_day(start_date)

    teams = load_teams(team_ids)
    check_rosters(teams)

    if _mini_league_matches(is_test, (STAGE_QUALIFICATION,) + FINAL_STAGES):
        raise RecordConflict(
            'A mini-league is already in progress; end the season before generating another'
        )

    order = [team.team_id for team in teams]
    (rng or random).shuffle(order)
    rounds = circle_rounds(order)[:MINI_LEAGUE_QUALIFICATION_DAYS]
    pairs = [pair for day in rounds for pair in day]

    fixtures = assign_schedule(
        pairs,
        start_date,
        MINI_LEAGUE_TEAM_COUNT // 2,
        policy,
        current_app.config['LEAGUE_ROUND_INTERVAL_DAYS'],
    )
    matches = _persist_fixtures(fixtures, MODE_MINI_LEAGUE, STAGE_QUALIFICATION, is_test, venue)
    _notify_scheduled(teams, matches)
    db.session.commit()

    current_app.logger.info(
        'Generated %d mini-league qualification fixtures over %d days (test=%s)',
        len(matches), MINI_LEAGUE_QUALIFICATION_DAYS, is_test,
    )
    return matches


def mini_league_state(is_test: bool = False) -> dict:
    qualification = _mini_league_matches(is_test, (STAGE_QUALIFICATION,))
    finals = _mini_league_matches(is_test, FINAL_STAGES)
    completed = [m for m in qualification if m.status == STATUS_COMPLETED and m.result]

    if finals:
        state = STATE_FINALS_GENERATED
    elif not qualification:
        state = STATE_NOT_GENERATED
    elif len(completed) == len(qualification):
        state = STATE_QUALIFICATION_COMPLETE
    else:
        state = STATE_QUALIFICATION_PENDING

    return {
        'state': state,
        'isTest': is_test,
        'qualificationMatches': len(qualification),
        'completedMatches': len(completed),
        'finalsMatches': len(finals),
        'lastQualificationDate': (
            max(m.date for m in qualification).isoformat() if qualification else None
        ),
    }


def generate_mini_league_finals(
    final_date: date,
    grand_final_time: time,
    small_final_time: time = None,
    is_test: bool = False,
    venue: str = None,
) -> list[Match]:
    """Explicit trigger: seed the finals from the completed qualification table."""
    status = mini_league_state(is_test)
    if status['state'] == STATE_NOT_GENERATED:
        raise LeagueValidationError(
            'No qualification matches found; generate the mini-league qualification first'
        )
    if status['state'] == STATE_FINALS_GENERATED:
        raise RecordConflict('Finals have already been generated')
    if status['state'] != STATE_QUALIFICATION_COMPLETE:
        missing = status['qualificationMatches'] - status['completedMatches']
        raise LeagueValidationError(
            f'{missing} qualification match(es) still without a result; '
            'all qualification matches must be completed'
        )

    check_match_day(final_date, 'finalDate')
    if final_date <= date.fromisoformat(status['lastQualificationDate']):
        raise LeagueValidationError('finalDate must be after the last qualification day')

    if small_final_time is None:
        small_final_time = shift_time(grand_final_time, -SMALL_FINAL_LEAD_MINUTES)

    qualification = _mini_league_matches(is_test, (STAGE_QUALIFICATION,))
    lines = project_standings((m, m.result) for m in qualification)
    names = {
        team.team_id: team.name
        for team in Team.query.filter(Team.team_id.in_(list(lines))).all()
    }
    ranking = rank_lines(lines.values(), names)
    if len(ranking) < MINI_LEAGUE_FINALISTS:
        raise LeagueValidationError(
            f'At least {MINI_LEAGUE_FINALISTS} ranked teams are required to generate the finals'
        )

    first, second, third, fourth = (line.team_id for line in ranking[:MINI_LEAGUE_FINALISTS])
    finals = [
        Match(
            home_team_id=third,
            away_team_id=fourth,
            date=final_date,
            time=small_final_time,
            venue=venue,
            round_number=MINI_LEAGUE_FINALS_ROUND,
            status=STATUS_SCHEDULED,
            tournament_mode=MODE_MINI_LEAGUE,
            stage=STAGE_SMALL_FINAL,
            is_test=is_test,
        ),
        Match(
            home_team_id=first,
            away_team_id=second,
            date=final_date,
            time=grand_final_time,
            venue=venue,
            round_number=MINI_LEAGUE_FINALS_ROUND,
            status=STATUS_SCHEDULED,
            tournament_mode=MODE_MINI_LEAGUE,
            stage=STAGE_GRAND_FINAL,
            is_test=is_test,
        ),
    ]
    db.session.add_all(finals)
    db.session.flush()

    labels = {STAGE_GRAND_FINAL: 'the grand final', STAGE_SMALL_FINAL: 'the small final'}
    for match in finals:
        for team in (match.home_team, match.away_team):
            team.notify(
                f'{team.name} qualified for {labels[match.stage]} on '
                f'{match.date.isoformat()} at {match.time.strftime("%H:%M")}.',
                category='success',
                kind='finals',
                context_type='match',
                context_ref=str(match.id),
            )
    db.session.commit()

    current_app.logger.info(
        'Generated mini-league finals: %s v %s (grand), %s v %s (small)',
        first, second, third, fourth,
    )
    return finals


def _mini_league_matches(is_test: bool, stages) -> list[Match]:
    return (
        Match.query.filter(
            Match.tournament_mode == MODE_MINI_LEAGUE,
            Match.is_test == is_test,
            Match.season_id.is_(None),
            Match.stage.in_(stages),
        )
        .order_by(Match.round_number, Match.time, Match.id)
        .all()
    )


def _persist_fixtures(fixtures, mode, stage, is_test, venue) -> list[Match]:
    matches = [
        Match(
            home_team_id=fixture.home_team_id,
            away_team_id=fixture.away_team_id,
            date=fixture.date,
            time=fixture.time,
            venue=venue,
            round_number=fixture.round_number,
            status=STATUS_SCHEDULED,
            tournament_mode=mode,
            stage=stage,
            is_test=is_test,
        )
        for fixture in fixtures
    ]
    db.session.add_all(matches)
    db.session.flush()
    return matches


def _notify_scheduled(teams: list[Team], matches: list[Match]) -> None:
    for team in teams:
        own = [m for m in matches if m.involves(team.team_id)]
        if not own:
            continue
        first = min(own, key=lambda m: (m.date, m.time))
        team.notify(
            f'{len(own)} matches scheduled for {team.name}; first kickoff on '
            f'{first.date.isoformat()} at {first.time.strftime("%H:%M")}.',
            kind='fixtures',
            context_type='match',
            context_ref=str(first.id),
        )

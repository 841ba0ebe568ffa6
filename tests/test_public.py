"""Integration tests for the public read-only API"""

from datetime import time

from models import MODE_MINI_LEAGUE, STAGE_QUALIFICATION
from standings import process_result


class TestTeamsListing:

    def test_lists_active_teams_by_name(self, client, teams, make_team):
        make_team('Aardvarks')
        make_team('Retired', is_active=False)

        data = client.get('/api/teams').get_json()
        assert [team['name'] for team in data] == ['Aardvarks', 'Club A', 'Club B', 'Club C', 'Club D']

    def test_include_inactive(self, client, teams, make_team):
        make_team('Retired', is_active=False)
        data = client.get('/api/teams?includeInactive=1').get_json()
        assert 'Retired' in [team['name'] for team in data]

    def test_team_detail_with_roster_and_matches(self, client, teams, match):
        response = client.get(f'/api/teams/{teams[0]}')

        assert response.status_code == 200
        data = response.get_json()
        assert data['rosterSize'] == 7
        assert len(data['players']) == 7
        assert [m['id'] for m in data['matches']] == [match]

    def test_unknown_team(self, client):
        response = client.get('/api/teams/TM0404')
        assert response.status_code == 404
        assert 'error' in response.get_json()


class TestMatchesListing:

    def test_filters(self, client, teams, make_match):
        first = make_match(teams[0], teams[1], round_number=1)
        second = make_match(teams[2], teams[3], round_number=2, kickoff=time(18, 0))
        mini = make_match(teams[0], teams[2], mode=MODE_MINI_LEAGUE, stage=STAGE_QUALIFICATION)
        process_result(first, {'homeScore': 1, 'awayScore': 0})

        def ids(query):
            return [m['id'] for m in client.get(f'/api/matches{query}').get_json()]

        assert ids('') == [first, mini, second]
        assert ids('?mode=CLASSIC') == [first, second]
        assert ids('?status=completed') == [first]
        assert ids('?round=2') == [second]
        assert ids(f'?teamId={teams[2]}') == [mini, second]

    def test_test_fixtures_are_hidden_by_default(self, client, teams, make_match):
        hidden = make_match(teams[0], teams[1], is_test=True)
        assert client.get('/api/matches').get_json() == []
        assert [m['id'] for m in client.get('/api/matches?isTest=true').get_json()] == [hidden]

    def test_bad_filters(self, client):
        assert client.get('/api/matches?status=postponed').status_code == 400
        assert client.get('/api/matches?round=first').status_code == 400
        assert client.get('/api/matches?mode=CUP').status_code == 400

    def test_match_detail_includes_result(self, client, match):
        process_result(match, {'homeScore': 2, 'awayScore': 1, 'homeScorers': [{'playerName': 'Ace'}]})
        data = client.get(f'/api/matches/{match}').get_json()

        assert data['status'] == 'completed'
        assert data['homeTeamName'] == 'Club A'
        assert data['result']['homeScorers'] == [{'playerName': 'Ace', 'assist': None}]

    def test_unknown_match(self, client):
        assert client.get('/api/matches/12345').status_code == 404


class TestStandingsAndStats:

    def test_standings_default_to_classic(self, client, teams, match):
        process_result(match, {'homeScore': 0, 'awayScore': 3})
        data = client.get('/api/standings').get_json()

        assert data['tournamentMode'] == 'CLASSIC'
        assert [row['teamId'] for row in data['standings']] == [teams[1], teams[0]]
        assert data['standings'][0]['goalDifference'] == 3

    def test_empty_mini_league_table(self, client):
        data = client.get('/api/standings?mode=MINI_LEAGUE').get_json()
        assert data['standings'] == []

    def test_top_scorers(self, client, teams, match):
        process_result(match, {
            'homeScore': 3, 'awayScore': 0,
            'homeScorers': [{'playerName': 'Ace'}, {'playerName': 'Ace'}, {'playerName': 'Cole'}],
        })
        data = client.get('/api/stats/top-scorers?limit=1').get_json()
        assert data == [{'playerName': 'Ace', 'teamId': teams[0], 'goals': 2, 'assists': 0}]

    def test_top_scorers_limit_must_be_positive(self, client):
        assert client.get('/api/stats/top-scorers?limit=0').status_code == 400

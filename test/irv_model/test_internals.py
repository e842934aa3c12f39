import pytest

from irv_model.model import (
    Ballot,
    CapacityExceeded,
    Election,
    InvalidBallot,
    SlateIncomplete,
)


@pytest.fixture()
def abc_election():
    el = Election(num_candidates=3)
    for name in "ABC":
        el.add_candidate(name)
    return el


def test_ballot_top_choice_skips_excluded_candidates():
    ballot = Ballot(id="1", ranks=(2, 3, 1))
    assert ballot.top_choice == 2
    assert ballot.prefs == (2, 0, 1)

    ballot.exclude(2)
    assert ballot.top_choice == 0

    ballot.exclude(0)
    assert ballot.top_choice == 1

    ballot.exclude(1)
    assert ballot.top_choice is None

    # Vietas pašas par sevi nemainās.
    assert ballot.ranks == (2, 3, 1)


def test_candidate_registration_respects_capacity():
    el = Election(num_candidates=2)
    assert el.add_candidate("A") == 0
    assert el.add_candidate("B") == 1

    with pytest.raises(CapacityExceeded):
        el.add_candidate("C")

    assert [c.name for c in el.candidates] == ["A", "B"]


def test_election_needs_at_least_one_candidate():
    with pytest.raises(ValueError):
        Election(num_candidates=0)


def test_unknown_tie_rule_is_rejected():
    with pytest.raises(ValueError):
        Election(num_candidates=2, tie_rule="coin_flip")


def test_ballots_are_refused_until_slate_is_full():
    el = Election(num_candidates=2)
    el.add_candidate("A")

    with pytest.raises(SlateIncomplete):
        el.add_ballot([1, 2])
    with pytest.raises(SlateIncomplete):
        el.select_winner()

    assert el.total_ballots == 0


def test_ballot_registration_assigns_first_choice(abc_election):
    b1 = abc_election.add_ballot([2, 1, 3])
    b2 = abc_election.add_ballot((3, 2, 1))

    assert b1.id == "1"
    assert b2.id == "2"
    assert abc_election.total_ballots == 2
    assert abc_election.ballots == {"1": b1, "2": b2}

    a, b, c = abc_election.candidates
    assert a.ballots == []
    assert b.ballots == [b1]
    assert c.ballots == [b2]
    assert b1.ranks == (2, 1, 3)


@pytest.mark.parametrize("ranks", [
    [1, 1, 2],
    [1, 2],
    [1, 2, 3, 4],
    [0, 1, 2],
    [2, 3, 4],
    [1.0, 2.0, 3.0],
    [True, 2, 3],
    [],
])
def test_invalid_ballot_changes_nothing(abc_election, ranks):
    abc_election.add_ballot([1, 2, 3])

    with pytest.raises(InvalidBallot):
        abc_election.add_ballot(ranks)

    assert abc_election.total_ballots == 1
    assert len(abc_election.ballots) == 1
    assert [c.votes for c in abc_election.candidates] == [1, 0, 0]


def test_invalid_ballot_is_a_value_error(abc_election):
    with pytest.raises(ValueError):
        abc_election.add_ballot([3, 3, 3])


@pytest.mark.parametrize("votes", [
    ["AB"],
    ["ABD"],
    ["ABA"],
    ["ABCA"],
])
def test_from_votes_rejects_incomplete_or_unknown_preferences(votes):
    with pytest.raises(InvalidBallot):
        Election.from_votes(candidates="ABC", votes=votes)


def test_from_votes_converts_preferences_to_ranks():
    el = Election.from_votes(candidates=["Anna", "Bruno", "Cilda"], votes=[["Cilda", "Anna", "Bruno"]])

    ballot = el.ballots["1"]
    assert ballot.ranks == (2, 3, 1)
    assert el.candidates[2].ballots == [ballot]


def test_eliminate_transfers_and_exhausts_ballots():
    el = Election.from_votes(candidates="AB", votes=["AB", "BA"])
    first, second = el.ballots["1"], el.ballots["2"]

    el.eliminate(0)
    assert el.candidates[0].is_eliminated
    assert el.candidates[0].votes == 0
    assert el.candidates[1].ballots == [second, first]
    assert first.excluded == {0}

    el.eliminate(1)
    assert el.candidates[1].votes == 0
    assert el.exhausted == [second, first]
    assert first.excluded == {0, 1}
    # Nākamā izvēle A jau izslēgta, tāpēc zīme netiek tālāk nodota.
    assert second.excluded == {1}
    assert sum(c.votes for c in el.candidates) + len(el.exhausted) == el.total_ballots


def test_is_tie_rules(abc_election):
    abc_election.add_ballot([1, 2, 3])
    abc_election.add_ballot([1, 2, 3])
    abc_election.add_ballot([2, 1, 3])
    abc_election.add_ballot([3, 2, 1])

    # 4 zīmes, 3 aktīvi kandidāti
    assert not abc_election.is_tie()

    abc_election.eliminate(2)
    # A=2, B=2
    assert abc_election.is_tie()

    abc_election.tie_rule = "equal_votes"
    assert abc_election.is_tie()

    abc_election.candidates[0].status = "eliminated"
    abc_election.candidates[1].status = "eliminated"
    assert not abc_election.is_tie()


def test_quota_is_half_of_all_ballots_rounded_down(abc_election):
    for _ in range(5):
        abc_election.add_ballot([1, 2, 3])
    assert abc_election.quota == 2


def test_reset_restores_state_before_count():
    votes = ["ABC", "ABC", "BAC", "BAC", "CAB"]
    el = Election.from_votes(candidates="ABC", votes=votes)
    assert el.select_winner() == ["A"]

    el.reset()
    assert el.round_no == 0
    assert el.winners == []
    assert el.exhausted == []
    assert el.event_logs == {}
    assert all(c.is_running for c in el.candidates)
    assert all(c.tallies == [] for c in el.candidates)
    assert all(not b.excluded for b in el.ballots.values())
    assert [c.votes for c in el.candidates] == [2, 2, 1]

    assert el.select_winner() == ["A"]


def test_count_runs_only_once():
    el = Election.from_votes(candidates="AB", votes=["AB"])
    el.select_winner()

    with pytest.raises(AssertionError):
        el.select_winner()

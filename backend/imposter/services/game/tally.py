"""Vote counting and win determination for a single reveal."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import InvalidVote, VotesIncomplete
from .rounds import Round, Variant


@dataclass(frozen=True)
class Vote:
    """One player's ballot: accused player ids, or no imposter at all."""
    accused: FrozenSet[str] = frozenset()
    no_imposter: bool = False

    @classmethod
    def accuse(cls, *player_ids: str) -> 'Vote':
        if not player_ids:
            raise InvalidVote('Pick at least one player, or vote no imposter')
        return cls(accused=frozenset(player_ids))

    @classmethod
    def nobody(cls) -> 'Vote':
        return cls(no_imposter=True)

    def to_dict(self):
        return {'accused': sorted(self.accused), 'noImposter': self.no_imposter}


@dataclass(frozen=True)
class RevealResult:
    imposter_ids: Tuple[str, ...]
    imposter_names: Tuple[str, ...]
    ejected_player_id: Optional[str]
    ejected_player_name: Optional[str]
    was_tie: bool
    ejected_was_imposter: bool
    crew_won: bool
    surviving_imposter_name: Optional[str]
    category: str
    word: str
    no_imposter_round: bool
    vote_counts: Dict[str, int] = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self):
        return {
            'imposterIds': list(self.imposter_ids),
            'imposterNames': list(self.imposter_names),
            'ejectedPlayerId': self.ejected_player_id,
            'ejectedPlayerName': self.ejected_player_name,
            'wasTie': self.was_tie,
            'ejectedWasImposter': self.ejected_was_imposter,
            'crewWon': self.crew_won,
            # Older clients read teamWon
            'teamWon': self.crew_won,
            'survivingImposterName': self.surviving_imposter_name,
            'category': self.category,
            'word': self.word,
            'noImposterRound': self.no_imposter_round,
            'voteCounts': dict(self.vote_counts),
        }


def count_votes(votes: Mapping[str, Vote]) -> Counter:
    counts = Counter()
    for vote in votes.values():
        if vote.no_imposter:
            continue
        for accused in vote.accused:
            counts[accused] += 1
    return counts


def vote_was_correct(vote: Optional[Vote], round_: Round) -> bool:
    if vote is None:
        return False
    if round_.variant == Variant.NO_IMPOSTER:
        return vote.no_imposter
    return bool(vote.accused & round_.imposter_ids)


def tally(round_: Round, votes: Mapping[str, Vote], roster: Mapping[str, str]) -> RevealResult:
    """Compute the reveal for ``round_``.

    ``votes`` maps voter id to ballot; ``roster`` maps player id to the
    display name at reveal time. Every player dealt into the round must
    have voted.
    """
    required = round_.player_ids
    cast = {voter: vote for voter, vote in votes.items() if voter in required}
    if len(cast) < len(required):
        missing = len(required) - len(cast)
        raise VotesIncomplete(f'Waiting on {missing} more vote{"s" if missing != 1 else ""}')

    counts = count_votes(cast)
    max_votes = max(counts.values(), default=0)
    leaders: List[str] = sorted(pid for pid, n in counts.items() if n == max_votes and n > 0)

    ejected_id = leaders[0] if len(leaders) == 1 else None
    was_tie = len(leaders) > 1
    # A tie containing an imposter counts as catching that imposter
    caught = set(leaders) & round_.imposter_ids

    if round_.variant == Variant.NO_IMPOSTER:
        crew_won = True
    elif round_.variant == Variant.TWO_IMPOSTERS:
        crew_won = caught == set(round_.imposter_ids)
    else:
        crew_won = bool(caught)

    surviving_name = None
    if round_.variant == Variant.TWO_IMPOSTERS and len(caught) == 1:
        (survivor,) = round_.imposter_ids - caught
        surviving_name = roster.get(survivor)

    imposter_ids = tuple(pid for pid in round_.turn_order if pid in round_.imposter_ids)
    return RevealResult(
        imposter_ids=imposter_ids,
        imposter_names=tuple(roster.get(pid, '') for pid in imposter_ids),
        ejected_player_id=ejected_id,
        ejected_player_name=roster.get(ejected_id) if ejected_id else None,
        was_tie=was_tie,
        ejected_was_imposter=ejected_id is not None and ejected_id in round_.imposter_ids,
        crew_won=crew_won,
        surviving_imposter_name=surviving_name,
        category=round_.category,
        word=round_.word,
        no_imposter_round=round_.variant == Variant.NO_IMPOSTER,
        vote_counts=dict(counts),
    )

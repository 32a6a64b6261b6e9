"""Round generation: word choice, imposter roll, fair imposter pick, turn order.

Pure functions over player ids; the caller owns min-player policy and
keeps the round history.
"""
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from .errors import InvalidInput
from .words import WordBank


NO_IMPOSTER_THRESHOLD = 0.05
TWO_IMPOSTERS_THRESHOLD = 0.10
IMPOSTER_FIRST_CHANCE = 0.10
# Rounds looked back on for category/word rotation
ROTATION_WINDOW = 2
# Rounds looked back on for imposter fairness
FAIRNESS_WINDOW = 10


class Variant(str, Enum):
    NORMAL = 'normal'
    NO_IMPOSTER = 'no_imposter'
    TWO_IMPOSTERS = 'two_imposters'


@dataclass(frozen=True)
class Assignment:
    word: Optional[str]
    category: Optional[str]
    is_imposter: bool
    turn_position: int
    variant: Variant

    @property
    def turn_text(self) -> str:
        return f"You're {ordinal(self.turn_position)}"

    def to_dict(self, total_players: int = None):
        data = {
            'word': self.word,
            'category': self.category,
            'isImposter': self.is_imposter,
            'turnOrder': self.turn_position,
            'turnOrderText': self.turn_text,
            'roundVariant': self.variant.value,
        }
        if total_players is not None:
            data['totalPlayers'] = total_players
        return data


@dataclass(frozen=True)
class Round:
    category: str
    word: str
    imposter_ids: FrozenSet[str]
    variant: Variant
    turn_order: Tuple[str, ...]
    assignments: Dict[str, Assignment] = field(hash=False)
    custom: bool = False

    @property
    def player_ids(self) -> FrozenSet[str]:
        return frozenset(self.turn_order)

    def assignment_for(self, player_id: str) -> Optional[Assignment]:
        return self.assignments.get(player_id)


def ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f'{n}{suffix}'


def roll_variant(rng=random) -> Variant:
    r = rng.random()
    if r < NO_IMPOSTER_THRESHOLD:
        return Variant.NO_IMPOSTER
    if r < TWO_IMPOSTERS_THRESHOLD:
        return Variant.TWO_IMPOSTERS
    return Variant.NORMAL


def pick_word(word_bank: WordBank, recent_rounds: Sequence[Round], rng=random) -> Tuple[str, str]:
    """Pick a category and word avoiding the last couple of rounds."""
    recent = list(recent_rounds)[-ROTATION_WINDOW:]
    categories = word_bank.categories()
    used_categories = {r.category for r in recent}
    fresh_categories = [c for c in categories if c not in used_categories] or categories
    category = rng.choice(fresh_categories)

    words = word_bank.words(category)
    used_words = {r.word for r in recent if r.category == category}
    fresh_words = [w for w in words if w not in used_words] or words
    return category, rng.choice(fresh_words)


def imposter_counts(player_ids: Sequence[str], recent_rounds: Sequence[Round]) -> Dict[str, int]:
    counts = {pid: 0 for pid in player_ids}
    for past in list(recent_rounds)[-FAIRNESS_WINDOW:]:
        for pid in past.imposter_ids:
            if pid in counts:
                counts[pid] += 1
    return counts


def pick_imposters(player_ids: Sequence[str], needed: int, recent_rounds: Sequence[Round], rng=random) -> List[str]:
    """Choose ``needed`` distinct imposters, preferring the least-picked players."""
    if needed <= 0:
        return []
    counts = imposter_counts(player_ids, recent_rounds)
    lowest = min(counts.values())
    pool = [pid for pid in player_ids if counts[pid] == lowest]
    if len(pool) < needed:
        pool = list(player_ids)

    n = len(pool)
    i = rng.randrange(n)
    if needed == 1:
        return [pool[i]]
    # Second pick over the other n-1 slots, shifted past i
    j = rng.randrange(n - 1)
    if j >= i:
        j += 1
    return [pool[i], pool[j]]


def build_turn_order(player_ids: Sequence[str], imposters: Sequence[str], variant: Variant, rng=random) -> List[str]:
    if variant == Variant.NORMAL and rng.random() < IMPOSTER_FIRST_CHANCE:
        others = [pid for pid in player_ids if pid != imposters[0]]
        rng.shuffle(others)
        return [imposters[0]] + others
    order = list(player_ids)
    rng.shuffle(order)
    return order


def generate_round(
    player_ids: Sequence[str],
    recent_rounds: Sequence[Round] = (),
    word_bank: WordBank = None,
    custom: Tuple[str, str] = None,
    rng=random,
) -> Round:
    """Create a round for the given playing ids.

    ``custom`` is a pre-validated (category, word) pair that bypasses
    rotation. ``rng`` is anything exposing random/randrange/choice/shuffle.
    """
    player_ids = list(player_ids)
    if not player_ids:
        raise InvalidInput('A round needs at least one player')
    if len(set(player_ids)) != len(player_ids):
        raise InvalidInput('Duplicate player ids')

    if custom is not None:
        category, word = custom
    else:
        category, word = pick_word(word_bank or WordBank(), recent_rounds, rng)

    variant = roll_variant(rng)
    if variant == Variant.TWO_IMPOSTERS and len(player_ids) < 2:
        variant = Variant.NORMAL
    needed = {Variant.NORMAL: 1, Variant.NO_IMPOSTER: 0, Variant.TWO_IMPOSTERS: 2}[variant]
    imposters = pick_imposters(player_ids, needed, recent_rounds, rng)
    turn_order = build_turn_order(player_ids, imposters, variant, rng)

    imposter_set = frozenset(imposters)
    assignments = {}
    for position, pid in enumerate(turn_order, start=1):
        is_imposter = pid in imposter_set
        assignments[pid] = Assignment(
            word=None if is_imposter else word,
            category=category if is_imposter else None,
            is_imposter=is_imposter,
            turn_position=position,
            variant=variant,
        )

    return Round(
        category=category,
        word=word,
        imposter_ids=imposter_set,
        variant=variant,
        turn_order=tuple(turn_order),
        assignments=assignments,
        custom=custom is not None,
    )

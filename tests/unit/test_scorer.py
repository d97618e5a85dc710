"""
Unit tests for the similarity scorer.

Covers:
- bounds and identity
- symmetry between lost and found roles
- per-dimension sub-scores (text, category, location, temporal)
- monotone temporal decay
- the wallet / backpack scenarios
"""

import datetime as dt
import random

import pytest

from itemradar_match.common.config import MatchingConfig
from itemradar_match.common.errors import ConfigurationError
from itemradar_match.common.schemas import ItemRecord, ItemType
from itemradar_match.matching.normalizer import normalize
from itemradar_match.matching.ranker import confidence_tier
from itemradar_match.matching.scorer import score, score_breakdown, temporal_proximity


def as_found(record: ItemRecord, **changes) -> ItemRecord:
    data = record.model_dump()
    data.update({"id": "found_copy", "item_type": ItemType.FOUND})
    data.update(changes)
    return ItemRecord(**data)


WORDS = ["black", "wallet", "blue", "backpack", "keys", "phone", "red", "leather", "cards", ""]
CATEGORIES = ["wallet", "bag", "phone", "keys", None, "mystery box"]
LOCATIONS = ["library", "gym", "canteen", "classroom", "field", None, "bus stop"]


def random_record(rng: random.Random, item_type: ItemType, idx: int) -> ItemRecord:
    day = rng.choice([None, dt.date(2024, 1, 1) + dt.timedelta(days=rng.randint(0, 40))])
    return ItemRecord(
        id=f"{item_type.value}_{idx}",
        item_type=item_type,
        description=" ".join(rng.choice(WORDS) for _ in range(rng.randint(0, 4))),
        category=rng.choice(CATEGORIES),
        location=rng.choice(LOCATIONS),
        event_date=day,
    )


@pytest.mark.unit
class TestBounds:

    def test_score_always_in_unit_interval(self):
        rng = random.Random(42)
        for i in range(300):
            lost = random_record(rng, ItemType.LOST, i)
            found = random_record(rng, ItemType.FOUND, i)
            assert 0.0 <= score(lost, found) <= 1.0

    def test_identical_records_score_one(self, lost_wallet):
        assert score(lost_wallet, as_found(lost_wallet)) == pytest.approx(1.0)

    def test_symmetric(self):
        rng = random.Random(7)
        for i in range(100):
            a = random_record(rng, ItemType.LOST, i)
            b = random_record(rng, ItemType.FOUND, i)
            swapped_a = as_found(a)
            swapped_b = b.model_copy(update={"item_type": ItemType.LOST})
            assert score(a, b) == pytest.approx(score(swapped_b, swapped_a))


@pytest.mark.unit
class TestSubScores:

    def test_empty_description_gives_zero_text(self, lost_wallet):
        blank = as_found(lost_wallet, description="")
        breakdown = score_breakdown(normalize(lost_wallet), normalize(blank))
        assert breakdown.text == 0.0
        # the other dimensions still count
        assert breakdown.category == 1.0

    def test_different_category_zero(self, lost_wallet):
        other = as_found(lost_wallet, category="bag")
        assert score_breakdown(normalize(lost_wallet), normalize(other)).category == 0.0

    def test_one_unknown_category_gets_partial_credit(self):
        config = MatchingConfig()
        a = ItemRecord(id="a", item_type=ItemType.LOST, description="thing", category="wallet")
        b = ItemRecord(id="b", item_type=ItemType.FOUND, description="thing")
        breakdown = score_breakdown(normalize(a), normalize(b), config)
        assert breakdown.category == config.category_unknown_credit

    def test_both_unknown_category_zero(self):
        a = ItemRecord(id="a", item_type=ItemType.LOST, description="thing")
        b = ItemRecord(id="b", item_type=ItemType.FOUND, description="thing")
        assert score_breakdown(normalize(a), normalize(b)).category == 0.0

    def test_location_alias_is_exact_match(self, lost_wallet):
        other = as_found(lost_wallet, location="Reading Room")
        assert score_breakdown(normalize(lost_wallet), normalize(other)).location == 1.0

    def test_same_zone_partial_credit(self, lost_wallet):
        other = as_found(lost_wallet, location="classroom")
        assert score_breakdown(normalize(lost_wallet), normalize(other)).location == 0.5

    def test_unrelated_location_zero(self, lost_wallet):
        other = as_found(lost_wallet, location="parking lot")
        assert score_breakdown(normalize(lost_wallet), normalize(other)).location == 0.0

    def test_missing_location_zero(self, lost_wallet):
        other = as_found(lost_wallet, location=None)
        assert score_breakdown(normalize(lost_wallet), normalize(other)).location == 0.0

    def test_missing_date_zero(self, lost_wallet):
        other = as_found(lost_wallet, event_date=None)
        assert score_breakdown(normalize(lost_wallet), normalize(other)).temporal == 0.0

    def test_sparse_record_scores_low(self, lost_wallet):
        sparse = ItemRecord(id="s", item_type=ItemType.FOUND, description="black")
        assert score(lost_wallet, sparse) < 0.5


@pytest.mark.unit
class TestTemporalDecay:

    @pytest.mark.parametrize("decay", ["linear", "exponential"])
    def test_non_increasing_in_day_difference(self, decay):
        config = MatchingConfig(decay=decay)
        values = [temporal_proximity(d, config) for d in range(0, 30)]
        assert values[0] == 1.0
        assert all(a >= b for a, b in zip(values, values[1:]))
        assert values[15] == 0.0

    def test_score_non_increasing_with_distance(self, lost_wallet):
        scores = [
            score(lost_wallet, as_found(lost_wallet, event_date=dt.date(2024, 1, 10) + dt.timedelta(days=d)))
            for d in range(0, 20)
        ]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_direction_does_not_matter(self, lost_wallet):
        before = as_found(lost_wallet, event_date=dt.date(2024, 1, 7))
        after = as_found(lost_wallet, event_date=dt.date(2024, 1, 13))
        assert score(lost_wallet, before) == pytest.approx(score(lost_wallet, after))


@pytest.mark.unit
class TestScenarios:

    def test_wallet_found_next_day_is_high(self, lost_wallet, found_wallet):
        value = score(lost_wallet, found_wallet)
        assert value > 0.9
        assert confidence_tier(value).value == "high"

    def test_backpack_is_below_floor(self, lost_wallet, found_backpack):
        assert score(lost_wallet, found_backpack) < 0.15


@pytest.mark.unit
class TestConfig:

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError):
            MatchingConfig(text_weight=0.5)

    def test_unknown_decay_rejected(self):
        with pytest.raises(ConfigurationError):
            MatchingConfig(decay="quadratic")

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ConfigurationError):
            MatchingConfig(medium_threshold=0.8, high_threshold=0.7)

    def test_env_overrides(self):
        config = MatchingConfig.from_env({"MATCH_HORIZON_DAYS": "7", "MATCH_DECAY": "exponential"})
        assert config.horizon_days == 7.0
        assert config.decay == "exponential"
        assert config.text_weight == 0.35


@pytest.mark.unit
class TestThaiReports:

    def test_thai_and_english_labels_agree(self):
        lost = ItemRecord(id="l", item_type=ItemType.LOST, description="กระเป๋าสตางค์สีดำ",
                          location="โรงอาหาร", event_date=dt.date(2024, 1, 10))
        found = ItemRecord(id="f", item_type=ItemType.FOUND, description="black wallet",
                           location="canteen", event_date=dt.date(2024, 1, 10))
        breakdown = score_breakdown(normalize(lost), normalize(found))
        assert breakdown.location == 1.0
        assert breakdown.category == 1.0

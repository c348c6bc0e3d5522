import math
import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from repeatcore.constants import DEFAULT_WEIGHTS
from repeatcore.fsrs import (
    coerce_rating,
    init_card,
    next_interval,
    retrievability,
    review_card,
    round_half_up,
)
from repeatcore.models import AdaptiveHistory, CardState, MemoryParameters, Rating

UTC = timezone.utc
W = DEFAULT_WEIGHTS
T0 = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


class TestIntervalFunction:
    def test_zero_or_negative_stability_has_no_interval(self):
        assert next_interval(0) == 0
        assert next_interval(-3.0) == 0

    def test_default_retention_interval_tracks_stability(self):
        # At 90% retention the interval equals the stability in days.
        assert next_interval(10.0) == 10
        assert next_interval(2.4) == 2
        assert next_interval(5.8) == 6

    def test_interval_is_at_least_one_day(self):
        assert next_interval(0.4) == 1

    def test_interval_is_capped(self):
        assert next_interval(1_000_000.0) == 36500
        params = MemoryParameters(max_interval_days=30)
        assert next_interval(100.0, params) == 30

    def test_lower_retention_lengthens_intervals(self):
        params = MemoryParameters(target_retention=0.8)
        # 10 * 81/19 * (0.8^-2 - 1) = 23.98
        assert next_interval(10.0, params) == 24


class TestRetrievability:
    def test_no_stability(self):
        assert retrievability(3.0, 0.0) == 0.0

    def test_immediately_after_review(self):
        assert retrievability(0.0, 5.0) == pytest.approx(1.0)

    def test_equals_target_retention_after_stability_days(self):
        assert retrievability(7.0, 7.0) == pytest.approx(0.9, abs=1e-9)


class TestMemoryParameters:
    def test_defaults(self):
        params = MemoryParameters()
        assert params.target_retention == 0.9
        assert params.max_interval_days == 36500
        assert len(params.w) == 19

    @pytest.mark.parametrize("retention", [0.0, 1.0, 1.5, -0.1])
    def test_rejects_retention_outside_unit_interval(self, retention):
        with pytest.raises(ValidationError):
            MemoryParameters(target_retention=retention)

    def test_rejects_wrong_weight_count(self):
        with pytest.raises(ValidationError, match="Expected 19 weights"):
            MemoryParameters(w=(1.0, 2.0))

    def test_rejects_non_finite_weights(self):
        weights = list(W)
        weights[3] = math.inf
        with pytest.raises(ValidationError):
            MemoryParameters(w=tuple(weights))

    def test_rejects_non_positive_max_interval(self):
        with pytest.raises(ValidationError):
            MemoryParameters(max_interval_days=0)


def test_init_card():
    card = init_card(T0)
    assert card.state == CardState.New
    assert card.stability == 0
    assert card.difficulty == 0
    assert card.reps == 0
    assert card.lapses == 0
    assert card.due == T0
    assert card.last_review == T0


class TestFirstReview:
    @pytest.mark.parametrize(
        "rating, stability, difficulty, state",
        [
            (Rating.Again, 0.4, 4.93 + 2 * 0.94, CardState.Learning),
            (Rating.Hard, 0.6, 4.93 + 0.94, CardState.Learning),
            (Rating.Good, 2.4, 4.93, CardState.Review),
            (Rating.Easy, 5.8, 4.93 - 0.94, CardState.Review),
        ],
    )
    def test_new_card_transitions(self, rating, stability, difficulty, state):
        card = review_card(init_card(T0), rating, T0)
        assert card.stability == pytest.approx(stability)
        assert card.difficulty == pytest.approx(difficulty)
        assert card.state == state
        assert card.elapsed_days == 0
        assert card.last_review == T0

    def test_again_resets_reps_and_schedules_nothing(self):
        card = review_card(init_card(T0), Rating.Again, T0)
        assert card.reps == 0
        assert card.scheduled_days == 0

    def test_good_schedules_by_interval_function(self):
        card = review_card(init_card(T0), Rating.Good, T0)
        assert card.reps == 1
        assert card.scheduled_days == 2

    def test_accepts_int_ratings(self):
        card = review_card(init_card(T0), 4, T0)
        assert card.state == CardState.Review
        assert card.stability == pytest.approx(5.8)

    def test_original_card_is_not_modified(self):
        card = init_card(T0)
        review_card(card, Rating.Good, T0 + timedelta(hours=1))
        assert card.state == CardState.New
        assert card.reps == 0
        assert card.last_review == T0


class TestLearningReviews:
    def test_learning_good_graduates_to_review(self):
        learning = review_card(init_card(T0), Rating.Hard, T0)
        card = review_card(learning, Rating.Good, T0 + timedelta(minutes=10))
        assert card.state == CardState.Review
        assert card.stability == pytest.approx(W[2])
        # Difficulty is left unchanged outside New and Review reviews.
        assert card.difficulty == pytest.approx(learning.difficulty)
        assert card.reps == 2

    def test_learning_hard_stays_learning(self):
        learning = review_card(init_card(T0), Rating.Again, T0)
        card = review_card(learning, Rating.Hard, T0 + timedelta(minutes=10))
        assert card.state == CardState.Learning
        assert card.stability == pytest.approx(W[1])

    def test_relearning_again_stays_relearning(self):
        history = AdaptiveHistory(
            stability=1.2, difficulty=6.0, reps=0, lapses=1, state=CardState.Relearning,
            last_review=T0,
        )
        card = review_card(history.to_card(T0), Rating.Again, T0 + timedelta(hours=1))
        assert card.state == CardState.Relearning
        assert card.stability == pytest.approx(W[0])
        assert card.lapses == 1


class TestReviewState:
    @pytest.fixture
    def review_state_card(self):
        return review_card(init_card(T0), Rating.Good, T0)

    def test_same_day_review_adjusts_stability_only(self, review_state_card):
        card = review_card(review_state_card, Rating.Good, T0)
        assert card.elapsed_days == 0
        assert card.stability == pytest.approx(2.4 * math.exp(W[17] * (0 + W[18])))
        assert card.difficulty == pytest.approx(review_state_card.difficulty)
        assert card.state == CardState.Review

    def test_success_after_delay_grows_stability(self, review_state_card):
        review_time = T0 + timedelta(days=2)
        card = review_card(review_state_card, Rating.Good, review_time)

        r = math.pow(1 + (19 / 81) * 2 / 2.4, -0.5)
        difficulty = W[7] * W[4] + (1 - W[7]) * 4.93
        growth = (
            math.exp(W[8])
            * (11 - difficulty)
            * math.pow(2.4, -W[9])
            * (math.exp(W[10] * (1 - r)) - 1)
        )
        assert card.elapsed_days == pytest.approx(2.0)
        assert card.difficulty == pytest.approx(difficulty)
        assert card.stability == pytest.approx(2.4 * (1 + growth))
        assert card.state == CardState.Review
        assert card.reps == 2
        assert card.scheduled_days == next_interval(card.stability)

    def test_hard_grows_less_than_good_less_than_easy(self, review_state_card):
        review_time = T0 + timedelta(days=3)
        hard = review_card(review_state_card, Rating.Hard, review_time)
        good = review_card(review_state_card, Rating.Good, review_time)
        easy = review_card(review_state_card, Rating.Easy, review_time)
        assert hard.stability < good.stability < easy.stability

    def test_easy_lowers_difficulty(self, review_state_card):
        card = review_card(review_state_card, Rating.Easy, T0 + timedelta(days=2))
        next_d = 4.93 - W[6]
        assert card.difficulty == pytest.approx(W[7] * W[4] + (1 - W[7]) * next_d)

    def test_lapse_moves_to_relearning(self, review_state_card):
        card = review_card(review_state_card, Rating.Again, T0 + timedelta(days=2))
        r = math.pow(1 + (19 / 81) * 2 / 2.4, -0.5)
        difficulty = W[7] * W[4] + (1 - W[7]) * (4.93 + 2 * W[6])
        expected = (
            W[11]
            * math.pow(difficulty, -W[12])
            * (math.pow(2.4 + 1, W[13]) - 1)
            * math.exp(W[14] * (1 - r))
        )
        assert card.state == CardState.Relearning
        assert card.lapses == 1
        assert card.reps == 0
        assert card.scheduled_days == 0
        assert card.stability == pytest.approx(expected)
        assert card.stability < review_state_card.stability

    def test_difficulty_stays_within_bounds(self):
        card = review_card(init_card(T0), Rating.Again, T0)
        card = review_card(card, Rating.Good, T0 + timedelta(minutes=10))
        for day in range(1, 30):
            card = review_card(card, Rating.Again, T0 + timedelta(days=day))
            assert 1 <= card.difficulty <= 10

    def test_naive_previous_review_is_aligned(self):
        naive_card = review_card(init_card(datetime(2024, 1, 1, 10, 0)), Rating.Good,
                                 datetime(2024, 1, 1, 10, 0))
        card = review_card(naive_card, Rating.Good, T0 + timedelta(days=1))
        assert card.elapsed_days == pytest.approx(1.0)


class TestInvalidInput:
    def test_invalid_rating_input(self):
        with pytest.raises(ValueError, match=r"Invalid rating: 5\. Must be 1-4"):
            review_card(init_card(T0), 5, T0)

    def test_zero_rating_rejected(self):
        with pytest.raises(ValueError, match="Invalid rating: 0"):
            coerce_rating(0)

    def test_review_before_last_review_clamps_elapsed(self):
        card = review_card(init_card(T0), Rating.Good, T0)
        earlier = review_card(card, Rating.Good, T0 - timedelta(days=1))
        assert earlier.elapsed_days == 0


class TestAdaptiveHistory:
    def test_missing_fields_default(self):
        card = AdaptiveHistory(stability=3.0).to_card(T0)
        assert card.difficulty == 0
        assert card.reps == 0
        assert card.lapses == 0
        assert card.last_review == T0
        assert card.state == CardState.New

    @pytest.mark.parametrize(
        "reps, stability, state",
        [
            (0, 5.0, CardState.New),
            (2, 0.5, CardState.Learning),
            (2, 1.5, CardState.Review),
            (5, 0.5, CardState.Review),
        ],
    )
    def test_state_inferred_when_missing(self, reps, stability, state):
        history = AdaptiveHistory(stability=stability, reps=reps, difficulty=5.0)
        assert history.to_card(T0).state == state

    def test_round_trip_through_card(self):
        card = review_card(init_card(T0), Rating.Easy, T0)
        rebuilt = AdaptiveHistory.from_card(card).to_card(T0 + timedelta(days=1))
        assert rebuilt.stability == card.stability
        assert rebuilt.difficulty == card.difficulty
        assert rebuilt.state == card.state
        assert rebuilt.reps == card.reps
        assert rebuilt.last_review == card.last_review


def card_in_state(state: CardState):
    new = init_card(T0)
    if state == CardState.New:
        return new
    if state == CardState.Learning:
        return review_card(new, Rating.Again, T0)
    reviewed = review_card(new, Rating.Good, T0)
    if state == CardState.Review:
        return reviewed
    return review_card(reviewed, Rating.Again, T0 + timedelta(days=2))


class TestReplay:
    @pytest.mark.parametrize("state", list(CardState))
    @pytest.mark.parametrize("rating", list(Rating))
    def test_same_inputs_give_equal_cards(self, state, rating):
        card = card_in_state(state)
        assert card.state == state
        review_time = card.last_review + timedelta(days=3, hours=5)
        params = MemoryParameters(target_retention=0.85)

        first = review_card(card, rating, review_time, params)
        second = review_card(card, rating, review_time, params)
        assert first == second


class TestIntervalMonotonicity:
    def test_never_shrinks_as_stability_grows(self):
        stabilities = [0.1 * step for step in range(1, 200)] + [
            float(10 ** exponent) for exponent in range(2, 7)
        ]
        intervals = [next_interval(s) for s in stabilities]
        assert intervals == sorted(intervals)

    @pytest.mark.parametrize("stability", [0.5, 2.4, 10.0, 365.0])
    def test_never_grows_as_target_retention_rises(self, stability):
        retentions = [0.5 + 0.01 * step for step in range(0, 49)]
        intervals = [
            next_interval(stability, MemoryParameters(target_retention=r))
            for r in retentions
        ]
        assert intervals == sorted(intervals, reverse=True)

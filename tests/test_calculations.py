"""Tests for core calculation functions."""

from types import SimpleNamespace

import pytest
from catfeeder.core.calculations import (
    ACTIVITY_FACTORS,
    ActivityLevel,
    BodyCondition,
    TargetAchievement,
    WeightGoal,
    calculate_calories_for_goal,
    calculate_mer,
    calculate_rer,
    calculate_target_calories,
    calculate_target_weight,
    calculate_treat_allowance,
    classify_body_condition,
    get_activity_factor,
    get_calculation_details,
    get_goal_adjustment_factor,
    grams_to_kcal,
    infer_weight_goal,
    kcal_to_grams,
    maintenance_energy,
    round_half_up,
    target_achievement,
    weight_goal_label,
)
from catfeeder.core.exceptions import InvalidInputError
from catfeeder.core.units import WeightUnit


def make_profile(weight=4.5, target=None, activity=ActivityLevel.MEDIUM, neutered=True):
    return SimpleNamespace(
        current_weight_kg=weight,
        target_weight_kg=target,
        activity_level=activity,
        is_neutered=neutered,
    )


class TestRERCalculation:
    """Tests for Resting Energy Requirement calculation."""

    def test_rer_4kg_cat(self):
        """Test RER for a 4kg cat."""
        # RER = 70 * (4 ^ 0.75) = 70 * 2.828 = 197.99
        rer = calculate_rer(4)
        assert round(rer, 2) == 197.99

    def test_rer_matches_formula(self):
        """Test RER equals 70 * w^0.75 across the cat weight range."""
        for weight in (0.5, 1, 2.3, 3.8, 4.5, 6.2, 9.9, 15):
            assert calculate_rer(weight) == pytest.approx(70 * weight ** 0.75, abs=1e-6)

    def test_rer_invalid_weight(self):
        """Test RER with invalid weight raises error."""
        with pytest.raises(InvalidInputError):
            calculate_rer(0)
        with pytest.raises(ValueError):
            calculate_rer(-5)

    def test_rer_rejects_nan(self):
        """Test RER refuses NaN instead of propagating it."""
        with pytest.raises(InvalidInputError):
            calculate_rer(float("nan"))


class TestActivityFactors:
    """Tests for activity factor lookup."""

    @pytest.mark.parametrize("level,neutered,expected", [
        (ActivityLevel.LOW, True, 1.2),
        (ActivityLevel.LOW, False, 1.4),
        (ActivityLevel.MEDIUM, True, 1.4),
        (ActivityLevel.MEDIUM, False, 1.6),
        (ActivityLevel.HIGH, True, 1.6),
        (ActivityLevel.HIGH, False, 2.0),
    ])
    def test_factor_table(self, level, neutered, expected):
        """Test every activity/neuter pair maps to its table value."""
        assert get_activity_factor(level, neutered) == expected

    def test_accepts_plain_strings(self):
        """Test activity level given as a string."""
        assert get_activity_factor("high", False) == ACTIVITY_FACTORS[ActivityLevel.HIGH]["intact"]

    def test_unknown_level(self):
        """Test an unknown activity level is rejected."""
        with pytest.raises(InvalidInputError):
            get_activity_factor("couch", True)


class TestMERCalculation:
    """Tests for Maintenance Energy Requirement calculation."""

    def test_mer_scenario_4_5kg_neutered_medium(self):
        """Test MER for a neutered, medium-activity 4.5kg cat."""
        # RER = 70 * 4.5^0.75 = 70 * 3.0896 = 216.28
        # MER = 216.28 * 1.4 = 302.79
        rer = calculate_rer(4.5)
        mer = calculate_mer(4.5, ActivityLevel.MEDIUM, True)
        assert rer == pytest.approx(216.28, abs=0.01)
        assert mer == pytest.approx(rer * 1.4)
        assert mer == pytest.approx(302.79, abs=0.01)

    def test_maintenance_energy_uses_current_weight(self):
        """Test profile MER ignores the target weight."""
        profile = make_profile(weight=4.5, target=3.8)
        assert maintenance_energy(profile) == pytest.approx(calculate_mer(4.5, ActivityLevel.MEDIUM, True))


class TestWeightGoals:
    """Tests for goal adjustment and target calories."""

    def test_goal_factors(self):
        """Test lose/gain/maintain adjust MER by 0.8/1.2/1.0."""
        mer = 302.79
        assert calculate_target_calories(mer, WeightGoal.LOSE) == pytest.approx(0.8 * mer)
        assert calculate_target_calories(mer, WeightGoal.GAIN) == pytest.approx(1.2 * mer)
        assert calculate_target_calories(mer, WeightGoal.MAINTAIN) == mer

    def test_custom_factor(self):
        """Test a custom factor is applied as given."""
        assert calculate_target_calories(300, WeightGoal.CUSTOM, 0.9) == pytest.approx(270)

    def test_custom_factor_out_of_range(self):
        """Test custom factors outside [0.5, 1.5] are rejected."""
        with pytest.raises(InvalidInputError):
            get_goal_adjustment_factor(WeightGoal.CUSTOM, 0.4)
        with pytest.raises(InvalidInputError):
            get_goal_adjustment_factor(WeightGoal.CUSTOM, 1.6)

    def test_custom_factor_bounds_inclusive(self):
        """Test the range bounds themselves are accepted."""
        assert get_goal_adjustment_factor(WeightGoal.CUSTOM, 0.5) == 0.5
        assert get_goal_adjustment_factor(WeightGoal.CUSTOM, 1.5) == 1.5

    def test_custom_without_factor_is_neutral(self):
        """Test a custom goal with no factor falls back to 1.0."""
        assert get_goal_adjustment_factor(WeightGoal.CUSTOM) == 1.0

    def test_goal_aware_calories_use_target_weight(self):
        """Test losing weight sizes calories for the target weight."""
        # RER(3.8) = 70 * 3.8^0.75 = 190.52; MER = 190.52 * 1.4 = 266.73
        # target = 266.73 * 0.8 = 213.38
        profile = make_profile(weight=4.5, target=3.8)
        target = calculate_calories_for_goal(profile, WeightGoal.LOSE)
        assert target == pytest.approx(70 * 3.8 ** 0.75 * 1.4 * 0.8)
        assert target == pytest.approx(213.38, abs=0.01)

    def test_goal_aware_calories_without_target(self):
        """Test current weight is used when no target weight is set."""
        profile = make_profile(weight=4.5)
        target = calculate_calories_for_goal(profile, WeightGoal.LOSE)
        assert target == pytest.approx(calculate_mer(4.5, ActivityLevel.MEDIUM, True) * 0.8)

    def test_maintain_ignores_target_weight(self):
        """Test maintain uses the current weight even with a target set."""
        profile = make_profile(weight=4.5, target=3.8)
        target = calculate_calories_for_goal(profile, WeightGoal.MAINTAIN)
        assert target == pytest.approx(calculate_mer(4.5, ActivityLevel.MEDIUM, True))

    def test_infer_weight_goal(self):
        """Test goal inference from current vs target weight."""
        assert infer_weight_goal(5.0) == WeightGoal.MAINTAIN
        assert infer_weight_goal(5.0, 4.0) == WeightGoal.LOSE    # ratio 0.8
        assert infer_weight_goal(4.0, 5.0) == WeightGoal.GAIN    # ratio 1.25
        assert infer_weight_goal(4.0, 4.2) == WeightGoal.MAINTAIN  # ratio 1.05

    def test_target_weight_from_goal(self):
        """Test target weight applies the goal factor to body weight."""
        assert calculate_target_weight(5.0, WeightGoal.LOSE) == pytest.approx(4.0)
        assert calculate_target_weight(5.0, WeightGoal.GAIN) == pytest.approx(6.0)
        assert calculate_target_weight(5.0, WeightGoal.CUSTOM, 0.9) == pytest.approx(4.5)
        assert calculate_target_weight(5.0, WeightGoal.MAINTAIN) == 5.0


class TestTreatAllowance:
    """Tests for the daily treat budget."""

    def test_lose_is_five_percent(self):
        """Test 5% of calories while losing weight."""
        assert calculate_treat_allowance(1000, WeightGoal.LOSE) == 50

    def test_maintain_is_ten_percent(self):
        """Test 10% of calories otherwise."""
        assert calculate_treat_allowance(1000, WeightGoal.MAINTAIN) == 100
        assert calculate_treat_allowance(1000, WeightGoal.GAIN) == 100

    def test_rounded_to_whole_kcal(self):
        """Test the allowance is a whole number of kcal."""
        # 302.79 * 0.10 = 30.28 -> 30
        assert calculate_treat_allowance(302.79) == 30


class TestCalorieConversions:
    """Tests for kcal to grams conversions."""

    def test_kcal_to_grams(self):
        """Test converting kcal to grams."""
        # For a food with 200 kcal/100g, 100 kcal = 50g
        grams = kcal_to_grams(100, 200)
        assert grams == 50

    def test_grams_to_kcal(self):
        """Test converting grams to kcal."""
        # For a food with 200 kcal/100g, 50g = 100 kcal
        kcal = grams_to_kcal(50, 200)
        assert kcal == 100

    def test_scenario_daily_grams(self):
        """Test daily grams for the 4.5kg cat on a 375 kcal/100g food."""
        # 302.79 / 3.75 = 80.74g
        mer = calculate_mer(4.5, ActivityLevel.MEDIUM, True)
        assert kcal_to_grams(mer, 375) == pytest.approx(80.74, abs=0.01)

    def test_grams_calories_grams_is_stable(self):
        """Test grams -> kcal -> grams returns the original amount."""
        for grams, density in ((57, 375), (123.4, 90), (1, 412)):
            assert kcal_to_grams(grams_to_kcal(grams, density), density) == pytest.approx(grams, abs=1)

    def test_kcal_to_grams_invalid(self):
        """Test kcal_to_grams with invalid kcal_per_100g."""
        with pytest.raises(InvalidInputError):
            kcal_to_grams(100, 0)
        with pytest.raises(InvalidInputError):
            grams_to_kcal(100, -5)


class TestBodyCondition:
    """Tests for the weight-based body condition classifier."""

    @pytest.mark.parametrize("weight,expected", [
        (2.6, BodyCondition.VERY_UNDERWEIGHT),  # ratio 0.65
        (3.2, BodyCondition.UNDERWEIGHT),       # ratio 0.80
        (4.0, BodyCondition.IDEAL),             # ratio 1.00
        (4.4, BodyCondition.IDEAL),             # ratio 1.10
        (5.0, BodyCondition.OVERWEIGHT),        # ratio 1.25
        (5.6, BodyCondition.OBESE),             # ratio 1.40
    ])
    def test_categories(self, weight, expected):
        """Test each ratio band against the 4kg average cat."""
        assert classify_body_condition(weight) == expected

    def test_breed_is_ignored(self):
        """Test breed does not change the result."""
        assert classify_body_condition(5.0, "Maine Coon") == classify_body_condition(5.0)


class TestTargetAchievement:
    """Tests for the revised weight vs target check."""

    def test_reached(self):
        """Test a weight within 0.1kg of target is reached."""
        assert target_achievement(3.85, 3.8) == TargetAchievement.REACHED

    def test_close_in_kg(self):
        """Test a weight within 0.9kg is close."""
        assert target_achievement(4.5, 4.0) == TargetAchievement.CLOSE

    def test_pound_threshold(self):
        """Test owners working in pounds get the 2lb band."""
        # 0.905kg is past 0.9kg but inside 2lb (0.907kg)
        assert target_achievement(4.905, 4.0, WeightUnit.KG) == TargetAchievement.NONE
        assert target_achievement(4.905, 4.0, WeightUnit.LB) == TargetAchievement.CLOSE

    def test_far_from_target(self):
        """Test a weight far from target."""
        assert target_achievement(6.0, 4.0, WeightUnit.LB) == TargetAchievement.NONE


class TestCalculationDetails:
    """Tests for the plan breakdown shown to the owner."""

    def test_maintain_breakdown(self):
        """Test the breakdown for the 4.5kg cat on a 375 kcal/100g food."""
        details = get_calculation_details(make_profile(), 375)
        assert details.base_weight_kg == 4.5
        assert details.activity_factor == 1.4
        assert details.mer == pytest.approx(details.rer * 1.4)
        assert details.target_calories == pytest.approx(details.mer)
        assert details.calories_per_gram == 3.75
        assert details.daily_grams == pytest.approx(80.74, abs=0.01)
        assert details.weight_goal_label == "Maintain"
        assert details.weight_goal_adjustment_percent == 0
        assert details.treat_allowance_percentage == 10
        assert details.treat_allowance_calories == 30

    def test_lose_breakdown_matches_goal_calories(self):
        """Test the breakdown agrees with the calories a saved plan would use."""
        profile = make_profile(weight=4.5, target=3.8)
        details = get_calculation_details(profile, 375, WeightGoal.LOSE)
        assert details.base_weight_kg == 3.8
        assert details.target_calories == pytest.approx(calculate_calories_for_goal(profile, WeightGoal.LOSE))
        assert details.weight_goal_adjustment_percent == -20
        assert details.treat_allowance_percentage == 5

    def test_goal_labels(self):
        """Test display labels for each goal."""
        assert weight_goal_label(WeightGoal.LOSE) == "Lose Weight (−20%)"
        assert weight_goal_label(WeightGoal.GAIN) == "Gain Weight (+20%)"
        assert weight_goal_label(WeightGoal.CUSTOM, 1.15) == "Custom (+15%)"
        assert weight_goal_label(WeightGoal.CUSTOM, 0.9) == "Custom (-10%)"


class TestRounding:
    """Tests for half-up rounding."""

    def test_halves_round_up(self):
        """Test .5 always rounds up, unlike round()."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(-0.5) == 0
        assert round_half_up(2.49) == 2

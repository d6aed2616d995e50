"""Tests for plan reconciliation after profile edits."""

from dataclasses import asdict
from types import SimpleNamespace

import pytest
from catfeeder.core.calculations import ActivityLevel, TargetAchievement, WeightGoal
from catfeeder.core.exceptions import StaleComparisonError
from catfeeder.core.units import WeightUnit
from catfeeder.services.reconciliation import (
    ComparisonStore,
    PendingComparison,
    ProfileValues,
    ReconciliationState,
    WeightRevisionStore,
    achievement_message,
    apply_comparison,
    begin_reconciliation,
    confirm_weight_goal,
    detect_changes,
    keep_current_plan,
    needs_reconciliation,
    revise_current_weight,
)


def make_values(**overrides):
    values = dict(
        name="Mochi",
        gender="female",
        age_years=5,
        current_weight_kg=4.5,
        is_neutered=True,
        activity_level=ActivityLevel.MEDIUM,
        breed="Domestic Shorthair",
        target_weight_kg=3.8,
        weight_unit_preference=WeightUnit.KG,
        body_condition=None,
    )
    values.update(overrides)
    return ProfileValues(**values)


def make_plan(**overrides):
    plan = dict(
        total_calories_per_day=242,
        total_grams_per_day=65,
        am_grams=32,
        pm_grams=33,
        weight_goal=WeightGoal.LOSE,
        custom_factor=None,
        is_mixed=False,
        am_portions=[],
        pm_portions=[],
        meal_schedules=[],
        treat_allowance_calories=12,
    )
    plan.update(overrides)
    return SimpleNamespace(**plan)


def make_cat(values, plan):
    return SimpleNamespace(id=1, feeding_plan=plan, **asdict(values))


FOOD = SimpleNamespace(id=10, kcal_per_100g=375)


class TestChangeDetection:
    """Tests for deciding when a plan comparison is needed."""

    def test_breed_only_edit_does_not_trigger(self):
        """Test a non-nutritional edit leaves the plan alone."""
        stored = make_values()
        submitted = stored.merged({"breed": "Siamese", "name": "Mochi II"})
        assert detect_changes(stored, submitted) == []
        assert needs_reconciliation(stored, submitted, make_plan(), FOOD.id) is False

    def test_weight_edit_triggers(self):
        """Test a weight change with a plan and food starts reconciliation."""
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3})
        assert detect_changes(stored, submitted) == ["current_weight_kg"]
        assert needs_reconciliation(stored, submitted, make_plan(), FOOD.id) is True

    def test_each_nutritional_field(self):
        """Test activity, neuter status and age each count as changes."""
        stored = make_values()
        assert detect_changes(stored, stored.merged({"activity_level": ActivityLevel.HIGH})) == ["activity_level"]
        assert detect_changes(stored, stored.merged({"is_neutered": False})) == ["is_neutered"]
        assert detect_changes(stored, stored.merged({"age_years": 6})) == ["age_years"]

    def test_no_plan_or_no_food(self):
        """Test nothing is compared without a plan or a selected food."""
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3})
        assert needs_reconciliation(stored, submitted, None, FOOD.id) is False
        assert needs_reconciliation(stored, submitted, make_plan(), None) is False


class TestComparison:
    """Tests for building the before/after comparison."""

    def test_goal_aware_new_calories(self):
        """Test new calories aim at the target weight while losing."""
        # RER(3.8) = 190.52; MER = 266.73; lose: 266.73 * 0.8 = 213.38
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3})
        pending = begin_reconciliation(1, stored, submitted, make_plan(), FOOD)

        assert pending.old_calories == 242
        assert pending.new_calories == pytest.approx(213.38, abs=0.01)
        # 242 / 3.75 = 64.53g; 213.38 / 3.75 = 56.90g
        assert pending.old_grams == pytest.approx(64.53, abs=0.01)
        assert pending.new_grams == pytest.approx(56.90, abs=0.01)
        assert pending.weight_goal == WeightGoal.LOSE
        assert pending.state == ReconciliationState.COMPARISON_PRESENTED
        assert pending.payload()["cat_name"] == "Mochi"

    def test_old_calories_taken_from_plan(self):
        """Test the stored plan total is used verbatim, not recomputed."""
        stored = make_values()
        submitted = stored.merged({"activity_level": ActivityLevel.HIGH})
        pending = begin_reconciliation(1, stored, submitted, make_plan(total_calories_per_day=999), FOOD)
        assert pending.old_calories == 999

    def test_goal_edited_with_profile(self):
        """Test a goal chosen during the edit is used for the new calories."""
        stored = make_values(target_weight_kg=None)
        submitted = stored.merged({"current_weight_kg": 4.0})
        pending = begin_reconciliation(1, stored, submitted, make_plan(), FOOD, weight_goal=WeightGoal.MAINTAIN)
        # RER(4.0) = 197.99; MER = 197.99 * 1.4 = 277.19
        assert pending.new_calories == pytest.approx(277.19, abs=0.01)
        assert pending.goal_changed is True


class TestApplyAndKeep:
    """Tests for resolving a comparison."""

    def test_apply_commits_profile_and_plan(self):
        """Test applying writes the edit and replaces the plan totals."""
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3})
        plan = make_plan()
        cat = make_cat(stored, plan)
        pending = begin_reconciliation(1, stored, submitted, plan, FOOD)

        apply_comparison(pending, cat)

        # 56.90g -> 57g; am = round(28.5) = 29; pm = 28
        assert cat.current_weight_kg == 4.3
        assert plan.total_calories_per_day == 213
        assert plan.total_grams_per_day == 57
        assert (plan.am_grams, plan.pm_grams) == (29, 28)
        # 5% of 213.38 = 10.67 -> 11
        assert plan.treat_allowance_calories == 11
        assert pending.state == ReconciliationState.APPLIED

    def test_apply_resets_am_pm_to_even_split(self):
        """Test a lopsided AM/PM split is not carried over."""
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3})
        plan = make_plan(am_grams=50, pm_grams=15)
        pending = begin_reconciliation(1, stored, submitted, plan, FOOD)

        apply_comparison(pending, make_cat(stored, plan))
        assert abs(plan.am_grams - plan.pm_grams) <= 1
        assert plan.am_grams + plan.pm_grams == plan.total_grams_per_day

    def test_apply_rescales_mixed_portions(self):
        """Test mixed plans keep each food's share at the new calories."""
        am = [{"food_id": 1, "grams": 30, "calories": 105}, {"food_id": 2, "grams": 50, "calories": 45}]
        pm = [{"food_id": 1, "grams": 30, "calories": 105}, {"food_id": 2, "grams": 50, "calories": 45}]
        plan = make_plan(
            is_mixed=True, am_portions=am, pm_portions=pm,
            total_calories_per_day=300, total_grams_per_day=160, am_grams=80, pm_grams=80,
            weight_goal=WeightGoal.MAINTAIN,
        )
        stored = make_values()
        pending = PendingComparison(
            cat_id=1, cat_name="Mochi", submitted=stored.merged({"current_weight_kg": 4.8}),
            food_id=1, weight_goal=WeightGoal.MAINTAIN, custom_factor=None, goal_changed=False,
            old_calories=300, new_calories=330, old_grams=80, new_grams=88,
        )

        apply_comparison(pending, make_cat(stored, plan))

        # scale 1.1: dry 60g -> 66g (33 + 33); wet 100g -> 110g (55 + 55)
        assert [(p["food_id"], p["grams"]) for p in plan.am_portions] == [(1, 33), (2, 55)]
        assert plan.total_grams_per_day == 176
        assert plan.total_calories_per_day == 330

    def test_apply_refuses_changed_plan(self):
        """Test a comparison made against an older plan writes nothing."""
        stored = make_values()
        plan = make_plan(id=7)
        cat = make_cat(stored, plan)
        pending = begin_reconciliation(1, stored, stored.merged({"current_weight_kg": 5.0}), plan, FOOD)
        assert pending.plan_id == 7

        # Plan re-saved for a new goal before the owner answered
        plan.total_calories_per_day = 200
        with pytest.raises(StaleComparisonError):
            apply_comparison(pending, cat)
        assert cat.current_weight_kg == 4.5
        assert plan.total_calories_per_day == 200

    def test_apply_refuses_replaced_plan(self):
        """Test a comparison is tied to the plan row it was made for."""
        stored = make_values()
        pending = begin_reconciliation(1, stored, stored.merged({"age_years": 6}), make_plan(id=7), FOOD)
        with pytest.raises(StaleComparisonError):
            apply_comparison(pending, make_cat(stored, make_plan(id=8)))
        with pytest.raises(StaleComparisonError):
            apply_comparison(pending, make_cat(stored, None))

    def test_keep_writes_only_non_nutritional_fields(self):
        """Test keeping the plan saves the rename but not the new weight."""
        stored = make_values()
        submitted = stored.merged({"current_weight_kg": 4.3, "name": "Mochi II"})
        plan = make_plan()
        cat = make_cat(stored, plan)
        pending = begin_reconciliation(1, stored, submitted, plan, FOOD)

        keep_current_plan(pending, cat)

        assert cat.name == "Mochi II"
        assert cat.current_weight_kg == 4.5
        assert plan.total_calories_per_day == 242
        assert pending.state == ReconciliationState.KEPT


class TestComparisonStore:
    """Tests for holding comparisons until they are resolved."""

    def test_pop_returns_pending(self):
        """Test a stored comparison can be resolved once."""
        store = ComparisonStore()
        stored = make_values()
        pending = begin_reconciliation(1, stored, stored.merged({"current_weight_kg": 4.3}), make_plan(), FOOD)
        store.put(pending)
        assert store.get(1) is pending
        assert store.pop(1) is pending
        with pytest.raises(StaleComparisonError):
            store.pop(1)

    def test_discarded_comparison_is_stale(self):
        """Test resolving after discarding fails without side effects."""
        store = ComparisonStore()
        stored = make_values()
        store.put(begin_reconciliation(1, stored, stored.merged({"age_years": 6}), make_plan(), FOOD))
        assert store.discard(1) is True
        assert store.discard(1) is False
        with pytest.raises(StaleComparisonError):
            store.pop(1)


class TestWeightRevision:
    """Tests for revising the current weight against the target."""

    def test_reached_within_tolerance(self):
        """Test a weight within 0.1kg of target counts as reached."""
        revision = revise_current_weight(1, 3.85, 3.8)
        assert revision.target_achieved == TargetAchievement.REACHED
        assert "reached" in achievement_message("Mochi", revision.target_achieved)

    def test_close_and_none(self):
        """Test the close band and weights outside it."""
        assert revise_current_weight(1, 4.5, 3.8).target_achieved == TargetAchievement.CLOSE
        assert revise_current_weight(1, 5.5, 3.8).target_achieved == TargetAchievement.NONE
        assert achievement_message("Mochi", TargetAchievement.NONE) is None

    def test_changed_goal_recomputes_target(self):
        """Test a new goal sets the target relative to the revised weight."""
        revision = revise_current_weight(1, 4.0, 3.8)
        # lose: 4.0 * 0.8 = 3.2
        assert confirm_weight_goal(revision, WeightGoal.LOSE) == pytest.approx(3.2)
        assert confirm_weight_goal(revision, WeightGoal.CUSTOM, 1.1) == pytest.approx(4.4)

    def test_store_raises_when_nothing_pending(self):
        """Test confirming without a revision is stale."""
        store = WeightRevisionStore()
        with pytest.raises(StaleComparisonError):
            store.pop(1)

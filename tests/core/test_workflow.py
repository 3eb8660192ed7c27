"""
Tests for erflow.core.workflow.WorkflowManager.

These tests validate:
1. Plain runs, history and result hand-off
2. Optimizer selection (none / holistic / step-by-step)
3. Determinism of repeated runs with the same seed
4. Empty final working sets and error propagation
5. Background runs: in-progress rejection and cancellation
"""

import logging
import threading

import pytest

from erflow.clients.settings import Settings
from erflow.core.errors import (
    ConfigurationError,
    WorkflowCancelledError,
    WorkflowInProgressError,
)
from erflow.core.models import StageConfig, WorkflowSpec
from erflow.core.registry import STAGE_METHODS
from erflow.core.workflow import WorkflowManager
from tests.fixtures.restaurants import catalog_loaders, restaurant_loaders
from tests.fixtures.stages import AlwaysEmptyCleaner


@pytest.fixture
def settings() -> Settings:
    return Settings(n_trials=20, random_seed=42)


@pytest.fixture
def manager(settings):
    with WorkflowManager(settings=settings) as manager:
        yield manager


def restaurant_spec(**overrides) -> WorkflowSpec:
    load_profiles, load_ground_truth = restaurant_loaders()
    values = dict(
        block_building=[StageConfig(method="token_blocking")],
        block_cleaning=[StageConfig(method="block_purging")],
        comparison_cleaning=StageConfig(method="comparison_propagation"),
        entity_matching=StageConfig(method="profile_matcher"),
        entity_clustering=StageConfig(method="connected_components"),
        load_profiles=load_profiles,
        load_ground_truth=load_ground_truth,
    )
    values.update(overrides)
    return WorkflowSpec(**values)


def automatic_spec(optimizer: str, **overrides) -> WorkflowSpec:
    values = dict(
        block_cleaning=[StageConfig(method="block_purging", mode="automatic")],
        entity_matching=StageConfig(method="profile_matcher", mode="automatic"),
        entity_clustering=StageConfig(method="connected_components", mode="automatic"),
        optimizer=optimizer,
    )
    values.update(overrides)
    return restaurant_spec(**values)


class TestPlainRun:
    """Test runs without configuration search."""

    def test_run_returns_result_and_records_history(self, manager):
        result = manager.run(restaurant_spec())

        assert 0.0 <= result.metrics.f_measure <= 1.0
        assert not result.empty_working_set
        assert result.searches == []
        assert len(result.trace) == 4
        assert result.summary.run_index == 0
        assert result.summary.input_instance_count == 10
        assert result.summary.cluster_count == len(result.clusters)
        assert result.summary.f_measure == result.metrics.f_measure
        assert manager.history == [result.summary]
        assert not manager.is_running

    def test_history_grows_per_run(self, manager):
        manager.run(restaurant_spec())
        manager.run(restaurant_spec())

        assert [summary.run_index for summary in manager.history] == [0, 1]

    def test_profile_lookup_by_global_index(self, manager):
        result = manager.run(restaurant_spec())

        assert result.profile(1).id == "r1_dup"
        with pytest.raises(IndexError):
            result.profile(10)

    def test_clean_clean_profile_lookup(self, manager):
        load_profiles, load_ground_truth = catalog_loaders()
        spec = restaurant_spec(
            resolution_mode="clean_clean",
            block_cleaning=[],
            entity_clustering=StageConfig(method="unique_mapping"),
            load_profiles=load_profiles,
            load_ground_truth=load_ground_truth,
        )
        result = manager.run(spec)

        assert result.profile(3).id == "b1"
        assert result.summary.input_instance_count == 3

    def test_automatic_stages_ignored_without_optimizer(self, manager):
        result = manager.run(automatic_spec("none"))

        assert result.searches == []
        assert len(result.trace) == 4

    def test_optimizer_without_automatic_stages_runs_plain(self, manager):
        result = manager.run(restaurant_spec(optimizer="holistic_random"))

        assert result.searches == []


class TestOptimizers:
    """Test search strategy selection."""

    def test_holistic_random(self, manager):
        result = manager.run(automatic_spec("holistic_random"))

        assert len(result.searches) == 1
        outcome = result.searches[0]
        assert outcome.stage == "holistic"
        assert len(outcome.trials) + outcome.skipped == 20

    def test_spec_n_trials_overrides_settings(self, manager):
        result = manager.run(automatic_spec("holistic_random", n_trials=5))

        outcome = result.searches[0]
        assert len(outcome.trials) + outcome.skipped == 5

    def test_stepwise_random(self, manager):
        result = manager.run(automatic_spec("stepwise_random", n_trials=5))

        assert [outcome.stage for outcome in result.searches] == [
            "block_cleaning[0]",
            "entity_matching+entity_clustering",
        ]
        assert len(result.searches[1].trials) == 5

    def test_stepwise_grid(self, manager):
        result = manager.run(automatic_spec("stepwise_grid"))

        resolution = result.searches[-1]
        assert len(resolution.trials) == 6 * 19
        assert not result.empty_working_set


class TestDeterminism:
    """Repeated runs with the same seed produce the same result."""

    @pytest.mark.parametrize("optimizer", ["holistic_random", "stepwise_random"])
    def test_same_seed_same_result(self, manager, optimizer):
        first = manager.run(automatic_spec(optimizer, random_seed=7))
        second = manager.run(automatic_spec(optimizer, random_seed=7))

        assert first.searches == second.searches
        assert first.clusters == second.clusters
        assert first.metrics.f_measure == second.metrics.f_measure
        assert [e.configuration for e in first.trace.entries] == [
            e.configuration for e in second.trace.entries
        ]


class TestEmptyWorkingSet:
    """A cleaner that always empties the working set."""

    @pytest.fixture(autouse=True)
    def register_empty_cleaner(self, monkeypatch):
        methods = dict(STAGE_METHODS["block_cleaning"])
        methods["always_empty"] = AlwaysEmptyCleaner
        monkeypatch.setitem(STAGE_METHODS, "block_cleaning", methods)

    def test_holistic_hundred_trials_yield_zero_f_measure(self, manager):
        spec = automatic_spec(
            "holistic_random",
            block_cleaning=[StageConfig(method="always_empty", mode="automatic")],
            n_trials=100,
        )
        result = manager.run(spec)

        assert result.empty_working_set
        assert result.metrics.f_measure == 0.0
        assert result.clusters == []
        assert result.searches[0].best_iteration == 0
        assert result.searches[0].skipped == 100
        assert manager.history[-1].f_measure == 0.0

    def test_plain_run_with_empty_cleaner(self, manager):
        spec = restaurant_spec(block_cleaning=[StageConfig(method="always_empty")])
        result = manager.run(spec)

        assert result.empty_working_set
        assert len(result.trace) == 0


class TestErrors:
    """Test error propagation and the in-progress flag."""

    def test_missing_matching_raises_configuration_error(self, manager):
        with pytest.raises(ConfigurationError, match="entity matching"):
            manager.run(restaurant_spec(entity_matching=None))

        assert manager.history == []
        assert not manager.is_running

    def test_unknown_method(self, manager):
        spec = restaurant_spec(entity_clustering=StageConfig(method="kmeans"))
        with pytest.raises(ConfigurationError, match="kmeans"):
            manager.run(spec)

    def test_clean_clean_method_in_dirty_workflow(self, manager):
        spec = automatic_spec(
            "holistic_random", entity_clustering=StageConfig(method="unique_mapping")
        )
        with pytest.raises(ConfigurationError, match="not available for dirty ER"):
            manager.run(spec)

        assert manager.history == []

    def test_loader_errors_propagate_and_are_logged(self, manager, caplog):
        def broken_loader(spec):
            raise OSError("disk unavailable")

        spec = restaurant_spec(load_profiles=broken_loader)
        with caplog.at_level(logging.ERROR), pytest.raises(OSError, match="disk unavailable"):
            manager.run(spec)

        assert "Workflow run failed" in caplog.text
        assert not manager.is_running

        # The manager accepts new runs after a failure
        assert manager.run(restaurant_spec()).summary.run_index == 0


class TestBackgroundRuns:
    """Test submit(), in-progress rejection and cancellation."""

    @staticmethod
    def blocking_spec(started: threading.Event, release: threading.Event) -> WorkflowSpec:
        load_profiles, load_ground_truth = restaurant_loaders()

        def slow_loader(spec):
            started.set()
            release.wait(timeout=10)
            return load_profiles(spec)

        return restaurant_spec(load_profiles=slow_loader)

    def test_submit_returns_future(self, manager):
        future = manager.submit(restaurant_spec())

        result = future.result(timeout=30)
        assert result.summary.run_index == 0
        assert not manager.is_running

    def test_second_submission_rejected_while_running(self, manager):
        started, release = threading.Event(), threading.Event()
        future = manager.submit(self.blocking_spec(started, release))
        started.wait(timeout=10)

        with pytest.raises(WorkflowInProgressError):
            manager.submit(restaurant_spec())
        with pytest.raises(WorkflowInProgressError):
            manager.run(restaurant_spec())

        release.set()
        future.result(timeout=30)
        assert not manager.is_running

    def test_cancel_running_workflow(self, manager):
        started, release = threading.Event(), threading.Event()
        future = manager.submit(self.blocking_spec(started, release))
        started.wait(timeout=10)

        manager.cancel()
        release.set()

        with pytest.raises(WorkflowCancelledError):
            future.result(timeout=30)
        assert not manager.is_running
        assert manager.history == []

    def test_cancel_flag_cleared_for_next_run(self, manager):
        started, release = threading.Event(), threading.Event()
        future = manager.submit(self.blocking_spec(started, release))
        started.wait(timeout=10)
        manager.cancel()
        release.set()
        with pytest.raises(WorkflowCancelledError):
            future.result(timeout=30)

        assert manager.run(restaurant_spec()).summary.run_index == 0

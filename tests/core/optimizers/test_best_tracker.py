"""Tests for erflow.core.optimizers.base.BestTracker."""

from unittest.mock import MagicMock

from erflow.core.optimizers import BestTracker


class TestBestTracker:
    """Test strict-improvement bookkeeping."""

    def test_first_trial_becomes_best(self):
        tracker = BestTracker("holistic")
        assert tracker.record(4, 0.0)
        assert tracker.best_iteration == 4

    def test_ties_keep_earliest_trial(self):
        tracker = BestTracker("holistic")
        tracker.record(0, 0.5)
        assert not tracker.record(1, 0.5)
        assert tracker.record(2, 0.6)
        assert not tracker.record(3, 0.6)

        outcome = tracker.outcome()
        assert outcome.best_iteration == 2
        assert outcome.best_objective == 0.6
        assert [trial.iteration_index for trial in outcome.trials] == [0, 1, 2, 3]

    def test_skipped_trials_never_win(self):
        tracker = BestTracker("block_cleaning[0]")
        tracker.skip(0)
        tracker.record(1, 0.2)
        tracker.skip(2)

        outcome = tracker.outcome()
        assert outcome.best_iteration == 1
        assert outcome.skipped == 2

    def test_all_skipped_outcome(self):
        tracker = BestTracker("holistic")
        for iteration in range(5):
            tracker.skip(iteration)

        outcome = tracker.outcome()
        assert tracker.best_iteration is None
        assert outcome.best_iteration == 0
        assert outcome.best_objective == 0.0
        assert outcome.skipped == 5
        assert not outcome.found

    def test_callbacks_receive_every_recorded_trial(self):
        callback = MagicMock()
        tracker = BestTracker("entity_matching", callbacks=[callback])
        tracker.record(0, 0.3, {"entity_matching": {"algorithm": "ratio"}})
        tracker.skip(1)

        callback.assert_called_once()
        trial = callback.call_args.args[0]
        assert trial.stage == "entity_matching"
        assert trial.parameters == {"entity_matching": {"algorithm": "ratio"}}

"""Tests for erflow.clients.tracking module."""

import os
from unittest.mock import MagicMock, patch

import pytest

from erflow.clients.settings import Settings
from erflow.clients.tracking import WandbTrialLogger, create_wandb_tracker
from erflow.core.reports import TrialResult, WorkflowSummary


class TestCreateWandbTracker:
    """Tests for create_wandb_tracker factory function."""

    def test_create_wandb_tracker_with_settings(self):
        """Test create_wandb_tracker with explicit settings."""
        settings = Settings(
            wandb_api_key="wb-test", wandb_project="test-project", wandb_entity="test-team"
        )

        with patch("erflow.clients.tracking.wandb") as mock_wandb:
            mock_run = MagicMock()
            mock_wandb.init.return_value = mock_run

            run = create_wandb_tracker(settings, job_type="test-job")

            mock_wandb.init.assert_called_once_with(
                project="test-project", entity="test-team", job_type="test-job"
            )
            assert run is mock_run

    def test_create_wandb_tracker_without_settings_loads_from_env(self):
        """Test create_wandb_tracker loads settings from environment."""
        with (
            patch.dict(
                os.environ, {"WANDB_API_KEY": "wb-env", "WANDB_PROJECT": "env-project"}, clear=True
            ),
            patch("pydantic_settings.sources.DotEnvSettingsSource.__call__", return_value={}),
        ):
            with patch("erflow.clients.tracking.wandb") as mock_wandb:
                create_wandb_tracker()

                mock_wandb.init.assert_called_once_with(
                    project="env-project", entity=None, job_type="er_workflow"
                )

    def test_create_wandb_tracker_raises_error_if_api_key_missing(self):
        """Test create_wandb_tracker raises ValueError without an API key."""
        settings = Settings(wandb_api_key=None)

        with patch("erflow.clients.tracking.wandb") as mock_wandb:
            with pytest.raises(ValueError, match="WANDB_API_KEY environment variable is required"):
                create_wandb_tracker(settings)
            mock_wandb.init.assert_not_called()


class TestWandbTrialLogger:
    """Tests for the per-trial wandb callback."""

    def test_logs_flattened_parameters(self):
        run = MagicMock()
        logger = WandbTrialLogger(run)

        logger(
            TrialResult(
                iteration_index=3,
                objective_value=0.75,
                stage="holistic",
                parameters={"entity_clustering": {"similarity_threshold": 0.4}},
            )
        )

        run.log.assert_called_once_with(
            {
                "search": "holistic",
                "iteration": 3,
                "objective": 0.75,
                "entity_clustering/similarity_threshold": 0.4,
            },
            step=0,
        )

    def test_steps_increase_across_searches(self):
        run = MagicMock()
        logger = WandbTrialLogger(run)

        logger(TrialResult(iteration_index=0, objective_value=0.1, stage="block_cleaning[0]"))
        logger(TrialResult(iteration_index=0, objective_value=0.2, stage="entity_matching"))

        steps = [call.kwargs["step"] for call in run.log.call_args_list]
        assert steps == [0, 1]

    def test_log_summary(self):
        run = MagicMock()
        run.summary = {}
        summary = WorkflowSummary(
            run_index=0,
            recall=1.0,
            precision=0.5,
            f_measure=2 / 3,
            total_elapsed_seconds=1.5,
            input_instance_count=10,
            cluster_count=7,
        )

        WandbTrialLogger(run).log_summary(summary)

        assert run.summary["f_measure"] == pytest.approx(2 / 3)
        assert run.summary["cluster_count"] == 7

    def test_logger_as_workflow_callback(self):
        """WandbTrialLogger plugs into WorkflowManager trial callbacks."""
        from erflow.core.models import StageConfig, WorkflowSpec
        from erflow.core.workflow import WorkflowManager
        from tests.fixtures.restaurants import restaurant_loaders

        load_profiles, load_ground_truth = restaurant_loaders()
        spec = WorkflowSpec(
            block_building=[StageConfig(method="token_blocking")],
            entity_matching=StageConfig(method="profile_matcher"),
            entity_clustering=StageConfig(method="connected_components", mode="automatic"),
            optimizer="holistic_random",
            n_trials=4,
            load_profiles=load_profiles,
            load_ground_truth=load_ground_truth,
        )
        run = MagicMock()

        with WorkflowManager(
            settings=Settings(), trial_callbacks=[WandbTrialLogger(run)]
        ) as manager:
            manager.run(spec)

        assert run.log.call_count == 4

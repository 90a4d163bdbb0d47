"""Integration tests for pipeline orchestration.

Runs both stages over JSON trial collections through run_pipeline and
run_file, with stages enabled and disabled through Settings.
"""

from pathlib import Path

import numpy as np
import pytest

from trialkin.config import Settings, load_settings
from trialkin.exceptions import ConfigurationError
from trialkin.io import load_trials, parse_trials
from trialkin.pipeline import run_file, run_pipeline

pytestmark = pytest.mark.integration


def settings_with(**video_latency) -> Settings:
    return Settings(video_latency=video_latency)


class TestRunPipeline:
    def test_Should_RunBothStages_When_Enabled(self, trial_records):
        trials = parse_trials(trial_records)

        result = run_pipeline(trials, settings_with(display_latency_s=0.01))

        assert result["stages"] == ["video_latency", "force_plate"]
        assert result["summary"] == {"n_trials": 2, "n_trials_with_latency_bounds": 1, "n_plates_with_cop": 4}

    def test_Should_PreserveOrderAndLengths_When_Processed(self, trial_records):
        trials = parse_trials(trial_records)

        out = run_pipeline(trials, settings_with(display_latency_s=0.01))["trials"]

        assert len(out) == len(trials)
        latency = out[0].video_latency
        assert len(latency.display_min_times) == len(trials[0].video_latency.send_times)
        for trial_in, trial_out in zip(trials, out):
            for idx, plate in trial_out.force_plates.items():
                assert len(plate.kinematics.cop_x) == trial_in.force_plates[idx].channels.n_samples

    def test_Should_ShiftDuplicatedPlateAndPinUnloadedSamples_When_ExamProcessed(self, trial_records):
        """Both plates share center (0.1, 0.2); the last two samples are unloaded."""
        out = run_pipeline(parse_trials(trial_records), settings_with(display_latency_s=0.01))["trials"]

        plate_1 = out[0].force_plates[1].kinematics
        plate_2 = out[0].force_plates[2].kinematics
        assert plate_1.cop_x[-1] == 0.1
        assert plate_2.cop_x[-1] == pytest.approx(-0.37)
        assert plate_2.cop_y[-2] == -0.2

    def test_Should_SkipVideoStage_When_Disabled(self, trial_records):
        result = run_pipeline(parse_trials(trial_records), settings_with(enabled=False))

        assert result["stages"] == ["force_plate"]
        assert result["summary"]["n_trials_with_latency_bounds"] == 0

    def test_Should_RaiseConfigurationError_When_LatencyMissing(self, trial_records):
        with pytest.raises(ConfigurationError):
            run_pipeline(parse_trials(trial_records), Settings())

    def test_Should_ReturnTrialsUnchanged_When_AllStagesDisabled(self, trial_records):
        trials = parse_trials(trial_records)
        settings = Settings(video_latency={"enabled": False}, force_plate={"enabled": False})

        result = run_pipeline(trials, settings)

        assert result["stages"] == []
        assert all(a is b for a, b in zip(result["trials"], trials))


class TestRunFile:
    def test_Should_WriteAugmentedTrials_When_FileProcessed(self, tmp_path: Path, trials_json: Path, settings_toml: Path):
        output = tmp_path / "derived.json"

        result = run_file(trials_json, output, load_settings(settings_toml))

        assert result["output_path"] == output
        reloaded = load_trials(output)
        assert reloaded[0].video_latency.has_bounds
        assert reloaded[1].force_plates[2].kinematics is not None

    def test_Should_MatchInMemoryRun_When_Reloaded(self, tmp_path: Path, trials_json: Path, settings_toml: Path):
        settings = load_settings(settings_toml)
        output = tmp_path / "derived.json"

        run_file(trials_json, output, settings)
        in_memory = run_pipeline(load_trials(trials_json), settings)["trials"]
        reloaded = load_trials(output)

        np.testing.assert_allclose(reloaded[0].video_latency.display_max_times, in_memory[0].video_latency.display_max_times)
        np.testing.assert_allclose(reloaded[0].force_plates[1].kinematics.cop_velocity_y, in_memory[0].force_plates[1].kinematics.cop_velocity_y)

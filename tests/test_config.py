"""Tests for eval_harness.config and the command line entry point."""

import json
import logging
from pathlib import Path

import pytest

from eval_harness.cli import main
from eval_harness.config import Settings, get_config, parse_args
from eval_harness.export import save_result
from eval_harness.models import RunOptions


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.parallel is True
        assert settings.timeout_ms == 5000
        assert settings.max_workers == 32
        assert settings.confidence_level == 0.95

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("EVAL_TIMEOUT_MS", "250")
        monkeypatch.setenv("EVAL_PARALLEL", "false")
        settings = Settings()
        assert settings.timeout_ms == 250
        assert settings.parallel is False

    def test_log_level_uppercased(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_run_options_from_settings(self):
        options = RunOptions.from_settings(Settings(timeout_ms=100, max_workers=4), parallel=False)
        assert options.timeout == 100
        assert options.max_workers == 4
        assert options.parallel is False


class TestArgs:

    def test_compare_args(self):
        args = parse_args(["compare", "a", "b", "--metric", "f1", "--bootstrap-seed", "7"])
        assert args.command == "compare"
        assert args.names == ["a", "b"]
        assert args.metric == "f1"
        assert args.bootstrap_seed == 7

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_cli_values_override(self):
        config = get_config(parse_args([
            "--log-level", "warning", "compare", "a",
            "--runs-dir", "/tmp/runs", "--confidence-level", "0.9",
        ]))
        assert config.runs_dir == Path("/tmp/runs")
        assert config.confidence_level == 0.9
        assert config.log_level == "WARNING"
        assert config.bootstrap_iterations == 1000


    def test_run_args(self):
        args = parse_args([
            "run", "r1", "--dataset", "qa", "--predictions", "preds.jsonl",
            "--metrics", "exact_match", "f1", "--datasets-dir", "/data", "--sequential",
        ])
        assert args.command == "run"
        assert args.name == "r1"
        assert args.predictions == Path("preds.jsonl")
        assert args.metrics == ["exact_match", "f1"]

        config = get_config(args)
        assert config.datasets_dir == Path("/data")
        assert config.parallel is False

    def test_run_parallel_by_default(self):
        config = get_config(parse_args([
            "run", "r1", "--dataset", "qa", "--predictions", "p.jsonl", "--metrics", "f1",
        ]))
        assert config.parallel is True


class TestMain:

    def test_compare_command(self, result_v1, result_v2, tmp_path, caplog):
        save_result(result_v1, tmp_path)
        save_result(result_v2, tmp_path)
        caplog.set_level(logging.INFO)

        main(["compare", "model_v1", "model_v2", "--runs-dir", str(tmp_path),
              "--bootstrap-seed", "1"])

        assert "EVALUATION COMPARISON" in caplog.text
        assert "ANOVA" in caplog.text
        assert "bootstrap" in caplog.text

    def test_missing_result(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            main(["compare", "ghost", "--runs-dir", str(tmp_path)])

    def test_run_command(self, tmp_path, caplog):
        datasets_dir = tmp_path / "datasets"
        datasets_dir.mkdir()
        (datasets_dir / "qa.jsonl").write_text(
            "\n".join(json.dumps({"target": t}) for t in ["Paris", "Berlin"]) + "\n",
            encoding="utf-8")
        predictions = tmp_path / "predictions.jsonl"
        predictions.write_text(
            "\n".join(json.dumps({"prediction": p}) for p in ["paris", "Rome"]) + "\n",
            encoding="utf-8")
        runs_dir = tmp_path / "runs"
        caplog.set_level(logging.INFO)

        main(["run", "r1", "--dataset", "qa", "--predictions", str(predictions),
              "--metrics", "exact_match", "--datasets-dir", str(datasets_dir),
              "--runs-dir", str(runs_dir), "--sequential"])

        assert (runs_dir / "r1" / "result.json").exists()
        assert "Evaluation: r1" in caplog.text
        assert "exact_match: 0.5000" in caplog.text

    def test_run_missing_dataset(self, tmp_path):
        predictions = tmp_path / "predictions.jsonl"
        predictions.write_text('{"prediction": "a"}\n', encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            main(["run", "r1", "--dataset", "absent", "--predictions", str(predictions),
                  "--metrics", "f1", "--datasets-dir", str(tmp_path), "--runs-dir", str(tmp_path)])

"""
Configuration management for evaluation defaults and command-line arguments.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EVAL_", env_file=".env", extra="ignore")

    parallel: bool = Field(True, description="Evaluate samples concurrently by default")
    timeout_ms: int = Field(5000, gt=0, description="Deadline for a whole batch, in ms")
    max_workers: int = Field(32, ge=1, description="Upper bound on the evaluation worker pool")
    runs_dir: Path = Field(Path("evaluation/runs"), description="Directory of saved results")
    datasets_dir: Path = Field(Path("evaluation/datasets"),
                               description="Directory of <dataset>.jsonl ground truth files")
    bootstrap_iterations: int = Field(1000, ge=1, description="Bootstrap resamples")
    bootstrap_seed: Optional[int] = Field(None, description="Seed for bootstrap resampling")
    confidence_level: float = Field(0.95, gt=0, lt=1, description="Default confidence level")
    log_level: str = Field('INFO', description="Logging level",
                           examples=["CRITICAL", "FATAL", "ERROR", "WARNING", "INFO", "DEBUG"])

    @field_validator("log_level")
    def upper_log_level(cls, v):
        return v.upper()


def build_parser() -> argparse.ArgumentParser:
    """Command line parser for the eval-harness entry point."""
    parser = argparse.ArgumentParser(description="Run and compare model-output evaluations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    compare = subparsers.add_parser("compare", help="Rank and statistically compare saved results")
    compare.add_argument("names", nargs="+", help="Result names under the runs directory")
    compare.add_argument("--metric", help="Metric for bootstrap CIs and ANOVA (default: all)")
    compare.add_argument(
        "--runs-dir",
        type=Path,
        help="Directory of saved results (default: evaluation/runs, env: EVAL_RUNS_DIR)",
    )
    compare.add_argument(
        "--confidence-level",
        type=float,
        help="Confidence level for intervals (default: 0.95)",
    )
    compare.add_argument(
        "--bootstrap-iterations",
        type=int,
        help="Number of bootstrap resamples (default: 1000)",
    )
    compare.add_argument(
        "--bootstrap-seed",
        type=int,
        help="Seed for reproducible bootstrap intervals",
    )

    run = subparsers.add_parser("run", help="Score a predictions file against a dataset and save the result")
    run.add_argument("name", help="Result name, used as the directory under the runs directory")
    run.add_argument("--dataset", required=True, help="Dataset id, read from <datasets-dir>/<id>.jsonl")
    run.add_argument(
        "--predictions",
        type=Path,
        required=True,
        help="JSONL file with one prediction per line (objects contribute 'prediction')",
    )
    run.add_argument("--metrics", nargs="+", required=True, help="Built-in metric names")
    run.add_argument(
        "--datasets-dir",
        type=Path,
        help="Directory of ground truth files (default: evaluation/datasets, env: EVAL_DATASETS_DIR)",
    )
    run.add_argument("--runs-dir", type=Path, help="Directory to save the result in")
    run.add_argument("--timeout-ms", type=int, help="Deadline for the whole batch (default: 5000)")
    run.add_argument("--max-workers", type=int, help="Worker pool size (default: 32)")
    run.add_argument(
        "--sequential",
        dest="parallel",
        action="store_false",
        default=None,
        help="Evaluate samples one at a time",
    )

    # Optional log level
    parser.add_argument(
        "--log-level",
        help="Logging level",
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def get_config(args: argparse.Namespace) -> Settings:
    """Settings from environment, with CLI values that are actually set taking precedence."""
    fields = Settings.model_fields
    cli_overrides = {k: v for k, v in vars(args).items() if v is not None and k in fields}
    return Settings(**cli_overrides)

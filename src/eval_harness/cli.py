"""
Command line entry point for running evaluations and comparing saved results.
"""

import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .comparison import (
    anova,
    bootstrap_ci,
    compare,
    confidence_intervals,
    format_result,
    log_report,
)
from .config import Settings, get_config, parse_args
from .dataset import JsonlDatasetLoader, read_jsonl
from .evaluation import MetricsEvaluation
from .export import load_result, save_result
from .models import Result
from .runner import Runner

logger = logging.getLogger(__name__)


def load_env() -> None:
    """Load .env.local from the working directory when present."""
    env_local_path = Path('.env.local')
    if env_local_path.exists():
        load_dotenv(env_local_path)
        logger.info("Loaded .env.local for local development")
    else:
        logger.info("No .env.local file found")


def display_intervals(results: List[Result], config: Settings, metric: Optional[str]) -> None:
    """Log parametric and bootstrap intervals for each result."""
    level = config.confidence_level
    for result in results:
        logger.info(f"{result.name}: {level:.0%} confidence intervals")
        for name, interval in confidence_intervals(result, level).items():
            if metric and name != metric:
                continue
            line = (f"  {name:<20} {interval.mean:.4f} "
                    f"[{interval.lower:.4f}, {interval.upper:.4f}] (n={interval.count})")
            values = result.metric_values(name)
            if values:
                boot = bootstrap_ci(values, config.bootstrap_iterations, level,
                                    seed=config.bootstrap_seed)
                line += f" bootstrap [{boot.lower:.4f}, {boot.upper:.4f}]"
            logger.info(line)


def display_anova(results: List[Result], metrics: List[str]) -> None:
    logger.info("=" * 80)
    logger.info("ANOVA")
    logger.info("=" * 80)
    for metric in metrics:
        outcome = anova(results, metric)
        if outcome.insufficient_data:
            logger.warning(f"{metric}: {outcome.error}")
            continue
        p_text = f"{outcome.p_value:.4f}" if outcome.p_value is not None else "n/a"
        logger.info(
            f"{metric:<20} F({outcome.df_between}, {outcome.df_within})={outcome.f_statistic:.3f} "
            f"p={p_text} -> {outcome.interpretation}")


def run_compare(config: Settings, names: List[str], metric: Optional[str]) -> None:
    results = [load_result(name, config.runs_dir) for name in names]
    report = compare(results)
    log_report(report)
    display_intervals(results, config, metric)

    if len(results) >= 2:
        metrics = [metric] if metric else list(report.metric_comparisons)
        display_anova(results, metrics)


def run_evaluation(
    config: Settings,
    name: str,
    dataset: str,
    predictions_path: Path,
    metrics: List[str]
) -> Result:
    """Score a predictions file against <datasets_dir>/<dataset>.jsonl and save the result."""
    predictions = read_jsonl(predictions_path, field="prediction")
    evaluation = MetricsEvaluation(name, dataset, metrics)
    runner = Runner(dataset_loader=JsonlDatasetLoader(config.datasets_dir), settings=config)

    result = runner.run(evaluation, predictions)
    run_dir = save_result(result, config.runs_dir)

    for line in format_result(result).splitlines():
        logger.info(line)
    logger.info(f"Saved to {run_dir}")
    return result


def main(argv: Optional[List[str]] = None) -> None:
    """Main coordinator function."""
    load_env()
    args = parse_args(argv)
    config = get_config(args)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command == "compare":
        run_compare(config, args.names, args.metric)
    elif args.command == "run":
        run_evaluation(config, args.name, args.dataset, args.predictions, args.metrics)


if __name__ == "__main__":
    main()

"""CLI entry point — command definitions using Click.

Commands:
    init              Generate a template config file
    parse coverage    Normalise a coverage artifact
    parse tests       Normalise a test-results artifact
    parse security    Normalise a security scan summary
    score             Merge gate: print the readiness score, exit 1 below threshold
    analyze           Detailed readiness report for a run against a baseline
    aggregate         Rolling-window summary of the run history
    trend             Trend statistics for one metric of the run history
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click

from merge_readiness import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load the config; the default path may be absent, an explicit one may not."""
    from merge_readiness.config import DEFAULT_CONFIG_PATH, load

    config_path = ctx.obj["config_path"]
    config = load(config_path, required=config_path != DEFAULT_CONFIG_PATH)
    _verbose(ctx, f"Loaded configuration (gate threshold {config.threshold:g}, "
                  f"coverage policy '{config.coverage_policy}')")
    return config


def _verbose(ctx: click.Context, message: str) -> None:
    if ctx.obj["verbose"]:
        click.echo(f"[verbose] {message}", err=True)


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _history_source(ctx: click.Context, config, history_file: str | None):
    from merge_readiness.client import FileHistorySource

    if history_file:
        return FileHistorySource(history_file, cache_ttl=config.cache_ttl)
    source = config.history_source()
    _verbose(ctx, f"Reading history from {getattr(source, 'url', None) or getattr(source, 'path', '')}")
    return source


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _handle_errors(func):
    """Decorator that catches config/history/input exceptions and exits cleanly."""
    import functools

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from merge_readiness.client import HistorySourceError, NetworkError, NotFoundError
        from merge_readiness.config import ConfigError

        try:
            return func(*args, **kwargs)
        except ConfigError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except HistorySourceError as exc:
            click.echo(f"History error: {exc}", err=True)
            sys.exit(1)
        except json.JSONDecodeError as exc:
            click.echo(f"Invalid JSON input: {exc}", err=True)
            sys.exit(1)
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="readiness-config.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="merge-readiness")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_path: str | None,
        pretty: bool, verbose: bool) -> None:
    """Merge-readiness scoring — parse CI artifacts, score runs, export as JSON."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
                            format="[%(levelname)s] %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="readiness-config.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template readiness-config.yaml file."""
    from merge_readiness.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your gate threshold and history location.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

_ARTIFACT = click.Path(exists=True, dir_okay=False)


@cli.group("parse")
def parse_group() -> None:
    """Normalise a raw CI artifact into its canonical JSON record."""


@parse_group.command("coverage")
@click.argument("artifact", type=_ARTIFACT)
@click.option("--format", "format_hint", default="auto", show_default=True,
              help="jest, cobertura, python, lcov, or an artifact file name.")
@click.pass_context
def parse_coverage_command(ctx: click.Context, artifact: str, format_hint: str) -> None:
    """Parse a coverage report (Istanbul JSON, Cobertura XML, coverage.json, LCOV)."""
    from merge_readiness.parsers import parse_coverage

    _verbose(ctx, f"Parsing coverage artifact '{artifact}' (format: {format_hint})")
    _emit_json(parse_coverage(Path(artifact).read_bytes(), format_hint).to_dict(), ctx)


@parse_group.command("tests")
@click.argument("artifact", type=_ARTIFACT)
@click.option("--format", "format_hint", default="auto", show_default=True,
              help="junit, jest, mocha, pytest, or an artifact file name.")
@click.pass_context
def parse_tests_command(ctx: click.Context, artifact: str, format_hint: str) -> None:
    """Parse test results (JUnit XML, Jest, Mocha or pytest JSON)."""
    from merge_readiness.parsers import parse_test_results

    _verbose(ctx, f"Parsing test results '{artifact}' (format: {format_hint})")
    _emit_json(parse_test_results(Path(artifact).read_bytes(), format_hint).to_dict(), ctx)


@parse_group.command("security")
@click.argument("artifact", type=_ARTIFACT)
@click.pass_context
def parse_security_command(ctx: click.Context, artifact: str) -> None:
    """Parse a security scan summary (flat counts, nested or npm audit JSON)."""
    from merge_readiness.parsers import parse_security_results

    _verbose(ctx, f"Parsing security results '{artifact}'")
    _emit_json(parse_security_results(Path(artifact).read_bytes()).to_dict(), ctx)


# ---------------------------------------------------------------------------
# score
# ---------------------------------------------------------------------------

@cli.command("score")
@click.argument("current", type=_ARTIFACT)
@click.argument("baseline", type=_ARTIFACT, required=False)
@click.option("--report", "report_path", default="readiness-report.json", show_default=True,
              help="Where to write the detailed JSON report.")
@click.option("--threshold", type=click.FloatRange(0, 100), default=None,
              help="Minimum passing score (overrides config).")
@click.pass_context
@_handle_errors
def score_command(ctx: click.Context, current: str, baseline: str | None,
                  report_path: str, threshold: float | None) -> None:
    """Score run CURRENT against BASELINE and gate on the result.

    Prints the integer score on stdout and a breakdown on stderr. Without
    BASELINE the latest main/master run from the configured history is used.
    Exits with status 1 when the score is below the gate threshold.
    """
    from merge_readiness.models import RunRecord
    from merge_readiness.scoring import get_readiness_level, score_breakdown

    config = _load_config(ctx)
    gate = config.threshold if threshold is None else threshold

    current_run = RunRecord.from_dict(_read_json(current))
    if baseline:
        baseline_run = RunRecord.from_dict(_read_json(baseline))
    else:
        baseline_run = _history_source(ctx, config, None).baseline()
        if baseline_run is None:
            _verbose(ctx, "No baseline run found in history")

    result = score_breakdown(
        current_run,
        baseline_run,
        coverage_policy=config.coverage_policy,
        coverage_threshold=config.coverage_threshold,
    )
    level = get_readiness_level(result.total)

    click.echo(result.total)
    click.echo("=== Readiness Score Calculation ===", err=True)
    click.echo(f"Total Score: {result.total}%", err=True)
    click.echo(f"Level: {level.level}", err=True)
    click.echo("Breakdown:", err=True)
    for name, value in result.breakdown.items():
        click.echo(f"- {name}: {value:.1f}% (weight: {result.weights[name]})", err=True)

    report = {
        "report_type": "readiness_gate",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "score": result.total,
        "level": level.level,
        "color": level.color,
        "threshold": gate,
        "passed": result.total >= gate,
        "coverage_policy": config.coverage_policy,
        "breakdown": result.breakdown,
        "weights": result.weights,
        "run": {
            "branch": current_run.branch,
            "commit": current_run.commit,
            "coverage": current_run.coverage.overall,
            "tests": (
                f"{current_run.tests.passed}/{current_run.tests.total}"
                if current_run.tests else "0/0"
            ),
            "security": current_run.security.score if current_run.security else None,
            "status": current_run.status,
        },
    }
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
    _verbose(ctx, f"Report written to '{report_path}'")

    if result.total < gate:
        sys.exit(1)


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------

@cli.command("analyze")
@click.argument("current", type=_ARTIFACT)
@click.argument("baseline", type=_ARTIFACT)
@click.pass_context
@_handle_errors
def analyze_command(ctx: click.Context, current: str, baseline: str) -> None:
    """Detailed readiness report: issues, improvements and a recommendation."""
    from merge_readiness.scoring import generate_report

    _verbose(ctx, f"Analysing '{current}' against '{baseline}'")
    _emit_json(generate_report(_read_json(current), _read_json(baseline)), ctx)


# ---------------------------------------------------------------------------
# aggregate
# ---------------------------------------------------------------------------

@cli.command("aggregate")
@click.argument("history", type=_ARTIFACT, required=False)
@click.option("--window", type=click.IntRange(min=1), default=None,
              help="Number of recent runs to summarise (overrides config).")
@click.option("--branch", default="all", show_default=True, help="Only runs on this branch.")
@click.option("--repository", default=None, help="Only runs for this repository.")
@click.pass_context
@_handle_errors
def aggregate_command(ctx: click.Context, history: str | None, window: int | None,
                      branch: str, repository: str | None) -> None:
    """Summarise the most recent runs of HISTORY (or the configured history)."""
    from merge_readiness.aggregator import (
        aggregate,
        branch_comparison,
        calculate_trends,
        health_score,
        statistics,
    )

    config = _load_config(ctx)
    runs = _history_source(ctx, config, history).fetch_history(repository=repository, branch=branch)
    _verbose(ctx, f"Aggregating {len(runs)} runs")

    summary = aggregate(runs, window=window or config.window)
    _emit_json({
        "report_type": "aggregate",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "branch": branch,
        "summary": summary.to_dict(),
        "health": health_score(summary).to_dict(),
        "statistics": statistics(runs),
        "trends": calculate_trends(runs),
        "branches": branch_comparison(runs),
    }, ctx)


# ---------------------------------------------------------------------------
# trend
# ---------------------------------------------------------------------------

@cli.command("trend")
@click.argument("history", type=_ARTIFACT, required=False)
@click.option("--metric", default="coverage.overall", show_default=True,
              help="Dotted path of the metric, e.g. tests.pass_rate.")
@click.option("--window", type=click.IntRange(min=1), default=7, show_default=True,
              help="Rolling average window.")
@click.option("--limit", type=click.IntRange(min=1), default=30, show_default=True,
              help="Number of recent runs considered.")
@click.option("--branch", default="all", show_default=True, help="Only runs on this branch.")
@click.option("--correlate", "other_metric", default=None,
              help="Second metric path to correlate against.")
@click.pass_context
@_handle_errors
def trend_command(ctx: click.Context, history: str | None, metric: str, window: int,
                  limit: int, branch: str, other_metric: str | None) -> None:
    """Rolling average, slope and distribution of one metric over time."""
    from merge_readiness import trends
    from merge_readiness.aggregator import metric_history

    config = _load_config(ctx)
    runs = _history_source(ctx, config, history).fetch_history(branch=branch)
    points = metric_history(runs, metric, limit=limit)
    series = [p["value"] for p in points]

    report: dict = {
        "report_type": "trend",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "metric": metric,
        "branch": branch,
        "points": points,
        "rolling_average": trends.rolling_average(series, window),
        "slope": trends.linear_trend_slope(series),
        "direction": trends.classify_trend(series),
        "mean": trends.mean(series),
        "standard_deviation": trends.standard_deviation(series),
        "consistency": trends.consistency(series),
        "distribution": trends.distribution(series),
    }
    if other_metric:
        other = [p["value"] for p in metric_history(runs, other_metric, limit=limit)]
        report["correlation"] = {
            "metric": other_metric,
            **trends.pearson_correlation(series, other).to_dict(),
        }

    _emit_json(report, ctx)

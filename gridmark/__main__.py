"""CLI entrypoint for grid analysis.

Usage:
    python -m gridmark <image-or-dir> [--prompt P] [--provider anthropic|openai]
                       [--model M] [--config config.yaml] [--output DIR]
                       [--passes N] [--contiguous] [--truth truth.json]
                       [--save-verification] [--concurrency K] [--json]

Prompt precedence per image: ``<stem>.prompt.txt``, then ``prompt.txt`` in
the image directory, then ``--prompt``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from gridmark.config import GridmarkConfig
from gridmark.core import Analysis, Gridmark
from gridmark.errors import GridmarkError
from gridmark.evaluation import (
    AccuracyMetrics,
    calculate_accuracy,
    format_accuracy,
    load_truth_cells,
    overall_accuracy,
)
from gridmark.llm.clients import create_backend
from gridmark.utils.image import find_image_files
from gridmark.utils.prompt import resolve_prompt

logger = logging.getLogger("gridmark.cli")
console = Console()

DEFAULT_PROMPT = "Find all threats"


@dataclass
class ImageOutcome:
    """Result of processing one image from the command line."""

    image: Path
    prompt: str
    analysis: Analysis | None = None
    truth: list[str] | None = None
    accuracy: AccuracyMetrics | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Per-image processing
# ---------------------------------------------------------------------------


def _truth_path_for(image: Path, explicit: Path | None) -> Path | None:
    if explicit is not None:
        return explicit
    candidate = image.with_name(f"{image.stem}.truth.json")
    return candidate if candidate.is_file() else None


async def _process_image(
    gridmark: Gridmark,
    image: Path,
    default_prompt: str,
    output_dir: Path,
    truth_path: Path | None,
    save_verification: bool,
    semaphore: asyncio.Semaphore,
) -> ImageOutcome:
    prompt = resolve_prompt(image, default_prompt)
    outcome = ImageOutcome(image=image, prompt=prompt)
    verification_path = (
        output_dir / f"{image.stem}.verification.png" if save_verification else None
    )

    async with semaphore:
        try:
            analysis = await gridmark.analyze(
                image, prompt, verification_path=verification_path
            )
            annotated = await asyncio.to_thread(analysis.render)
        except (GridmarkError, OSError) as exc:
            logger.error("Failed to analyze %s: %s", image, exc)
            outcome.error = str(exc)
            return outcome

    (output_dir / f"{image.stem}.png").write_bytes(annotated)
    with open(output_dir / f"{image.stem}.json", "w") as f:
        json.dump(analysis.to_dict(), f, indent=2)
    outcome.analysis = analysis

    if truth_path is not None:
        try:
            outcome.truth = load_truth_cells(truth_path)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping accuracy for %s: %s", image, exc)
            return outcome
        outcome.accuracy = calculate_accuracy(analysis.result.cells, outcome.truth)
    return outcome


async def _run_all(
    gridmark: Gridmark,
    images: list[Path],
    args: argparse.Namespace,
    save_verification: bool,
) -> list[ImageOutcome]:
    semaphore = asyncio.Semaphore(max(1, args.concurrency))
    single = len(images) == 1 and args.input.is_file()
    return await asyncio.gather(*(
        _process_image(
            gridmark,
            image,
            args.prompt,
            args.output,
            _truth_path_for(image, args.truth if single else None),
            save_verification,
            semaphore,
        )
        for image in images
    ))


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def _build_image_panel(outcome: ImageOutcome) -> Panel:
    """Regions, summary and token usage for one image."""
    analysis = outcome.analysis
    tokens = analysis.tokens
    lines = [
        f"[bold]Prompt:[/bold] {outcome.prompt}",
        f"[bold]Summary:[/bold] {analysis.summary}",
    ]
    for region in analysis.regions:
        lines.append(f"  [cyan]{region.title}[/cyan]: {', '.join(region.cells)}")
    lines.append(
        f"[bold]Tokens:[/bold] {tokens.input} in / {tokens.output} out / {tokens.total} total"
    )
    lines.append(f"[bold]Cost:[/bold] ${tokens.cost:.4f} ({tokens.model_name} pricing)")
    if outcome.accuracy is not None:
        lines.extend(format_accuracy(outcome.accuracy))
    return Panel("\n".join(lines), title=outcome.image.name, border_style="blue")


def _build_totals_table(outcomes: list[ImageOutcome]) -> Table:
    """Totals and per-image averages across a directory run."""
    done = [o for o in outcomes if o.analysis is not None]
    n = max(len(done), 1)
    total_in = sum(o.analysis.tokens.input for o in done)
    total_out = sum(o.analysis.tokens.output for o in done)
    total_cost = sum(o.analysis.tokens.cost for o in done)

    table = Table(title=f"Batch Summary ({len(done)}/{len(outcomes)} succeeded)", show_lines=True)
    table.add_column("Metric", style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Per image", justify="right")
    table.add_row("Input tokens", str(total_in), f"{total_in / n:.0f}")
    table.add_row("Output tokens", str(total_out), f"{total_out / n:.0f}")
    table.add_row("Total tokens", str(total_in + total_out), f"{(total_in + total_out) / n:.0f}")
    table.add_row("Cost (USD)", f"${total_cost:.4f}", f"${total_cost / n:.4f}")
    return table


def _build_accuracy_table(metrics: AccuracyMetrics) -> Table:
    table = Table(title="Overall Accuracy", show_lines=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Precision", f"{metrics.precision:.1%}")
    table.add_row("Recall", f"{metrics.recall:.1%}")
    table.add_row("F1", f"{metrics.f1:.1%}")
    table.add_row("IoU", f"{metrics.iou:.1%}")
    table.add_row("Truth cells", str(metrics.truth_cells))
    table.add_row("Predicted cells", str(metrics.predicted_cells))
    table.add_row("Matching cells", str(metrics.matching_cells))
    return table


def _overall(outcomes: list[ImageOutcome]) -> AccuracyMetrics | None:
    pairs = [
        (o.analysis.result.cells, o.truth)
        for o in outcomes
        if o.analysis is not None and o.truth is not None
    ]
    return overall_accuracy(pairs) if pairs else None


def _outcomes_to_dict(outcomes: list[ImageOutcome]) -> dict:
    """Convert results to JSON-serializable dict."""
    overall = _overall(outcomes)
    return {
        "images": [
            {
                "image": str(o.image),
                "prompt": o.prompt,
                "error": o.error,
                "analysis": o.analysis.to_dict() if o.analysis else None,
                "accuracy": o.accuracy.to_dict() if o.accuracy else None,
            }
            for o in outcomes
        ],
        "overall_accuracy": overall.to_dict() if overall else None,
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Find grid cells containing a described feature with a vision LLM.",
        prog="python -m gridmark",
    )
    parser.add_argument("input", type=Path, help="Image file or directory of images")
    parser.add_argument("--prompt", "-p", default=DEFAULT_PROMPT, help="Default prompt")
    parser.add_argument("--provider", choices=["anthropic", "openai"], default=None, help="LLM provider")
    parser.add_argument("--model", default=None, help="Model identifier")
    parser.add_argument("--config", type=Path, default=None, help="Gridmark config YAML")
    parser.add_argument("--output", "-o", type=Path, default=Path("output"), help="Output directory")
    parser.add_argument("--passes", type=int, default=None, help="Number of consensus passes")
    parser.add_argument("--contiguous", action="store_true", help="Merge touching cells into one region")
    parser.add_argument("--truth", type=Path, default=None, help="Ground-truth cells JSON (single image)")
    parser.add_argument("--save-verification", action="store_true", help="Save the verification image")
    parser.add_argument("--concurrency", type=int, default=5, help="Images analyzed at once")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of rich report")
    args = parser.parse_args(argv)

    # Configure logging so pipeline progress is visible
    if not args.json:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_time=True, show_path=False)],
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.input.is_dir():
        images = find_image_files(args.input)
        if not images:
            console.print(f"[red]Error: no images found in {args.input}[/red]")
            return 1
    elif args.input.is_file():
        images = [args.input]
    else:
        console.print(f"[red]Error: {args.input} not found[/red]")
        return 1

    if args.config is not None and not args.config.is_file():
        console.print(f"[red]Error: {args.config} not found[/red]")
        return 1
    config = GridmarkConfig.from_yaml(args.config) if args.config else GridmarkConfig.default()
    if args.provider:
        config.llm.provider = args.provider
        if not args.model:
            config.llm.model = None
    if args.model:
        config.llm.model = args.model
    if args.passes is not None:
        config.analysis.num_passes = args.passes
    if args.contiguous:
        config.analysis.contiguous_regions = True
    save_verification = args.save_verification or config.render.save_verification

    try:
        backend = create_backend(config.llm)
    except GridmarkError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    args.output.mkdir(parents=True, exist_ok=True)
    gridmark = Gridmark(config, backend=backend)

    if not args.json:
        console.print(
            f"[bold]Analyzing {len(images)} image(s) with {backend.provider}/{backend.model}...[/bold]"
        )
    outcomes = asyncio.run(_run_all(gridmark, images, args, save_verification))
    failed = [o for o in outcomes if o.error is not None]

    if args.json:
        print(json.dumps(_outcomes_to_dict(outcomes), indent=2))
        return 1 if failed else 0

    console.print()
    console.rule("[bold blue]Gridmark Analysis Report[/bold blue]")
    console.print()
    for outcome in outcomes:
        if outcome.analysis is not None:
            console.print(_build_image_panel(outcome))
        else:
            console.print(f"[red]{outcome.image.name}: {outcome.error}[/red]")
        console.print()

    if len(outcomes) > 1:
        console.print(_build_totals_table(outcomes))
        console.print()

    overall = _overall(outcomes)
    if overall is not None and len(outcomes) > 1:
        console.print(_build_accuracy_table(overall))
        console.print()

    console.rule(f"[bold]Results written to {args.output}[/bold]")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())

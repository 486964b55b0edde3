"""Command-line interface for the relation inference engine."""

import sys
import json
import asyncio
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table
from rich import box

from .config import ConfigManager
from .errors import RelGraphError, ValidationError
from .evaluation import calculate_metrics
from .hashing import hash_object, with_semantic_hash
from .inference import RelationInferenceEngine
from .llm import create_llm_provider
from .models import CanonicalObject, Relation
from .observability import StructlogObserver, configure_logging


def _read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_objects(path: str) -> List[CanonicalObject]:
    """Load canonical objects from a JSON list or an ``{"objects": [...]}`` document."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("objects", [])
    if not isinstance(data, list):
        raise ValidationError(f"{path}: expected a list of objects", field="objects")
    try:
        return [CanonicalObject.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise ValidationError(f"{path}: invalid canonical object: {e}") from e


def load_embeddings(path: str) -> Dict[str, List[float]]:
    data = _read_json(path)
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: expected an object mapping ids to vectors", field="embeddings")
    return {str(key): [float(x) for x in vector] for key, vector in data.items()}


def load_relations(path: str) -> List[Relation]:
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("relations", [])
    try:
        return [Relation.from_dict(item) for item in data]
    except (KeyError, ValueError) as e:
        raise ValidationError(f"{path}: invalid relation: {e}") from e


def build_engine(args: argparse.Namespace) -> RelationInferenceEngine:
    config = ConfigManager(config_path=args.config).load()
    observer = StructlogObserver() if args.trace else None

    provider = None
    if config.use_contrastive_icl:
        provider = create_llm_provider(config.llm)
    return RelationInferenceEngine(config=config, llm_provider=provider, observer=observer)


def run_inference(
    engine: RelationInferenceEngine,
    objects: Sequence[CanonicalObject],
    embeddings: Optional[Dict[str, List[float]]] = None,
    workers: int = 1,
) -> List[Relation]:
    if engine.config.use_contrastive_icl:
        return asyncio.run(engine.infer_all_async(objects, embeddings=embeddings, workers=workers))
    return engine.infer_all(objects, embeddings=embeddings, workers=workers)


def render_stats(console: Console, stats: Dict[str, Any]) -> None:
    table = Table(title="Inferred Relations", box=box.ROUNDED)
    table.add_column("Group", style="cyan")
    table.add_column("Value", style="green", justify="right")

    for rel_type, count in sorted(stats["by_type"].items()):
        table.add_row(f"type: {rel_type}", str(count))
    for source, count in sorted(stats["by_source"].items()):
        table.add_row(f"source: {source}", str(count))
    table.add_row("[bold]total[/bold]", f"[bold]{stats['total']}[/bold]")
    table.add_row("avg confidence", f"{stats['avg_confidence']:.3f}")

    console.print(table)


def cmd_infer(args: argparse.Namespace, console: Console) -> int:
    """Infer relations for a batch of objects."""
    objects = load_objects(args.objects)
    if args.compute_hashes:
        objects = [with_semantic_hash(obj) for obj in objects]
    embeddings = load_embeddings(args.embeddings) if args.embeddings else None

    engine = build_engine(args)
    console.print(f"Inferring relations for [bold]{len(objects)}[/bold] objects")
    relations = run_inference(engine, objects, embeddings=embeddings, workers=args.workers)

    render_stats(console, engine.get_stats(relations))

    if args.output:
        Path(args.output).write_text(
            json.dumps([r.to_dict() for r in relations], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        console.print(f"Relations saved to: {args.output}")
    return 0


def cmd_validate(args: argparse.Namespace, console: Console) -> int:
    """Compare inferred relations with a labelled ground-truth file."""
    ground_truth = load_relations(args.ground_truth)
    objects = load_objects(args.objects)
    embeddings = load_embeddings(args.embeddings) if args.embeddings else None

    engine = build_engine(args)
    inferred = run_inference(engine, objects, embeddings=embeddings, workers=args.workers)
    metrics = calculate_metrics(ground_truth, inferred, scenario=args.scenario)

    table = Table(title=f"Validation: {metrics.scenario}", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Precision", f"{metrics.precision:.2%}")
    table.add_row("Recall", f"{metrics.recall:.2%}")
    table.add_row("F1 Score", f"{metrics.f1_score:.2%}")
    table.add_row("True Positives", str(metrics.true_positives))
    table.add_row("False Positives", str(metrics.false_positives))
    table.add_row("False Negatives", str(metrics.false_negatives))
    table.add_row("Ground Truth", str(metrics.ground_truth_total))
    table.add_row("Inferred", str(metrics.inferred_total))
    console.print(table)

    if args.output:
        Path(args.output).write_text(metrics.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"Metrics saved to: {args.output}")
    return 0


def cmd_hash(args: argparse.Namespace, console: Console) -> int:
    """Print the semantic hash of every object."""
    objects = load_objects(args.objects)

    table = Table(title="Semantic Hashes", box=box.SIMPLE)
    table.add_column("ID", style="cyan")
    table.add_column("Semantic Hash")
    for obj in objects:
        table.add_row(obj.id, hash_object(obj))
    console.print(table)
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relgraph",
        description="Relation inference over canonical objects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Infer relations and save them
  relgraph infer objects.json -o relations.json

  # Fuse keyword and embedding similarity across 4 threads
  relgraph infer objects.json --embeddings embeddings.json --workers 4

  # Score inference against labelled relations
  relgraph validate ground_truth.json objects.json --scenario normal
""",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    parser.add_argument("--trace", action="store_true", help="Log sampled stage and pair events")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    infer_parser = subparsers.add_parser("infer", help="Infer relations for a set of objects")
    infer_parser.add_argument("objects", help="JSON file of canonical objects")
    infer_parser.add_argument("-e", "--embeddings", help="JSON file mapping object ids to vectors")
    infer_parser.add_argument("-c", "--config", help="Path to configuration file")
    infer_parser.add_argument("-o", "--output", help="Save relations to file")
    infer_parser.add_argument("-w", "--workers", type=int, default=1, help="Threads for pair scoring")
    infer_parser.add_argument(
        "--compute-hashes", action="store_true", help="Fill in missing semantic hashes before inference"
    )

    validate_parser = subparsers.add_parser("validate", help="Compare inference with ground truth")
    validate_parser.add_argument("ground_truth", help="JSON file of labelled relations")
    validate_parser.add_argument("objects", help="JSON file of canonical objects")
    validate_parser.add_argument("-e", "--embeddings", help="JSON file mapping object ids to vectors")
    validate_parser.add_argument("-c", "--config", help="Path to configuration file")
    validate_parser.add_argument("-o", "--output", help="Save metrics to file")
    validate_parser.add_argument("-w", "--workers", type=int, default=1, help="Threads for pair scoring")
    validate_parser.add_argument("--scenario", default="default", help="Scenario label for the report")

    hash_parser = subparsers.add_parser("hash", help="Print semantic hashes")
    hash_parser.add_argument("objects", help="JSON file of canonical objects")

    return parser


COMMANDS = {
    "infer": cmd_infer,
    "validate": cmd_validate,
    "hash": cmd_hash,
}


def main(argv: Optional[Sequence[str]] = None, console: Optional[Console] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    console = console or Console()

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(level=args.log_level, json_output=args.json_logs)

    try:
        return COMMANDS[args.command](args, console)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 1
    except (RelGraphError, OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

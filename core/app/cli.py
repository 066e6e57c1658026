import json
import logging
import os
import sys
from pathlib import Path

import click

from core.roadmap.check_executor import CheckExecutor
from core.roadmap.content_source import DEFAULT_TIMEOUT_SECONDS, LocalContentSource
from core.roadmap.enrichment import enrich, summarize_document
from core.roadmap.errors import InvalidDocument
from core.roadmap.ingestion import utc_now_iso
from core.roadmap.keys import normalize_project_key, project_aware_path
from core.roadmap.normalizer import dump_document, normalize_source
from core.roadmap.schema import CheckContext
from core.roadmap.verifier import parse_probe_headers

logger = logging.getLogger(__name__)

ROADMAP_PATH = "docs/roadmap.yml"
STATUS_ARTIFACT_PATH = "docs/roadmap-status.json"
RC_PATH = ".roadmaprc.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _load_rc(source: LocalContentSource) -> dict | None:
    text = source.get_file("", "", RC_PATH, "")
    if text is None:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        logger.warning("ignoring unparseable %s", RC_PATH)
        return None
    return parsed if isinstance(parsed, dict) else None


@click.group()
@click.option("--log-level", default="WARNING", show_default=True, help="Python logging level")
def cli(log_level):
    """Roadmap status checks for a local working tree."""
    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--root", default=".", show_default=True, type=click.Path(exists=True, file_okay=False), help="Repository root")
@click.option("--roadmap", default=None, help="Roadmap source relative to root (default docs/roadmap.yml)")
@click.option("--output", default=None, help="Status artifact relative to root (default docs/roadmap-status.json)")
@click.option("--project", default=None, help="Project key for docs/projects/<key>/ layouts")
def check(root, roadmap, output, project):
    """Run every roadmap check and write the status artifact."""
    source = LocalContentSource(root)
    project_key = normalize_project_key(project)
    rc = _load_rc(source)

    roadmap_path = roadmap
    if not roadmap_path and rc and isinstance(rc.get("roadmapFile"), str) and rc["roadmapFile"].strip():
        roadmap_path = rc["roadmapFile"].strip()
    roadmap_path = roadmap_path or project_aware_path(ROADMAP_PATH, project_key)

    text = source.get_file("", "", roadmap_path, "")
    if text is None:
        click.echo(f"roadmap not found: {roadmap_path}", err=True)
        sys.exit(2)
    try:
        document = normalize_source(text)
    except InvalidDocument as exc:
        click.echo(f"invalid roadmap {roadmap_path}: {exc}", err=True)
        sys.exit(2)

    executor = CheckExecutor(
        source,
        timeout_seconds=_env_float("ROADMAP_CHECK_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        fallback_verifier_url=os.getenv("READ_ONLY_CHECKS_URL") or None,
        verifier_headers=parse_probe_headers(os.getenv("READ_ONLY_CHECKS_HEADERS")),
    )
    context = CheckContext(owner="local", repo=source.root.name, ref="", rc=rc)
    enriched = enrich(document, "live", executor, context=context)

    failed = 0
    for week in enriched["weeks"]:
        for item in week["items"]:
            for entry in item.get("checks", []):
                status = entry.get("status", "skip")
                if status == "fail":
                    failed += 1
                click.echo(f"[{status.upper()}] {week['id']}/{item['id']} {entry.get('type')}: {entry.get('detail', '')}")

    output_path = Path(source.root) / (output or project_aware_path(STATUS_ARTIFACT_PATH, project_key))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    artifact = {
        "generated_at": utc_now_iso(),
        "source": {"roadmap": roadmap_path, "rc": rc is not None},
        "version": enriched.get("version", 1),
        "weeks": enriched["weeks"],
    }
    output_path.write_text(json.dumps(artifact, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")

    summary = summarize_document(enriched)
    click.echo(f"{summary['passed']}/{summary['total']} items complete, {failed} failing check(s); wrote {output_path}")
    if failed:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "output_format", type=click.Choice(["yaml", "json"]), default="yaml", show_default=True)
def normalize(file, output_format):
    """Print the canonical form of a roadmap source."""
    text = Path(file).read_text(encoding="utf-8")
    try:
        document = normalize_source(text)
    except InvalidDocument as exc:
        click.echo(f"invalid roadmap {file}: {exc}", err=True)
        sys.exit(2)
    if output_format == "json":
        click.echo(json.dumps(document, indent=2, ensure_ascii=False))
    else:
        click.echo(dump_document(document), nl=False)


if __name__ == "__main__":
    cli()

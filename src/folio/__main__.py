"""Entry point: folio <command> (or python -m folio <command>)

Commands:
    folio init                  create the store (and git repo) at --root or cwd
    folio write ID [CONTENT]    save a document; content from stdin when omitted
    folio read ID               print a document (raw markdown or JSON)
    folio list                  list documents with title/tags
    folio delete ID             remove a document (staged on versioned stores)
    folio commit -m MSG         commit staged changes
    folio sync                  pull --rebase and push
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path

import click
import yaml

from folio.config import FolioConfig, find_root, load_config
from folio.errors import FolioError
from folio.service import DocumentService, open_store
from folio.store import codec
from folio.store.commits import (
    COMMIT_KINDS,
    DEFAULT_SCOPE,
    DOCS,
    append_footer,
    format_commit_message,
)

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


# ── Context helpers ───────────────────────────────────────────


def _open(ctx: click.Context, *, create: bool = False) -> DocumentService:
    """Build the service for this invocation from config plus global flags."""
    config: FolioConfig = ctx.obj["config"]
    store = config.store
    overrides: dict = {}

    root: Path | None = ctx.obj["root"]
    if root is not None:
        overrides["root"] = root
    elif store.root == Path(".") and not create:
        overrides["root"] = find_root(Path.cwd())

    if ctx.obj["no_versioning"]:
        overrides["versioning"] = False
    if ctx.obj["strict"]:
        overrides["strict"] = True
    if create:
        overrides["auto_init"] = True

    return open_store(dataclasses.replace(store, **overrides))


def _parse_assignments(values: tuple[str, ...]) -> dict:
    """--set key=value pairs; values are parsed as YAML scalars."""
    result: dict = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint="--set")
        try:
            result[key.strip()] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError as e:
            raise click.BadParameter(f"invalid YAML value in {item!r}: {e}", param_hint="--set") from e
    return result


def _write_message(doc_id: str, message: str | None, kind: str | None, scope: str | None) -> str:
    if kind:
        return format_commit_message(kind, scope or "", message or f"update {doc_id}")
    if message:
        return append_footer(message)
    return format_commit_message(DOCS, scope or DEFAULT_SCOPE, f"update {doc_id}")


class _Group(click.Group):
    """Turns store errors into a one-line message and exit status 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except FolioError as e:
            logger.debug("Command failed", exc_info=True)
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)


# ── Commands ──────────────────────────────────────────────────


@click.group(cls=_Group)
@click.option("--root", type=click.Path(path_type=Path), help="Store root (default: nearest store above cwd)")
@click.option("--no-versioning", is_flag=True, help="Never use git, even inside a repository")
@click.option("--strict", is_flag=True, help="Decode YAML floats as exact decimals")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option("-v", "--verbose", is_flag=True, help="Shorthand for --log-level DEBUG")
@click.pass_context
def cli(
    ctx: click.Context,
    root: Path | None,
    no_versioning: bool,
    strict: bool,
    log_level: str | None,
    verbose: bool,
) -> None:
    """Markdown document store with optional git history."""
    config = load_config()
    _setup_logging("DEBUG" if verbose else log_level or config.log_level)
    ctx.obj = {
        "config": config,
        "root": root,
        "no_versioning": no_versioning,
        "strict": strict,
    }


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create a store (and a git repository unless --no-versioning)."""
    service = _open(ctx, create=True)
    mode = "versioned" if service.versioned else "plain"
    click.echo(f"Initialized {mode} store at {service.adapter.root}")


@cli.command()
@click.argument("doc_id", required=False)
@click.argument("content", required=False)
@click.option("--id", "id_option", help="Document id (alternative to the positional argument)")
@click.option("--content", "content_option", help="Document body (default: stdin)")
@click.option("-m", "--message", help="Commit message")
@click.option("-t", "--type", "kind", type=click.Choice(COMMIT_KINDS), help="Conventional commit type")
@click.option("-s", "--scope", help="Conventional commit scope")
@click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE", help="Metadata field (repeatable)")
@click.option("--raw", is_flag=True, help="Content is a full document with its own front matter")
@click.pass_context
def write(
    ctx: click.Context,
    doc_id: str | None,
    content: str | None,
    id_option: str | None,
    content_option: str | None,
    message: str | None,
    kind: str | None,
    scope: str | None,
    assignments: tuple[str, ...],
    raw: bool,
) -> None:
    """Create or update a document."""
    doc_id = id_option or doc_id
    if not doc_id:
        raise click.UsageError("a document id is required")
    body = content_option if content_option is not None else content
    if body is None:
        body = click.get_text_stream("stdin").read()

    metadata: dict = {}
    if raw:
        parsed = codec.decode(body, doc_id)
        metadata, body = parsed.metadata, parsed.content
    metadata.update(_parse_assignments(assignments))

    service = _open(ctx)
    doc = service.save_document(doc_id, body, metadata, message=_write_message(doc_id, message, kind, scope))
    click.echo(f"Saved {doc.id}")


@cli.command()
@click.argument("doc_id")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["raw", "json"]),
    default="raw",
    show_default=True,
    help="raw markdown or a JSON object",
)
@click.pass_context
def read(ctx: click.Context, doc_id: str, fmt: str) -> None:
    """Print a document."""
    doc = _open(ctx).get_document(doc_id)
    if fmt == "json":
        payload = {"id": doc.id, "metadata": doc.metadata, "content": doc.content}
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    else:
        click.echo(codec.encode(doc.metadata, doc.content), nl=False)


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Emit a JSON array")
@click.pass_context
def list_(ctx: click.Context, as_json: bool) -> None:
    """List documents."""
    docs = _open(ctx).list_documents()
    if as_json:
        payload = [{"id": d.id, "title": d.title, "tags": d.tags} for d in docs]
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for doc in docs:
        line = doc.id
        if doc.title:
            line += f"\t{doc.title}"
        if doc.tags:
            line += f"\t[{', '.join(doc.tags)}]"
        click.echo(line)


@cli.command()
@click.argument("doc_id")
@click.option("-m", "--message", help="Commit the deletion with this message")
@click.pass_context
def delete(ctx: click.Context, doc_id: str, message: str | None) -> None:
    """Delete a document. On versioned stores the removal is staged; pass -m to commit it."""
    service = _open(ctx)
    service.delete_document(doc_id)
    click.echo(f"Deleted {doc_id}")
    if message and service.versioned:
        service.commit(append_footer(message))


@cli.command()
@click.option("-m", "--message", help="Commit subject (or full message without --type)")
@click.option("-t", "--type", "kind", type=click.Choice(COMMIT_KINDS), help="Conventional commit type")
@click.option("-s", "--scope", help="Conventional commit scope")
@click.option("-b", "--body", default="", help="Commit body")
@click.pass_context
def commit(ctx: click.Context, message: str | None, kind: str | None, scope: str | None, body: str) -> None:
    """Commit staged changes."""
    if kind:
        full = format_commit_message(kind, scope or "", message or "update documents", body)
    elif message:
        full = append_footer(message if not body else f"{message}\n\n{body}")
    else:
        raise click.UsageError("a commit message (-m) or type (-t) is required")

    if _open(ctx).commit(full):
        click.echo("Committed")
    else:
        click.echo("Nothing to commit")


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Pull (rebase) and push against the configured remote."""
    _open(ctx).sync()
    click.echo("Synced")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

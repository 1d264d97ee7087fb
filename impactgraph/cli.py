"""Typer-based CLI for impactgraph."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__, config, config_manager
from .analyzer import ImpactAnalyzer
from .classifier import ChangeClassifier
from .cli_groups import analyze_grp, config_grp, graph_grp
from .llm import LocalLLM
from .models import EDGE_KINDS, NODE_KINDS, GraphEdge, GraphNode, ImpactResult
from .paths import make_node_id
from .push_events import analyze_push, parse_push_payload, verify_github_signature
from .revisions import GitRevisionSource
from .storage import GraphDirectory, GraphStore, project_lock

console = Console()

app = typer.Typer(
    help="🧭 impactgraph: flag breaking changes before they reach dependent repositories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(graph_grp, name="graph")
app.add_typer(analyze_grp, name="analyze")
app.add_typer(config_grp, name="config")

SEVERITY_STYLES = {
    "LOW": "green",
    "MEDIUM": "yellow",
    "HIGH": "red",
    "CRITICAL": "bold white on red",
}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"impactgraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
):
    """impactgraph: cross-repository change-impact analysis."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _require_project(project_id: str) -> None:
    if not GraphDirectory().exists(project_id):
        raise typer.BadParameter(f"Project graph '{project_id}' not found.")


def _build_analyzer(
    use_ai: bool,
    llm_provider: Optional[str],
    llm_model: Optional[str],
    llm_api_key: Optional[str],
) -> ImpactAnalyzer:
    classifier = None
    if use_ai:
        llm = LocalLLM(model=llm_model, provider=llm_provider, api_key=llm_api_key)
        classifier = ChangeClassifier(llm)
    return ImpactAnalyzer(classifier=classifier)


def _render_result(result: ImpactResult) -> None:
    style = SEVERITY_STYLES.get(result.severity, "white")
    header = (
        f"[bold]{escape(result.changed_repo)}:{escape(result.changed_file)}[/bold]\n"
        f"Severity: [{style}]{result.severity}[/{style}]   "
        f"Breaking: {'yes' if result.is_breaking else 'no'}   "
        f"Affected files: {result.affected_count}\n"
        f"{escape(result.explanation)}"
    )
    console.print(Panel(header, title="Impact", expand=False))

    if not result.affected_files:
        console.print("No affected files in other repositories.")
        return

    table = Table(show_header=True, show_lines=False)
    table.add_column("Repo", style="cyan")
    table.add_column("File")
    table.add_column("Reason", style="magenta")
    for item in result.affected_files:
        table.add_row(escape(item.repo_id), escape(item.file_path), escape(item.reason))
    console.print(table)

    for item in result.affected_files:
        if item.context:
            console.print(Panel(escape(item.context), title=escape(f"{item.repo_id}:{item.file_path}"), expand=False))


def _emit(results: List[ImpactResult], as_json: bool, single: bool = False) -> None:
    if as_json:
        payload = [r.to_dict(include_classification=True) for r in results]
        typer.echo(json.dumps(payload[0] if single else payload, indent=2))
        return
    for result in results:
        _render_result(result)


# ===================================================================
# ig graph ...
# ===================================================================

@graph_grp.command("list")
def list_graphs():
    """List all persisted project graphs."""
    projects = GraphDirectory().list_projects()
    if not projects:
        typer.echo("No project graphs yet.")
        raise typer.Exit(code=0)
    for project in projects:
        typer.echo(project)


@graph_grp.command("show")
def show_graph(
    project_id: str = typer.Argument(..., help="Project whose graph to show."),
    limit: int = typer.Option(20, min=0, help="Maximum number of nodes to list."),
):
    """Show node/edge counts and the first nodes of a project graph."""
    _require_project(project_id)
    store = GraphStore(project_id)
    stats = store.stats()

    typer.echo(f"Project: {project_id}")
    typer.echo(f"Nodes: {stats['nodes']} | Edges: {stats['edges']}")
    if stats["repos"]:
        typer.echo(f"Repos: {', '.join(stats['repos'])}")

    if limit and stats["nodes"]:
        table = Table(show_header=True)
        table.add_column("Id")
        table.add_column("Kind", style="cyan")
        table.add_column("Repo")
        for node in store.nodes[:limit]:
            table.add_row(escape(node.id), node.kind, escape(node.repo_id or "-"))
        console.print(table)


@graph_grp.command("add-node")
def add_node(
    project_id: str = typer.Argument(..., help="Project graph to edit."),
    repo_id: str = typer.Argument(..., help="Repository owning the file."),
    file_path: str = typer.Argument(..., help="File path inside the repository."),
    kind: str = typer.Option("FILE", "--kind", "-k", help=f"One of: {', '.join(NODE_KINDS)}."),
    label: Optional[str] = typer.Option(None, help="Display name (defaults to the file path)."),
):
    """Add a node with id ``<repo>:<path>``."""
    try:
        node = GraphNode(
            id=make_node_id(repo_id, file_path),
            kind=kind.upper(),
            label=label or file_path,
            repo_id=repo_id,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    with project_lock(project_id):
        store = GraphStore(project_id)
        added = store.add_node(node)
        store.save()
    typer.echo(f"{'Added' if added else 'Already present'}: {node.id}")


@graph_grp.command("add-edge")
def add_edge(
    project_id: str = typer.Argument(..., help="Project graph to edit."),
    source: str = typer.Argument(..., help="Source node id (the dependent)."),
    target: str = typer.Argument(..., help="Target node id (the dependency)."),
    kind: str = typer.Option("IMPORTS", "--kind", "-k", help=f"One of: {', '.join(EDGE_KINDS)}."),
):
    """Add an edge ``source -> target``."""
    try:
        edge = GraphEdge(source=source, target=target, kind=kind.upper())
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    with project_lock(project_id):
        store = GraphStore(project_id)
        added = store.add_edge(edge)
        store.save()
    typer.echo(f"{'Added' if added else 'Already present'}: {source} -{edge.kind}-> {target}")


@graph_grp.command("import")
def import_graph(
    project_id: str = typer.Argument(..., help="Project graph to load into."),
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON {nodes, edges} document."),
):
    """Merge an indexer's graph document into a project graph."""
    try:
        payload = json.loads(document.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{document} is not valid JSON: {exc}")
    if not isinstance(payload, dict):
        raise typer.BadParameter(f"{document} must contain a JSON object with 'nodes' and 'edges'.")

    with project_lock(project_id):
        store = GraphStore(project_id)
        try:
            counts = store.merge_document(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise typer.BadParameter(f"Malformed graph document: {exc}")
        store.save()
    typer.echo(f"Imported into '{project_id}'.")
    typer.echo(f"Nodes added: {counts['nodes']} | Edges added: {counts['edges']}")


@graph_grp.command("remove-repo")
def remove_repo(
    project_id: str = typer.Argument(..., help="Project graph to edit."),
    repo_id: str = typer.Argument(..., help="Repository whose nodes should be dropped."),
):
    """Remove every node of a repository and the edges touching them."""
    _require_project(project_id)
    with project_lock(project_id):
        removed = GraphStore(project_id).remove_nodes_by_repo_id(repo_id)
    typer.echo(f"Removed {removed} nodes for repo '{repo_id}'.")


@graph_grp.command("clear")
def clear_graph(
    project_id: str = typer.Argument(..., help="Project graph to reset."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
):
    """Reset a project graph to empty."""
    _require_project(project_id)
    if not yes:
        typer.confirm(f"Clear every node and edge of '{project_id}'?", abort=True)
    with project_lock(project_id):
        GraphStore(project_id).clear()
    typer.echo(f"Cleared graph '{project_id}'.")


@graph_grp.command("delete")
def delete_graph(project_id: str = typer.Argument(..., help="Project graph to delete.")):
    """Delete a persisted project graph."""
    with project_lock(project_id):
        deleted = GraphDirectory().delete_project(project_id)
    if not deleted:
        raise typer.BadParameter(f"Project graph '{project_id}' not found.")
    typer.echo(f"Deleted graph '{project_id}'.")


# ===================================================================
# ig analyze ...
# ===================================================================

@analyze_grp.command("file")
def analyze_file(
    project_id: str = typer.Argument(..., help="Project whose graph to use."),
    repo_id: str = typer.Argument(..., help="Repository containing the changed file."),
    file_path: str = typer.Argument(..., help="Changed file path inside the repository."),
    old_file: Optional[Path] = typer.Option(None, "--old", exists=True, dir_okay=False, help="File with the old content."),
    new_file: Optional[Path] = typer.Option(None, "--new", exists=True, dir_okay=False, help="File with the new content."),
    repo_path: Optional[Path] = typer.Option(None, "--repo-path", file_okay=False, help="Git working copy to read revisions from."),
    before: Optional[str] = typer.Option(None, help="Revision holding the old content."),
    after: Optional[str] = typer.Option(None, help="Revision holding the new content."),
    use_ai: bool = typer.Option(True, "--ai/--no-ai", help="Classify the diff with the configured LLM."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    llm_provider: Optional[str] = typer.Option(None, help="Override the configured LLM provider."),
    llm_model: Optional[str] = typer.Option(None, help="Override the configured LLM model."),
    llm_api_key: Optional[str] = typer.Option(None, help="API key for cloud LLM providers."),
):
    """Analyze the impact of one changed file."""
    _require_project(project_id)

    old_content = old_file.read_text(encoding="utf-8") if old_file else None
    new_content = new_file.read_text(encoding="utf-8") if new_file else None
    if repo_path is not None:
        revisions = GitRevisionSource(repo_path)
        if old_content is None and before:
            old_content = revisions.get_file_content(file_path, before)
        if new_content is None and after:
            new_content = revisions.get_file_content(file_path, after)

    analyzer = _build_analyzer(use_ai, llm_provider, llm_model, llm_api_key)
    try:
        result = analyzer.analyze_file_change(project_id, repo_id, file_path, old_content, new_content)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    _emit([result], as_json, single=True)


@analyze_grp.command("push")
def analyze_push_event(
    project_id: str = typer.Argument(..., help="Project whose graph to use."),
    repo_id: str = typer.Argument(..., help="Repository that received the push."),
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Push payload JSON."),
    repo_path: Optional[Path] = typer.Option(None, "--repo-path", file_okay=False, help="Git working copy of the pushed repo."),
    pull: bool = typer.Option(False, "--pull", help="Fast-forward the working copy first."),
    signature: Optional[str] = typer.Option(None, help="X-Hub-Signature-256 header value to verify."),
    secret: str = typer.Option("", envvar="GITHUB_WEBHOOK_SECRET", help="Webhook secret for signature checks."),
    use_ai: bool = typer.Option(True, "--ai/--no-ai", help="Classify each diff with the configured LLM."),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON."),
    llm_provider: Optional[str] = typer.Option(None, help="Override the configured LLM provider."),
    llm_model: Optional[str] = typer.Option(None, help="Override the configured LLM model."),
    llm_api_key: Optional[str] = typer.Option(None, help="API key for cloud LLM providers."),
):
    """Analyze every changed source file of a push event."""
    _require_project(project_id)

    body = payload_file.read_bytes()
    if signature is not None and not verify_github_signature(body, signature, secret):
        typer.echo("❌ Invalid webhook signature.", err=True)
        raise typer.Exit(code=1)
    try:
        event = parse_push_payload(json.loads(body))
    except (json.JSONDecodeError, AttributeError, TypeError) as exc:
        raise typer.BadParameter(f"Unreadable push payload: {exc}")

    revisions = None
    if repo_path is not None:
        revisions = GitRevisionSource(repo_path)
        if pull:
            revisions.pull_latest()

    analyzer = _build_analyzer(use_ai, llm_provider, llm_model, llm_api_key)
    results = analyze_push(event, project_id, repo_id, analyzer, revisions=revisions)

    if not results and not as_json:
        typer.echo(f"No cross-repository impact in {len(event.changed_files)} changed files.")
        return
    _emit(results, as_json)


# ===================================================================
# ig config ...
# ===================================================================

@config_grp.command("set-llm")
def set_llm(
    provider: str = typer.Argument(..., help="ollama, groq, openai, anthropic, gemini or openrouter."),
    model: Optional[str] = typer.Option(None, help="Model name (defaults to the provider default)."),
    api_key: str = typer.Option("", help="API key for cloud providers."),
    endpoint: str = typer.Option("", help="Custom endpoint URL."),
):
    """Choose the LLM used to classify changes."""
    provider = provider.lower()
    if provider not in config_manager.DEFAULT_CONFIGS:
        raise typer.BadParameter(f"Unknown provider: {provider}")
    defaults = config_manager.get_provider_config(provider)
    saved = config_manager.save_llm_config(
        provider,
        model or defaults["model"],
        api_key=api_key,
        endpoint=endpoint,
    )
    if not saved:
        typer.echo("❌ Could not write configuration.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"LLM provider set to '{provider}' ({model or defaults['model']}).")


@config_grp.command("unset-llm")
def unset_llm():
    """Reset the LLM configuration to the Ollama default."""
    config_manager.clear_llm_config()
    typer.echo("LLM configuration reset to defaults.")


@config_grp.command("show-llm")
def show_llm():
    """Show the current LLM provider configuration."""
    cfg = config_manager.load_config()
    api_key = cfg.get("api_key", "")
    typer.echo(f"Provider  {cfg.get('provider', 'ollama')}")
    typer.echo(f"Model     {cfg.get('model', '')}")
    if cfg.get("endpoint"):
        typer.echo(f"Endpoint  {cfg['endpoint']}")
    if api_key:
        typer.echo(f"API Key   {api_key[:4]}{'•' * min(max(len(api_key) - 4, 0), 16)}")
    else:
        typer.echo("API Key   (not set)")
    typer.echo(f"Config    {config.CONFIG_FILE}")


if __name__ == "__main__":
    app()

"""Command hierarchy groups for the ``ig`` CLI.

  ig graph    : Inspect and edit project dependency graphs
  ig analyze  : Change-impact analysis
  ig config   : LLM configuration
"""

from __future__ import annotations

import typer

# ── Graph group ──────────────────────────────────────────────
graph_grp = typer.Typer(
    help="🕸️  Graphs: list, inspect, import, and prune project graphs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Analysis group ───────────────────────────────────────────
analyze_grp = typer.Typer(
    help="🔍 Analysis: impact of a changed file or a whole push.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration: LLM provider used by the change classifier.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

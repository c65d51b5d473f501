"""Query command for the strapisync CLI.

Commands:
- query: Print the bracket-notation query string for a JSON query
"""

from __future__ import annotations

import json
import sys

import click

from strapisync.core.query import build_query


@click.command()
@click.argument("query_json", required=False)
def query(query_json: str | None) -> None:
    """Build a query string from JSON (argument or stdin).

    Example:
        strapisync query '{"filters": {"email": "a@b.c"}, "fields": ["email"]}'
    """
    if query_json is None:
        query_json = click.get_text_stream("stdin").read()

    try:
        parsed = json.loads(query_json)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON: {e}", err=True)
        sys.exit(1)
    if not isinstance(parsed, dict):
        click.echo("Error: Query must be a JSON object", err=True)
        sys.exit(1)

    click.echo(build_query(parsed))

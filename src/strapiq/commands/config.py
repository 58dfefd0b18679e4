"""Config commands -- inspect the effective configuration."""

from __future__ import annotations

import typer

from strapiq.commands import get_client
from strapiq.output import info, print_records

config_app = typer.Typer(no_args_is_help=True)

_SECRETS = ("password", "token")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the configuration after merging file, environment and defaults.

    Secrets are masked.

    Example::

        strapiq config show --json
    """
    client = get_client(ctx)
    data = client.config.model_dump(mode="json")
    for key in _SECRETS:
        if data.get(key):
            data[key] = "********"
    info(f"Query dialect: Strapi v{client.api_version}")
    print_records(data)

"""Built-in CLI sub-commands for strapiq.

* :mod:`~strapiq.commands.query` -- ``query``, ``find`` and ``url``.
* :mod:`~strapiq.commands.cache` -- cache invalidation.
* :mod:`~strapiq.commands.config` -- show the effective configuration.

Commands get their :class:`~strapiq.client.StrapiClient` from
:func:`get_client`, which builds one from ``--config`` and the environment
on first use.  A client already present in ``ctx.obj["client"]`` is used
as-is.
"""

from __future__ import annotations

import typer

from strapiq.client import StrapiClient


def get_client(ctx: typer.Context) -> StrapiClient:
    """Return the client for this invocation, creating it on first use."""
    obj = ctx.ensure_object(dict)
    client = obj.get("client")
    if client is None:
        from strapiq.config import load_config

        client = StrapiClient(load_config(obj.get("config_path")))
        obj["client"] = client
        ctx.call_on_close(client.close)
    return client

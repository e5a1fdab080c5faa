"""Built-in CLI sub-commands for schwabli.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~schwabli.commands.session` -- ``login``, ``get`` and ``post``
  against the broker's web API.
* :mod:`~schwabli.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or plain callback functions
registered directly on the root app (for ``login``, ``get``, ``post``).
"""

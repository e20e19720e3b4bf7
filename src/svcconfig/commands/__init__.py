"""Built-in CLI sub-commands for svcconfig.

This package groups all Typer sub-command modules that form the CLI's
command tree:

* :mod:`~svcconfig.commands.convert` -- import an OpenAPI document and
  print the normalized service configuration.
* :mod:`~svcconfig.commands.normalize` -- normalize configuration
  documents, or rebuild descriptors from a normalized one.
* :mod:`~svcconfig.commands.inspect` -- list what an import synthesizes.
* :mod:`~svcconfig.commands.config` -- view and modify user settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``inspect`` and ``config``) or plain callback
functions registered directly on the root app (for single commands like
``convert``).
"""

"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~svcconfig.exceptions.SvcConfigError` subclass.
External tooling (CI scripts, build rules) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ svcconfig convert openapi.yaml
    $ echo $?
    8   # EXIT_CONVERSION_FAILED -- the run reported ERROR diagnostics
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""The API description could not be read, parsed, or validated."""

EXIT_CONVERSION_FAILED = 8
"""The conversion finished but reported at least one ERROR diagnostic."""

EXIT_PIPELINE_ERROR = 9
"""The processing pipeline is wired incorrectly (internal defect)."""

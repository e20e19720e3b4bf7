"""Exception hierarchy for svcconfig.

All exceptions inherit from :class:`SvcConfigError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`svcconfig.exit_codes`.
The top-level error handler in :func:`svcconfig.app.main` catches
``SvcConfigError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

User-facing problems with the *input* (unresolvable names, duplicate
declarations, bad selectors) are never raised: they are reported as
:class:`~svcconfig.diag.Diag` records. The exceptions below cover problems
with the tool's own inputs and wiring.

Subclass hierarchy::

    SvcConfigError (exit 1)
    +-- InvalidUsageError              (exit 2)
    +-- SpecParseError                 (exit 7)
    +-- ConversionFailedError          (exit 8)
    +-- ConfigError                    (exit 1)
    +-- PipelineError                  (exit 9)
        +-- CyclicStageDependencyError
        +-- ProcessorNotRegisteredError
        +-- StageNotEstablishedError
        +-- CyclicAspectDependencyError
        +-- AttributeSlotError
        +-- BuilderStateError
"""

from svcconfig.exit_codes import (
    EXIT_CONVERSION_FAILED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PIPELINE_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


class SvcConfigError(Exception):
    """Base exception for all svcconfig errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`svcconfig.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SvcConfigError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(SvcConfigError):
    """Raised when the API description cannot be parsed or fails validation."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class ConversionFailedError(SvcConfigError):
    """Raised by the CLI when a conversion run reported ERROR diagnostics."""

    exit_code = EXIT_CONVERSION_FAILED


class ConfigError(SvcConfigError):
    """Raised for unreadable or invalid tool settings and configuration files."""

    exit_code = EXIT_GENERIC_FAILURE


class PipelineError(SvcConfigError):
    """Raised when the processing pipeline is wired incorrectly.

    These are defects in how processors, aspects, and attribute slots were
    registered, never problems with the user's input. They abort the run and
    are not converted into diagnostics by the core.
    """

    exit_code = EXIT_PIPELINE_ERROR


class CyclicStageDependencyError(PipelineError):
    """Raised when establishing a stage reaches itself through ``requires()``."""


class ProcessorNotRegisteredError(PipelineError):
    """Raised when no processor establishes a requested stage."""


class StageNotEstablishedError(PipelineError):
    """Raised when a processor reports success but did not set its stage attribute."""


class CyclicAspectDependencyError(PipelineError):
    """Raised when config aspects declare a cycle of merge dependencies."""


class AttributeSlotError(PipelineError):
    """Raised when an element attribute slot is undeclared or written twice."""


class BuilderStateError(PipelineError):
    """Raised when a configuration builder is used after it has been built."""

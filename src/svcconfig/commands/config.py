"""Config commands -- view and modify the user settings.

Provides the ``svcconfig config`` sub-command group for reading,
updating, and resetting the user's settings file
(:class:`~svcconfig.config.ToolSettings`). The settings are the defaults
of every run; project files, environment variables and CLI flags still
take precedence over them.
"""

from __future__ import annotations

import typer

from svcconfig.output import emit_document, error, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", help="Show the settings after all precedence layers."
    ),
) -> None:
    """Show the current settings.

    Prints the settings directory followed by the user settings, or the
    fully resolved settings with ``--effective``.

    Example::

        svcconfig config show
        svcconfig config show --effective
    """
    from svcconfig.commands.convert import load_settings
    from svcconfig.config import DocumentFormat, get_config_dir, load_user_settings

    info(f"Config directory: {get_config_dir()}")
    settings = load_settings() if effective else load_user_settings()
    emit_document(settings.model_dump(mode="json"), DocumentFormat.JSON)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Settings key, e.g. 'max_errors'."),
    value: str = typer.Argument(help="Value to set. Lists take comma-separated items."),
) -> None:
    """Set a user setting.

    The value is coerced to the type of the existing setting (bool, int,
    list or str) and the result is validated before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown, the value cannot be
            coerced, or validation fails.

    Example::

        svcconfig config set max_errors 50
        svcconfig config set experiments proto3_config_merging
        svcconfig config set warning_filter '^http-'
    """
    from svcconfig.config import save_user_settings, update_user_setting
    from svcconfig.exceptions import InvalidUsageError

    try:
        settings = update_user_setting(key, value)
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    save_user_settings(settings)
    success(f"Set {key} = {getattr(settings, key)}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation."),
) -> None:
    """Reset the user settings to defaults.

    Example::

        svcconfig config reset --force
    """
    from svcconfig.config import ToolSettings, save_user_settings

    if not force:
        confirmed = typer.confirm("Reset all settings to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_user_settings(ToolSettings())
    success("Settings reset to defaults.")

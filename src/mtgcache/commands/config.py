"""Config commands -- view and modify global configuration.

Provides the ``mtgcache config`` sub-command group for the user's global
configuration file (:class:`~mtgcache.models.GlobalConfig`): the MTGJSON
base URL, the default download directory, version tag and refresh
interval, and request settings.

Keys use dot notation matching the JSON layout, e.g.
``defaults.directory`` or ``request.timeout``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from mtgcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)

_UNSET_WORDS = ("", "none", "null")


def _locate(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    """Return the dict holding *key* and the final key segment.

    Raises:
        typer.Exit: With code 2 if any segment is unknown.
    """
    *parents, final_key = key.split(".")
    target = data
    for part in parents:
        if not isinstance(target.get(part), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)
    return target, final_key


def _coerce(key: str, current: Any, value: str) -> Any:
    """Turn the command-line string *value* into the type stored at *key*."""
    if key == "defaults.directory":
        if value.strip().lower() in _UNSET_WORDS:
            return None
        directory = Path(value).expanduser().resolve()
        if not directory.is_dir():
            error(f"Directory does not exist: {directory}")
            raise typer.Exit(code=2)
        return str(directory)

    if key == "base_url":
        if not value.startswith(("http://", "https://")):
            error(f"base_url must be an http(s) URL, got: {value}")
            raise typer.Exit(code=2)
        return value.rstrip("/")

    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, (int, float)):
        try:
            return type(current)(value)
        except ValueError:
            error(f"Expected {type(current).__name__} for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    return value


def _save(data: dict[str, Any]) -> None:
    from pydantic import ValidationError

    from mtgcache.config import save_global_config
    from mtgcache.models import GlobalConfig

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None
    save_global_config(new_config)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Example::

        mtgcache config show
        mtgcache --json config show
    """
    from mtgcache.config import get_config_dir, load_global_config

    config = load_global_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'defaults.refresh_interval_ms')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    ``defaults.directory`` is expanded (``~``) and must name an existing
    directory; ``none`` or an empty string clears it so the XDG cache
    directory is used. ``base_url`` must be an http(s) URL. Other values
    are coerced to the existing field's type.

    Example::

        mtgcache config set defaults.directory ~/mtg
        mtgcache config set defaults.refresh_interval_ms 3600000
        mtgcache config set request.timeout 120
    """
    from mtgcache.config import load_global_config

    data = load_global_config().model_dump(mode="json")
    target, final_key = _locate(data, key)
    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced
    _save(data)

    if coerced is None:
        success(f"Cleared {key}")
    else:
        success(f"Set {key} = {coerced}")


@config_app.command("unset")
def config_unset(
    key: str = typer.Argument(help="Config key to restore to its default."),
) -> None:
    """Restore one configuration value to its default.

    Example::

        mtgcache config unset defaults.directory
    """
    from mtgcache.config import load_global_config
    from mtgcache.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")
    target, final_key = _locate(data, key)
    default_target, _ = _locate(GlobalConfig().model_dump(mode="json"), key)
    target[final_key] = default_target[final_key]
    _save(data)
    success(f"Reset {key} = {target[final_key]}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults.

    Example::

        mtgcache config reset --force
    """
    from mtgcache.config import save_global_config
    from mtgcache.models import GlobalConfig

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

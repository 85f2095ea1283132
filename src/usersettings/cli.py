"""CLI entry point for usersettings-admin."""

import sys
import uuid as uuid_lib
from datetime import datetime
from decimal import Decimal, InvalidOperation

import click

from usersettings import create_service
from usersettings.config import (
    REGISTRY,
    load_config,
    parse_value,
    read_raw_values,
    resolve_entry,
    serialize_value,
    store_value,
)
from usersettings.db import (
    close_standalone_db,
    get_db_path,
    get_schema_version,
    get_standalone_db,
    init_db_at,
    transaction_on,
)
from usersettings.directory import StaticDirectory
from usersettings.errors import SettingsError
from usersettings.models.setting import SettingValues, UserSetting, ValueSlot
from usersettings.ownership import CurrentUser, canonical_user_name

SLOT_TYPES = {
    "str": ValueSlot.STR,
    "txt": ValueSlot.TXT,
    "int": ValueSlot.INT,
    "bool": ValueSlot.BOOL,
    "guid": ValueSlot.GUID,
    "decimal": ValueSlot.DECIMAL,
    "datetime": ValueSlot.DATETIME,
}


def _part(value: str | None) -> str | uuid_lib.UUID | None:
    """Treat an argument that parses as a UUID as a GUID, anything else as a name."""
    if value is None:
        return None
    try:
        return uuid_lib.UUID(value)
    except ValueError:
        return value


def _convert(slot: ValueSlot, raw: str) -> object:
    match slot:
        case ValueSlot.INT:
            return int(raw)
        case ValueSlot.BOOL:
            return raw.lower() in ("true", "1", "yes", "on")
        case ValueSlot.GUID:
            return uuid_lib.UUID(raw)
        case ValueSlot.DECIMAL:
            return Decimal(raw)
        case ValueSlot.DATETIME:
            return datetime.fromisoformat(raw)
        case _:
            return raw


def _echo_values(values: SettingValues) -> None:
    found = values.non_empty()
    if not found:
        click.echo("(empty)")
    for slot, value in found.items():
        click.echo(f"  {slot.name.lower()} = {value}")


def _echo_record(record: UserSetting) -> None:
    user = record.user_name or record.user_guid
    module = record.module_name or record.module_guid
    setting = record.setting_name or record.setting_guid
    payload = ", ".join(f"{s.name.lower()}={v}" for s, v in record.values.non_empty().items())
    click.echo(f"{user}/{module}/{setting}: {payload or '(empty)'}")


def _warn_if_disabled(enabled: bool) -> None:
    if not enabled:
        click.echo(
            click.style("settings.enabled is false; nothing is read or written", fg="yellow"),
            err=True,
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
def main() -> None:
    """usersettings administration tool."""


# ---- config group --------------------------------------------------------


@main.group()
def config() -> None:
    """View and manage configuration settings."""


@config.command("list")
def config_list() -> None:
    """Show all settings with their effective values."""
    db_values = read_raw_values(get_standalone_db())

    current_group = ""
    for entry in REGISTRY:
        group = entry.key.split(".")[0]
        if group != current_group:
            if current_group:
                click.echo()
            click.echo(click.style(f"[{group}]", bold=True))
            current_group = group

        raw = db_values.get(entry.key)
        if raw is not None:
            value = raw
            source = "db"
        else:
            value = serialize_value(entry, entry.default)
            source = "default"

        display = value if value else "(empty)"
        source_tag = click.style(f"[{source}]", fg="cyan" if source == "db" else "yellow")
        click.echo(f"  {entry.key} = {display}  {source_tag}")
        click.echo(click.style(f"    {entry.description}", dim=True))

    close_standalone_db()


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Get the effective value of a setting."""
    entry = resolve_entry(key)
    if not entry:
        click.echo(f"Unknown setting: {key}", err=True)
        sys.exit(1)

    value = load_config(get_standalone_db())[key]
    if isinstance(value, bool):
        click.echo("true" if value else "false")
    else:
        click.echo(value if value else "(empty)")

    close_standalone_db()


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a configuration value in the database."""
    entry = resolve_entry(key)
    if not entry:
        click.echo(f"Unknown setting: {key}", err=True)
        sys.exit(1)

    try:
        parse_value(entry, value)
    except (ValueError, TypeError) as exc:
        click.echo(f"Invalid value for {key} ({entry.type.value}): {exc}", err=True)
        sys.exit(1)

    db = get_standalone_db()
    with transaction_on(db):
        store_value(db, key, value)
    click.echo(f"{key} = {value}")
    close_standalone_db()


# ---- settings commands ---------------------------------------------------


@main.command("get")
@click.argument("parts", nargs=-1, required=True)
@click.option("--common", is_flag=True, help="Read SETTING from the common namespace")
def get_command(parts: tuple[str, ...], common: bool) -> None:
    """Print every non-empty value slot of USER MODULE SETTING (or SETTING with --common)."""
    expected = 1 if common else 3
    if len(parts) != expected:
        click.echo(f"Expected {expected} argument(s), got {len(parts)}", err=True)
        sys.exit(2)

    service = create_service()
    _warn_if_disabled(service.enabled)
    try:
        if common:
            lookup = service.get_common_settings(_part(parts[0]))
        else:
            user, module, setting = (_part(p) for p in parts)
            lookup = service.get_settings(user, module, setting)
    except SettingsError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)

    if not lookup.found:
        click.echo(f"Not found ({lookup.status.value})", err=True)
        sys.exit(1)
    _echo_values(lookup.values)
    close_standalone_db()


@main.command("set")
@click.argument("user")
@click.argument("module")
@click.argument("setting")
@click.argument("value")
@click.option(
    "--type",
    "slot_type",
    type=click.Choice(list(SLOT_TYPES)),
    default="str",
    show_default=True,
    help="Value slot to write (the other slots are cleared)",
)
def set_command(user: str, module: str, setting: str, value: str, slot_type: str) -> None:
    """Write one value slot of a setting."""
    slot = SLOT_TYPES[slot_type]
    try:
        converted = _convert(slot, value)
    except (ValueError, InvalidOperation) as exc:
        click.echo(f"Invalid {slot_type} value: {exc}", err=True)
        sys.exit(1)

    service = create_service()
    _warn_if_disabled(service.enabled)
    try:
        ok = service.set_value(slot, _part(user), _part(module), _part(setting), converted)
    except SettingsError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)

    click.echo("Saved." if ok else "Not saved.")
    close_standalone_db()


@main.command("delete")
@click.option("--user", default=None, help="User name or GUID")
@click.option("--module", default=None, help="Module name or GUID")
@click.option("--setting", default=None, help="Setting name or GUID")
@click.option("--all", "delete_all", is_flag=True, help="Allow deleting every setting")
def delete_command(
    user: str | None, module: str | None, setting: str | None, delete_all: bool
) -> None:
    """Bulk-delete settings; omitted parts match anything."""
    if not (user or module or setting) and not delete_all:
        click.echo("Refusing to delete every setting without --all", err=True)
        sys.exit(1)

    service = create_service()
    _warn_if_disabled(service.enabled)
    ok = service.delete_settings(_part(user), _part(module), _part(setting))
    click.echo("Deleted." if ok else "Nothing deleted.")
    close_standalone_db()


@main.command("list")
@click.option("--user", default=None, help="User name or GUID")
@click.option("--module", default=None, help="Module name or GUID")
@click.option("--common", is_flag=True, help="List the common namespace")
def list_command(user: str | None, module: str | None, common: bool) -> None:
    """List settings of a user, a module, or the common namespace."""
    service = create_service()
    _warn_if_disabled(service.enabled)

    if common:
        records = service.all_common_settings()
    elif user and module:
        names = service.all_setting_names(user, module)
        for name in names or []:
            click.echo(name)
        close_standalone_db()
        return
    elif user:
        records = service.all_settings_by_user(_part(user))
    elif module:
        records = service.all_settings_by_module(_part(module))
    else:
        click.echo("Pass --user, --module or --common", err=True)
        sys.exit(1)

    for record in records or []:
        _echo_record(record)
    close_standalone_db()


# ---- admin commands ------------------------------------------------------


@main.command("init-db")
def init_db_command() -> None:
    """Initialize the database schema."""
    db_path = get_db_path()
    init_db_at(db_path)
    version = get_schema_version(get_standalone_db())
    click.echo(f"Database initialized (schema version {version}).")
    close_standalone_db()


@main.command("whoami")
@click.option("--domain", envvar="USERDOMAIN", default=None, help="Domain of the current user")
@click.option(
    "--directory",
    "directory_path",
    envvar="USERSETTINGS_DIRECTORY",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON object mapping login names to directory names",
)
def whoami_command(domain: str | None, directory_path: str | None) -> None:
    """Show the canonical name the ownership guard would use."""
    directory = StaticDirectory.from_json(directory_path) if directory_path else None
    service = create_service(directory=directory)
    login = service.env_or_directory_user_name()
    click.echo(canonical_user_name(CurrentUser(login=login, domain=domain)))
    close_standalone_db()

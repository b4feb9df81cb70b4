"""CLI commands for push-relay."""

import re

import click

# Pushover device names: up to 25 letters, digits, "_" or "-"
DEVICE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,25}$")


def _require_credentials():
    """Load stored credentials or exit with a hint to register."""
    from push_relay.errors import SecretStoreError
    from push_relay.secret_store import SecretStore

    try:
        credentials = SecretStore().load_credentials()
    except SecretStoreError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if credentials is None:
        click.echo("Device not registered. Run 'push-relay register' first.", err=True)
        raise SystemExit(1)
    return credentials


def _device_name(value: str) -> str:
    if not DEVICE_NAME_RE.match(value):
        raise click.BadParameter("use up to 25 letters, digits, '_' or '-'")
    return value


@click.group()
@click.version_option(package_name="push-relay")
def main() -> None:
    """Relay Pushover notifications to the desktop."""
    pass


@main.command()
def register() -> None:
    """Log in and register this machine as a new device."""
    import asyncio

    from push_relay.config import Config
    from push_relay.errors import RelayError
    from push_relay.secret_store import SecretStore

    store = SecretStore()
    try:
        if store.has_any():
            click.echo("Device already registered. Run 'push-relay delete' first.")
            return

        config = Config.load()
        email = click.prompt("Email")
        password = click.prompt("Password", hide_input=True)
        name = click.prompt("Device name", value_proc=_device_name)

        credentials = asyncio.run(_register(config, email, password, name))
        store.store_credentials(credentials)
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Registered device '{name}'")


async def _register(config, email: str, password: str, name: str):
    """Login (retrying once with a 2FA code) and register the device."""
    from push_relay.api_client import ApiClient
    from push_relay.errors import TwoFactorRequired
    from push_relay.models import Credentials

    async with ApiClient(config.api) as api:
        try:
            secret = await api.login(email, password)
        except TwoFactorRequired:
            code = click.prompt("Two-factor code")
            secret = await api.login(email, password, twofa=code)

        device_id = await api.register_device(secret, name)
    return Credentials(secret=secret, device_id=device_id)


@main.command()
def delete() -> None:
    """Delete stored credentials."""
    from push_relay.errors import SecretStoreError
    from push_relay.secret_store import SecretStore

    try:
        removed = SecretStore().delete_credentials()
    except SecretStoreError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if removed:
        click.echo("Credentials deleted")
    else:
        click.echo("No credentials stored")


@main.command()
def download() -> None:
    """Show and acknowledge all queued messages, then exit."""
    import asyncio

    from push_relay.config import Config
    from push_relay.errors import RelayError

    credentials = _require_credentials()
    config = Config.load()

    try:
        count = asyncio.run(_download(config, credentials))
    except RelayError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"{count} message{'s' if count != 1 else ''} downloaded")


async def _download(config, credentials) -> int:
    from push_relay.api_client import ApiClient
    from push_relay.drain import MessageDrain
    from push_relay.icon_cache import IconCache
    from push_relay.notifications import Notifier

    async with ApiClient(config.api) as api:
        drain = MessageDrain(api, IconCache(config.icon_dir, api), Notifier(config.notifications))
        return await drain.drain(credentials)


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Show debug events on the console")
def run(verbose: bool) -> None:
    """Run the relay in the foreground."""
    import asyncio

    from push_relay.config import Config
    from push_relay.daemon import run_daemon
    from push_relay.errors import FatalProtocolError
    from push_relay.logging import configure

    credentials = _require_credentials()
    config = Config.load()
    configure(config, verbose=verbose)

    try:
        asyncio.run(run_daemon(config, credentials))
    except FatalProtocolError:
        raise SystemExit(2)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from push_relay.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[relay]")
    click.echo(f"  websocket_url = {cfg.relay.websocket_url}")
    click.echo(f"  read_timeout = {cfg.relay.read_timeout}")
    click.echo(f"  backoff_floor = {cfg.relay.backoff_floor}")
    click.echo(f"  backoff_ceiling = {cfg.relay.backoff_ceiling}")
    click.echo(f"  backoff_step = {cfg.relay.backoff_step}")
    click.echo(f"  recover_delay = {cfg.relay.recover_delay}")
    click.echo()
    click.echo("[api]")
    click.echo(f"  base_url = {cfg.api.base_url}")
    click.echo(f"  timeout = {cfg.api.timeout}")
    click.echo()
    click.echo("[notifications]")
    click.echo(f"  enabled = {cfg.notifications.enabled}")
    click.echo(f"  app_name = {cfg.notifications.app_name}")
    click.echo(f"  high_priority_urgency = {cfg.notifications.high_priority_urgency}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from push_relay.config import Config

    cfg = Config.load()

    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from push_relay.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")


@main.group()
def cache() -> None:
    """Manage the icon cache."""
    pass


@cache.command("clear")
def cache_clear() -> None:
    """Delete all cached icons."""
    from push_relay.config import Config
    from push_relay.icon_cache import clear_cache

    cfg = Config.load()
    removed = clear_cache(cfg.icon_dir)
    click.echo(f"Removed {removed} cached icon{'s' if removed != 1 else ''}")


if __name__ == "__main__":
    main()

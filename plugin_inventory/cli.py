"""plugin-inventory command line."""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import click
import yaml

from . import __version__
from .config import ConfigError, get_inventory_dir, load_settings
from .core.inventory import PluginInventoryFilter, SQLiteInventory
from .core.merge import SQLiteInventoryMetadata
from .core.schema import InventoryStoreError
from .uploader import BundleUploadError, PluginBundleUploader


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def main(verbose: bool):
    """Manage a CLI plugin inventory and publish plugin bundles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )


@main.command("list")
@click.option("--inventory-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory containing plugin_inventory.db")
@click.option("--image-prefix", default=None, help="Prefix artifact images are resolved against")
@click.option("--name", default=None)
@click.option("--target", default=None)
@click.option("--version", "version", default=None, help="Exact version, or 'latest' for the recommended one")
@click.option("--os", "os_", default=None)
@click.option("--arch", default=None)
@click.option("--publisher", default=None)
@click.option("--vendor", default=None)
@click.option("--include-hidden/--exclude-hidden", default=True)
@click.option("--output", "-o", default="table", type=click.Choice(["table", "yaml", "json"]))
def list_plugins(
    inventory_dir: Optional[Path],
    image_prefix: Optional[str],
    name: Optional[str],
    target: Optional[str],
    version: Optional[str],
    os_: Optional[str],
    arch: Optional[str],
    publisher: Optional[str],
    vendor: Optional[str],
    include_hidden: bool,
    output: str,
):
    """List plugins in an inventory."""
    inventory = SQLiteInventory(inventory_dir or get_inventory_dir(), image_prefix=image_prefix)

    try:
        entries = inventory.get_plugins(PluginInventoryFilter(
            name=name,
            target=target,
            version=version,
            os=os_,
            arch=arch,
            publisher=publisher,
            vendor=vendor,
            include_hidden=include_hidden,
        ))
    except InventoryStoreError as e:
        raise click.ClickException(str(e))

    if output == "json":
        click.echo(json.dumps([asdict(e) for e in entries], indent=2))
        return
    if output == "yaml":
        click.echo(yaml.safe_dump([asdict(e) for e in entries], sort_keys=False), nl=False)
        return

    if not entries:
        click.echo("No plugins found.")
        return

    rows = [("NAME", "TARGET", "RECOMMENDED", "VERSIONS")]
    for entry in entries:
        rows.append((entry.name, entry.target or "global", entry.recommended_version,
                     ", ".join(entry.available_versions)))

    widths = [max(len(row[i]) for row in rows) for i in range(3)]
    for row in rows:
        click.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths)) + "  " + row[3])


@main.command("upload-bundle")
@click.option("--tar", "tar", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Plugin bundle archive")
@click.option("--to-repo", default=None, help="Destination repository (defaults to the configured one)")
@click.option("--upload-delay", type=float, default=None, help="Seconds to wait between image uploads")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Settings file")
def upload_bundle(tar: Path, to_repo: Optional[str], upload_delay: Optional[float], config_path: Optional[Path]):
    """Publish a plugin bundle to an air-gapped repository."""
    try:
        settings = load_settings(config_path)
        if upload_delay is not None:
            if upload_delay < 0:
                raise click.BadParameter("must not be negative", param_hint="--upload-delay")
            settings.upload_delay = upload_delay

        uploader = PluginBundleUploader.from_settings(tar, settings, destination_repo=to_repo)
        published = uploader.upload_plugin_bundle()
    except (ConfigError, BundleUploadError) as e:
        raise click.ClickException(str(e))

    click.echo(published)


@main.command("merge")
@click.argument("local_db", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("incoming_db", type=click.Path(dir_okay=False, path_type=Path))
def merge(local_db: Path, incoming_db: Path):
    """Merge the rows of INCOMING_DB into LOCAL_DB."""
    try:
        merged = SQLiteInventoryMetadata(local_db).merge_inventory_metadata_database(incoming_db)
    except InventoryStoreError as e:
        raise click.ClickException(str(e))

    if merged:
        click.echo(f"Merged {incoming_db} into {local_db}")
    else:
        click.echo(f"{incoming_db} does not exist, nothing merged")


if __name__ == "__main__":
    main()

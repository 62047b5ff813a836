"""keycloak-sync command line entry point.

Reads the configured Keycloak realms, reconciles them with an optional
baseline of OpenShift groups and writes the resulting OpenShift groups.
"""

import enum
import functools
from pathlib import Path
from typing import Annotated, Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError

import keycloak
import s3
from config import get_logger, get_settings
from errors import BaselineDecodeError, SyncConfigurationError
from group import GroupList
from openshift import OutputFormat, decode_baseline, emit
from projection import project
from reconcile import reconcile
from sync_config import load_sync_config

logger = get_logger(service="main")

app = typer.Typer(
    name="keycloak-sync",
    help="Reconcile Keycloak realm groups into OpenShift groups.",
    add_completion=False,
)


class ExitCode(enum.IntEnum):
    OK = 0
    FAILURE = 1
    # configuration issues
    NO_CONFIG = 100
    CONFIG_MISSING = 101
    READING_CONFIG = 102


def _fail(message: str, code: ExitCode = ExitCode.FAILURE) -> typer.Exit:
    logger.error(message)
    return typer.Exit(code=int(code))


def read_baseline(location: str, prune: bool) -> GroupList:
    try:
        data = s3.read_location(location)
    except FileNotFoundError:
        raise _fail(f"No file named '{location}' found as source for OpenShift groups") from None
    except (OSError, ValueError, BotoCoreError, ClientError) as e:
        raise _fail(f"Could not open OpenShift groups from '{location}': {e}") from e

    try:
        return decode_baseline(data, prune=prune)
    except BaselineDecodeError as e:
        raise _fail(f"Could not read OpenShift group information from '{location}': {e}") from e


@app.command()
def run(  # noqa: PLR0913
    config_file: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="The path to the config file that drives the configuration."),
    ] = None,
    groups: Annotated[
        str,
        typer.Option(
            "--groups",
            "-g",
            help='OpenShift group list (yaml or json) to reconcile the Keycloak groups with. Use "-" for stdin or an s3:// URI.',
        ),
    ] = "",
    output: Annotated[
        str,
        typer.Option("--output", "-o", help='Where to write the OpenShift groups. "-" for stdout or an s3:// URI.'),
    ] = s3.STANDARD_STREAM,
    output_format: Annotated[
        Optional[OutputFormat],
        typer.Option("--format", "-f", case_sensitive=False, help="Output format."),
    ] = None,
    keycloak_debug: Annotated[
        bool,
        typer.Option("--keycloak-debug", "-D", help="Debug the rest input/output of the keycloak exchange."),
    ] = False,
) -> None:
    settings = get_settings()
    config_file = settings.sync_config_path if config_file is None else config_file
    output_format = OutputFormat(settings.output_format) if output_format is None else output_format

    if not config_file.strip():
        raise _fail("A configuration file is required", ExitCode.NO_CONFIG)
    if not Path(config_file).is_file():
        raise _fail(f"The configuration file {config_file} does not exist", ExitCode.CONFIG_MISSING)

    try:
        sync_config = load_sync_config(config_file)
    except SyncConfigurationError as e:
        raise _fail(f"Could not read config file: {e}", ExitCode.READING_CONFIG) from e

    if not sync_config.realms:
        raise _fail("No realms provided in configuration")

    # with a baseline only the groups that differ from it are written
    only_changed = False
    baseline = GroupList()
    groups = groups.strip()
    if groups:
        baseline = read_baseline(groups, prune=sync_config.prune)
        only_changed = True

    client_factory = functools.partial(keycloak.create_client, debug=keycloak_debug or settings.keycloak_debug)
    result = reconcile(sync_config, baseline, client_factory=client_factory)

    records = project(result.groups, prune_enabled=sync_config.prune, only_changed=only_changed)
    body = emit(records, output_format)
    try:
        s3.write_location(output, body, output_format.content_type)
    except (OSError, ValueError, BotoCoreError, ClientError) as e:
        raise _fail(f"Error writing OpenShift objects to '{output}': {e}") from e

    logger.info(f"Wrote {len(records)} groups", extra={"output": output, "format": output_format.value})


if __name__ == "__main__":
    app()

"""CLI interface for pys3up."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .config import UploadConfig, load_config
from .config import save_config as write_config
from .exceptions import (
    ExitCode,
    S3UpAuthenticationError,
    S3UpConfigError,
    S3UpError,
)
from .output import OutputFormatter
from .sync import S3Transport, UploadEngine, create_s3_client, validate_region
from .utils import DEFAULT_CONFIG_FILE

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """Configure logging based on the verbose flag."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        # Enable debug logging for pys3up modules only
        logging.getLogger("pys3up").setLevel(logging.DEBUG)
        for name in ("boto3", "botocore", "s3transfer", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


def build_config(
    file_config: UploadConfig,
    cli_config: UploadConfig,
) -> UploadConfig:
    """Merge defaults, config file and command line options.

    Args:
        file_config: Options loaded from the config file
        cli_config: Options given on the command line

    Returns:
        Merged configuration, with run toggles taken from the command line
    """
    config = UploadConfig()
    config.merge(file_config)
    config.merge(cli_config)
    config.with_defaults()

    config.dry_run = cli_config.dry_run
    config.verbose = cli_config.verbose
    config.quiet = cli_config.quiet
    config.do_upload = cli_config.do_upload
    config.do_cache = cli_config.do_cache
    config.gzip_html = cli_config.gzip_html
    return config


@click.command()
@click.option(
    "--workers",
    type=int,
    default=None,
    help="No. of workers/threads to use for S3 uploads (default: 2x CPU cores)",
)
@click.option(
    "--bucket",
    envvar="PYS3UP_BUCKET",
    default=None,
    help="S3 bucket to upload files to",
)
@click.option(
    "--source",
    default=None,
    help="Source folder for files to be uploaded to S3 (default: output)",
)
@click.option(
    "--cachefile",
    "cache_file",
    default=None,
    help="Location of the cache file (default: .pys3up.txt)",
)
@click.option(
    "--region",
    envvar="AWS_DEFAULT_REGION",
    default=None,
    help="AWS region (default: us-east-1)",
)
@click.option(
    "--profile",
    envvar="AWS_PROFILE",
    default=None,
    help="AWS profile to take the credentials from",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Connect/read timeout in seconds for a single S3 call (default: 60)",
)
@click.option(
    "--dry", "dry_run", is_flag=True, help="Dry run (no upload/cache update)"
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Print the name of the files as they are uploaded",
)
@click.option("--quiet", "-q", is_flag=True, help="Print only warnings and errors")
@click.option(
    "--upload/--no-upload",
    "do_upload",
    default=True,
    help="Do perform an upload (default: on)",
)
@click.option(
    "--cache/--no-cache",
    "do_cache",
    default=True,
    help="Do update the cache (default: on)",
)
@click.option(
    "--gzip/--no-gzip",
    "gzip_html",
    default=True,
    help="Gzip HTML files (default: on)",
)
@click.option(
    "--encrypt",
    is_flag=True,
    help="Encrypt files on server side",
)
@click.option(
    "--config",
    "config_file",
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Config file to read persistent options from",
)
@click.option(
    "--save-config",
    is_flag=True,
    help="Save the persistent options to the config file",
)
@click.version_option(package_name="pys3up")
@click.pass_context
def main(
    ctx: Any,
    workers: Optional[int],
    bucket: Optional[str],
    source: Optional[str],
    cache_file: Optional[str],
    region: Optional[str],
    profile: Optional[str],
    timeout: Optional[float],
    dry_run: bool,
    verbose: bool,
    quiet: bool,
    do_upload: bool,
    do_cache: bool,
    gzip_html: bool,
    encrypt: bool,
    config_file: str,
    save_config: bool,
) -> None:
    """pys3up - upload changed files of a folder to S3.

    File hashes of the last upload are kept in a cache file, so only new or
    modified files are uploaded. Nothing is ever deleted from the bucket.

    Examples:
        pys3up --bucket my-site --source public
        pys3up --bucket my-site --dry -v            # Preview changes
        pys3up --bucket my-site --save-config       # Remember options
    """
    configure_logging(verbose)
    out = OutputFormatter(quiet=quiet, verbose=verbose)

    config_path = Path(config_file)
    try:
        file_config = load_config(config_path)
    except S3UpError as e:
        out.error(str(e))
        ctx.exit(e.exit_code)
        return  # Unreachable, but helps type checker

    cli_config = UploadConfig(
        workers_count=workers,
        bucket_name=bucket,
        source=source,
        cache_file=cache_file,
        region=region,
        profile=profile,
        encrypt=encrypt,
        timeout=timeout,
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        do_upload=do_upload,
        do_cache=do_cache,
        gzip_html=gzip_html,
    )
    config = build_config(file_config, cli_config)

    try:
        config.validate()
        validate_region(config.region or "", profile=config.profile)
    except S3UpConfigError as e:
        out.error(f"Invalid options: {e}")
        out.error("Please use 'pys3up --help' for help.")
        ctx.exit(ExitCode.CMD_LINE_OPTION_ERROR)
        return
    except S3UpAuthenticationError as e:
        out.error(f"S3 Error: {e}")
        ctx.exit(ExitCode.S3_AUTH_ERROR)
        return

    if save_config:
        try:
            write_config(config, config_path)
        except S3UpError as e:
            out.error(str(e))
            ctx.exit(ExitCode.SETUP_FAILED)
            return
        out.info(f"Saved options to {config_path}")

    transport = None
    if config.do_upload and not config.dry_run:
        try:
            client = create_s3_client(
                region=config.region or "",
                profile=config.profile,
                timeout=config.timeout or 0,
            )
        except S3UpAuthenticationError as e:
            out.error(f"S3 Error: {e}")
            ctx.exit(ExitCode.S3_AUTH_ERROR)
            return
        transport = S3Transport(client, config.bucket_name or "")

    engine = UploadEngine(config, transport=transport, output=out)
    try:
        engine.run()
    except S3UpError as e:
        out.error(str(e))
        ctx.exit(e.exit_code)
    except KeyboardInterrupt:
        out.warning("Upload cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT


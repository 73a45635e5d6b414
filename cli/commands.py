"""Command handler functions for CLI operations."""

import sys
from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import CONFIG_PATH, EXIT_FAILED, EXIT_USAGE, HELP_TEXT
from cli.models import CommandResult, HelpCommand, UploadBundleCommand, UploadDifCommand
from cli.parser import split_debug_id
from cli.utils import feature_for_path, format_report
from publisher.api_client import ApiClient
from publisher.exceptions import ApiError, CapabilityError, MissingCredentialsError
from publisher.publisher import Publisher
from publisher.types import ArtifactKind, ArtifactSource, UploadOptions, UploadTarget

logger = get_logger(__name__)


_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get or create global Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        logger.debug("Loading configuration")
        _config = Config(CONFIG_PATH)
    return _config


def build_publisher(config: Config, target: UploadTarget, options: UploadOptions) -> Publisher:
    """
    Create a Publisher talking to the configured service.

    A dry run (options.no_upload) never sends a request, so it needs no token.

    Raises:
        MissingCredentialsError: If no auth token is configured for a real upload
    """
    token = config.get_auth_token()
    if not token and not options.no_upload:
        raise MissingCredentialsError(
            "No auth token configured. Set PUBLISHER_AUTH_TOKEN or add auth_token to the config file."
        )
    client = ApiClient(config.get_base_url(), token, options)
    return Publisher(client, target, options)


def load_sources(entries: tuple[str, ...], with_debug_ids: bool = False) -> list[ArtifactSource]:
    """
    Read artifact files from disk.

    Args:
        entries: File arguments; 'PATH=DEBUG_ID' when with_debug_ids is set
        with_debug_ids: Interpret entries as debug files

    Returns:
        ArtifactSource list in argument order

    Raises:
        OSError: If a file cannot be read
    """
    sources = []
    for entry in entries:
        if with_debug_ids:
            path, debug_id = split_debug_id(entry)
            feature = feature_for_path(path)
        else:
            path, debug_id, feature = entry, None, None
        data = Path(path).read_bytes()
        logger.debug(f"Read {path} ({len(data)} bytes)")
        sources.append(ArtifactSource(
            name=Path(path).name,
            data=data,
            debug_id=debug_id,
            required_feature=feature,
        ))
    return sources


def _resolve_target(
    config: Config,
    org: Optional[str],
    project: Optional[str],
    kind: ArtifactKind,
    release: Optional[str] = None,
    dist: Optional[str] = None
) -> UploadTarget:
    org = org or config.get_org()
    project = project or config.get_project()
    if not org:
        raise ValueError("No organization given. Use --org or set PUBLISHER_ORG.")
    if not project:
        raise ValueError("No project given. Use --project or set PUBLISHER_PROJECT.")
    return UploadTarget(org=org, project=project, kind=kind, release=release, dist=dist)


def _publish(
    cmd,
    kind: ArtifactKind,
    publisher: Optional[Publisher],
    config: Optional[Config]
) -> CommandResult:
    if config is None:
        config = get_config()

    try:
        target = _resolve_target(
            config, cmd.org, cmd.project, kind,
            release=getattr(cmd, 'release', None),
            dist=getattr(cmd, 'dist', None),
        )
    except ValueError as e:
        return CommandResult(f"Error: {e}", EXIT_USAGE)

    try:
        sources = load_sources(cmd.files, with_debug_ids=kind is ArtifactKind.DEBUG_FILE)
    except OSError as e:
        return CommandResult(f"Error: Cannot read {e.filename}: {e.strerror}", EXIT_USAGE)

    try:
        if publisher is None:
            options = config.get_upload_options(
                wait=cmd.wait, max_wait=cmd.max_wait, deadline=cmd.deadline, no_upload=cmd.no_upload
            )
            publisher = build_publisher(config, target, options)
        report = publisher.publish(sources)
    except MissingCredentialsError as e:
        return CommandResult(f"Error: {e}", EXIT_USAGE)
    except CapabilityError as e:
        logger.error(f"Capability negotiation failed: {e}")
        return CommandResult(f"Error: {e}", EXIT_FAILED)
    except ApiError as e:
        logger.error(f"Request failed: {e}")
        return CommandResult(f"Error: {e}", EXIT_FAILED)

    return CommandResult(format_report(report, color=sys.stdout.isatty()), report.exit_code)


def handle_upload_dif(
    cmd: UploadDifCommand,
    publisher: Optional[Publisher] = None,
    config: Optional[Config] = None
) -> CommandResult:
    """
    Handle 'upload-dif' command.

    Args:
        cmd: UploadDifCommand with files and target
        publisher: Optional Publisher for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        CommandResult with the report and exit code
    """
    return _publish(cmd, ArtifactKind.DEBUG_FILE, publisher, config)


def handle_upload_bundle(
    cmd: UploadBundleCommand,
    publisher: Optional[Publisher] = None,
    config: Optional[Config] = None
) -> CommandResult:
    """
    Handle 'upload-bundle' command.

    Args:
        cmd: UploadBundleCommand with files, target and release
        publisher: Optional Publisher for dependency injection (testing)
        config: Optional Config for dependency injection (testing)

    Returns:
        CommandResult with the report and exit code
    """
    return _publish(cmd, ArtifactKind.ARTIFACT_BUNDLE, publisher, config)


def handle_help(cmd: HelpCommand) -> CommandResult:
    return CommandResult(HELP_TEXT)


def dispatch(cmd, publisher: Optional[Publisher] = None, config: Optional[Config] = None) -> CommandResult:
    """Route a parsed command to its handler."""
    if isinstance(cmd, UploadDifCommand):
        return handle_upload_dif(cmd, publisher, config)
    elif isinstance(cmd, UploadBundleCommand):
        return handle_upload_bundle(cmd, publisher, config)
    return handle_help(cmd)

"""Command parser for CLI arguments."""

from typing import Optional

from cli.models import CommandRequest, HelpCommand, UploadBundleCommand, UploadDifCommand


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


VALUE_OPTIONS = {
    "upload-dif": ("--org", "--project", "--max-wait", "--deadline"),
    "upload-bundle": ("--org", "--project", "--release", "--dist", "--max-wait", "--deadline"),
}
FLAG_OPTIONS = ("--wait", "--no-upload")


def parse_command(argv: list[str]) -> CommandRequest:
    """Parse command line arguments into a CommandRequest object.

    Args:
        argv: Arguments after the program name, without --debug

    Returns:
        CommandRequest object (one of UploadDif/UploadBundle/Help)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not argv:
        raise ParseError("Missing command")

    command_name = argv[0]

    if command_name in ("help", "-h", "--help"):
        return HelpCommand()
    elif command_name == "upload-dif":
        return _parse_upload_dif(argv[1:])
    elif command_name == "upload-bundle":
        return _parse_upload_bundle(argv[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _split_options(command_name: str, args: list[str]) -> tuple[dict, list[str]]:
    """Separate --options from positional FILE arguments.

    Accepts both '--org acme' and '--org=acme'. Everything after '--' is positional.
    """
    allowed = VALUE_OPTIONS[command_name]
    options: dict[str, object] = {}
    positional = []
    i = 0

    while i < len(args):
        arg = args[i]
        if arg == "--":
            positional.extend(args[i + 1:])
            break
        if not arg.startswith("--"):
            positional.append(arg)
            i += 1
            continue

        name, eq, value = arg.partition("=")
        if name in FLAG_OPTIONS:
            if eq:
                raise ParseError(f"{name} does not take a value")
            options[name] = True
        elif name in allowed:
            if not eq:
                if i + 1 >= len(args):
                    raise ParseError(f"{name} requires a value")
                i += 1
                value = args[i]
            if not value:
                raise ParseError(f"{name} requires a value")
            options[name] = value
        else:
            raise ParseError(f"Unknown option for {command_name}: {name}")
        i += 1

    return options, positional


def _parse_seconds(options: dict, name: str) -> Optional[float]:
    value = options.get(name)
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise ParseError(f"{name} expects a number of seconds, got '{value}'")
    if seconds <= 0:
        raise ParseError(f"{name} must be positive")
    return seconds


def _parse_upload_dif(args: list[str]) -> UploadDifCommand:
    """Parse 'upload-dif [options] FILE[=DEBUG_ID]...' command."""
    options, files = _split_options("upload-dif", args)

    if not files:
        raise ParseError("upload-dif requires at least one file")
    for entry in files:
        path, eq, debug_id = entry.partition("=")
        if not path:
            raise ParseError(f"Invalid file argument: '{entry}'")
        if eq and not debug_id:
            raise ParseError(f"Empty debug id for {path}")

    return UploadDifCommand(
        files=tuple(files),
        org=options.get("--org"),
        project=options.get("--project"),
        wait=bool(options.get("--wait", False)),
        max_wait=_parse_seconds(options, "--max-wait"),
        deadline=_parse_seconds(options, "--deadline"),
        no_upload=bool(options.get("--no-upload", False)),
    )


def _parse_upload_bundle(args: list[str]) -> UploadBundleCommand:
    """Parse 'upload-bundle [options] FILE...' command."""
    options, files = _split_options("upload-bundle", args)

    if not files:
        raise ParseError("upload-bundle requires at least one file")

    return UploadBundleCommand(
        files=tuple(files),
        org=options.get("--org"),
        project=options.get("--project"),
        release=options.get("--release"),
        dist=options.get("--dist"),
        wait=bool(options.get("--wait", False)),
        max_wait=_parse_seconds(options, "--max-wait"),
        deadline=_parse_seconds(options, "--deadline"),
        no_upload=bool(options.get("--no-upload", False)),
    )


def split_debug_id(entry: str) -> tuple[str, Optional[str]]:
    """Split a 'PATH=DEBUG_ID' argument; the debug id is optional."""
    path, _, debug_id = entry.partition("=")
    return path, debug_id or None

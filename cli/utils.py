"""Utility functions for CLI operations."""

from pathlib import Path
from typing import Optional

from cli.constants import FEATURE_BY_SUFFIX, GREEN, RED_ORANGE, RESET
from publisher.capabilities import ChunkUploadCapability
from publisher.types import ArtifactResult, ArtifactState, PublishReport


def feature_for_path(path: str) -> Optional[ChunkUploadCapability]:
    """
    Guess which optional server feature a debug file needs from its name.

    Args:
        path: File path as given on the command line

    Returns:
        Required capability, or None for plain object files
    """
    name = Path(path).name.lower()
    for suffix in sorted(FEATURE_BY_SUFFIX, key=len, reverse=True):
        if name.endswith(suffix):
            return FEATURE_BY_SUFFIX[suffix]
    return None


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.
    
    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).
    
    Args:
        size_bytes: File size in bytes
        
    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    
    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0
    
    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    
    return f"{size:.2f} PiB"


def format_result(result: ArtifactResult, color: bool = False) -> str:
    """Render one artifact outcome as a single line."""
    artifact = result.artifact
    label = result.state.value.upper()
    if color:
        label = f"{GREEN if result.ok else RED_ORANGE}{label}{RESET}"
    checksum = artifact.checksum if result.state is ArtifactState.SKIPPED else artifact.checksum[:12]
    line = f"  {label:<10} {artifact.name} ({format_file_size(artifact.size)}, {checksum})"
    if result.error is not None:
        line += f": {result.error}"
    elif result.detail:
        line += f": {result.detail}"
    return line


def format_report(report: PublishReport, color: bool = False) -> str:
    """
    Render a publish report for the terminal.

    Args:
        report: Report returned by Publisher.publish
        color: Wrap state labels in ANSI colors

    Returns:
        Multi-line summary, one line per artifact plus a totals line
    """
    lines = [format_result(result, color) for result in report.results]
    skipped = [r for r in report.results if r.state is ArtifactState.SKIPPED]
    if skipped and len(skipped) == len(report.results):
        lines.append(f"{len(skipped)} artifact(s) checksummed, upload skipped")
        return "\n".join(lines)
    lines.append(
        f"{len(report.succeeded)} of {len(report.results)} artifact(s) published"
        + (f", {len(report.failed)} failed" if report.failed else "")
    )
    return "\n".join(lines)

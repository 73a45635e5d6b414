"""CLI constants."""

from pathlib import Path

from publisher.capabilities import ChunkUploadCapability

CONFIG_PATH = Path.home() / '.artifact-publisher' / 'config.json'

GREEN = "\033[38;2;80;200;120m"
RED_ORANGE = "\033[38;2;244;89;53m"
RESET = "\033[0m"

EXIT_FAILED = 1
EXIT_USAGE = 2

FEATURE_BY_SUFFIX = {
    ".src.zip": ChunkUploadCapability.SOURCES,
    ".bcsymbolmap": ChunkUploadCapability.BCSYMBOLMAPS,
    ".pdb": ChunkUploadCapability.PDBS,
}

HELP_TEXT = """Usage: artifact-publisher [--debug] <command> [options] FILE...

Commands:
  upload-dif [--org ORG] [--project PROJECT] [--wait] [--max-wait SECS] [--deadline SECS]
             [--no-upload] FILE[=DEBUG_ID]...
                                      Upload debug information files
  upload-bundle [--org ORG] [--project PROJECT] [--release RELEASE] [--dist DIST]
                [--wait] [--max-wait SECS] [--deadline SECS] [--no-upload] FILE...
                                      Upload artifact bundles
  help                                Show this help

Options:
  --org, --project                    Override PUBLISHER_ORG / PUBLISHER_PROJECT and the config file
  --wait                              Poll until the server finished processing
  --max-wait SECS                     Stop polling after SECS seconds
  --deadline SECS                     Cancel the whole upload after SECS seconds
  --no-upload                         Chunk and checksum locally, send nothing (no token needed)
  --debug                             Enable debug logging

Exit codes: 0 all artifacts published, 1 some artifact failed, 2 usage or configuration error.
Examples:
  artifact-publisher upload-dif --org acme --project app libfoo.so.debug=8c3c8b7e-41c4-4d8f-a8f3-5b1d0f4e2a11
  artifact-publisher upload-bundle --org acme --project web --release 1.2.0 bundle.zip"""

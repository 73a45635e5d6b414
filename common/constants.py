"""Project-wide constants (API paths, protocol defaults)."""

API_PREFIX = "/api/0"

CHUNK_UPLOAD_PATH = API_PREFIX + "/organizations/{org}/chunk-upload/"
DIF_ASSEMBLE_PATH = API_PREFIX + "/projects/{org}/{project}/files/difs/assemble/"
ARTIFACT_BUNDLE_ASSEMBLE_PATH = API_PREFIX + "/organizations/{org}/artifactbundle/assemble/"
RELEASE_FILES_ASSEMBLE_PATH = API_PREFIX + "/organizations/{org}/releases/{release}/assemble/"
RELEASES_PATH = API_PREFIX + "/projects/{org}/{project}/releases/"

DEFAULT_SERVER_URL = "https://sentry.io"

# RFC 1341 7.2: boundary is 1-70 bchars and must not end with a space.
MULTIPART_BOUNDARY_LENGTH = 40
MULTIPART_FIELD_NAME = "file"

DEFAULT_MAX_ASSEMBLE_ROUNDS = 10
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
# Upper bound for wait-mode polling when neither the caller nor the server sets one.
DEFAULT_MAX_WAIT_SECONDS = 300.0

# Chunking parameters for local dry runs, which never ask the server.
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024
DEFAULT_HASH_ALGORITHM = "sha1"

"""Shared pytest fixtures for all tests."""

import hashlib
import json
import re

import httpx
import pytest
from cli.config import Config
from publisher.api_client import ApiClient
from publisher.capabilities import parse_capabilities
from publisher.types import UploadOptions

BASE_URL = 'http://test'
CHUNK_URL = BASE_URL + '/api/0/organizations/acme/chunk-upload/'
MiB = 1024 * 1024


def options_payload(**overrides) -> dict:
    """Chunk upload options as the service returns them."""
    payload = {
        'url': CHUNK_URL,
        'chunkSize': 8 * MiB,
        'chunksPerRequest': 64,
        'maxRequestSize': 32 * MiB,
        'concurrency': 8,
        'hashAlgorithm': 'sha1',
        'accept': ['debug_files', 'release_files', 'artifact_bundles', 'pdbs', 'sources'],
    }
    payload.update(overrides)
    return payload


def parse_multipart(request: httpx.Request) -> list[tuple[str, str, bytes]]:
    """
    Split a multipart/form-data request into (field, filename, content) parts.
    """
    match = re.search(r'boundary=([^;\s]+)', request.headers['content-type'])
    assert match, "multipart request without boundary"
    delimiter = b'--' + match.group(1).encode()
    parts = []
    for raw in request.content.split(delimiter)[1:]:
        if raw.startswith(b'--'):
            break
        head, _, body = raw.lstrip(b'\r\n').partition(b'\r\n\r\n')
        disposition = head.decode()
        field = re.search(r'name="([^"]*)"', disposition).group(1)
        filename = re.search(r'filename="([^"]*)"', disposition).group(1)
        parts.append((field, filename, body[:-2] if body.endswith(b'\r\n') else body))
    return parts


class FakeAssemblyService:
    """
    In-memory assembly service behind an httpx.MockTransport.

    Stores uploaded chunks by hash and assembles an artifact once all of
    its chunks are present, answering like the real assemble endpoints.
    """

    def __init__(self, options: dict = None):
        self.options = options or options_payload()
        self.chunks: dict[str, bytes] = {}
        self.assembled: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.assemble_bodies: list = []
        self.releases: list = []
        self.upload_batches: list[list[tuple[str, str, bytes]]] = []
        self.upload_status = None
        self.options_status = None
        self.assemble_override = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def assemble_calls(self) -> int:
        return len(self.assemble_bodies)

    @property
    def upload_calls(self) -> int:
        return len(self.upload_batches)

    def _hash(self, data: bytes) -> str:
        return hashlib.new(self.options['hashAlgorithm'], data).hexdigest()

    def _assemble_one(self, checksum: str, chunks: list[str]) -> dict:
        if self.assemble_override is not None:
            return self.assemble_override(checksum, chunks)
        if checksum in self.assembled:
            return {'state': 'ok', 'missingChunks': []}
        missing = [h for h in chunks if h not in self.chunks]
        if missing:
            return {'state': 'not_found', 'missingChunks': missing}
        data = b''.join(self.chunks[h] for h in chunks)
        if self._hash(data) != checksum:
            return {'state': 'error', 'missingChunks': [], 'detail': 'checksum mismatch'}
        self.assembled[checksum] = data
        return {'state': 'created', 'missingChunks': []}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith('/chunk-upload/') and request.method == 'GET':
            if self.options_status is not None:
                return httpx.Response(self.options_status, json={'detail': 'options unavailable'})
            return httpx.Response(200, json=self.options)

        if path.endswith('/chunk-upload/') and request.method == 'POST':
            parts = parse_multipart(request)
            self.upload_batches.append(parts)
            if self.upload_status is not None:
                return httpx.Response(self.upload_status, json={'detail': 'chunk store unavailable'})
            for _, filename, content in parts:
                assert self._hash(content) == filename
                self.chunks[filename] = content
            return httpx.Response(200)

        if path.endswith('/releases/') and request.method == 'POST':
            body = json.loads(request.content)
            status = 208 if body['version'] in self.releases else 201
            self.releases.append(body['version'])
            return httpx.Response(status, json={'version': body['version']})

        if path.endswith('/files/difs/assemble/'):
            body = json.loads(request.content)
            self.assemble_bodies.append(body)
            return httpx.Response(200, json={
                checksum: self._assemble_one(checksum, entry['chunks'])
                for checksum, entry in body.items()
            })

        if path.endswith('/assemble/'):
            body = json.loads(request.content)
            self.assemble_bodies.append(body)
            return httpx.Response(200, json=self._assemble_one(body['checksum'], body['chunks']))

        return httpx.Response(404, json={'detail': 'Not found'})


@pytest.fixture(autouse=True)
def clean_publisher_env(monkeypatch):
    """Keep PUBLISHER_* variables of the developer's shell out of tests."""
    for name in ('PUBLISHER_URL', 'PUBLISHER_AUTH_TOKEN', 'PUBLISHER_ORG', 'PUBLISHER_PROJECT'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .artifact-publisher directory
    """
    config_dir = tmp_path / '.artifact-publisher'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def fast_options():
    """Upload options without backoff delays or poll sleeps."""
    return UploadOptions(max_retries=2, initial_backoff=0, max_backoff=0, poll_interval=0)


@pytest.fixture
def fake_service():
    return FakeAssemblyService()


@pytest.fixture
def api_client(fake_service, fast_options):
    """ApiClient wired to the fake service."""
    return ApiClient(BASE_URL, 'test-token', fast_options, transport=fake_service.transport)


@pytest.fixture
def capabilities():
    return parse_capabilities(options_payload())


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample debug file.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample file
    """
    file_path = tmp_path / 'libfoo.so.debug'
    file_path.write_bytes(b'\x7fELF' + b'debug-info' * 100)
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    """
    Create multiple sample files for testing bulk uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        List of Paths to sample files
    """
    files = []
    for i in range(3):
        file_path = tmp_path / f'bundle{i}.zip'
        file_path.write_bytes(f'bundle content {i}'.encode())
        files.append(file_path)
    return files


@pytest.fixture
def service_factory():
    """Build a FakeAssemblyService with custom chunk upload options."""
    def factory(**overrides):
        return FakeAssemblyService(options_payload(**overrides))
    return factory


@pytest.fixture
def multipart_parser():
    return parse_multipart

"""FastAPI fake of the chunk upload and assemble endpoints."""

import hashlib
import re

import httpx
import pytest
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from publisher.api_client import ApiClient
from publisher.types import UploadOptions

SERVER_URL = 'http://testserver'
TOKEN = 'integration-token'


class ServerState:
    """Chunk store and assembled files shared by the fake endpoints."""

    def __init__(self):
        self.chunk_size = 1024
        self.chunks_per_request = 4
        self.max_request_size = 4096
        self.accept = ['debug_files', 'artifact_bundles_v2']
        self.chunks: dict[str, bytes] = {}
        self.files: dict[str, bytes] = {}
        self.upload_failures = 0
        self.upload_requests = 0
        self.assemble_requests = 0
        self.releases: dict[str, list[str]] = {}


def _split_multipart(content_type: str, body: bytes) -> list[tuple[str, bytes]]:
    match = re.search(r'boundary=([^;\s]+)', content_type or '')
    if not match:
        raise HTTPException(status_code=400, detail='Missing multipart boundary')
    delimiter = b'--' + match.group(1).encode()
    parts = []
    for raw in body.split(delimiter)[1:]:
        if raw.startswith(b'--'):
            break
        head, _, data = raw.lstrip(b'\r\n').partition(b'\r\n\r\n')
        filename = re.search(r'filename="([^"]*)"', head.decode())
        if filename is None:
            raise HTTPException(status_code=400, detail='Chunk part without filename')
        parts.append((filename.group(1), data[:-2] if data.endswith(b'\r\n') else data))
    return parts


def create_app(state: ServerState) -> FastAPI:
    app = FastAPI()

    def check_auth(request: Request) -> None:
        if request.headers.get('authorization') != f'Bearer {TOKEN}':
            raise HTTPException(status_code=401, detail='Invalid token')

    def assemble(checksum: str, chunks: list[str]) -> dict:
        if checksum in state.files:
            return {'state': 'ok', 'missingChunks': []}
        missing = [h for h in chunks if h not in state.chunks]
        if missing:
            return {'state': 'not_found', 'missingChunks': missing}
        data = b''.join(state.chunks[h] for h in chunks)
        if hashlib.sha1(data).hexdigest() != checksum:
            return {'state': 'error', 'missingChunks': [], 'detail': 'Checksum mismatch'}
        state.files[checksum] = data
        return {'state': 'created', 'missingChunks': []}

    @app.get('/api/0/organizations/{org}/chunk-upload/')
    async def chunk_upload_options(org: str, request: Request):
        check_auth(request)
        return {
            'url': f'{SERVER_URL}/api/0/organizations/{org}/chunk-upload/',
            'chunkSize': state.chunk_size,
            'chunksPerRequest': state.chunks_per_request,
            'maxRequestSize': state.max_request_size,
            'concurrency': 2,
            'hashAlgorithm': 'sha1',
            'accept': state.accept,
        }

    @app.post('/api/0/organizations/{org}/chunk-upload/')
    async def upload_chunks(org: str, request: Request):
        check_auth(request)
        state.upload_requests += 1
        if state.upload_failures > 0:
            state.upload_failures -= 1
            raise HTTPException(status_code=503, detail='Chunk store busy')
        parts = _split_multipart(request.headers.get('content-type'), await request.body())
        if len(parts) > state.chunks_per_request:
            raise HTTPException(status_code=400, detail='Too many chunks')
        for name, data in parts:
            if hashlib.sha1(data).hexdigest() != name:
                raise HTTPException(status_code=400, detail=f'Chunk {name} does not match its content')
            state.chunks[name] = data
        return Response(status_code=200)

    @app.post('/api/0/projects/{org}/{project}/files/difs/assemble/')
    async def assemble_difs(org: str, project: str, request: Request):
        check_auth(request)
        state.assemble_requests += 1
        body = await request.json()
        return {checksum: assemble(checksum, entry['chunks']) for checksum, entry in body.items()}

    @app.post('/api/0/organizations/{org}/artifactbundle/assemble/')
    async def assemble_bundle(org: str, request: Request):
        check_auth(request)
        state.assemble_requests += 1
        body = await request.json()
        if not body.get('projects'):
            raise HTTPException(status_code=400, detail='projects is required')
        return assemble(body['checksum'], body['chunks'])

    @app.post('/api/0/projects/{org}/{project}/releases/')
    async def create_release(org: str, project: str, request: Request):
        check_auth(request)
        body = await request.json()
        version = body['version']
        status = 208 if version in state.releases else 201
        state.releases.setdefault(version, body.get('projects', []))
        return JSONResponse({'version': version}, status_code=status)

    @app.post('/api/0/organizations/{org}/releases/{version}/assemble/')
    async def assemble_release_files(org: str, version: str, request: Request):
        check_auth(request)
        if version not in state.releases:
            raise HTTPException(status_code=404, detail='Release not found')
        state.assemble_requests += 1
        body = await request.json()
        return assemble(body['checksum'], body['chunks'])

    return app


@pytest.fixture
def server_state():
    return ServerState()


@pytest.fixture
def server_transport(server_state):
    return httpx.ASGITransport(app=create_app(server_state))


@pytest.fixture
def make_api_client(server_transport):
    """Build ApiClients talking to the fake server in-process."""
    def factory(token=TOKEN, **option_overrides):
        options = UploadOptions(**{'initial_backoff': 0, 'max_backoff': 0, **option_overrides})
        return ApiClient(SERVER_URL, token, options, transport=server_transport)
    return factory

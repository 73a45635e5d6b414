"""Integration tests publishing against a FastAPI fake assembly service."""

import hashlib

import pytest
from cli.commands import handle_upload_dif
from cli.models import UploadDifCommand
from publisher.exceptions import ApiError
from publisher.publisher import Publisher
from publisher.types import ArtifactKind, ArtifactSource, ArtifactState, UploadTarget

TARGET = UploadTarget(org='acme', project='app')


def test_debug_files_round_trip(server_state, make_api_client):
    """Test multi-chunk debug files are uploaded in batches and reassembled."""
    first = b''.join(hashlib.sha1(str(i).encode()).digest() for i in range(300))
    second = b'second debug file' * 100

    report = Publisher(make_api_client(), TARGET).publish([
        ArtifactSource('libfirst.so', first, debug_id='id-1'),
        ArtifactSource('libsecond.so', second),
    ])

    assert report.exit_code == 0
    assert server_state.files[hashlib.sha1(first).hexdigest()] == first
    assert server_state.files[hashlib.sha1(second).hexdigest()] == second
    assert server_state.assemble_requests == 2
    assert server_state.upload_requests == 2


def test_republishing_uploads_nothing(server_state, make_api_client):
    """Test a second publish of the same content is a single assemble call."""
    source = ArtifactSource('libfoo.so', b'stable content' * 200)
    Publisher(make_api_client(), TARGET).publish([source])
    uploads_before = server_state.upload_requests

    report = Publisher(make_api_client(), TARGET).publish([source])

    assert report.results[0].ok
    assert server_state.upload_requests == uploads_before
    assert server_state.assemble_requests == 3


def test_transient_upload_failure_is_retried(server_state, make_api_client):
    """Test a busy chunk store is retried transparently."""
    server_state.upload_failures = 1

    report = Publisher(make_api_client(), TARGET).publish([ArtifactSource('x.so', b'retry me')])

    assert report.results[0].ok
    assert server_state.upload_requests == 2


def test_persistent_upload_failure(server_state, make_api_client):
    """Test an artifact fails once retries against a failing chunk store run out."""
    server_state.upload_failures = 100

    report = Publisher(make_api_client(max_retries=1), TARGET).publish([ArtifactSource('x.so', b'lost')])

    assert report.results[0].state is ArtifactState.FAILED
    assert 'Chunk store busy' in str(report.results[0].error)
    assert server_state.assemble_requests == 1


def test_invalid_token(make_api_client):
    """Test authentication failures abort the run."""
    with pytest.raises(ApiError) as exc_info:
        Publisher(make_api_client(token='wrong'), TARGET).publish([ArtifactSource('x.so', b'x')])

    assert exc_info.value.status_code == 401


def test_artifact_bundle_without_release(server_state, make_api_client):
    """Test v2 bundle servers accept bundles without a release."""
    target = UploadTarget(org='acme', project='web', kind=ArtifactKind.ARTIFACT_BUNDLE)
    data = b'PK\x03\x04' + b'bundle' * 500

    report = Publisher(make_api_client(), target).publish([ArtifactSource('bundle.zip', data)])

    assert report.results[0].ok
    assert server_state.files[hashlib.sha1(data).hexdigest()] == data


def test_legacy_release_files_server(server_state, make_api_client):
    """Test release_files-only servers get the release before assembling into it."""
    server_state.accept = ['release_files']
    target = UploadTarget(org='acme', project='web', kind=ArtifactKind.ARTIFACT_BUNDLE, release='3.1.0')
    data = b'PK\x03\x04' + b'legacy' * 400

    report = Publisher(make_api_client(), target).publish([ArtifactSource('bundle.zip', data)])

    assert report.results[0].ok
    assert server_state.releases == {'3.1.0': ['web']}
    assert server_state.files[hashlib.sha1(data).hexdigest()] == data


def test_legacy_release_already_exists(server_state, make_api_client):
    """Test a 208 for an existing release is not an error."""
    server_state.accept = ['release_files']
    server_state.releases['3.1.0'] = ['web']
    target = UploadTarget(org='acme', project='web', kind=ArtifactKind.ARTIFACT_BUNDLE, release='3.1.0')

    report = Publisher(make_api_client(), target).publish([ArtifactSource('bundle.zip', b'PK\x03\x04tiny')])

    assert report.results[0].ok


def test_cli_handler_against_server(server_state, make_api_client, temp_config, sample_file):
    """Test the upload-dif handler end to end with an injected publisher."""
    temp_config.data.update({'org': 'acme', 'project': 'app'})
    publisher = Publisher(make_api_client(), TARGET)

    result = handle_upload_dif(UploadDifCommand(files=(str(sample_file),)), publisher=publisher, config=temp_config)

    assert result.exit_code == 0
    assert 'libfoo.so.debug' in result.message
    assert hashlib.sha1(sample_file.read_bytes()).hexdigest() in server_state.files

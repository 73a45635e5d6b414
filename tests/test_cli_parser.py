"""Tests for CLI argument parsing."""

import pytest
from cli.models import HelpCommand, UploadBundleCommand, UploadDifCommand
from cli.parser import ParseError, parse_command, split_debug_id


def test_parse_upload_dif_minimal():
    cmd = parse_command(['upload-dif', 'libfoo.so.debug'])

    assert cmd == UploadDifCommand(files=('libfoo.so.debug',))


def test_parse_upload_dif_all_options():
    """Test every upload-dif option, in both --opt value and --opt=value forms."""
    cmd = parse_command([
        'upload-dif', '--org', 'acme', '--project=app', '--wait', '--max-wait', '60',
        '--deadline=300', 'a.debug=1234-abcd', 'b.pdb',
    ])

    assert cmd.org == 'acme'
    assert cmd.project == 'app'
    assert cmd.wait is True
    assert cmd.max_wait == 60.0
    assert cmd.deadline == 300.0
    assert cmd.files == ('a.debug=1234-abcd', 'b.pdb')


def test_parse_no_upload_flag():
    """Test --no-upload is a flag on both upload commands."""
    dif = parse_command(['upload-dif', '--no-upload', 'a.debug'])
    bundle = parse_command(['upload-bundle', '--no-upload', 'bundle.zip'])

    assert dif.no_upload is True
    assert bundle.no_upload is True
    assert parse_command(['upload-dif', 'a.debug']).no_upload is False


def test_parse_upload_bundle():
    cmd = parse_command(['upload-bundle', '--release', '1.0.0', '--dist', 'ios', 'bundle.zip'])

    assert isinstance(cmd, UploadBundleCommand)
    assert cmd.release == '1.0.0'
    assert cmd.dist == 'ios'
    assert cmd.files == ('bundle.zip',)
    assert cmd.wait is False


def test_double_dash_ends_options():
    """Test files starting with dashes can follow '--'."""
    cmd = parse_command(['upload-bundle', '--', '--weird-name.zip'])

    assert cmd.files == ('--weird-name.zip',)


@pytest.mark.parametrize('argv', [['help'], ['--help'], ['-h']])
def test_parse_help(argv):
    assert parse_command(argv) == HelpCommand()


@pytest.mark.parametrize('argv,message', [
    ([], 'Missing command'),
    (['publish'], 'Unknown command'),
    (['upload-dif'], 'at least one file'),
    (['upload-bundle', '--org', 'acme'], 'at least one file'),
    (['upload-dif', '--org'], 'requires a value'),
    (['upload-dif', '--release', '1.0', 'a.so'], 'Unknown option'),
    (['upload-dif', '--wait=yes', 'a.so'], 'does not take a value'),
    (['upload-dif', '--no-upload=1', 'a.so'], 'does not take a value'),
    (['upload-dif', '--max-wait', 'soon', 'a.so'], 'number of seconds'),
    (['upload-dif', '--deadline', '0', 'a.so'], 'must be positive'),
    (['upload-dif', 'a.so='], 'Empty debug id'),
])
def test_parse_errors(argv, message):
    """Test invalid command lines raise ParseError with a helpful message."""
    with pytest.raises(ParseError, match=message):
        parse_command(argv)


def test_split_debug_id():
    assert split_debug_id('lib.so=abc') == ('lib.so', 'abc')
    assert split_debug_id('lib.so') == ('lib.so', None)

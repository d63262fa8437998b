import pytest  # noqa
import os
import shutil

from unittest import mock

import patchhub
import patchhub.mbox

SERIES_MBOX = 'linux-kselftest.20240801-foo-v1-0-aaaa@example.org.mbx'
SERIES_COVER = 'linux-kselftest.20240801-foo-v1-0-aaaa@example.org.cover'

THREE_MESSAGES = '''From git@z Thu Jan  1 00:00:00 1970
Subject: [PATCH 1/3] first
From: A <a@example.org>

one
--
2.45.2

From git@z Thu Jan  1 00:00:00 1970
Subject: [PATCH 2/3] second
From: A <a@example.org>

two
From git@z Thu Jan  1 00:00:00 1970
Subject: [PATCH 3/3] third
From: A <a@example.org>

three
--
2.45.2
'''


@pytest.mark.parametrize('message_id,expected', [
    ('https://lore.kernel.org/netdev/20240801-foo@example.org/', 'netdev.20240801-foo@example.org.mbx'),
    ('http://lore.kernel.org/all/1234@example.org', 'all.1234@example.org.mbx'),
])
def test_extract_mbox_name(message_id, expected):
    assert patchhub.mbox.extract_mbox_name_from_message_id(message_id) == expected


def test_extract_patches_three_messages(tmp_path):
    mbox_path = os.path.join(tmp_path, 'three.mbx')
    with open(mbox_path, 'w') as fh:
        fh.write(THREE_MESSAGES)
    patches = patchhub.mbox.extract_patches(mbox_path)
    assert len(patches) == 3
    for at, subject in enumerate(['first', 'second', 'third']):
        assert f'] {subject}\n' in patches[at]
        assert patches[at].count('Subject: ') == 1
    assert patches[0].endswith('one\n--\n2.45.2\n')
    # the separator ends the second message without being part of it
    assert patches[1] == 'Subject: [PATCH 2/3] second\nFrom: A <a@example.org>\n\ntwo\n'
    assert 'From git@z' not in ''.join(patches)


def test_split_patchset_with_cover(sampledir, tmp_path):
    for name in (SERIES_MBOX, SERIES_COVER):
        shutil.copy(os.path.join(sampledir, name), tmp_path)
    patches = patchhub.mbox.split_patchset(os.path.join(tmp_path, SERIES_MBOX))
    assert len(patches) == 3
    assert patches[0].startswith('Subject: [PATCH 0/2] selftests: foo: new tests\n')
    assert patches[0].endswith('-- \nAda Lovelace <ada@example.org>\n')
    assert patches[1].startswith('Subject: [PATCH 1/2]')
    assert patches[2].startswith('Subject: [PATCH 2/2]')
    assert '+foo --fail || echo ok\n' in patches[2]


def test_split_patchset_without_cover(sampledir, tmp_path):
    shutil.copy(os.path.join(sampledir, SERIES_MBOX), tmp_path)
    patches = patchhub.mbox.split_patchset(os.path.join(tmp_path, SERIES_MBOX))
    assert len(patches) == 2


def test_split_patchset_errors(tmp_path):
    missing = os.path.join(tmp_path, 'missing.mbx')
    with pytest.raises(FileNotFoundError, match='missing.mbx'):
        patchhub.mbox.split_patchset(missing)
    with pytest.raises(IsADirectoryError):
        patchhub.mbox.split_patchset(str(tmp_path))


@pytest.mark.parametrize('patch,cover,diff', [
    ('A\nB\n---\nC\nD\n', 'A\nB\n---\n', 'C\nD\n'),
    ('A\nB\nC\n', 'A\nB\nC\n', ''),
    ('A\n----\nB\n---\nC\n---\nD\n', 'A\n----\nB\n---\n', 'C\n---\nD\n'),
    ('---\nC\n', '---\n', 'C\n'),
])
def test_split_cover(patch, cover, diff):
    assert patchhub.mbox.split_cover(patch) == (cover, diff)


def test_split_cover_sample(sampledir):
    patches = patchhub.mbox.extract_patches(os.path.join(sampledir, SERIES_MBOX))
    cover, diff = patchhub.mbox.split_cover(patches[0])
    assert cover.endswith('Signed-off-by: Ada Lovelace <ada@example.org>\n---\n')
    assert diff.startswith(' tools/testing/selftests/foo/basic.sh | 3 +++\n')


def test_download_patchset(tmp_path):
    patch = patchhub.LorePatch('https://lore.kernel.org/netdev/20240801-foo@example.org/', '[PATCH v3 0/2] foo')
    patch.update_patch_metadata()
    outdir = os.path.join(tmp_path, 'patchsets')
    with mock.patch('patchhub._run_command', return_value=(0, b'', b'')) as runcmd:
        filepath = patchhub.mbox.download_patchset(outdir, patch)
    assert filepath == os.path.join(outdir, 'netdev.20240801-foo@example.org.mbx')
    assert os.path.isdir(outdir)
    runcmd.assert_called_once_with(['b4', '--quiet', 'am', '--use-version', '3',
                                    'https://lore.kernel.org/netdev/20240801-foo@example.org/',
                                    '--outdir', outdir, '--mbox-name', 'netdev.20240801-foo@example.org.mbx'])


def test_download_patchset_already_there(tmp_path):
    patch = patchhub.LorePatch('https://lore.kernel.org/netdev/20240801-foo@example.org/', '[PATCH] foo')
    existing = os.path.join(tmp_path, 'netdev.20240801-foo@example.org.mbx')
    with open(existing, 'w') as fh:
        fh.write('')
    with mock.patch('patchhub._run_command') as runcmd:
        assert patchhub.mbox.download_patchset(str(tmp_path), patch) == existing
    runcmd.assert_not_called()


def test_download_patchset_failure(tmp_path):
    patch = patchhub.LorePatch('https://lore.kernel.org/netdev/20240801-foo@example.org/', '[PATCH] foo')
    with mock.patch('patchhub._run_command', return_value=(1, b'', b'Cannot find thread\n')):
        with pytest.raises(RuntimeError, match='Cannot find thread'):
            patchhub.mbox.download_patchset(str(tmp_path), patch)
    assert not os.path.exists(os.path.join(tmp_path, 'netdev.20240801-foo@example.org.mbx'))

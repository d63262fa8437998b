import pytest  # noqa
import json
import os

import patchhub
import patchhub.store


def _patch(msgid, subject):
    patch = patchhub.LorePatch(f'http://lore.kernel.org/netdev/{msgid}/', subject,
                               author_name='Ada Lovelace', author_email='ada@example.org',
                               last_updated='2024-08-02T08:00:00Z')
    patch.update_patch_metadata()
    return patch


def test_bookmarked_patchsets(tmp_path):
    filepath = os.path.join(tmp_path, 'nested', 'bookmarked_patchsets.json')
    patches = [_patch('1@example.org', '[PATCH v2 0/3] net: foo'), _patch('2@example.org', '[PATCH] net: bar')]
    patchhub.store.save_bookmarked_patchsets(patches, filepath)
    assert not os.path.exists(f'{filepath}.tmp')
    loaded = patchhub.store.load_bookmarked_patchsets(filepath)
    assert [x.to_dict() for x in loaded] == [x.to_dict() for x in patches]
    assert loaded[0].version == 2
    assert loaded[0].total_in_series == 3


def test_available_lists(tmp_path):
    filepath = os.path.join(tmp_path, 'mailing_lists.json')
    available_lists = [patchhub.MailingList('amd-gfx', 'Discussion list for AMD gfx'),
                       patchhub.MailingList('netdev', 'Netdev Archive on lore.kernel.org')]
    patchhub.store.save_available_lists(available_lists, filepath)
    assert patchhub.store.load_available_lists(filepath) == available_lists


def test_reviewed_patchsets(tmp_path):
    filepath = os.path.join(tmp_path, 'reviewed_patchsets.json')
    reviewed = {'http://lore.kernel.org/netdev/1@example.org/': {3, 1, 2}, 'other': set()}
    patchhub.store.save_reviewed_patchsets(reviewed, filepath)
    with open(filepath, 'r') as fh:
        assert json.load(fh)['http://lore.kernel.org/netdev/1@example.org/'] == [1, 2, 3]
    assert patchhub.store.load_reviewed_patchsets(filepath) == reviewed


def test_save_replaces_previous_snapshot(tmp_path):
    filepath = os.path.join(tmp_path, 'reviewed_patchsets.json')
    patchhub.store.save_reviewed_patchsets({'a': {1}}, filepath)
    patchhub.store.save_reviewed_patchsets({'b': {2}}, filepath)
    assert patchhub.store.load_reviewed_patchsets(filepath) == {'b': {2}}


def test_load_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        patchhub.store.load_available_lists(os.path.join(tmp_path, 'nope.json'))


def test_get_data_file(tmp_path):
    assert patchhub.store.get_data_file('x.json') == os.path.join(tmp_path, 'patchhub', 'x.json')

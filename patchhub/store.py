# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import json
import os
import pathlib

import patchhub

from typing import Dict, List, Set

logger = patchhub.logger

BOOKMARKED_PATCHSETS_FILE = 'bookmarked_patchsets.json'
AVAILABLE_LISTS_FILE = 'mailing_lists.json'
REVIEWED_PATCHSETS_FILE = 'reviewed_patchsets.json'


def get_data_file(filename: str) -> str:
    return os.path.join(patchhub.get_data_dir(), filename)


def _save_json(data, filepath: str) -> None:
    # Readers either see the old snapshot or the new one, never half of it
    parent = os.path.dirname(filepath)
    if parent:
        pathlib.Path(parent).mkdir(parents=True, exist_ok=True)
    tmp_filepath = f'{filepath}.tmp'
    with open(tmp_filepath, 'w', encoding='utf-8') as fh:
        json.dump(data, fh, ensure_ascii=False, indent=4)
    os.replace(tmp_filepath, filepath)
    logger.debug('Wrote %s', filepath)


def _load_json(filepath: str):
    with open(filepath, 'r', encoding='utf-8') as fh:
        return json.load(fh)


def save_bookmarked_patchsets(bookmarked_patchsets: List[patchhub.LorePatch], filepath: str) -> None:
    _save_json([x.to_dict() for x in bookmarked_patchsets], filepath)


def load_bookmarked_patchsets(filepath: str) -> List[patchhub.LorePatch]:
    return [patchhub.LorePatch.from_dict(x) for x in _load_json(filepath)]


def save_available_lists(available_lists: List[patchhub.MailingList], filepath: str) -> None:
    _save_json([x.to_dict() for x in available_lists], filepath)


def load_available_lists(filepath: str) -> List[patchhub.MailingList]:
    return [patchhub.MailingList.from_dict(x) for x in _load_json(filepath)]


def save_reviewed_patchsets(reviewed_patchsets: Dict[str, Set[int]], filepath: str) -> None:
    _save_json({key: sorted(val) for key, val in reviewed_patchsets.items()}, filepath)


def load_reviewed_patchsets(filepath: str) -> Dict[str, Set[int]]:
    return {key: set(val) for key, val in _load_json(filepath).items()}

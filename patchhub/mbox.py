# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import os
import pathlib
import re

import patchhub

from typing import List, Tuple

logger = patchhub.logger

# What b4 writes in front of every message of a git-am ready mbox
MBOX_SEPARATOR = 'From git@z Thu Jan  1 00:00:00 1970'
LORE_PREFIX_RE = re.compile(r'^https?://lore\.kernel\.org/')


def extract_mbox_name_from_message_id(message_id: str) -> str:
    mbox_name = LORE_PREFIX_RE.sub('', message_id).replace('/', '.')
    if not mbox_name.endswith('.'):
        mbox_name += '.'
    return mbox_name + 'mbx'


def download_patchset(output_dir: str, patch: patchhub.LorePatch) -> str:
    """Have b4 save the series a patch belongs to as a git-am ready mbox.

    Nothing is downloaded when the mbox is already there. Returns the mbox path,
    or raises RuntimeError with what b4 printed when it fails.
    """
    mbox_name = extract_mbox_name_from_message_id(patch.message_id)
    pathlib.Path(output_dir).mkdir(parents=True, exist_ok=True)

    filepath = os.path.join(output_dir, mbox_name)
    if os.path.exists(filepath):
        logger.debug('Using already downloaded %s', filepath)
        return filepath

    config = patchhub.get_main_config()
    cmdargs = [config['b4-bin'], '--quiet', 'am', '--use-version', str(patch.version), patch.message_id,
               '--outdir', output_dir, '--mbox-name', mbox_name]
    logger.info('Downloading v%s of %s', patch.version, patch.message_id)
    ecode, out, err = patchhub._run_command(cmdargs)
    if ecode > 0:
        raise RuntimeError('Unable to download %s: %s' % (patch.message_id, err.decode(errors='replace').strip()))

    return filepath


def extract_patches(mbox_path: str) -> List[str]:
    patches = list()
    current_patch = list()
    is_reading_patch = False
    is_last_line = False

    with open(mbox_path, 'r', encoding='utf-8', errors='replace') as fh:
        for line in fh:
            line = line.rstrip('\n')

            if line.startswith('Subject: '):
                is_reading_patch = True
            elif is_reading_patch and line.rstrip() == '--':
                is_last_line = True
            elif is_last_line:
                # First line of the signature closes the message
                current_patch.append(line + '\n')
                patches.append(''.join(current_patch))
                current_patch = list()
                is_reading_patch = False
                is_last_line = False
            elif is_reading_patch and line.rstrip() == MBOX_SEPARATOR:
                patches.append(''.join(current_patch))
                current_patch = list()
                is_reading_patch = False

            if is_reading_patch:
                current_patch.append(line + '\n')

    if current_patch:
        patches.append(''.join(current_patch))

    return patches


def split_patchset(patchset_path: str) -> List[str]:
    """Split a downloaded series into one text per message, cover letter first."""
    if not os.path.exists(patchset_path):
        raise FileNotFoundError('%s: Path does not exist' % patchset_path)
    if not os.path.isfile(patchset_path):
        raise IsADirectoryError('%s: Not a file' % patchset_path)

    patches = list()
    cover_letter_path = patchset_path.replace('.mbx', '.cover')
    if os.path.isfile(cover_letter_path):
        logger.debug('Found cover letter in %s', cover_letter_path)
        patches += extract_patches(cover_letter_path)

    patches += extract_patches(patchset_path)
    logger.debug('Split %s into %s messages', patchset_path, len(patches))
    return patches


def split_cover(patch: str) -> Tuple[str, str]:
    lines = patch.splitlines(keepends=True)
    for at, line in enumerate(lines):
        if line.rstrip('\r\n') == '---':
            return ''.join(lines[:at + 1]), ''.join(lines[at + 1:])

    return patch, ''

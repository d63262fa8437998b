# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import re
import xml.etree.ElementTree as ET

import patchhub

from typing import Optional, List, Tuple

logger = patchhub.logger

# lore always hands out this many entries per feed or listing page
LORE_PAGE_SIZE = 200

ATOM_NS = {
    'a': 'http://www.w3.org/2005/Atom',
    'thr': 'http://purl.org/syndication/thread/1.0',
}

PRE_BLOCK_RE = re.compile(r'<pre>(.*?)</pre>', flags=re.S)
LIST_NAME_RE = re.compile(r'<a\s*href=".*?">(.*?)</a>', flags=re.S)
LIST_DESCRIPTION_RE = re.compile(r'</a>\s*(.*?)\s*\*', flags=re.S)


def parse_patch_feed(feed_body: str) -> List[patchhub.LorePatch]:
    """Turn one page of lore's Atom output into LorePatch objects, in feed order.

    Raises xml.etree.ElementTree.ParseError if the body is not well-formed XML.
    """
    root = ET.fromstring(feed_body)
    patches = list()
    for entry in root.findall('a:entry', ATOM_NS):
        link = entry.find('a:link', ATOM_NS)
        if link is None or not link.get('href'):
            logger.debug('Skipping feed entry without a link')
            continue
        in_reply_to = None
        irt = entry.find('thr:in-reply-to', ATOM_NS)
        if irt is not None:
            in_reply_to = irt.get('href')
        patch = patchhub.LorePatch(
            link.get('href'),
            (entry.findtext('a:title', default='', namespaces=ATOM_NS) or '').strip(),
            author_name=(entry.findtext('a:author/a:name', default='', namespaces=ATOM_NS) or '').strip(),
            author_email=(entry.findtext('a:author/a:email', default='', namespaces=ATOM_NS) or '').strip(),
            last_updated=entry.findtext('a:updated', default=None, namespaces=ATOM_NS),
            in_reply_to=in_reply_to,
        )
        patches.append(patch)
    return patches


class LoreSession:
    """Deduplicated, paginated view of the patch series posted to one list.

    Feed pages are pulled in on demand. Every message is remembered by its
    message id, and only one message per series and version (the cover letter
    when there is one, otherwise patch 1) is kept as the series representative.
    """
    def __init__(self, target_list: str):
        self._target_list = target_list
        self._representative_patches_ids = list()
        self._processed_patches_map = dict()
        self._min_index = 0
        self._exhausted = False

    def __repr__(self):
        return 'LoreSession(%s, %s series, next=%s)' % (self._target_list, len(self._representative_patches_ids),
                                                        self._min_index)

    @property
    def target_list(self) -> str:
        return self._target_list

    @property
    def representative_patches_ids(self) -> Tuple[str, ...]:
        return tuple(self._representative_patches_ids)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def get_processed_patch(self, message_id: str) -> Optional[patchhub.LorePatch]:
        return self._processed_patches_map.get(message_id)

    def process_n_representative_patches(self, lore_api_client, n: int) -> None:
        while len(self._representative_patches_ids) < n:
            if self._exhausted:
                logger.debug('No more patches in %s, stopping at %s series',
                             self._target_list, len(self._representative_patches_ids))
                break
            feed_body = lore_api_client.request_patch_feed(self._target_list, self._min_index)
            self.process_feed_page(feed_body)

    def process_feed_page(self, feed_body: str) -> List[str]:
        """Fold one raw feed page into the session and advance the cursor.

        Returns the message ids that were seen for the first time.
        """
        patch_feed = parse_patch_feed(feed_body)
        logger.debug('Got %s entries from %s at offset %s', len(patch_feed), self._target_list, self._min_index)
        self._min_index += LORE_PAGE_SIZE
        if not patch_feed:
            self._exhausted = True
            return list()

        processed_patches_ids = self._process_patches(patch_feed)
        self._update_representative_patches(processed_patches_ids)
        return processed_patches_ids

    def _process_patches(self, patch_feed: List[patchhub.LorePatch]) -> List[str]:
        processed_patches_ids = list()
        for patch in patch_feed:
            if patch.message_id in self._processed_patches_map:
                continue
            patch.update_patch_metadata()
            processed_patches_ids.append(patch.message_id)
            self._processed_patches_map[patch.message_id] = patch

        return processed_patches_ids

    def _update_representative_patches(self, processed_patches_ids: List[str]) -> None:
        for message_id in processed_patches_ids:
            patch = self._processed_patches_map[message_id]

            if patch.number_in_series > 1:
                continue

            if patch.number_in_series == 1 and patch.in_reply_to:
                # The cover letter already stands for this series
                cover = self._processed_patches_map.get(patch.in_reply_to)
                if cover is not None and cover.number_in_series == 0 and cover.version == patch.version:
                    continue

            self._representative_patches_ids.append(message_id)

    def get_patch_feed_page(self, page_size: int, page_number: int) -> Optional[List[patchhub.LorePatch]]:
        if page_size < 1 or page_number < 1:
            raise ValueError('Page size and page number must be positive: %s, %s' % (page_size, page_number))

        lower_end = page_size * (page_number - 1)
        if lower_end >= len(self._representative_patches_ids):
            return None
        upper_end = min(page_size * page_number, len(self._representative_patches_ids))

        patch_feed_page = list()
        for message_id in self._representative_patches_ids[lower_end:upper_end]:
            patch = self._processed_patches_map.get(message_id)
            if patch is None:
                logger.critical('Representative %s is not among the processed patches', message_id)
                return None
            patch_feed_page.append(patch)

        return patch_feed_page


def process_available_lists(available_lists_body: str) -> List[patchhub.MailingList]:
    pre_blocks = PRE_BLOCK_RE.findall(available_lists_body)
    # The first two blocks are the page header and the search form
    listing = pre_blocks[2]

    list_names = [x.strip() for x in LIST_NAME_RE.findall(listing)]
    list_descriptions = [x.strip() for x in LIST_DESCRIPTION_RE.findall(listing)]

    available_lists = list()
    for name, description in zip(list_names, list_descriptions):
        if name == 'all':
            continue
        available_lists.append(patchhub.MailingList(name, description))

    return available_lists


def fetch_available_lists(lore_api_client) -> List[patchhub.MailingList]:
    available_lists = list()
    min_index = 0

    while True:
        available_lists_body = lore_api_client.request_available_lists(min_index)
        page_lists = process_available_lists(available_lists_body)
        if not page_lists:
            break
        logger.debug('Got %s lists at offset %s', len(page_lists), min_index)
        available_lists += page_lists
        min_index += LORE_PAGE_SIZE

    available_lists.sort()
    return available_lists

# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import urllib.parse

import requests

import patchhub

from typing import Optional

logger = patchhub.logger

FEED_QUERY = '((s:patch+OR+s:rfc)+AND+NOT+s:re:)'


class LoreFetchError(LookupError):
    pass


class LoreAPIClient:
    """Talks to a public-inbox instance over HTTP.

    Every request method returns the raw response body and raises LoreFetchError
    for anything other than a 200 response, including when networking has been
    turned off with patchhub.can_network.
    """
    def __init__(self, lore_url: Optional[str] = None, timeout: Optional[int] = None):
        config = patchhub.get_main_config()
        if lore_url is None:
            lore_url = config['lore-url']
        if timeout is None:
            timeout = int(config['request-timeout'])
        self.lore_url = lore_url.rstrip('/')
        self.timeout = timeout

    def _get(self, url: str) -> str:
        if not patchhub.can_network:
            raise LoreFetchError('Cannot fetch %s in offline mode' % url)
        logger.debug('Fetching %s', url)
        session = patchhub.get_requests_session()
        try:
            resp = session.get(url, timeout=self.timeout)
        except requests.RequestException as ex:
            raise LoreFetchError('Unable to fetch %s: %s' % (url, ex)) from ex
        if resp.status_code != 200:
            resp.close()
            raise LoreFetchError('Server returned an error for %s: %s' % (url, resp.status_code))
        body = resp.text
        resp.close()
        return body

    def request_patch_feed(self, target_list: str, min_index: int) -> str:
        url = f'{self.lore_url}/{target_list}/?x=A&q={FEED_QUERY}&o={min_index}'
        return self._get(url)

    def request_available_lists(self, min_index: int) -> str:
        url = f'{self.lore_url}/?&o={min_index}'
        return self._get(url)

    def request_patch_html(self, target_list: str, message_id: str) -> str:
        qmsgid = urllib.parse.quote(message_id, safe='@')
        url = f'{self.lore_url}/{target_list}/{qmsgid}/'
        return self._get(url)

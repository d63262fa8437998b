#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
#
import argparse
import logging
import os
import re
import shlex
import sys

import patchhub
import patchhub.client
import patchhub.mbox
import patchhub.reply
import patchhub.session
import patchhub.store

from typing import List, Tuple

logger = patchhub.logger

SUBJECT_RE = re.compile(r'^Subject: (.*)$', flags=re.M)


def _get_series(cmdargs) -> Tuple[patchhub.client.LoreAPIClient, patchhub.LorePatch]:
    client = patchhub.client.LoreAPIClient()
    lsession = patchhub.session.LoreSession(cmdargs.listname)
    lsession.process_n_representative_patches(client, cmdargs.number)
    page = lsession.get_patch_feed_page(1, cmdargs.number)
    if not page:
        logger.critical('Only found %s series in %s', len(lsession.representative_patches_ids), cmdargs.listname)
        sys.exit(1)
    return client, page[0]


def _get_series_patches(patch: patchhub.LorePatch) -> List[str]:
    outdir = os.path.join(patchhub.get_cache_dir(), 'patchsets')
    mbox_path = patchhub.mbox.download_patchset(outdir, patch)
    return patchhub.mbox.split_patchset(mbox_path)


def _get_counter(patch_text: str) -> int:
    matches = SUBJECT_RE.search(patch_text)
    if not matches:
        return 0
    return patchhub.PatchSubject(matches.group(1)).counter


def cmd_lists(cmdargs):
    datafile = patchhub.store.get_data_file(patchhub.store.AVAILABLE_LISTS_FILE)
    if not cmdargs.refresh and os.path.exists(datafile):
        available_lists = patchhub.store.load_available_lists(datafile)
    else:
        logger.info('Fetching available lists')
        client = patchhub.client.LoreAPIClient()
        available_lists = patchhub.session.fetch_available_lists(client)
        patchhub.store.save_available_lists(available_lists, datafile)

    for mlist in available_lists:
        logger.info('%-30s %s', mlist.name, mlist.description)


def cmd_feed(cmdargs):
    page_size = cmdargs.page_size
    if page_size is None:
        page_size = int(patchhub.get_main_config()['page-size'])
    client = patchhub.client.LoreAPIClient()
    lsession = patchhub.session.LoreSession(cmdargs.listname)
    lsession.process_n_representative_patches(client, page_size * cmdargs.page)
    page = lsession.get_patch_feed_page(page_size, cmdargs.page)
    if page is None:
        logger.info('No series on page %s of %s', cmdargs.page, cmdargs.listname)
        return

    counter = page_size * (cmdargs.page - 1)
    for patch in page:
        counter += 1
        logger.info('%4d: [v%s %s/%s] %s', counter, patch.version, patch.number_in_series,
                    patch.total_in_series, patch.title)
        logger.info('      %s, %s', patch.author, patch.last_updated)


def cmd_get(cmdargs):
    patch = _get_series(cmdargs)[1]
    patches = _get_series_patches(patch)
    logger.info('%s', patch.title)
    for patch_text in patches:
        cover, diff = patchhub.mbox.split_cover(patch_text)
        matches = SUBJECT_RE.search(cover)
        subject = matches.group(1) if matches else '(no subject)'
        logger.info('  %s (%s diff lines)', subject, len(diff.splitlines()))

    if cmdargs.bookmark:
        datafile = patchhub.store.get_data_file(patchhub.store.BOOKMARKED_PATCHSETS_FILE)
        bookmarks = list()
        if os.path.exists(datafile):
            bookmarks = patchhub.store.load_bookmarked_patchsets(datafile)
        if patch.message_id not in [x.message_id for x in bookmarks]:
            bookmarks.append(patch)
            patchhub.store.save_bookmarked_patchsets(bookmarks, datafile)
        logger.info('Bookmarked %s', patch.message_id)


def cmd_bookmarks(cmdargs):
    datafile = patchhub.store.get_data_file(patchhub.store.BOOKMARKED_PATCHSETS_FILE)
    if not os.path.exists(datafile):
        logger.info('No bookmarked series.')
        return
    for patch in patchhub.store.load_bookmarked_patchsets(datafile):
        logger.info('[v%s] %s', patch.version, patch.title)
        logger.info('      %s', patch.message_id)


def cmd_review(cmdargs):
    client, patch = _get_series(cmdargs)
    patches = _get_series_patches(patch)
    counters = [_get_counter(x) for x in patches]

    if cmdargs.cherrypick:
        wanted = set(patchhub.parse_int_range(cmdargs.cherrypick, upper=max(counters, default=0)))
    elif len(patches) == 1:
        wanted = set(counters)
    else:
        wanted = set(x for x in counters if x > 0)
    patches_to_reply = [x in wanted for x in counters]
    if not any(patches_to_reply):
        logger.critical('Nothing selected for review')
        sys.exit(1)

    name, email = patchhub.reply.get_git_signature(cmdargs.gitdir)
    if not name or not email:
        usercfg = patchhub.get_user_config()
        name = name or usercfg.get('name', '')
        email = email or usercfg.get('email', '')
    git_signature = f'{name} <{email}>'

    replydir = os.path.join(patchhub.get_cache_dir(), 'replies')
    os.makedirs(replydir, exist_ok=True)
    config = patchhub.get_main_config()
    git_reply_commands = patchhub.reply.prepare_reply_patchset_with_reviewed_by(
        client, replydir, cmdargs.listname, patches, patches_to_reply, git_signature,
        config['send-email-options'])

    if not cmdargs.send:
        logger.info('Run the following to send your replies:')
        for cmdline in git_reply_commands:
            logger.info('  %s', shlex.join(cmdline))
        return

    if patchhub.reply.send_reply_commands(git_reply_commands):
        sys.exit(1)

    datafile = patchhub.store.get_data_file(patchhub.store.REVIEWED_PATCHSETS_FILE)
    reviewed = dict()
    if os.path.exists(datafile):
        reviewed = patchhub.store.load_reviewed_patchsets(datafile)
    reviewed.setdefault(patch.message_id, set()).update(x for x in counters if x in wanted)
    patchhub.store.save_reviewed_patchsets(reviewed, datafile)


def cmd_series_common_opts(sp):
    sp.add_argument('listname', help='Mailing list to look at, e.g. linux-kselftest')
    sp.add_argument('number', type=int, help='Which series, counting from the newest (see "patchhub feed")')


def setup_parser() -> argparse.ArgumentParser:
    # noinspection PyTypeChecker
    parser = argparse.ArgumentParser(
        prog='patchhub',
        description='Browse and review patch series posted to public-inbox archives',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=patchhub.__VERSION__)
    parser.add_argument('-d', '--debug', action='store_true', default=False,
                        help='Add more debugging info to the output')
    parser.add_argument('-q', '--quiet', action='store_true', default=False,
                        help='Output critical information only')
    parser.add_argument('--offline-mode', action='store_true', default=False,
                        help='Do not perform any network queries')

    subparsers = parser.add_subparsers(help='sub-command help', dest='subcmd')

    # patchhub lists
    sp_lists = subparsers.add_parser('lists', help='Show the mailing lists archived on lore')
    sp_lists.add_argument('-r', '--refresh', action='store_true', default=False,
                          help='Fetch the lists again instead of using the saved copy')
    sp_lists.set_defaults(func=cmd_lists)

    # patchhub feed
    sp_feed = subparsers.add_parser('feed', help='Show the latest patch series sent to a list')
    sp_feed.add_argument('listname', help='Mailing list to look at, e.g. linux-kselftest')
    sp_feed.add_argument('-p', '--page', type=int, default=1,
                         help='Which page of series to show')
    sp_feed.add_argument('-n', '--page-size', dest='page_size', type=int, default=None,
                         help='How many series to show per page (default: patchhub.page-size)')
    sp_feed.set_defaults(func=cmd_feed)

    # patchhub get
    sp_get = subparsers.add_parser('get', help='Download a series and list its patches')
    cmd_series_common_opts(sp_get)
    sp_get.add_argument('-b', '--bookmark', action='store_true', default=False,
                        help='Remember this series in the bookmarks')
    sp_get.set_defaults(func=cmd_get)

    # patchhub bookmarks
    sp_bm = subparsers.add_parser('bookmarks', help='Show bookmarked series')
    sp_bm.set_defaults(func=cmd_bookmarks)

    # patchhub review
    sp_rev = subparsers.add_parser('review', help='Reply to a series with Reviewed-by trailers')
    cmd_series_common_opts(sp_rev)
    sp_rev.add_argument('-P', '--cherry-pick', dest='cherrypick', default=None,
                        help='Only reply to these patches (e.g. "-P 1-2,4,6-")')
    sp_rev.add_argument('-g', '--gitdir', default='',
                        help='Take your identity from the git config of this repository')
    sp_rev.add_argument('--send', action='store_true', default=False,
                        help='Send the replies instead of printing the git-send-email commands')
    sp_rev.set_defaults(func=cmd_review)

    return parser


def cmd():
    parser = setup_parser()
    cmdargs = parser.parse_args()
    logger.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    formatter = logging.Formatter('%(message)s')
    ch.setFormatter(formatter)

    if cmdargs.quiet:
        ch.setLevel(logging.CRITICAL)
    elif cmdargs.debug:
        ch.setLevel(logging.DEBUG)
    else:
        ch.setLevel(logging.INFO)

    logger.addHandler(ch)

    if 'func' not in cmdargs:
        parser.print_help()
        sys.exit(1)

    if cmdargs.offline_mode:
        logger.info('Running in OFFLINE mode')
        patchhub.can_network = False

    try:
        cmdargs.func(cmdargs)
    except (patchhub.client.LoreFetchError, RuntimeError, OSError) as ex:
        logger.critical('%s', ex)
        sys.exit(1)


if __name__ == '__main__':
    cmd()

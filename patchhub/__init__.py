# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import subprocess
import logging
import re
import os
import copy
import pathlib
import pwd

import requests

from typing import Optional, Tuple, List, Union

__VERSION__ = '0.2.0'

logger = logging.getLogger('patchhub')

LOREADDR = 'https://lore.kernel.org'

DEFAULT_CONFIG = {
    'lore-url': LOREADDR,
    # How many series to show per page in "patchhub feed"
    'page-size': '30',
    # Always passed to git-send-email before the options scraped from lore
    'send-email-options': '--suppress-cc=all',
    # Seconds before giving up on a lore request
    'request-timeout': '30',
    # The tool used to download a series into a local mbox
    'b4-bin': 'b4',
}

# This is where we store actual config
MAIN_CONFIG = None
# This is git-config user.*
USER_CONFIG = None

# Used for storing our requests session
REQSESSION = None

# global setting allowing us to turn off networking
can_network = True

# Matches the [PATCH ...] tag in a subject, wherever it appears
PATCH_TAG_RE = re.compile(r'\[[^]]*\bpatch[^]]*]', flags=re.I)
COUNTERS_RE = re.compile(r'^(\d{1,4})/(\d{1,4})$')
REVISION_RE = re.compile(r'^v(\d+)$', flags=re.I)


class PatchSubject:
    def __init__(self, subject):
        self.full_subject = None
        self.subject = None
        self.reply = False
        self.revision = 1
        # 0 is the cover letter, which is also what we assume until told otherwise
        self.counter = 0
        self.expected = 1

        subject = re.sub(r'\s+', ' ', subject).strip()
        self.full_subject = subject

        # Is it a reply?
        if re.search(r'^(Re|Aw|Fwd):', subject, re.I):
            self.reply = True
            self.subject = subject
            return

        # Remove any brackets inside brackets
        while True:
            oldsubj = subject
            subject = re.sub(r'\[([^]]*)\[([^\[\]]*)]', r'[\1\2]', subject)
            subject = re.sub(r'\[([^]]*)]([^\[\]]*)]', r'[\1\2]', subject)
            if oldsubj == subject:
                break

        # Some folks put the tag after a subsystem prefix, e.g. "mm: [PATCH 1/2] foo"
        matches = PATCH_TAG_RE.search(subject)
        if matches and matches.start() > 0:
            subject = '%s %s%s' % (matches.group(0), subject[:matches.start()], subject[matches.end():])

        # Find all [foo] in the title
        while subject.find('[') == 0:
            matches = re.search(r'^\[([^]]*)]', subject)
            if not matches:
                break

            bracketed = matches.groups()[0].strip()
            # Fix [PATCHv3] to be properly [PATCH v3]
            bracketed = re.sub(r'(patch)(v\d+)', r'\1 \2', bracketed, flags=re.I)

            for chunk in bracketed.split():
                # Remove any trailing commas or semicolons
                chunk = chunk.strip(',;')
                counters = COUNTERS_RE.search(chunk)
                revision = REVISION_RE.search(chunk)
                if counters:
                    self.counter = int(counters.group(1))
                    self.expected = int(counters.group(2))
                elif revision:
                    self.revision = int(revision.group(1))
            subject = re.sub(r'^\s*\[[^]]*]\s*', '', subject)

        self.subject = re.sub(r'\s+', ' ', subject).strip()


class LorePatch:
    """A single patch as announced by a lore feed entry.

    The message id is the URL lore gives the message, which stays stable across
    feed pages and is what we dedupe on. Series position and version are only
    known after update_patch_metadata() has looked at the subject.
    """
    def __init__(self, message_id: str, full_subject: str, author_name: str = '', author_email: str = '',
                 last_updated: Optional[str] = None, in_reply_to: Optional[str] = None):
        self.message_id = message_id
        self.full_subject = full_subject
        self.title = full_subject
        self.author_name = author_name
        self.author_email = author_email
        self.last_updated = last_updated
        self.in_reply_to = in_reply_to
        self.version = 1
        self.number_in_series = 0
        self.total_in_series = 1

    def __repr__(self):
        return 'LorePatch(%s, v%s, %s/%s)' % (self.message_id, self.version, self.number_in_series,
                                              self.total_in_series)

    def update_patch_metadata(self) -> None:
        psubj = PatchSubject(self.full_subject)
        self.title = psubj.subject
        self.version = psubj.revision
        self.number_in_series = psubj.counter
        self.total_in_series = psubj.expected

    @property
    def author(self) -> str:
        if self.author_email and self.author_name:
            return '%s <%s>' % (self.author_name, self.author_email)
        return self.author_name or self.author_email

    def to_dict(self) -> dict:
        return {
            'message_id': self.message_id,
            'full_subject': self.full_subject,
            'title': self.title,
            'author_name': self.author_name,
            'author_email': self.author_email,
            'last_updated': self.last_updated,
            'in_reply_to': self.in_reply_to,
            'version': self.version,
            'number_in_series': self.number_in_series,
            'total_in_series': self.total_in_series,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LorePatch':
        patch = cls(data['message_id'], data['full_subject'], author_name=data.get('author_name', ''),
                    author_email=data.get('author_email', ''), last_updated=data.get('last_updated'),
                    in_reply_to=data.get('in_reply_to'))
        patch.title = data.get('title', patch.full_subject)
        patch.version = data.get('version', 1)
        patch.number_in_series = data.get('number_in_series', 0)
        patch.total_in_series = data.get('total_in_series', 1)
        return patch


class MailingList:
    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description

    def __repr__(self):
        return 'MailingList(%s)' % self.name

    def __eq__(self, other):
        if not isinstance(other, MailingList):
            return NotImplemented
        return (self.name, self.description) == (other.name, other.description)

    def __lt__(self, other):
        return self.name < other.name

    def to_dict(self) -> dict:
        return {'name': self.name, 'description': self.description}

    @classmethod
    def from_dict(cls, data: dict) -> 'MailingList':
        return cls(data['name'], data.get('description', ''))


def _run_command(cmdargs: List[str], stdin: Optional[bytes] = None,
                 rundir: Optional[str] = None) -> Tuple[int, bytes, bytes]:
    logger.debug('Running %s' % ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs, stdout=subprocess.PIPE, stdin=subprocess.PIPE, stderr=subprocess.PIPE,
                          cwd=rundir)
    (output, error) = sp.communicate(input=stdin)

    return sp.returncode, output, error


def git_run_command(gitdir: Optional[str], args: List[str], stdin: Optional[bytes] = None,
                    logstderr: bool = False, decode: bool = True) -> Tuple[int, Union[str, bytes]]:
    cmdargs = ['git', '--no-pager']
    if gitdir:
        cmdargs += ['-C', gitdir]
    cmdargs += args

    ecode, out, err = _run_command(cmdargs, stdin=stdin)

    if decode:
        out = out.decode(errors='replace')

    if logstderr and len(err.strip()):
        if decode:
            err = err.decode(errors='replace')
        logger.debug('Stderr: %s', err)
        out += err

    return ecode, out


def get_config_from_git(regexp: str, defaults: Optional[dict] = None) -> dict:
    args = ['config', '-z', '--get-regexp', regexp]
    ecode, out = git_run_command(None, args)
    gitconfig = defaults
    if not gitconfig:
        gitconfig = dict()
    if not out:
        return gitconfig

    for line in out.split('\x00'):
        if not line:
            continue
        try:
            key, value = line.split('\n', 1)
        except ValueError:
            logger.debug('Ignoring git config entry %s', line)
            continue
        cfgkey = key.split('.')[-1].lower()
        gitconfig[cfgkey] = value

    return gitconfig


def get_main_config() -> dict:
    global MAIN_CONFIG
    if MAIN_CONFIG is None:
        defcfg = copy.deepcopy(DEFAULT_CONFIG)
        MAIN_CONFIG = get_config_from_git(r'patchhub\..*', defaults=defcfg)
    return MAIN_CONFIG


def get_user_config():
    global USER_CONFIG
    if USER_CONFIG is None:
        USER_CONFIG = get_config_from_git(r'user\..*')
        if 'name' not in USER_CONFIG:
            udata = pwd.getpwuid(os.getuid())
            USER_CONFIG['name'] = udata.pw_gecos
    return USER_CONFIG


def get_data_dir(appname: str = 'patchhub') -> str:
    if 'XDG_DATA_HOME' in os.environ:
        datahome = os.environ['XDG_DATA_HOME']
    else:
        datahome = os.path.join(str(pathlib.Path.home()), '.local', 'share')
    datadir = os.path.join(datahome, appname)
    pathlib.Path(datadir).mkdir(parents=True, exist_ok=True)
    return datadir


def get_cache_dir(appname: str = 'patchhub') -> str:
    if 'XDG_CACHE_HOME' in os.environ:
        cachehome = os.environ['XDG_CACHE_HOME']
    else:
        cachehome = os.path.join(str(pathlib.Path.home()), '.cache')
    cachedir = os.path.join(cachehome, appname)
    pathlib.Path(cachedir).mkdir(parents=True, exist_ok=True)
    return cachedir


def get_requests_session():
    global REQSESSION
    if REQSESSION is None:
        REQSESSION = requests.session()
        REQSESSION.headers.update({'User-Agent': 'patchhub/%s' % __VERSION__})
    return REQSESSION


def parse_int_range(intrange, upper=None):
    # Remove all whitespace
    intrange = re.sub(r'\s', '', intrange)
    for n in intrange.split(','):
        if n.isdigit():
            yield int(n)
        elif n.find('<') == 0 and len(n) > 1 and n[1:].isdigit():
            yield from range(1, int(n[1:]))
        elif n.find('-') > 0:
            nr = n.split('-')
            if nr[0].isdigit() and nr[1].isdigit():
                yield from range(int(nr[0]), int(nr[1])+1)
            elif not len(nr[1]) and nr[0].isdigit() and upper:
                yield from range(int(nr[0]), upper+1)
        else:
            logger.critical('Unknown range value specified: %s', n)

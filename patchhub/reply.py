# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2024 by the patchhub authors
import os
import re

import patchhub

from typing import List, Tuple, Sequence

logger = patchhub.logger

MESSAGE_ID_RE = re.compile(r'^Message-Id: <(.*?)>', flags=re.M)
# lore documents the full reply invocation between these two markers
FULL_GIT_COMMAND_RE = re.compile(r'git-send-email\(1\):(.*?)/path/to/YOUR_REPLY', flags=re.S)
LONG_OPTION_RE = re.compile(r'--[^\s=]+=\S+')


def generate_patch_reply_template(patch_contents: str) -> str:
    reply_template = list()
    lines = iter(patch_contents.splitlines())

    # Headers go first, minus the ones git-send-email will make up for us
    for line in lines:
        if line.startswith('Subject: '):
            reply_template.append('Subject: Re: %s\n' % line[len('Subject: '):])
        elif line.startswith('From: ') or line.startswith('Date: ') or line.startswith('Message-Id: '):
            continue
        elif len(line.strip()):
            reply_template.append(line + '\n')
        elif reply_template:
            reply_template.append('\n')
            break

    # Whatever is left gets quoted
    for line in lines:
        reply_template.append('> %s\n' % line)

    return ''.join(reply_template)


def extract_git_reply_command(patch_html: str, git_send_email_options: str) -> List[str]:
    cmdargs = ['git', 'send-email']
    cmdargs += git_send_email_options.split()

    matches = FULL_GIT_COMMAND_RE.search(patch_html)
    if matches:
        cmdargs += LONG_OPTION_RE.findall(matches.group(1))
    else:
        logger.debug('No reply instructions found, using only the default options')

    return cmdargs


def prepare_reply_patchset_with_reviewed_by(lore_api_client, tmp_dir: str, target_list: str,
                                            patches: Sequence[str], patches_to_reply: Sequence[bool],
                                            git_signature: str, git_send_email_options: str) -> List[List[str]]:
    """Write a Reviewed-by reply for every selected patch and build the command sending it.

    Each command is a git-send-email argv list ending with the path of the reply
    it sends.
    """
    git_reply_commands = list()

    for at, patch in enumerate(patches):
        if not patches_to_reply[at]:
            continue

        matches = MESSAGE_ID_RE.search(patch)
        if not matches:
            raise ValueError('Patch %s has no Message-Id header' % at)
        message_id = matches.group(1)

        # Message-Ids may contain slashes
        reply_name = message_id.replace('/', '.')
        reply_path = os.path.join(tmp_dir, f'{reply_name}-reply.mbx')
        reply = generate_patch_reply_template(patch)
        reply += f'\nReviewed-by: {git_signature}\n'
        with open(reply_path, 'w', encoding='utf-8') as fh:
            fh.write(reply)
        logger.debug('Wrote reply to %s', reply_path)

        patch_html = lore_api_client.request_patch_html(target_list, message_id)
        cmdargs = extract_git_reply_command(patch_html, git_send_email_options)
        cmdargs.append(reply_path)
        git_reply_commands.append(cmdargs)

    return git_reply_commands


def send_reply_commands(git_reply_commands: Sequence[List[str]]) -> int:
    """Run prepared git-send-email commands, returning how many of them failed."""
    failed = 0
    for cmdargs in git_reply_commands:
        ecode, out, err = patchhub._run_command(cmdargs)
        if ecode > 0:
            failed += 1
            logger.critical('Error running %s: %s', ' '.join(cmdargs), err.decode(errors='replace'))
        else:
            logger.info('Sent %s', cmdargs[-1])
    return failed


def get_git_signature(git_repo_path: str) -> Tuple[str, str]:
    gitdir = git_repo_path or None
    ecode, name = patchhub.git_run_command(gitdir, ['config', 'user.name'])
    ecode, email = patchhub.git_run_command(gitdir, ['config', 'user.email'])
    return name.strip(), email.strip()

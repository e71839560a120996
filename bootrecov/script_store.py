#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Read/modify/write access to the grub.d script holding the managed entries
"""
# pylint: disable=consider-using-with

import os
import logging
from enum import Enum
from .config import GRUB_HEADER
from .entry_codec import decode_entries, strip_block

_log = logging.getLogger(__name__)
_log_debug = _log.debug
_log_info = _log.info

SCRIPT_MODE = 0o755


class ScriptState(Enum):
    """ Condition of the script file on disk """
    ABSENT = 'absent'
    MISSING_HEADER = 'missing_header'
    READY = 'ready'


class ScriptStore:
    """The grub.d script treated as a store of managed entry blocks.

    Everything outside the managed blocks is carried through untouched.
    Reads fold a missing file into an empty result; writes raise.
    """
    def __init__(self, path, header=GRUB_HEADER):
        self.path = path
        self.header = header

    @classmethod
    def from_config(cls, config):
        """ Build the store for a BootrecovConfig """
        return cls(config.grub_custom, header=config.header)

    def _read(self):
        with open(self.path, 'r', encoding='utf-8', errors='surrogateescape', newline='') as fh:
            return fh.read()

    def _write(self, text):
        with open(self.path, 'w', encoding='utf-8', errors='surrogateescape', newline='') as fh:
            fh.write(text)

    def state(self):
        """ Which of ABSENT, MISSING_HEADER, READY the file is in """
        try:
            text = self._read()
        except FileNotFoundError:
            return ScriptState.ABSENT
        if text.startswith(self.header):
            return ScriptState.READY
        return ScriptState.MISSING_HEADER

    def ensure_ready(self):
        """Make sure the file exists and starts with the header.

        Existing content is kept byte for byte after the inserted header.
        """
        try:
            text = self._read()
        except FileNotFoundError:
            _log_info('creating %s', self.path)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, SCRIPT_MODE)
            with os.fdopen(fd, 'w', encoding='utf-8', errors='surrogateescape', newline='') as fh:
                fh.write(self.header)
            return
        if not text.startswith(self.header):
            _log_info('inserting header into %s', self.path)
            self._write(self.header + text)

    def has_entry(self, identity):
        """ True if some line of the script mentions identity """
        try:
            with open(self.path, 'r', encoding='utf-8', errors='surrogateescape', newline='') as fh:
                for line in fh:
                    if identity in line:
                        return True
        except FileNotFoundError:
            return False
        return False

    def append(self, block):
        """ Add a block at the end of the script (creating it if needed) """
        self.ensure_ready()
        with open(self.path, 'r+', encoding='utf-8', errors='surrogateescape', newline='') as fh:
            text = fh.read()
            if text and not text.endswith('\n'):
                block = '\n' + block
            fh.seek(0, os.SEEK_END)
            fh.write(block)
        _log_debug('appended %d chars to %s', len(block), self.path)

    def remove(self, identity):
        """Delete the managed block(s) carrying identity.

        The file is rewritten only when something was removed.  Returns
        the number of lines removed (0 when the identity is not present).
        """
        text = self._read()
        kept, removed = strip_block(text.split('\n'), identity)
        if removed:
            self._write('\n'.join(kept))
            _log_info('removed %s (%d lines) from %s', identity, removed, self.path)
        return removed

    def list_entries(self):
        """ Names of the managed entries; empty if there is no script """
        try:
            text = self._read()
        except FileNotFoundError:
            return []
        return decode_entries(text)

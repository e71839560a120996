#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Join discovered backups with the entries present in the grub.d script
"""
import sys
import logging
from dataclasses import dataclass
from .config import BootrecovConfig
from .prober import BootBackup, DiscoveryError, discover
from .entry_codec import encode_entry, identity_of
from .script_store import ScriptStore

_log = logging.getLogger(__name__)
_log_debug = _log.debug
_log_warn = _log.warning

_dataclass_kwargs = {'slots': True} if sys.version_info >= (3, 10) else {}


@dataclass(**_dataclass_kwargs)
class ViewItem:
    """A backup as shown in the UI.

    Attributes:
        backup: the discovered BootBackup
        has_entry: the script currently holds a managed entry for it
    """
    backup: BootBackup
    has_entry: bool = False

    @property
    def path(self):
        return self.backup.path

    @property
    def name(self):
        return self.backup.name

    @property
    def has_kernel(self):
        return self.backup.has_kernel

    @property
    def has_initramfs(self):
        return self.backup.has_initramfs


class BackupRegistry:
    """Authoritative list of backups, each marked with whether it has an entry.

    Backups are matched to entries by directory base name, so two roots
    holding a directory of the same name share one entry.
    """
    def __init__(self, config=None, prober=discover, store=None):
        self.config = config or BootrecovConfig()
        self.prober = prober
        self.store = store or ScriptStore.from_config(self.config)
        self.items = []    # ViewItems, in discovery order
        self.entries = []  # entry names, in script order

    def load(self):
        """ Rediscover backups and entries; returns the ViewItems """
        try:
            self.store.ensure_ready()
        except PermissionError as exc:
            # carry on read-only; writes will report the problem
            _log_warn('cannot prepare %s: %s', self.store.path, exc)

        partial_exc = None
        try:
            backups = self.prober(self.config.roots)
        except DiscoveryError as exc:
            backups, partial_exc = exc.partial, exc

        self.entries = self.store.list_entries()
        present = set(self.entries)
        self.items = [ViewItem(backup=b, has_entry=b.name in present) for b in backups]
        _log_debug('loaded %d backups, %d entries', len(self.items), len(self.entries))
        if partial_exc:
            raise partial_exc
        return self.items

    def toggle_entry(self, item):
        """Add the entry for item if it has none, else remove it.

        The item is changed only after the script was written.
        """
        name = item.name
        if item.has_entry:
            self.store.remove(identity_of(name))
            item.has_entry = False
            self.entries = [e for e in self.entries if e != name]
        else:
            self.store.append(encode_entry(item.backup, self.config.kernel_args))
            item.has_entry = True
            if name not in self.entries:
                self.entries.append(name)
        self._sync_name(name, item.has_entry)
        return item

    def remove_entry_by_name(self, name):
        """ Remove the entry for name; clears has_entry on matching items """
        self.store.remove(identity_of(name))
        self.entries = [e for e in self.entries if e != name]
        self._sync_name(name, False)

    def _sync_name(self, name, has_entry):
        for item in self.items:
            if item.name == name:
                item.has_entry = has_entry

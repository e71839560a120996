#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Find boot backups (kernel + initramfs copies) under the backup roots
"""
import os
import sys
import logging
from dataclasses import dataclass

KERNEL_NAMES = ('vmlinuz-linux', 'vmlinuz')
INITRAMFS_NAMES = ('initramfs-linux.img', 'initrd.img')

_log = logging.getLogger(__name__)
_log_debug = _log.debug
_log_warn = _log.warning

_dataclass_kwargs = {'slots': True} if sys.version_info >= (3, 10) else {}


class DiscoveryError(Exception):
    """A backup root could not be listed.

    The candidates found before the failure are kept in ``partial``;
    the underlying OSError is the ``__cause__``.
    """
    def __init__(self, root, partial):
        super().__init__(f'cannot list backup root {root!r}')
        self.root = root
        self.partial = partial


@dataclass(**_dataclass_kwargs)
class BootBackup:
    """A directory under a backup root that may hold a bootable kernel.

    Attributes:
        path: absolute directory path (e.g., '/boot/efi/boot-backups/2024-05-01-120000')
        has_kernel: 'vmlinuz-linux' or 'vmlinuz' is present
        has_initramfs: 'initramfs-linux.img' or 'initrd.img' is present
        kernel_image: file name of the kernel found (or the preferred name)
        initramfs_image: file name of the initramfs found (or the preferred name)
    """
    path: str
    has_kernel: bool = False
    has_initramfs: bool = False
    kernel_image: str = KERNEL_NAMES[0]
    initramfs_image: str = INITRAMFS_NAMES[0]

    @property
    def name(self):
        """Directory base name; also the display name of its menu entry"""
        return os.path.basename(self.path.rstrip('/'))

    @property
    def complete(self):
        return self.has_kernel and self.has_initramfs

    @property
    def status(self):
        return 'OK' if self.complete else 'Incomplete'


def first_present(dirpath, names):
    """ Return the first of names that exists directly in dirpath, or None """
    for name in names:
        if os.path.exists(os.path.join(dirpath, name)):
            return name
    return None


def probe(path):
    """ Classify one backup directory. """
    kernel = first_present(path, KERNEL_NAMES)
    initramfs = first_present(path, INITRAMFS_NAMES)
    return BootBackup(path=path,
                      has_kernel=kernel is not None,
                      has_initramfs=initramfs is not None,
                      kernel_image=kernel or KERNEL_NAMES[0],
                      initramfs_image=initramfs or INITRAMFS_NAMES[0])


def discover(roots):
    """Scan each root (in order) for backup directories.

    Roots that do not exist are skipped. Any other error listing a root
    raises DiscoveryError holding what was found so far.
    """
    backups = []
    for root in roots:
        try:
            with os.scandir(root) as entries:
                for entry in entries:
                    if not entry.is_dir():
                        continue
                    backups.append(probe(os.path.join(root, entry.name)))
        except FileNotFoundError:
            _log_debug('skipping missing backup root %s', root)
            continue
        except OSError as exc:
            _log_warn('cannot list backup root %s: %s', root, exc)
            raise DiscoveryError(root, backups) from exc
    _log_debug('discovered %d backup(s) in %s', len(backups), roots)
    return backups

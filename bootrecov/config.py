#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Locations and defaults for bootrecov
"""
import sys
from dataclasses import dataclass

SNAPSHOT_DIR = '/var/backups/boot-snapshots'
EFI_DIR = '/boot/efi/boot-backups'
GRUB_CUSTOM = '/etc/grub.d/41_custom_boot_backups'
GRUB_HEADER = '#!/bin/bash\n'
DEFAULT_KERNEL_ARGS = 'root=UUID=your-root rw'

# Use slots for memory efficiency and typo protection on Python 3.10+
_dataclass_kwargs = {'slots': True} if sys.version_info >= (3, 10) else {}


@dataclass(**_dataclass_kwargs)
class BootrecovConfig:
    """Where to look for backups and which script holds their entries.

    Attributes:
        snapshot_dir: first backup root (scanned first)
        efi_dir: second backup root
        grub_custom: the grub.d script holding the managed menu entries
        header: required first line of grub_custom
        kernel_args: arguments placed after the kernel on each 'linux' line
    """
    snapshot_dir: str = SNAPSHOT_DIR
    efi_dir: str = EFI_DIR
    grub_custom: str = GRUB_CUSTOM
    header: str = GRUB_HEADER
    kernel_args: str = DEFAULT_KERNEL_ARGS

    @property
    def roots(self):
        """Backup roots in scan order"""
        return [self.snapshot_dir, self.efi_dir]

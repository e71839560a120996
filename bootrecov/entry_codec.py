#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Encode backups as grub menu entries and find them again in the script.

There is no grub script parser here: the managed blocks have a fixed
shape, so plain line matching on that shape is enough.  Each block is
wrapped in a quoted here-document so that grub-mkconfig emits it without
expanding anything inside (paths may hold shell metacharacters):

    cat <<'EOF'
    menuentry 'Bootrecov NAME' --id bootrecov-NAME {
        search --file --set=root PATH/vmlinuz-linux
        linux PATH/vmlinuz-linux root=UUID=... rw
        initrd PATH/initramfs-linux.img
    }
    EOF
"""
import os
import re
from enum import Enum
from .config import DEFAULT_KERNEL_ARGS

ID_PREFIX = 'bootrecov-'
TITLE_PREFIX = 'Bootrecov '
MENUENTRY_PREFIX = f"menuentry '{TITLE_PREFIX}"
WRAP_OPEN = "cat <<'EOF'"
WRAP_CLOSE = 'EOF'
BLOCK_CLOSE = '}'

ENTRY_TEMPLATE = (WRAP_OPEN + '\n'
                  + "menuentry '{title}' --id {ident} {{\n"
                  + '    search --file --set=root {path}/{kernel}\n'
                  + '    linux {path}/{kernel} {args}\n'
                  + '    initrd {path}/{initramfs}\n'
                  + BLOCK_CLOSE.replace('}', '}}') + '\n'
                  + WRAP_CLOSE + '\n')


def identity_of(name):
    """ The grub '--id' of the managed entry for display name 'name' """
    return ID_PREFIX + name


def encode_entry(backup, kernel_args=DEFAULT_KERNEL_ARGS):
    """Render the managed entry block for a BootBackup.

    Raises ValueError for a name holding a single quote: it would end the
    quoted title early and the entry could not be found again.
    """
    if "'" in backup.name:
        raise ValueError(f'cannot make a grub entry for {backup.name!r}: name contains a quote')
    path = backup.path.rstrip('/')
    return ENTRY_TEMPLATE.format(title=TITLE_PREFIX + backup.name,
                                 ident=identity_of(backup.name),
                                 path=path,
                                 kernel=backup.kernel_image,
                                 initramfs=backup.initramfs_image,
                                 args=kernel_args)


def decode_entries(text):
    """Names of the managed entries in the script text, in file order.

    Anything that is not a managed menuentry line (or is one without its
    closing quote) is ignored.
    """
    names = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith(MENUENTRY_PREFIX):
            continue
        rest = line[len(MENUENTRY_PREFIX):]
        end = rest.find("'")
        if end < 0:
            continue
        # older entries carried the full path as the title
        name = os.path.basename(rest[:end].rstrip('/'))
        if name:
            names.append(name)
    return names


def is_entry_start(line, identity):
    """ Is this the menuentry line carrying exactly this identity? """
    line = line.strip()
    if not line.startswith('menuentry'):
        return False
    return re.search(r'\s--id(?:=|\s+)' + re.escape(identity) + r"(?=[\s{]|$)",
                     line) is not None


def _starts_block(stripped):
    return stripped.startswith(WRAP_OPEN) or stripped.startswith('menuentry')


class ScanState(Enum):
    """ States of the block scanner """
    SEARCHING = 'searching'
    INSIDE_BLOCK = 'inside_block'
    AFTER_BRACE = 'after_brace'


def strip_block(lines, identity):
    """Drop every managed block for identity from a list of lines.

    Returns (kept_lines, removed_line_count).  A wrapper line directly
    above the menuentry goes with it.  The block ends at its 'EOF' closer,
    or just after its '}' when no closer follows; a block cut short by the
    start of another block (or by the end of the file) ends there.
    """
    kept, removed = [], 0
    state = ScanState.SEARCHING
    for line in lines:
        stripped = line.strip()
        if state == ScanState.AFTER_BRACE:
            if stripped == WRAP_CLOSE:
                removed += 1
                state = ScanState.SEARCHING
                continue
            state = ScanState.SEARCHING
        elif state == ScanState.INSIDE_BLOCK:
            if stripped == BLOCK_CLOSE:
                removed += 1
                state = ScanState.AFTER_BRACE
                continue
            if stripped == WRAP_CLOSE:
                removed += 1
                state = ScanState.SEARCHING
                continue
            if not _starts_block(stripped):
                removed += 1
                continue
            state = ScanState.SEARCHING

        # SEARCHING
        if is_entry_start(line, identity):
            if kept and kept[-1].strip().startswith(WRAP_OPEN):
                kept.pop()
                removed += 1
            removed += 1
            state = ScanState.INSIDE_BLOCK
            continue
        kept.append(line)
    return kept, removed

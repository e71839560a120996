#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interactive, visual manager of grub entries for /boot backups
"""
# pylint: disable=broad-exception-caught
# pylint: disable=too-many-instance-attributes,too-many-branches
# pylint: disable=too-many-return-statements,too-many-statements
# pylint: disable=wrong-import-position,disable=wrong-import-order

import os
import sys
import traceback
import logging
import curses as cs
import argparse
from console_window import ConsoleWindow, OptionSpinner
from .config import BootrecovConfig, SNAPSHOT_DIR, EFI_DIR, GRUB_CUSTOM, DEFAULT_KERNEL_ARGS
from .prober import DiscoveryError
from .registry import BackupRegistry

BACKUPS_MODE, ENTRIES_MODE = 'backups', 'entries'
UPDATE_CMD = 'sudo grub-mkconfig -o /boot/grub/grub.cfg'
KERNEL_ARG_KEYS = ('root=', 'rootflags=', 'rootfstype=')

_log = logging.getLogger(__name__)
_log_error = _log.error


def kernel_args_from_cmdline(path='/proc/cmdline'):
    """ Pick the root-related args of the running kernel, if any """
    try:
        with open(path, 'r', encoding='utf-8') as fh:
            words = fh.read().split()
    except OSError:
        return None
    keep = [wd for wd in words if wd.startswith(KERNEL_ARG_KEYS) or wd in ('ro', 'rw')]
    if not any(wd.startswith('root=') for wd in keep):
        return None
    return ' '.join(keep)


class BootRecov:
    """ Main class for curses atop the backup registry"""
    singleton = None

    def __init__(self, config):
        assert not BootRecov.singleton
        BootRecov.singleton = self
        self.registry = BackupRegistry(config)
        self.mode = BACKUPS_MODE
        self.redraw = False # force redraw

        spin = self.spin = OptionSpinner()
        spin.add_key('help_mode', '? - toggle help screen', vals=[False, True])
        spin.add_key('grub', 'g - add/remove grub entry of backup', category='action')
        spin.add_key('remove', 'x - remove grub entry', category='action')
        spin.add_key('tab', 'TAB - switch backups/entries', category='action', keys=[9])
        spin.add_key('update', 'u - run grub-mkconfig', category='action')
        spin.add_key('reload', 'r - rescan backups and entries', category='action')
        spin.add_key('quit', 'q - quit program',
                     category='action', keys=[ord('q')])
        self.opts = spin.default_obj

        self.actions = {} # currently available actions
        self.saved_pick_pos = None  # Save cursor position when entering help mode
        self.win = None
        err = self.reinit()
        self.win = ConsoleWindow(head_line=True, body_rows=max(len(self.registry.items), len(self.registry.entries))+20,
                                 head_rows=10, keys=spin.keys, mod_pick=self.mod_pick)
        self.win.set_pick_mode(True)
        if err:
            self.win.alert(f'Scan incomplete: {err}')

    def reinit(self):
        """ Rescan everything; returns an error message or None """
        try:
            self.registry.load()
        except (OSError, DiscoveryError) as exc:
            _log_error('load failed: %s', exc)
            return str(exc)
        finally:
            if self.win:
                self.win.pick_pos = 0
        return None

    def rows(self):
        """ The items of the current screen """
        if self.mode == ENTRIES_MODE:
            return self.registry.entries
        return self.registry.items

    @staticmethod
    def format_item(item):
        """ Backup line: name, status, and whether it has an entry """
        line = f'{item.name} {item.backup.status}'
        if item.has_entry:
            line += ' [grub]'
        return line

    def picked(self):
        """ The picked row of the current screen, or None """
        rows = self.rows()
        if 0 <= self.win.pick_pos < len(rows):
            return rows[self.win.pick_pos]
        return None

    def main_loop(self):
        """ Draw, read a key, act, repeat """
        while True:
            if self.opts.help_mode and self.saved_pick_pos is None:
                self.saved_pick_pos = self.win.pick_pos
                self.win.set_pick_mode(False)
            elif not self.opts.help_mode and self.saved_pick_pos is not None:
                self.win.pick_pos = self.saved_pick_pos
                self.saved_pick_pos = None
                self.win.set_pick_mode(True)

            if self.opts.help_mode:
                self.spin.show_help_nav_keys(self.win)
                self.spin.show_help_body(self.win)
                self.win.put_body(f'   script: {self.registry.store.path}')
                for root in self.registry.config.roots:
                    self.win.put_body(f'   backups: {root}')
            else:
                self.win.add_header(self.get_keys_line(), attr=cs.A_BOLD)
                if self.mode == ENTRIES_MODE:
                    if not self.registry.entries:
                        self.win.add_body('None')
                    for name in self.registry.entries:
                        self.win.add_body(name)
                else:
                    if not self.registry.items:
                        self.win.add_body('No backups found')
                    for item in self.registry.items:
                        self.win.add_body(self.format_item(item))

            self.win.render(redraw=self.redraw)
            self.redraw = False

            _ = self.do_key(self.win.prompt(seconds=300))
            self.win.clear()

    def get_keys_line(self):
        """ The header line of available keys """
        title = 'GRUB Entries' if self.mode == ENTRIES_MODE else 'Backups'
        line = ''
        for key, verb in self.actions.items():
            if key[0] == verb[0]:
                line += f' {verb}'
            else:
                line += f' {key}:{verb}'
        line += ' tab:' + (BACKUPS_MODE if self.mode == ENTRIES_MODE else ENTRIES_MODE)
        line += ' ?:help quit'
        return f'{title}:' + line

    def get_actions(self):
        """ Determine the available commands for the picked line."""
        actions = {}
        row = self.picked()
        if row is not None:
            if self.mode == ENTRIES_MODE:
                actions['x'] = 'rmv'
            else:
                actions['g'] = 'ungrub' if row.has_entry else 'grub'
        actions['u'] = 'update'
        actions['r'] = 'reload'
        return actions

    @staticmethod
    def mod_pick(line):
        """ Callback to modify the "pick line" being highlighted;
            We use it to alter the state
        """
        this = BootRecov.singleton
        this.actions = this.get_actions()
        header = this.get_keys_line()
        wds = header.split()
        this.win.head.pad.move(0, 0)
        for wd in wds:
            if wd:
                this.win.add_header(wd[0], attr=cs.A_BOLD|cs.A_UNDERLINE, resume=True)
            if wd[1:]:
                this.win.add_header(wd[1:] + ' ', resume=True)

        _, col = this.win.head.pad.getyx()
        pad = ' ' * (this.win.get_pad_width()-col)
        this.win.add_header(pad, resume=True)
        return line

    def do_key(self, key):
        """ Handle one key press """
        if not key:
            return True
        self.redraw = True # any key redraws/fixes screen
        if key == cs.KEY_ENTER or key == 10:
            if self.opts.help_mode:
                self.opts.help_mode = False
                return True
            return None

        if key in self.spin.keys:
            value = self.spin.do_key(key, self.win)
            self.do_actions()
            return value
        return None

    def switch_mode(self):
        """ Flip between the backups and entries screens """
        self.mode = ENTRIES_MODE if self.mode == BACKUPS_MODE else BACKUPS_MODE
        self.win.pick_pos = max(0, min(self.win.pick_pos, len(self.rows())-1))

    def update_grub(self):
        """ Regenerate grub.cfg so the entries show in the boot menu """
        ConsoleWindow.stop_curses()
        os.system('clear; stty sane')
        print('Command:')
        print(f' + {UPDATE_CMD}')
        yes = input("Run the above command? (yes/No) ")
        if yes.lower().startswith('y'):
            os.system(f'(set -x; {UPDATE_CMD}); /bin/echo "    <<<ExitCode=$?>>>"')
            os.system(r'/bin/echo -e "\n\n===== Press ENTER for menu ====> \c"; read FOO')
        ConsoleWindow._start_curses()

    def do_actions(self):
        """ Handle keys that are category='action' """

        quit_, self.opts.quit = self.opts.quit, False
        if quit_:
            self.win.stop_curses()
            os.system('clear; stty sane')
            sys.exit(0)

        tab, self.opts.tab = self.opts.tab, False
        if tab:
            self.switch_mode()
            return None

        reload, self.opts.reload = self.opts.reload, False
        if reload:
            self.mode = BACKUPS_MODE
            err = self.reinit()
            if err:
                self.win.alert(f'Reload incomplete: {err}')
            return None

        update, self.opts.update = self.opts.update, False
        if update:
            self.update_grub()
            return None

        row = self.picked()

        grub, self.opts.grub = self.opts.grub, False
        if grub and row is not None and self.mode == BACKUPS_MODE:
            try:
                self.registry.toggle_entry(row)
            except (OSError, ValueError) as exc:
                _log_error('toggle of %s failed: %s', row.name, exc)
                self.win.alert(f'Cannot change entry for {row.name}: {exc}')
            return None

        remove, self.opts.remove = self.opts.remove, False
        if remove and row is not None and self.mode == ENTRIES_MODE:
            try:
                self.registry.remove_entry_by_name(row)
            except (OSError, ValueError) as exc:
                _log_error('removal of %s failed: %s', row, exc)
                self.win.alert(f'Cannot remove entry {row}: {exc}')
                return None
            if self.win.pick_pos >= len(self.registry.entries) and self.win.pick_pos > 0:
                self.win.pick_pos -= 1
        return None


def list_backups(config):
    """ Print backups and entries without curses; returns exit code """
    registry = BackupRegistry(config)
    code = 0
    try:
        registry.load()
    except (OSError, DiscoveryError) as exc:
        print(f'ERROR: {exc}')
        code = 1
    print('Backups:')
    for item in registry.items:
        print(f'  {BootRecov.format_item(item)}  ({item.path})')
    print('GRUB Entries:')
    for name in registry.entries:
        print(f'  {name}')
    return code


def main():
    """ The program """
    parser = argparse.ArgumentParser(description='manage grub entries for /boot backups')
    parser.add_argument('--snapshot-dir', default=SNAPSHOT_DIR,
                        help=f'first backup root [{SNAPSHOT_DIR}]')
    parser.add_argument('--efi-dir', default=EFI_DIR,
                        help=f'second backup root [{EFI_DIR}]')
    parser.add_argument('--grub-custom', default=GRUB_CUSTOM,
                        help=f'grub.d script for the entries [{GRUB_CUSTOM}]')
    parser.add_argument('--kernel-args', default=None,
                        help='kernel args of new entries [from /proc/cmdline]')
    parser.add_argument('--list', action='store_true',
                        help='print backups and entries, then exit')
    parser.add_argument('--log-file', default=None,
                        help='write debug log to this file')
    opts = parser.parse_args()

    if opts.log_file:
        logging.basicConfig(filename=opts.log_file, level=logging.DEBUG,
                            format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    kernel_args = opts.kernel_args or kernel_args_from_cmdline() or DEFAULT_KERNEL_ARGS
    config = BootrecovConfig(snapshot_dir=opts.snapshot_dir, efi_dir=opts.efi_dir,
                             grub_custom=opts.grub_custom, kernel_args=kernel_args)
    if opts.list:
        sys.exit(list_backups(config))

    recov = BootRecov(config)
    recov.main_loop()

def run():
    """ Console-script entry point """
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exce:
        ConsoleWindow.stop_curses()
        print("exception:", str(exce))
        print(traceback.format_exc())

if __name__ == '__main__':
    run()

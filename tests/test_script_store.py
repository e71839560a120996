import os
import stat
import tempfile
import unittest
from pathlib import Path

from bootrecov.prober import BootBackup
from bootrecov.entry_codec import encode_entry, identity_of
from bootrecov.script_store import ScriptStore, ScriptState

HEADER = '#!/bin/bash\n'


def block_for(name):
    return encode_entry(BootBackup(path=f'/boot/efi/boot-backups/{name}',
                                   has_kernel=True, has_initramfs=True))


class ScriptStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.script = Path(self._tmp.name) / "41_custom_boot_backups"
        self.store = ScriptStore(str(self.script))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_states(self) -> None:
        self.assertEqual(self.store.state(), ScriptState.ABSENT)
        self.script.write_text("echo hi\n")
        self.assertEqual(self.store.state(), ScriptState.MISSING_HEADER)
        self.script.write_text(HEADER)
        self.assertEqual(self.store.state(), ScriptState.READY)

    def test_ensure_ready_creates_executable_file(self) -> None:
        self.store.ensure_ready()
        self.assertEqual(self.script.read_text(), HEADER)
        self.assertTrue(os.stat(self.script).st_mode & stat.S_IXUSR)

    def test_ensure_ready_prepends_header_only(self) -> None:
        foreign = "exec tail -n +3 $0\n# user stuff\n\tweird  spacing \nno newline at end"
        self.script.write_text(foreign)
        self.store.ensure_ready()
        self.assertEqual(self.script.read_text(), HEADER + foreign)
        self.store.ensure_ready()
        self.assertEqual(self.script.read_text(), HEADER + foreign)

    def test_read_paths_tolerate_missing_file(self) -> None:
        self.assertEqual(self.store.list_entries(), [])
        self.assertFalse(self.store.has_entry(identity_of('x')))
        self.assertFalse(self.script.exists())

    def test_remove_missing_file_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            self.store.remove(identity_of('x'))

    def test_append_then_has_entry(self) -> None:
        self.store.append(block_for('backup1'))
        self.assertTrue(self.store.has_entry(identity_of('backup1')))
        self.assertEqual(self.store.list_entries(), ['backup1'])
        self.assertEqual(self.script.read_text(), HEADER + block_for('backup1'))

    def test_append_after_unterminated_line(self) -> None:
        self.script.write_text(HEADER + "echo tail")
        self.store.append(block_for('a'))
        self.assertEqual(self.script.read_text(), HEADER + "echo tail\n" + block_for('a'))

    def test_append_remove_round_trip(self) -> None:
        original = HEADER + "# keep this\n"
        self.script.write_text(original)
        self.store.append(block_for('a'))
        self.store.remove(identity_of('a'))
        self.assertEqual(self.script.read_text(), original)

    def test_targeted_removal(self) -> None:
        self.store.append(block_for('a'))
        self.store.append(block_for('b'))
        self.store.remove(identity_of('a'))
        self.assertEqual(self.store.list_entries(), ['b'])
        self.assertEqual(self.script.read_text(), HEADER + block_for('b'))

    def test_remove_unknown_identity_leaves_file(self) -> None:
        content = HEADER + block_for('a') + "echo trailing"
        self.script.write_text(content)
        before = os.stat(self.script).st_mtime_ns
        self.assertEqual(self.store.remove(identity_of('zzz')), 0)
        self.assertEqual(self.script.read_text(), content)
        self.assertEqual(os.stat(self.script).st_mtime_ns, before)

    def test_foreign_content_survives_removal(self) -> None:
        prologue = HEADER + "exec tail -n +3 $0\n"
        epilogue = "menuentry 'Other OS' {\n    chainloader +1\n}\n"
        self.script.write_text(prologue + block_for('a') + epilogue)
        self.store.remove(identity_of('a'))
        self.assertEqual(self.script.read_text(), prologue + epilogue)

    def test_non_utf8_bytes_survive(self) -> None:
        original = b"#!/bin/bash\n# caf\xe9 comment\n"
        self.script.write_bytes(original)
        self.assertEqual(self.store.state(), ScriptState.READY)
        self.assertEqual(self.store.list_entries(), [])
        self.store.append(block_for('a'))
        self.assertTrue(self.store.has_entry(identity_of('a')))
        self.assertEqual(self.store.list_entries(), ['a'])
        self.store.remove(identity_of('a'))
        self.assertEqual(self.script.read_bytes(), original)

    def test_header_inserted_before_non_utf8_bytes(self) -> None:
        foreign = b"echo \xff\xfe\n"
        self.script.write_bytes(foreign)
        self.store.ensure_ready()
        self.assertEqual(self.script.read_bytes(), HEADER.encode() + foreign)

    @unittest.skipIf(os.geteuid() == 0, "root ignores file permissions")
    def test_append_permission_denied_raises(self) -> None:
        self.script.write_text(HEADER)
        os.chmod(self.script, 0o444)
        with self.assertRaises(PermissionError):
            self.store.append(block_for('a'))


if __name__ == "__main__":
    unittest.main()

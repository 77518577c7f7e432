import os

import pytest

from common.exceptions import FilesystemError, InsufficientPermissionError
from common.file_utils import (
    backup_file,
    read_managed_block,
    render_managed_block,
    translate_os_error,
    upsert_managed_block,
    write_text_file,
)


class TestWriteTextFile:
    def test_creates_parent_and_writes(self, tmp_path):
        target = tmp_path / "etc" / "profile.d" / "oracle.sh"

        write_text_file(target, "export A=1\n")

        assert target.read_text(encoding="utf-8") == "export A=1\n"
        assert not [p for p in target.parent.iterdir() if p.name.startswith(".oracle.sh.")]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
    def test_mode_is_applied(self, tmp_path):
        target = tmp_path / "dbca.rsp"

        write_text_file(target, "sysPassword=x\n", mode=0o600)

        assert os.stat(target).st_mode & 0o777 == 0o600

    @pytest.mark.skipif(os.name != "posix", reason="POSIX file modes")
    def test_existing_mode_is_preserved(self, tmp_path):
        target = tmp_path / "limits.conf"
        target.write_text("old\n")
        os.chmod(target, 0o640)

        write_text_file(target, "new\n")

        assert os.stat(target).st_mode & 0o777 == 0o640


class TestManagedBlocks:
    def test_render(self):
        assert render_managed_block("shm", ["tmpfs /dev/shm tmpfs size=2G 0 0"]) == (
            "# BEGIN db-provisioner: shm\n"
            "tmpfs /dev/shm tmpfs size=2G 0 0\n"
            "# END db-provisioner: shm\n"
        )

    def test_upsert_appends_then_is_stable(self, tmp_path):
        fstab = tmp_path / "fstab"
        fstab.write_text("UUID=abc / ext4 defaults 0 1")

        assert upsert_managed_block(fstab, "shm", ["tmpfs /dev/shm tmpfs size=2G 0 0"]) is True
        assert upsert_managed_block(fstab, "shm", ["tmpfs /dev/shm tmpfs size=2G 0 0"]) is False

        content = fstab.read_text()
        assert content.startswith("UUID=abc / ext4 defaults 0 1\n# BEGIN")
        assert read_managed_block(fstab, "shm") == ["tmpfs /dev/shm tmpfs size=2G 0 0"]

    def test_upsert_replaces_in_place(self, tmp_path):
        conf = tmp_path / "sysctl.conf"
        conf.write_text("a = 1\n" + render_managed_block("kernel", ["x = 1"]) + "z = 9\n")

        upsert_managed_block(conf, "kernel", ["x = 2", "y = 3"])

        lines = conf.read_text().splitlines()
        assert lines[0] == "a = 1"
        assert lines[-1] == "z = 9"
        assert read_managed_block(conf, "kernel") == ["x = 2", "y = 3"]

    def test_read_missing(self, tmp_path):
        assert read_managed_block(tmp_path / "missing", "x") is None
        other = tmp_path / "other"
        other.write_text("nothing here\n")
        assert read_managed_block(other, "x") is None


class TestBackupFile:
    def test_backup_copies_file(self, tmp_path, install_config):
        original = tmp_path / "sysctl.conf"
        original.write_text("a = 1\n")

        backup = backup_file(original, install_config)

        assert backup is not None
        assert backup.name.startswith("sysctl.conf.bak.")
        assert backup.read_text() == "a = 1\n"

    def test_nothing_to_back_up(self, tmp_path, install_config):
        assert backup_file(tmp_path / "missing.conf", install_config) is None


def test_translate_os_error():
    assert isinstance(translate_os_error(PermissionError(13, "denied"), "x"), InsufficientPermissionError)
    assert isinstance(translate_os_error(OSError(28, "full"), "x"), FilesystemError)

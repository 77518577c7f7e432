# tests/engine/test_steps_swap.py
import subprocess

import pytest

from common import system_utils
from common.exceptions import InsufficientPermissionError, NotFoundError
from common.file_utils import read_managed_block
from engine.models import StepStatus
from engine.steps.swap import EnsureSwapFile
from provision.install_plan import build_linux_plan, swap_file_size


@pytest.fixture
def meminfo(tmp_path, mocker):
    path = tmp_path / "meminfo"
    mocker.patch.object(system_utils, "MEMINFO_PATH", path)

    def _write(swap_kib, total_kib=16777216):
        path.write_text(f"MemTotal:       {total_kib} kB\nSwapTotal:      {swap_kib} kB\n")

    return _write


@pytest.fixture
def mock_elevated(mocker):
    return mocker.patch("engine.steps.swap.run_elevated_command")


class TestEnsureSwapFile:
    def test_satisfied_when_host_has_swap(self, step_context, meminfo, tmp_path):
        meminfo(2097152)

        assert EnsureSwapFile("swap", tmp_path / "swapfile", "8G").check(step_context) is True

    def test_not_satisfied_without_swap(self, step_context, meminfo, tmp_path):
        meminfo(0)

        assert EnsureSwapFile("swap", tmp_path / "swapfile", "8G").check(step_context) is False

    def test_apply_prepares_file_and_registers_it(self, step_context, mock_elevated, tmp_path):
        fstab = tmp_path / "fstab"
        fstab.write_text("UUID=abc / ext4 defaults 0 1\n")
        swap_file = tmp_path / "swapfile"

        result = EnsureSwapFile("swap", swap_file, "8G", fstab_path=fstab).apply(step_context)

        assert result.status is StepStatus.SUCCEEDED
        assert [c.args[0] for c in mock_elevated.call_args_list] == [
            ["fallocate", "-l", "8G", str(swap_file)],
            ["chmod", "600", str(swap_file)],
            ["mkswap", str(swap_file)],
            ["swapon", str(swap_file)],
        ]
        assert read_managed_block(fstab, "swap") == [f"{swap_file} none swap sw 0 0"]
        assert fstab.read_text().startswith("UUID=abc / ext4 defaults 0 1\n")

    def test_command_failure_stops_before_fstab(self, step_context, mock_elevated, tmp_path):
        mock_elevated.side_effect = [
            None,
            None,
            subprocess.CalledProcessError(1, ["mkswap"], stderr="mkswap: Permission denied"),
        ]
        fstab = tmp_path / "fstab"

        with pytest.raises(InsufficientPermissionError):
            EnsureSwapFile("swap", tmp_path / "swapfile", "1G", fstab_path=fstab).apply(step_context)

        assert not fstab.exists()

    def test_missing_tool(self, step_context, mock_elevated, tmp_path):
        mock_elevated.side_effect = FileNotFoundError(2, "No such file", "fallocate")

        with pytest.raises(NotFoundError, match="fallocate"):
            EnsureSwapFile("swap", tmp_path / "swapfile", "1G", fstab_path=tmp_path / "fstab").apply(step_context)


class TestSwapPlan:
    def _with_swap(self, install_config, **tuning):
        return install_config.model_copy(
            update={"tuning": install_config.tuning.model_copy(update={"swap": True, **tuning})}
        )

    def test_size_follows_physical_memory(self, install_config, meminfo):
        meminfo(0, total_kib=8388608)

        assert swap_file_size(self._with_swap(install_config)) == "8192M"

    def test_explicit_size_wins(self, install_config, meminfo):
        meminfo(0)

        assert swap_file_size(self._with_swap(install_config, swap_size="4G")) == "4G"

    def test_default_when_memory_unknown(self, install_config, tmp_path, mocker):
        mocker.patch.object(system_utils, "MEMINFO_PATH", tmp_path / "missing")

        assert swap_file_size(self._with_swap(install_config)) == "8G"

    def test_plan_includes_swap_only_when_enabled(self, install_config, meminfo):
        meminfo(0)

        swap_steps = [s for s in build_linux_plan(self._with_swap(install_config, swap_size="2G")) if isinstance(s, EnsureSwapFile)]

        assert len(swap_steps) == 1
        assert swap_steps[0].size == "2G"
        assert not [s for s in build_linux_plan(install_config) if isinstance(s, EnsureSwapFile)]

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import asyncio
import hashlib
import os
import urllib.request

import pytest

from fakes import FakeAssembler, FakeCommunicator
from ovfbuilder.communicator import CommunicatorError
from ovfbuilder.hook import NoopHook, ShellHook
from ovfbuilder.pipeline import StepAction, StepError
from ovfbuilder.state import StateKey
from ovfbuilder.steps import (
    StepAttachFloppy,
    StepAttachGuestAdditions,
    StepConfigureVRDP,
    StepConnect,
    StepCreateFloppy,
    StepDownload,
    StepDownloadGuestAdditions,
    StepExport,
    StepForwardSSH,
    StepHTTPServer,
    StepImport,
    StepOutputDir,
    StepProvision,
    StepRemoveDevices,
    StepRun,
    StepShutdown,
    StepSuppressMessages,
    StepTypeBootCommand,
    StepUploadGuestAdditions,
    StepUploadVersion,
    StepVBoxManage,
)
from ovfbuilder.steps.helpers import find_free_port, render

VM = "ovfbuilder-test"


def run(step, state) -> StepAction:
    return asyncio.run(step.run(state))


def cleanup(step, state) -> None:
    asyncio.run(step.cleanup(state))


@pytest.fixture
def vm_state(state):
    state.put(StateKey.VM_NAME, VM)
    return state


class TestHelpers:
    def test_render(self):
        assert render("--name={{ .Name }} {{.HTTPPort}}", Name="vm", HTTPPort=8080) == "--name=vm 8080"

    def test_render_unknown_key(self):
        with pytest.raises(StepError, match="Unknown template variable 'Bogus'"):
            render("{{ .Bogus }}")

    def test_find_free_port_in_range(self):
        port = find_free_port("127.0.0.1", 20000, 20100)
        assert 20000 <= port <= 20100


class TestOutputDir:
    def test_creates_directory(self, state, tmp_path):
        path = tmp_path / "out"
        assert run(StepOutputDir(path=str(path)), state) is StepAction.CONTINUE
        assert path.is_dir()

    def test_existing_without_force_halts_and_keeps_it(self, state, tmp_path):
        path = tmp_path / "out"
        path.mkdir()
        step = StepOutputDir(path=str(path))

        assert run(step, state) is StepAction.HALT
        assert StateKey.ERROR in state
        cleanup(step, state)
        assert path.is_dir()

    def test_force_replaces(self, state, tmp_path):
        path = tmp_path / "out"
        path.mkdir()
        (path / "old").write_text("x")

        assert run(StepOutputDir(path=str(path), force=True), state) is StepAction.CONTINUE
        assert list(path.iterdir()) == []

    def test_cleanup_removes_on_failure(self, state, tmp_path):
        path = tmp_path / "out"
        step = StepOutputDir(path=str(path))
        run(step, state)

        state.put(StateKey.HALTED, True)
        cleanup(step, state)
        assert not path.exists()

    def test_cleanup_keeps_on_success(self, state, tmp_path):
        path = tmp_path / "out"
        step = StepOutputDir(path=str(path))
        run(step, state)
        cleanup(step, state)
        assert path.is_dir()


def test_suppress_messages(state, driver):
    assert run(StepSuppressMessages(), state) is StepAction.CONTINUE
    assert driver.calls == [("setextradata", "global", "GUI/SuppressMessages", "all")]


def test_suppress_messages_failure(state, driver):
    driver.fail_on.add("setextradata")
    assert run(StepSuppressMessages(), state) is StepAction.HALT
    assert "suppress messages" in str(state.get(StateKey.ERROR))


class TestHTTPServer:
    def test_disabled_records_port_zero(self, state):
        assert run(StepHTTPServer(directory="", port_min=8000, port_max=9000), state) is StepAction.CONTINUE
        assert state.get(StateKey.HTTP_PORT) == 0

    def test_serves_directory(self, state, tmp_path):
        (tmp_path / "ks.cfg").write_text("install\n")
        step = StepHTTPServer(
            directory=str(tmp_path), port_min=21000, port_max=21100, bind_address="127.0.0.1",
        )
        assert run(step, state) is StepAction.CONTINUE
        port = state.get(StateKey.HTTP_PORT)
        assert 21000 <= port <= 21100
        try:
            with urllib.request.urlopen(f"http://127.0.0.1:{port}/ks.cfg", timeout=5) as resp:
                assert resp.read() == b"install\n"
        finally:
            cleanup(step, state)
        assert StateKey.HTTP_SERVER not in state


class TestDownload:
    def test_local_file_verified(self, state, tmp_path):
        source = tmp_path / "the-OS.ova"
        source.write_bytes(b"appliance")
        step = StepDownload(
            description="OVF/OVA",
            urls=(source.as_uri(),),
            checksum=hashlib.md5(b"appliance").hexdigest(),
            checksum_type="md5",
            result_key=StateKey.VM_PATH,
        )
        assert run(step, state) is StepAction.CONTINUE
        assert state.get(StateKey.VM_PATH) == str(source)

    def test_checksum_mismatch_halts(self, state, tmp_path):
        source = tmp_path / "the-OS.ova"
        source.write_bytes(b"appliance")
        step = StepDownload(
            description="OVF/OVA",
            urls=(source.as_uri(),),
            checksum="00",
            checksum_type="md5",
            result_key=StateKey.VM_PATH,
        )
        assert run(step, state) is StepAction.HALT
        assert str(state.get(StateKey.ERROR)).startswith("Error downloading OVF/OVA")
        assert StateKey.VM_PATH not in state

    def test_guest_additions_disabled(self, state, driver):
        assert run(StepDownloadGuestAdditions(mode="disable"), state) is StepAction.CONTINUE
        assert driver.calls == []

    def test_guest_additions_custom_url(self, state, tmp_path):
        iso = tmp_path / "VBoxGuestAdditions_7.0.12.iso"
        iso.write_bytes(b"iso")
        url = f"file://{tmp_path}/VBoxGuestAdditions_{{{{ .Version }}}}.iso"

        assert run(StepDownloadGuestAdditions(mode="upload", url=url), state) is StepAction.CONTINUE
        assert state.get(StateKey.GUEST_ADDITIONS_PATH) == str(iso)


class TestImport:
    def test_import_and_cleanup(self, state, driver):
        state.put(StateKey.VM_PATH, "/tmp/the-OS.ova")
        step = StepImport(vm_name=VM, import_flags=("--options", "keepallmacs"))

        assert run(step, state) is StepAction.CONTINUE
        assert state.get(StateKey.VM_NAME) == VM
        assert driver.calls[0] == (
            "import", "/tmp/the-OS.ova", "--vsys", "0", "--vmname", VM, "--options", "keepallmacs",
        )

        cleanup(step, state)
        assert driver.calls[-1] == ("unregistervm", VM, "--delete")

    def test_failed_import_skips_delete(self, state, driver):
        state.put(StateKey.VM_PATH, "/tmp/the-OS.ova")
        driver.fail_on.add("import")
        step = StepImport(vm_name=VM)

        assert run(step, state) is StepAction.HALT
        cleanup(step, state)
        assert driver.subcommands() == ["import"]


class TestGuestAdditionsMedia:
    def test_attach_only_in_attach_mode(self, vm_state, driver):
        assert run(StepAttachGuestAdditions(mode="upload"), vm_state) is StepAction.CONTINUE
        assert driver.calls == []

    def test_attach_then_remove(self, vm_state, driver):
        vm_state.put(StateKey.GUEST_ADDITIONS_PATH, "/cache/ga.iso")
        attach = StepAttachGuestAdditions(mode="attach")

        assert run(attach, vm_state) is StepAction.CONTINUE
        assert driver.calls[-1][-2:] == ("--medium", "/cache/ga.iso")
        assert vm_state.get(StateKey.GUEST_ADDITIONS_ATTACHED) is True

        assert run(StepRemoveDevices(), vm_state) is StepAction.CONTINUE
        assert driver.calls[-1][-2:] == ("--medium", "none")

        # Already detached: cleanup has nothing to do
        cleanup(attach, vm_state)
        assert len(driver.calls) == 2


class TestCreateFloppy:
    def test_nothing_to_put_on_floppy(self, state):
        assembler = FakeAssembler()
        assert run(StepCreateFloppy(assembler=assembler), state) is StepAction.CONTINUE
        assert assembler.created == []
        assert StateKey.FLOPPY_PATH not in state

    def test_creates_image_and_cleanup_removes_it(self, state, tmp_path):
        assembler = FakeAssembler()
        step = StepCreateFloppy(
            files=("ks.cfg",), directories=(str(tmp_path),), assembler=assembler,
        )

        assert run(step, state) is StepAction.CONTINUE
        image_path = state.get(StateKey.FLOPPY_PATH)
        assert os.path.isfile(image_path)
        assert assembler.created == [(image_path, ["ks.cfg"], [str(tmp_path)])]

        cleanup(step, state)
        assert not os.path.exists(os.path.dirname(image_path))
        assert StateKey.FLOPPY_PATH not in state

    def test_assembler_failure_halts(self, state):
        assembler = FakeAssembler(fail=True)
        step = StepCreateFloppy(files=("ks.cfg",), assembler=assembler)

        assert run(step, state) is StepAction.HALT
        assert "Error creating floppy: mformat failed" in str(state.get(StateKey.ERROR))
        assert StateKey.FLOPPY_PATH not in state
        image_dir = os.path.dirname(assembler.created[0][0])
        assert not os.path.exists(image_dir)


class TestAttachFloppy:
    def test_skipped_without_image(self, vm_state, driver):
        assert run(StepAttachFloppy(), vm_state) is StepAction.CONTINUE
        assert driver.calls == []

    def test_attach_and_cleanup_detaches(self, vm_state, driver):
        vm_state.put(StateKey.FLOPPY_PATH, "/tmp/floppy.img")
        step = StepAttachFloppy()

        assert run(step, vm_state) is StepAction.CONTINUE
        assert driver.calls == [
            ("storagectl", VM, "--name", "Floppy Controller", "--add", "floppy"),
            ("storageattach", VM, "--storagectl", "Floppy Controller", "--port", "0",
             "--device", "0", "--type", "fdd", "--medium", "/tmp/floppy.img"),
        ]
        assert vm_state.get(StateKey.FLOPPY_ATTACHED) is True

        cleanup(step, vm_state)
        assert driver.calls[-1][-2:] == ("--medium", "none")
        assert StateKey.FLOPPY_ATTACHED not in vm_state

    def test_remove_devices_ejects_floppy(self, vm_state, driver):
        vm_state.put(StateKey.FLOPPY_PATH, "/tmp/floppy.img")
        step = StepAttachFloppy()
        run(step, vm_state)

        assert run(StepRemoveDevices(), vm_state) is StepAction.CONTINUE
        assert driver.calls[-1][:3] == ("storageattach", VM, "--storagectl")
        assert driver.calls[-1][-2:] == ("--medium", "none")

        cleanup(step, vm_state)
        assert len(driver.calls) == 3

    def test_failure_halts(self, vm_state, driver):
        vm_state.put(StateKey.FLOPPY_PATH, "/tmp/floppy.img")
        driver.fail_on.add("storagectl")

        assert run(StepAttachFloppy(), vm_state) is StepAction.HALT
        assert "Error attaching floppy" in str(vm_state.get(StateKey.ERROR))
        assert StateKey.FLOPPY_ATTACHED not in vm_state


class TestNetwork:
    def test_vrdp(self, vm_state, driver):
        step = StepConfigureVRDP(bind_address="127.0.0.1", port_min=22000, port_max=22100)
        assert run(step, vm_state) is StepAction.CONTINUE
        port = vm_state.get(StateKey.VRDP_PORT)
        assert driver.calls == [(
            "modifyvm", VM, "--vrde", "on",
            "--vrdeaddress", "127.0.0.1", "--vrdeport", str(port),
        )]
        assert vm_state.get(StateKey.VRDP_IP) == "127.0.0.1"

    def test_forward_ssh(self, vm_state, driver):
        step = StepForwardSSH(
            communicator="ssh", guest_port=22, host_port_min=23000, host_port_max=23100,
        )
        assert run(step, vm_state) is StepAction.CONTINUE
        port = vm_state.get(StateKey.SSH_HOST_PORT)
        assert 23000 <= port <= 23100
        assert driver.calls[-1] == (
            "modifyvm", VM, "--natpf1", f"ovfbuildercomm,tcp,127.0.0.1,{port},,22",
        )

    def test_forward_ssh_skip_nat(self, vm_state, driver):
        step = StepForwardSSH(
            communicator="ssh", guest_port=2200, host_port_min=1, host_port_max=2,
            skip_nat_mapping=True,
        )
        assert run(step, vm_state) is StepAction.CONTINUE
        assert vm_state.get(StateKey.SSH_HOST_PORT) == 2200
        assert driver.calls == []

    def test_forward_ssh_without_communicator(self, vm_state, driver):
        step = StepForwardSSH(communicator="none", guest_port=22, host_port_min=1, host_port_max=2)
        assert run(step, vm_state) is StepAction.CONTINUE
        assert StateKey.SSH_HOST_PORT not in vm_state


class TestVBoxManage:
    def test_substitutes_name(self, vm_state, driver):
        step = StepVBoxManage(commands=(("modifyvm", "{{ .Name }}", "--memory", "2048"),))
        assert run(step, vm_state) is StepAction.CONTINUE
        assert driver.calls == [("modifyvm", VM, "--memory", "2048")]

    def test_failure_halts(self, vm_state, driver):
        driver.fail_on.add("modifyvm")
        step = StepVBoxManage(commands=(("modifyvm", "{{ .Name }}"), ("showvminfo", VM)))
        assert run(step, vm_state) is StepAction.HALT
        assert driver.subcommands() == ["modifyvm"]


class TestRun:
    def test_starts_and_cleanup_stops(self, vm_state, driver):
        step = StepRun(boot_wait=0, headless=True)
        assert run(step, vm_state) is StepAction.CONTINUE
        assert driver.calls == [("startvm", VM, "--type", "headless")]

        cleanup(step, vm_state)
        assert driver.calls[-1] == ("controlvm", VM, "poweroff")

    def test_cleanup_leaves_stopped_vm(self, vm_state, driver):
        step = StepRun(boot_wait=0)
        run(step, vm_state)
        driver.running.clear()
        cleanup(step, vm_state)
        assert driver.calls == [("startvm", VM, "--type", "gui")]


class TestTypeBootCommand:
    def test_sends_scancodes(self, vm_state, driver):
        vm_state.put(StateKey.HTTP_PORT, 8123)
        step = StepTypeBootCommand(boot_command=("a<enter>",))
        assert run(step, vm_state) is StepAction.CONTINUE
        assert driver.calls == [("controlvm", VM, "keyboardputscancode", "1e", "9e", "1c", "9c")]

    def test_interpolates_http_address(self, vm_state, driver):
        vm_state.put(StateKey.HTTP_PORT, 80)
        step = StepTypeBootCommand(boot_command=("{{ .HTTPIP }}:{{ .HTTPPort }}",))
        run(step, vm_state)
        # "10.0.2.2:80" is 11 characters, one make/break pair each plus shift for ':'
        codes = driver.calls[0][3:]
        assert len(codes) == 11 * 2 + 2

    def test_bad_template_halts(self, vm_state, driver):
        step = StepTypeBootCommand(boot_command=("{{ .Nope }}",))
        assert run(step, vm_state) is StepAction.HALT
        assert driver.calls == []


class TestConnect:
    def test_retries_until_connected(self, state):
        comm = FakeCommunicator()
        attempts = []

        async def connect(host, port, **kwargs):
            attempts.append((host, port, kwargs["username"]))
            if len(attempts) < 3:
                raise CommunicatorError("refused")
            return comm

        state.put(StateKey.SSH_HOST_PORT, 2222)
        step = StepConnect(
            communicator="ssh", host="127.0.0.1", username="vagrant",
            retry_interval=0, connect=connect,
        )
        assert run(step, state) is StepAction.CONTINUE
        assert attempts == [("127.0.0.1", 2222, "vagrant")] * 3
        assert state.get(StateKey.COMMUNICATOR) is comm

        cleanup(step, state)
        assert comm.closed
        assert StateKey.COMMUNICATOR not in state

    def test_timeout(self, state):
        async def connect(host, port, **kwargs):
            raise CommunicatorError("refused")

        state.put(StateKey.SSH_HOST_PORT, 2222)
        step = StepConnect(
            communicator="ssh", host="127.0.0.1", username="vagrant",
            timeout=0, retry_interval=0, connect=connect,
        )
        assert run(step, state) is StepAction.HALT
        assert str(state.get(StateKey.ERROR)) == "Timeout waiting for SSH."

    def test_no_communicator(self, state):
        step = StepConnect(communicator="none", host="127.0.0.1", username="")
        assert run(step, state) is StepAction.CONTINUE
        assert StateKey.COMMUNICATOR not in state


class TestGuestUploads:
    def test_version(self, state):
        comm = FakeCommunicator()
        state.put(StateKey.COMMUNICATOR, comm)
        assert run(StepUploadVersion(path=".vbox_version"), state) is StepAction.CONTINUE
        assert comm.data == {".vbox_version": b"7.0.12"}

    def test_version_disabled(self, state):
        comm = FakeCommunicator()
        state.put(StateKey.COMMUNICATOR, comm)
        run(StepUploadVersion(path=""), state)
        assert comm.data == {}

    def test_guest_additions(self, state):
        comm = FakeCommunicator()
        state.put(StateKey.COMMUNICATOR, comm)
        state.put(StateKey.GUEST_ADDITIONS_PATH, "/cache/ga.iso")
        step = StepUploadGuestAdditions(mode="upload", path="VBoxGuestAdditions_{{ .Version }}.iso")
        assert run(step, state) is StepAction.CONTINUE
        assert comm.uploads == [("VBoxGuestAdditions_7.0.12.iso", "/cache/ga.iso")]

    def test_skipped_without_communicator(self, state):
        step = StepUploadGuestAdditions(mode="upload", path="ga.iso")
        assert run(step, state) is StepAction.CONTINUE


class TestProvision:
    def test_runs_hook(self, state):
        comm = FakeCommunicator()
        state.put(StateKey.COMMUNICATOR, comm)
        state.put(StateKey.HOOK, ShellHook(["echo one", "echo two"]))
        assert run(StepProvision(), state) is StepAction.CONTINUE
        assert comm.ran == ["echo one", "echo two"]

    def test_failing_command_halts(self, state):
        comm = FakeCommunicator(exit_codes={"false": 1})
        state.put(StateKey.COMMUNICATOR, comm)
        state.put(StateKey.HOOK, ShellHook(["false", "echo never"]))
        assert run(StepProvision(), state) is StepAction.HALT
        assert comm.ran == ["false"]
        assert "status 1" in str(state.get(StateKey.ERROR))

    def test_commands_need_a_communicator(self, state):
        state.put(StateKey.HOOK, ShellHook(["echo one"]))
        assert run(StepProvision(), state) is StepAction.HALT
        assert "no communicator" in str(state.get(StateKey.ERROR))

    def test_default_hook_without_communicator(self, state):
        state.put(StateKey.HOOK, NoopHook())
        assert run(StepProvision(), state) is StepAction.CONTINUE


class TestShutdown:
    def test_graceful(self, vm_state, driver):
        comm = FakeCommunicator()
        vm_state.put(StateKey.COMMUNICATOR, comm)
        polls = []

        async def is_running(name):
            polls.append(name)
            return len(polls) < 3

        driver.is_running = is_running
        step = StepShutdown(command="sudo poweroff", timeout=10, poll_interval=0)
        assert run(step, vm_state) is StepAction.CONTINUE
        assert comm.started == ["sudo poweroff"]
        assert len(polls) == 3
        assert ("controlvm", VM, "poweroff") not in driver.calls

    def test_graceful_timeout(self, vm_state, driver):
        vm_state.put(StateKey.COMMUNICATOR, FakeCommunicator())
        driver.running.add(VM)
        step = StepShutdown(command="sudo poweroff", timeout=0, poll_interval=0)
        assert run(step, vm_state) is StepAction.HALT
        assert str(vm_state.get(StateKey.ERROR)) == "Timeout while waiting for machine to shut down."

    def test_forced_without_command(self, vm_state, driver):
        driver.running.add(VM)
        assert run(StepShutdown(command="", timeout=10), vm_state) is StepAction.CONTINUE
        assert driver.calls == [("controlvm", VM, "poweroff")]


class TestExport:
    def test_removes_nat_rule_and_exports(self, vm_state, driver, tmp_path):
        step = StepExport(format="ova", output_dir=str(tmp_path), export_opts=("--manifest",))
        assert run(step, vm_state) is StepAction.CONTINUE

        expected = str(tmp_path / f"{VM}.ova")
        assert driver.calls == [
            ("modifyvm", VM, "--natpf1", "delete", "ovfbuildercomm"),
            ("export", VM, "--output", expected, "--manifest"),
        ]
        assert vm_state.get(StateKey.EXPORT_PATH) == expected

    def test_no_nat_rule_without_communicator(self, vm_state, driver, tmp_path):
        step = StepExport(format="ovf", output_dir=str(tmp_path), communicator="none")
        run(step, vm_state)
        assert driver.subcommands() == ["export"]

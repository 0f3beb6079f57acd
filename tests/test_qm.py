"""Tests for qm module."""

import pytest

from conftest import FakeRunner
from vmdeploy.exceptions import CommandError
from vmdeploy.qm import QmClient


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def qm(runner):
    return QmClient(runner)


def test_create(qm, runner):
    qm.create(9000, "server", 4096, 2, "virtio,bridge=vmbr0,tag=20")

    assert runner.commands == [[
        "qm", "create", "9000",
        "--name", "server",
        "--memory", "4096",
        "--cores", "2",
        "--net0", "virtio,bridge=vmbr0,tag=20",
    ]]


def test_import_disk_returns_output(runner, qm):
    runner.responses[("qm", "disk", "import")] = "Successfully imported disk as 'unused0:local-lvm:vm-9000-disk-0'"

    output = qm.import_disk(9000, "/var/lib/vz/import/noble.img", "local-lvm", "raw")

    assert runner.commands == [[
        "qm", "disk", "import", "9000", "/var/lib/vz/import/noble.img", "local-lvm", "--format", "raw",
    ]]
    assert "vm-9000-disk-0" in output


def test_get_config(runner, qm):
    runner.responses[("qm", "config")] = "name: server\ncores: 2"

    assert qm.get_config(9000) == "name: server\ncores: 2"
    assert runner.commands == [["qm", "config", "9000"]]


def test_set_passes_option_pairs(qm, runner):
    qm.set(9000, "--boot", "c", "--bootdisk", "scsi0")

    assert runner.commands == [["qm", "set", "9000", "--boot", "c", "--bootdisk", "scsi0"]]


def test_resize_and_start(qm, runner):
    qm.resize(9000, "scsi0", "20G")
    qm.start(9000)

    assert runner.commands == [
        ["qm", "resize", "9000", "scsi0", "20G"],
        ["qm", "start", "9000"],
    ]


def test_failed_command_raises(runner, qm):
    runner.responses[("qm", "create")] = ("unable to create VM 9000 - config file already exists", 255)

    with pytest.raises(CommandError) as excinfo:
        qm.create(9000, "server", 4096, 2, "virtio,bridge=vmbr0")

    assert excinfo.value.result.returncode == 255
    assert "qm create 9000" in str(excinfo.value)


def test_custom_binary(runner):
    QmClient(runner, binary="/usr/sbin/qm").start(100)

    assert runner.commands == [["/usr/sbin/qm", "start", "100"]]

"""
Tests for the VM descriptor and Vagrantfile rendering.
"""

import pytest

from devboot.core.models.vm import Distro, Hypervisor
from devboot.core.services.descriptor import (
    DescriptorError,
    build_vm_request,
    render_vagrantfile,
    request_from_env,
)


class TestBuildRequest:
    def test_defaults(self, tmp_path):
        req = build_vm_request(repo_root=tmp_path)
        assert req.distro is Distro.UBUNTU
        assert req.provider is Hypervisor.VIRTUALBOX
        assert req.box_image == "bento/ubuntu-20.04"
        assert req.memory_mb == 4096
        assert req.cpu_count == 2
        assert req.symlink_capability
        assert [(f.host, f.guest) for f in req.shared_folders] == [(str(tmp_path), "/vagrant")]
        assert req.provision_command == "dev-bootstrap/provision.sh"

    def test_centos_box(self):
        req = build_vm_request("centos", repo_root="/src")
        assert req.box_image == "bento/centos-7"

    @pytest.mark.parametrize(
        "provider,cpus",
        [("hyperv", 2), ("parallels", 4), ("vmware", 2), ("virtualbox", 2)],
    )
    def test_cpu_policy(self, provider, cpus):
        assert build_vm_request(hypervisor=provider, repo_root="/src").cpu_count == cpus

    def test_cpu_override(self):
        assert build_vm_request(hypervisor="parallels", cpu_count=8, repo_root="/src").cpu_count == 8

    def test_case_insensitive(self):
        assert build_vm_request(" Ubuntu ", "VirtualBox", repo_root="/src").distro is Distro.UBUNTU

    def test_unknown_distro(self):
        with pytest.raises(DescriptorError, match="Unknown distro 'arch'"):
            build_vm_request("arch")

    def test_unknown_provider(self):
        with pytest.raises(DescriptorError, match="expected one of: hyperv, parallels, vmware, virtualbox"):
            build_vm_request(hypervisor="qemu")

    def test_bad_sizes(self):
        with pytest.raises(DescriptorError):
            build_vm_request(memory_mb=0)
        with pytest.raises(DescriptorError):
            build_vm_request(cpu_count=0)

    def test_deterministic(self):
        assert build_vm_request(repo_root="/src") == build_vm_request(repo_root="/src")


class TestFromEnv:
    def test_reads_variables(self):
        req = request_from_env(
            {"VAGRANT_DISTRO": "centos", "VAGRANT_MEMORY": "8192", "AUTO_OPS": "/work/auto-ops"},
        )
        assert req.distro is Distro.CENTOS
        assert req.memory_mb == 8192
        assert req.shared_folders[0].host == "/work/auto-ops"

    def test_empty_values_use_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        req = request_from_env({"VAGRANT_DISTRO": "", "VAGRANT_MEMORY": ""})
        assert req.distro is Distro.UBUNTU
        assert req.memory_mb == 4096
        assert req.shared_folders[0].host == str(tmp_path)

    def test_memory_not_a_number(self):
        with pytest.raises(DescriptorError, match="VAGRANT_MEMORY must be an integer"):
            request_from_env({"VAGRANT_MEMORY": "4G"})


class TestVagrantfile:
    def test_virtualbox(self):
        text = render_vagrantfile(build_vm_request(repo_root="/src"))
        assert 'config.vm.box = "bento/ubuntu-20.04"' in text
        assert 'config.vm.synced_folder "/src", "/vagrant"' in text
        assert 'config.vm.provider "virtualbox"' in text
        assert "v.memory = 4096" in text
        assert "v.cpus = 2" in text
        assert "SharedFoldersEnableSymlinksCreate/vagrant" in text
        assert 'path: "dev-bootstrap/provision.sh"' in text

    def test_vmware_provider_name_no_customize(self):
        text = render_vagrantfile(build_vm_request(hypervisor="vmware", repo_root="/src"))
        assert 'config.vm.provider "vmware_desktop"' in text
        assert "customize" not in text

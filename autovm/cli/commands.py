"""CLI commands: init, check, provision, destroy, and ssh."""

from __future__ import annotations

import textwrap
from pathlib import Path

import scriptconfig as scfg

from ..config import ProvisioningConfig, dump_env
from ..lifecycle import VmLifecycleOrchestrator, provision_vm
from ..preflight import validate
from ..session import launch_session, ssh_command
from ..status import render_checks, render_report
from ._common import _BaseCommand, _env_path, _load_cfg, _make_client, log

SAMPLE_PRESEED = textwrap.dedent(
    """\
    # Debian preseed template; USERNAME, USERPASSWORD and ROOTPASSWORD are
    # substituted verbatim before VirtualBox hands the file to the installer.
    d-i debian-installer/locale string en_US.UTF-8
    d-i keyboard-configuration/xkb-keymap select us
    d-i netcfg/choose_interface select auto
    d-i netcfg/get_hostname string debian
    d-i netcfg/get_domain string localdomain
    d-i mirror/country string manual
    d-i mirror/http/hostname string deb.debian.org
    d-i mirror/http/directory string /debian
    d-i mirror/http/proxy string
    d-i passwd/root-password password ROOTPASSWORD
    d-i passwd/root-password-again password ROOTPASSWORD
    d-i passwd/user-fullname string USERNAME
    d-i passwd/username string USERNAME
    d-i passwd/user-password password USERPASSWORD
    d-i passwd/user-password-again password USERPASSWORD
    d-i clock-setup/utc boolean true
    d-i time/zone string UTC
    d-i partman-auto/method string regular
    d-i partman-auto/choose_recipe select atomic
    d-i partman-partitioning/confirm_write_new_label boolean true
    d-i partman/choose_partition select finish
    d-i partman/confirm boolean true
    d-i partman/confirm_nooverwrite boolean true
    tasksel tasksel/first multiselect standard, ssh-server
    # VirtualBox unattended media carry vboxpostinstall.sh, which installs the
    # Guest Additions that post-install guest commands run through.
    d-i preseed/late_command string cp /cdrom/vboxpostinstall.sh /target/root/vboxpostinstall.sh \\
        && chmod +x /target/root/vboxpostinstall.sh \\
        && /bin/bash /target/root/vboxpostinstall.sh --preseed-late-command
    d-i pkgsel/include string openssh-server build-essential dkms linux-headers-amd64
    popularity-contest popularity-contest/participate boolean false
    d-i grub-installer/only_debian boolean true
    d-i grub-installer/bootdev string default
    d-i finish-install/reboot_in_progress note
    """
)


class InitCLI(_BaseCommand):
    """Write a starter config file and answer-file template."""

    force = scfg.Value(False, isflag=True, help='Overwrite existing files.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        env_path = _env_path(args.env)
        if env_path.exists() and not args.force:
            raise RuntimeError(f'{env_path} exists; use --force to overwrite.')
        cfg = ProvisioningConfig(
            vm_name='autovm-debian',
            static_ip='192.168.56.10',
            user='debian',
            work_dir=str(env_path.parent / 'autovm-work'),
        )
        env_path.write_text(dump_env(cfg), encoding='utf-8')
        print(f'Wrote {env_path}; fill in VM_PASSWORD and VM_ROOT_PASSWORD.')
        template = cfg.template_path
        if not template.exists() or args.force:
            template.parent.mkdir(parents=True, exist_ok=True)
            template.write_text(SAMPLE_PRESEED, encoding='utf-8')
            print(f'Wrote answer-file template {template}')
        return 0


class CheckCLI(_BaseCommand):
    """Run the preflight checks only."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.env)
        ok, results = validate(cfg)
        print(render_checks(results))
        return 0 if ok else 1


class ProvisionCLI(_BaseCommand):
    """Download media, create the VM, wait for the install, configure the guest."""

    skip_preflight = scfg.Value(
        False, isflag=True, help='Skip host checks (config must still be complete).'
    )
    ssh = scfg.Value(
        False, isflag=True, help='Open an SSH session when provisioning finishes.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.env)
        report = provision_vm(
            cfg,
            client=_make_client(),
            skip_preflight=bool(args.skip_preflight),
        )
        if report.checks:
            print(render_checks(report.checks))
        print(render_report(report))
        if report.failed_commands:
            log.warning(
                'Provisioned with {} failed guest command(s)',
                len(report.failed_commands),
            )
        if args.ssh:
            return launch_session(cfg)
        print('Connect with: ' + ' '.join(ssh_command(cfg)))
        return 0


class DestroyCLI(_BaseCommand):
    """Power off and unregister the configured VM, deleting its disks."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.env)
        VmLifecycleOrchestrator(_make_client(), cfg).teardown()
        print(f'VM {cfg.vm_name} absent')
        return 0


class SSHCLI(_BaseCommand):
    """Open an interactive SSH session over the forwarded port."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.env)
        return launch_session(cfg)


__all__ = ['CheckCLI', 'DestroyCLI', 'InitCLI', 'ProvisionCLI', 'SSHCLI']

#  Copyright (c) 2022 KTH Royal Institute of Technology, Sweden,
#  and the ExPECA Research Group (PI: Prof. James Gross).
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.

from __future__ import annotations

import json
import re
from typing import Any, ClassVar, Dict, List, Optional

from ..errors import StateError
from ..network import FcInterface
from ..properties import PropertyDefinition, PropertySet
from ..validators import Check
from .base import Provider, ResourceMap

DELL_CERT_PREFIXES = ('bladeserver-', 'rackserver-', 'towerserver-')
BOOT_FROM_SAN_TARGETS = ('FC', 'iSCSI')
HYPERV_REQUIRED_PROPERTIES = ('domain_admin_user', 'domain_admin_password',
                              'domain_name', 'fqdn')

_CERT_SERIAL = re.compile(r'^[^-]+-(.*)$')


def is_dell_cert(certname: str) -> bool:
    return certname.lower().startswith(DELL_CERT_PREFIXES)


def cert2serial(certname: str) -> Optional[str]:
    match = _CERT_SERIAL.match(certname)
    return match.group(1).upper() if match else None


def _default_policy_name(provider: ServerProvider, *_) -> None:
    if provider['policy_name'] is not None or provider.hostname is None:
        return

    context = provider.resource.context
    provider['policy_name'] = \
        f'policy-{provider.hostname}-{context.deployment_id}'.lower()


def _populate_installer_options(provider: ServerProvider) -> None:
    options = provider['installer_options']
    if options:
        return

    for option in provider.properties('installer_options'):
        if provider[option] is not None:
            options[option] = provider[option]

    options['os_type'] = provider['os_image_type']
    if provider.hostname:
        options['agent_certname'] = provider.agent_certname
    options['network_configuration'] = json.dumps(
        provider.resource.network_config.to_dict()
    )


def _installer_option(name: str, **kwargs) -> PropertyDefinition:
    return PropertyDefinition(name, validation=str,
                              tags=kwargs.pop('tags', 'installer_options'),
                              **kwargs)


class ServerProvider(Provider):
    provider_name: ClassVar[str] = 'server'
    protocol_types = ('asm::server',)
    json_facts = (('fc_interfaces', []),)

    schema = PropertySet(
        PropertyDefinition('razor_image', validation=str),
        PropertyDefinition('admin_password', validation=str),
        PropertyDefinition('os_host_name', validation=str,
                           on_update=_default_policy_name),
        PropertyDefinition('serial_number', validation=str),
        PropertyDefinition('policy_name', validation=str,
                           prefetch=_default_policy_name),
        PropertyDefinition('os_image_type', validation=str),
        PropertyDefinition('os_image_version', validation=str),
        PropertyDefinition('broker_type', default='noop', validation=str),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('decrypt', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('installer_options', default_factory=dict,
                           validation=dict,
                           prefetch=_populate_installer_options),
        PropertyDefinition('esx_mem', default='', validation=str),
        PropertyDefinition('local_storage_vsan', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('client_cert', validation=str),

        _installer_option('domain_admin_user',
                          tags=('hyperv', 'installer_options')),
        _installer_option('domain_admin_password',
                          tags=('hyperv', 'installer_options')),
        _installer_option('domain_name',
                          tags=('hyperv', 'installer_options')),
        PropertyDefinition('fqdn', validation=str, tags='hyperv'),
        PropertyDefinition('local_storage_vsan_type', validation=str,
                           tags='extra'),

        _installer_option('ntp_server'),
        _installer_option('os_type'),
        _installer_option('language'),
        _installer_option('keyboard'),
        _installer_option('product_key'),
        # linux
        _installer_option('time_zone'),
        # hyperv
        _installer_option('timezone'),
    )

    def configure_hook(self) -> None:
        if self['serial_number'] is None:
            serial = cert2serial(self.resource.certname)
            if serial is not None:
                self['serial_number'] = serial

    def materialize(self) -> ResourceMap:
        # component resources other than asm::server only carry information
        # for the rest of the deployment
        resources = super(ServerProvider, self).materialize()
        return {k: v for k, v in resources.items() if k == self.protocol_type}

    @property
    def hostname(self) -> Optional[str]:
        return self['os_host_name']

    @property
    def agent_certname(self) -> Optional[str]:
        if self.hostname is None:
            return None
        return f'agent-{self.hostname.lower()}'

    @property
    def model(self) -> Optional[str]:
        return self.resource.inventory.get('model')

    @property
    def physical_type(self) -> Optional[str]:
        inventory = self.resource.inventory
        if re.search(r'PowerEdge FC\d+', inventory.get('model') or ''):
            return 'SLED'
        return inventory.get('serverType')

    @property
    def dell_server(self) -> bool:
        return is_dell_cert(self.resource.certname)

    @property
    def target_boot_device(self) -> Optional[str]:
        idrac = self.resource.component.resource_by_id('asm::idrac')
        return idrac.parameters.get('target_boot_device') if idrac else None

    @property
    def boot_from_iscsi(self) -> bool:
        return self.target_boot_device == 'iSCSI'

    @property
    def boot_from_san(self) -> bool:
        return self.dell_server and \
               self.target_boot_device in BOOT_FROM_SAN_TARGETS

    @property
    def has_os(self) -> bool:
        return self['os_image_type'] is not None

    @property
    def os_installed(self) -> bool:
        """
        Whether the installer reported booting the installed OS. Hypervisors,
        Windows and SUSE reboot once more after installing so only the
        second local boot counts for them.
        """
        os_type = self['os_image_type']
        if os_type is None:
            return False

        status = self.facts.get('razor_status')
        if os_type.lower() in ('vmware_esxi', 'hyperv') \
                or os_type.startswith(('windows', 'suse')):
            return status == 'boot_local_2'
        return status in ('boot_local', 'boot_local_2')

    @property
    def fc_interfaces(self) -> List[FcInterface]:
        if not self.dell_server:
            return []
        return [FcInterface.from_dict(i)
                for i in self.facts.get('fc_interfaces', [])]

    @property
    def fc_wwpns(self) -> List[str]:
        return [i.wwpn for i in self.fc_interfaces]

    def bios_settings(self) -> Dict[str, Any]:
        bios = self.resource.component.resource_by_id('asm::bios')
        if bios is None:
            return {}
        return {k: v for k, v in bios.parameters.items() if k != 'ensure'}

    def should_inventory(self) -> bool:
        return bool(self.resource.guid)

    def update_inventory(self) -> None:
        resource = self.resource
        if not resource.guid:
            raise StateError(f'Cannot update inventory for '
                             f'{resource.certname} without a guid')

        if not self.debug:
            resource.context.inventory.refresh(resource.guid)

    def configured_for_hyperv(self) -> bool:
        hyperv = self.to_dict(exclude_none=True, tags='hyperv')
        missing = [p for p in HYPERV_REQUIRED_PROPERTIES if p not in hyperv]
        if not missing:
            return True

        self.logger.warning(f'Server {self.resource.certname} is not '
                            f'supported by HyperV as it lacks these '
                            f'properties: {", ".join(missing)}')
        return False

    def supports_controller(self, controller) -> bool:
        return controller.provider_path == 'controller/idrac'

    def supports_cluster(self, cluster) -> bool:
        if cluster.provider_path == 'cluster/scvmm':
            return self.configured_for_hyperv()
        return True

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

from typing import Any, ClassVar, Dict

from ..errors import ConfigurationError, OrchestratorError, StateError
from ..properties import PropertyDefinition, PropertySet
from ..validators import Check
from .base import Provider, ResourceMap

ESXI_ADMIN_USER = 'root'


class _GuidInventoryMixin:
    def should_inventory(self) -> bool:
        return bool(self.resource.guid)

    def update_inventory(self) -> None:
        resource = self.resource
        if not resource.guid:
            raise StateError(f'Cannot update inventory for '
                             f'{resource.certname} without a guid')

        if not self.debug:
            resource.context.inventory.refresh(resource.guid)


class VmwareCluster(_GuidInventoryMixin, Provider):
    provider_name: ClassVar[str] = 'vmware'
    protocol_types = ('asm::cluster',)
    json_facts = ('inventory', 'storage_profiles')

    schema = PropertySet(
        PropertyDefinition('datacenter', validation=str),
        PropertyDefinition('cluster', validation=str),
        PropertyDefinition('vcenter_options',
                           default_factory=lambda: {'insecure': True},
                           validation=dict),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('vsan_enabled', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('vds_enabled', default='standard',
                           validation=str, tags='extra'),
        PropertyDefinition('sdrs_config', default=False,
                           validation=Check.BOOLEAN, tags='extra'),
        PropertyDefinition('sdrs_name', validation=str, tags='extra'),
        PropertyDefinition('sdrs_members', validation=str, tags='extra'),
    )

    def materialize(self) -> ResourceMap:
        resources = super(VmwareCluster, self).materialize()
        resources.pop('asm::cluster::vds', None)
        return resources

    def supports_virtual_machine(self, vm) -> bool:
        return vm.provider_path == 'virtualmachine/vmware'

    def host_resources(self, server, host_ensure: str) -> ResourceMap:
        host = {
            'datacenter': self['datacenter'],
            'cluster': self['cluster'],
            'hostname': server.hostname,
            'username': ESXI_ADMIN_USER,
            'password': server.admin_password,
            'timeout': 90,
            'ensure': host_ensure,
        }
        # with teardown or brownfield not every parameter has a value
        return {'asm::host': {server.certname: {k: v for k, v in host.items()
                                                if v is not None}}}

    def evict_server(self, server) -> Dict[str, Any]:
        self.logger.debug(f'Removing server {server.certname} from the '
                          f'cluster {self.resource.certname}')
        return self.resource.run(server.certname,
                                 self.host_resources(server, 'absent'),
                                 self.run_type)


def _hostgroup(provider: ScvmmCluster) -> None:
    if provider['hostgroup'] is None and provider['name'] is not None:
        provider['hostgroup'] = provider['name']

    hostgroup = provider['hostgroup']
    if hostgroup is not None and 'All Hosts' not in hostgroup:
        provider['hostgroup'] = f'All Hosts\\{hostgroup}'


class ScvmmCluster(Provider):
    provider_name: ClassVar[str] = 'scvmm'
    protocol_types = ('asm::cluster::scvmm',)

    schema = PropertySet(
        PropertyDefinition('ipaddress', validation=Check.IPV4),
        PropertyDefinition('hostgroup', validation=str),
        PropertyDefinition('scvmm_server', validation=str),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('hosts', default_factory=list, validation=list),
        PropertyDefinition('username', validation=str),
        PropertyDefinition('password', validation=str),
        PropertyDefinition('run_as_account_name', validation=str),
        PropertyDefinition('fqdn', validation=str),
        PropertyDefinition('logical_network', default_factory=list,
                           validation=list),
        PropertyDefinition('logical_network_hostgroups', default_factory=list,
                           validation=list),
        PropertyDefinition('logical_network_subnet_vlans',
                           default_factory=list, validation=list),
        PropertyDefinition('vm_network', default='ConvergedNetSwitch',
                           validation=str),
        PropertyDefinition('options', default_factory=lambda: {'timeout': 600},
                           validation=dict),
        PropertyDefinition('name', validation=str),
    )

    def configure_hook(self) -> None:
        _hostgroup(self)

    def supports_virtual_machine(self, vm) -> bool:
        return vm.provider_path == 'virtualmachine/scvmm'

    def host_resources(self, server, host_ensure: str) -> ResourceMap:
        hostgroup = self['hostgroup']
        fqdn = server.fqdn or server.hostname
        return {
            'scvm_host': {
                fqdn: {
                    'ensure': host_ensure,
                    'path': hostgroup,
                    'management_account': self['run_as_account_name'],
                    'username': self['username'],
                    'password': self['password'],
                    'before': f'Scvm_host_group[{hostgroup}]',
                },
            },
            'scvm_host_group': {
                hostgroup: {'ensure': host_ensure},
            },
        }

    def evict_server(self, server) -> Dict[str, Any]:
        if not server.supports_resource(self.resource):
            raise ConfigurationError(f'The server {server.certname} is not a '
                                     f'HyperV compatible server resource')

        return self.resource.run(self.resource.certname,
                                 self.host_resources(server, 'absent'),
                                 self.run_type)

    def prepare_for_teardown(self) -> bool:
        """
        Removes every related server from the cluster. The cluster itself is
        torn down here so processing is skipped afterwards.
        """
        for server in self.resource.related_servers():
            try:
                self.evict_server(server)
            except OrchestratorError as e:
                self.logger.warning(f'Failed to remove server '
                                    f'{server.certname} from the cluster: {e}')
        return False

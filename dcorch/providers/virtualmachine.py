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

import re
from typing import ClassVar, Optional

from ..properties import PropertyDefinition, PropertySet
from ..validators import Check
from .base import Provider

VALID_SCSI_TYPES = ('BusLogic Parallel', 'LSI Logic SAS', 'LSI Logic Parallel',
                    'VMware Paravirtual')

_NUMBER = re.compile(r'^\d+$')


def _configure_related_cluster(provider: VmwareVirtualMachine) -> None:
    """
    Fills in cluster, datacenter and vCenter settings from the related
    cluster the first time any of them is read.
    """
    if provider.cluster_configured:
        return
    provider.cluster_configured = True

    resource = provider.resource
    clusters = resource.related_clusters()
    if not clusters:
        provider.logger.warning(f'Cannot find a related cluster for virtual '
                                f'machine {resource.certname}')
        return

    cluster = clusters[0]
    if not cluster.supports_resource(resource):
        provider.logger.warning(f'Virtual machine {resource.certname} is not '
                                f'supported by cluster {cluster.certname}')
        return

    if provider['cluster'] is None:
        provider['cluster'] = cluster.provider['cluster']
    if provider['datacenter'] is None:
        provider['datacenter'] = cluster.provider['datacenter']
    if provider['vcenter_id'] is None:
        provider['vcenter_id'] = cluster.certname
    if not provider['vcenter_options']:
        provider['vcenter_options'] = {'insecure': True}


class VmwareVirtualMachine(Provider):
    provider_name: ClassVar[str] = 'vmware'
    protocol_types = ('asm::vm::vcenter', 'asm::vm')

    schema = PropertySet(
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('cpu_count', validation=_NUMBER),
        PropertyDefinition('memory_in_mb', validation=_NUMBER),
        PropertyDefinition('disksize_in_gb', validation=_NUMBER),
        PropertyDefinition('cluster', validation=str,
                           prefetch=_configure_related_cluster),
        PropertyDefinition('os_type', validation=str),
        PropertyDefinition('os_guest_id', validation=str),
        PropertyDefinition('datacenter', validation=str,
                           prefetch=_configure_related_cluster),
        PropertyDefinition('vcenter_id', validation=str,
                           prefetch=_configure_related_cluster),
        PropertyDefinition('vcenter_options',
                           default_factory=lambda: {'insecure': True},
                           validation=dict,
                           prefetch=_configure_related_cluster),
        PropertyDefinition('clone_type', validation=str),
        PropertyDefinition('source', validation=str),
        PropertyDefinition('source_datacenter', validation=str),
        PropertyDefinition('datastore', validation=str),
        PropertyDefinition('skip_local_datastore', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('network_interfaces', validation=list),
        PropertyDefinition('scsi_controller_type',
                           default='VMware Paravirtual',
                           validation=VALID_SCSI_TYPES),
        PropertyDefinition('default_gateway', validation=str),

        PropertyDefinition('requested_network_interfaces',
                           default_factory=list, validation=list,
                           tags='extra'),
        PropertyDefinition('hostname', validation=str, tags='extra'),
    )

    def __init__(self, resource=None):
        super(VmwareVirtualMachine, self).__init__(resource)
        self.cluster_configured = False

    def configure_hook(self) -> None:
        hostname = self['hostname']
        if hostname:
            self.resource.certname = f'vm-{hostname.lower()}'

    @property
    def clone(self) -> bool:
        return self['clone_type'] is not None and self['source'] is not None

    def supports_cluster(self, cluster) -> bool:
        return cluster.provider_path == 'cluster/vmware'


VALID_START_ACTIONS = ('always_auto_turn_on_vm', 'never_auto_turn_on_vm',
                       'turn_on_vm_if_running_when_vs_stopped')
VALID_STOP_ACTIONS = ('save_vm', 'shutdown_guest_os', 'turn_off_vm')


def _configure_scvmm_cluster(provider: ScvmmVirtualMachine) -> None:
    if provider.cluster_configured:
        return
    provider.cluster_configured = True

    resource = provider.resource
    clusters = resource.related_clusters()
    if not clusters:
        provider.logger.warning(f'Cannot find a related cluster for virtual '
                                f'machine {resource.certname}')
        return

    cluster = clusters[0]
    provider['scvmm_server'] = cluster.certname
    provider['vm_cluster'] = cluster.provider['name']


class ScvmmVirtualMachine(Provider):
    """
    Virtual machines created from templates on a Hyper-V cluster managed
    by SCVMM.
    """

    provider_name: ClassVar[str] = 'scvmm'
    protocol_types = ('asm::vm::scvmm',)

    schema = PropertySet(
        PropertyDefinition('template', validation=str),
        PropertyDefinition('path', validation=str),
        PropertyDefinition('cpu_count', validation=_NUMBER),
        PropertyDefinition('memory_mb', validation=_NUMBER),
        PropertyDefinition('scvmm_server', validation=str,
                           prefetch=_configure_scvmm_cluster),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('description', validation=str),
        PropertyDefinition('block_dynamic_optimization', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('vm_host', validation=str),
        PropertyDefinition('vm_cluster', validation=str,
                           prefetch=_configure_scvmm_cluster),
        PropertyDefinition('domain', validation=str),
        PropertyDefinition('domain_username', validation=str),
        PropertyDefinition('domain_password', validation=str),
        PropertyDefinition('product_key', validation=str),
        PropertyDefinition('scvmm_options', default_factory=dict,
                           validation=dict),
        PropertyDefinition('highly_available', default=True,
                           validation=Check.BOOLEAN),
        PropertyDefinition('network_interfaces', validation=list),
        PropertyDefinition('decrypt', default=True, validation=Check.BOOLEAN),
        PropertyDefinition('start_action', default='always_auto_turn_on_vm',
                           validation=VALID_START_ACTIONS),
        PropertyDefinition('stop_action', default='turn_off_vm',
                           validation=VALID_STOP_ACTIONS),

        PropertyDefinition('name', validation=str, tags='extra'),
        PropertyDefinition('hostname', validation=str, tags='extra'),
    )

    def __init__(self, resource=None):
        super(ScvmmVirtualMachine, self).__init__(resource)
        self.cluster_configured = False

    @property
    def vm_name(self) -> Optional[str]:
        return self['name'] or self['hostname'] or self.uuid

    def configure_hook(self) -> None:
        resource = self.resource
        if self['name'] or self['hostname']:
            self.uuid = self['name'] or self['hostname']
        if self.vm_name:
            resource.certname = f'vm-{self.vm_name.lower()}'

        # only teardown is managed here, creation goes through the template
        if self['ensure'] == 'absent' or resource.teardown:
            self['network_interfaces'] = None
        else:
            self.logger.warning(f'Cannot configure networking for virtual '
                                f'machine {resource.certname} as it only '
                                f'supports teardown')

    @property
    def clone(self) -> bool:
        return self['template'] is not None

    def supports_cluster(self, cluster) -> bool:
        return cluster.provider_path == 'cluster/scvmm'

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

import threading
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ConfigurationError
from ..network import FcInterface, Interface, Network, NetworkConfiguration
from ..topology import TopologyEntry
from ..vlan import ServerSnapshot, interface_in_vlan
from .base import Resource


class Server(Resource):
    category = 'server'

    def __init__(self, *args, **kwargs):
        super(Server, self).__init__(*args, **kwargs)
        self._network_config: Optional[NetworkConfiguration] = None
        self._network_lock = threading.Lock()

    # network configuration
    @property
    def network_params(self) -> Dict[str, Any]:
        config = self.component.resource_by_id('asm::esxiscsiconfig')
        return config.parameters if config is not None else {}

    @property
    def network_config(self) -> NetworkConfiguration:
        with self._network_lock:
            if self._network_config is None:
                self._network_config = NetworkConfiguration.parse(
                    self.network_params.get('network_configuration')
                )
            return self._network_config

    @property
    def network_interfaces(self) -> List[Interface]:
        return self.network_config.interfaces

    @property
    def configured_interfaces(self) -> List[Interface]:
        return [i for i in self.network_interfaces if i.configured]

    @property
    def fc_interfaces(self) -> List[FcInterface]:
        return self.provider.fc_interfaces

    @property
    def fc_wwpns(self) -> List[str]:
        return self.provider.fc_wwpns

    @property
    def fcoe(self) -> bool:
        return len(self.network_config.get_networks('STORAGE_FCOE_SAN')) > 0

    @property
    def fc(self) -> bool:
        return any(v.fc for v in self.related_volumes()) and \
               len(self.fc_wwpns) > 0

    # topology
    @property
    def topology(self):
        return self.context.topology_for(self)

    @property
    def network_topology(self) -> List[TopologyEntry]:
        return self.topology.resolve()

    @property
    def network_topology_cache(self) -> Dict[str, Tuple[str, str]]:
        return self.topology.cache

    @property
    def missing_network_topology(self):
        """
        First partition of every configured port with no known switch
        port.
        """
        return self.topology.missing_topology()

    @property
    def connected(self) -> bool:
        return not self.missing_network_topology

    def configure_networking(self, staged: bool = False, switch=None) -> None:
        """
        Configures the ports of this server on its related switches, or
        only on switch when given.

        Raises
        ------
        ConfigurationError
            If switch is not connected to this server.
        """
        switches = self.related_switches()

        if switch is not None:
            if switch not in switches:
                raise ConfigurationError(f'Switch {switch.certname} not '
                                         f'connected to {self.certname}')
            switches = [switch]

        if not switches:
            self.logger.warning(f'Could not find any switches to configure '
                                f'for server {self.certname}')
            return

        for s in switches:
            self.logger.info(f'Configuring server {self.serial_number} '
                             f'{self.management_ip} networking on {s.model} '
                             f'{s.management_ip}')
            s.configure_server(self, staged)

    def valid_network(self, network: Network, port: str, switch) -> bool:
        tagged = switch.tagged_network(network, self)
        tagged_msg = 'tagged' if tagged else 'untagged'
        self.logger.info(f'Validating switch {switch.certname} contains port '
                         f'{port} with VLAN {network.vlan_id} {tagged_msg}')

        if self.interface_in_vlan(switch, port, network.vlan_id, tagged):
            self.logger.info('Valid switch configuration detected')
            return True

        state = (switch.inventory.get('state') or 'unknown').lower()
        self.logger.error(f'Invalid switch configuration detected on {state} '
                          f'switch {switch.certname}. Port {port} needs VLAN '
                          f'{network.vlan_id} to be {tagged_msg}')
        return False

    @staticmethod
    def interface_in_vlan(switch, port: str, vlan: Any, tagged: bool) -> bool:
        return interface_in_vlan(switch.vlan_information, port, vlan, tagged)

    @property
    def snapshot(self) -> ServerSnapshot:
        return ServerSnapshot.from_server(self)

    # operating system
    @property
    def os_image_type(self) -> Optional[str]:
        return self.provider['os_image_type']

    @property
    def os_installed(self) -> bool:
        return self.provider.os_installed

    @property
    def has_os(self) -> bool:
        return self.provider.has_os

    @property
    def hypervisor(self) -> bool:
        return self.snapshot.hypervisor

    @property
    def hyperv(self) -> bool:
        return self.snapshot.hyperv

    @property
    def boot_from_iscsi(self) -> bool:
        return self.provider.boot_from_iscsi

    @property
    def boot_from_san(self) -> bool:
        return self.provider.boot_from_san

    @property
    def hostname(self) -> Optional[str]:
        return self.provider.hostname

    @property
    def admin_password(self) -> Optional[str]:
        return self.provider['admin_password']

    @property
    def fqdn(self) -> Optional[str]:
        return self.provider['fqdn']

    @property
    def baremetal(self) -> bool:
        """
        A server without clustering or storage on top of it.
        """
        return not self.related_clusters() and not self.related_volumes()

    # hardware
    @property
    def uuid(self) -> Optional[str]:
        return self.provider.uuid

    @property
    def serial_number(self) -> Optional[str]:
        return self.provider['serial_number']

    @property
    def model(self) -> Optional[str]:
        return self.provider.model

    @property
    def dell_server(self) -> bool:
        return self.provider.dell_server

    @property
    def physical_type(self) -> Optional[str]:
        return self.provider.physical_type

    @property
    def rack_server(self) -> bool:
        return self.physical_type == 'RACK'

    @property
    def tower_server(self) -> bool:
        return self.physical_type == 'TOWER'

    @property
    def blade_server(self) -> bool:
        return self.physical_type == 'BLADE'

    def bios_settings(self) -> Dict[str, Any]:
        return self.provider.bios_settings()

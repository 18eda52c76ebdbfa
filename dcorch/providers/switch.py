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

"""
Switch providers.

Switches are not deployed from a component but built from the managed
device inventory. Server facing ports get their VLAN membership from the
tagging policy in :mod:`dcorch.vlan`; the requests are collected by a
:class:`PortResourceBuilder` and rendered into switch specific resources.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Type,
)

from ..errors import ConfigurationError
from ..properties import PropertyDefinition, PropertySet
from ..validators import Check
from .base import Provider, ResourceMap

DEFAULT_MTU = '12000'
NATIVE_VLAN = '1'
ADD = 'add'
REMOVE = 'remove'

_MAC = re.compile(r'^[0-9a-f]{2}([-:])[0-9a-f]{2}(\1[0-9a-f]{2}){4}$')
_WWPN = re.compile(r'^[0-9a-f]{2}([-:])[0-9a-f]{2}(\1[0-9a-f]{2}){6}$')

INVENTORY_PROPERTIES = (
    ('refId', str),
    ('ipAddress', Check.ANY_IP),
    ('serviceTag', str),
    ('model', str),
    ('deviceType', str),
    ('discoverDeviceType', str),
    ('displayName', str),
    ('state', str),
    ('manufacturer', str),
    ('health', str),
    ('operatingSystem', str),
    ('numberOfCPUs', int),
    ('nics', int),
    ('memoryInGB', int),
    ('inventoryDate', str),
    ('complianceCheckDate', str),
    ('discoveredDate', str),
    ('deviceGroupList', dict),
    ('credId', str),
    ('compliance', str),
    ('firmwareDeviceInventories', list),
    ('failuresCount', int),
)


@dataclass(frozen=True)
class PortVlan:
    interface: str
    vlan: str
    tagged: bool
    portchannel: str = ''
    mtu: str = DEFAULT_MTU
    action: str = ADD


class PortResourceBuilder:
    """
    Collects VLAN membership requests for switch ports and renders them as
    resources for one action (add or remove) at a time.
    """

    joined_properties: ClassVar[Sequence[str]] = ()

    def __init__(self, provider: SwitchProvider):
        self.provider = provider
        self.interface_map: List[PortVlan] = []
        self.resources: Dict[str, Dict[str, Dict[str, Any]]] = {}

    @property
    def certname(self) -> str:
        return self.provider.resource.certname

    def configure_interface_vlan(self,
                                 interface: str,
                                 vlan: Any,
                                 tagged: bool,
                                 remove: bool = False,
                                 portchannel: Optional[str] = None,
                                 mtu: str = DEFAULT_MTU) -> None:
        if not interface:
            raise ConfigurationError(f'Interface not specified for vlan {vlan}')

        self.interface_map.append(PortVlan(
            interface=str(interface),
            vlan=str(vlan),
            tagged=tagged,
            portchannel=str(portchannel or ''),
            mtu=mtu,
            action=REMOVE if remove else ADD,
        ))

    def validate_vlans(self) -> None:
        errors = 0
        for interface in sorted({p.interface for p in self.interface_map}):
            untagged = sum(1 for p in self.interface_map
                           if p.interface == interface and not p.tagged)
            if untagged > 1:
                self.provider.logger.warning(
                    f'Attempt to configure {untagged} untagged vlans on port '
                    f'{interface}'
                )
                errors += 1

        if errors > 0:
            raise ConfigurationError(
                f'Can only have one untagged network but found multiple '
                f'untagged vlan requests for the same port on {self.certname}'
            )

    def has_resource(self, resource_type: str, name: str) -> bool:
        return name in self.resources.get(resource_type, {})

    def prepare(self, action: str) -> bool:
        """
        Renders the requests for an action, returns True when that produced
        any resources.
        """
        self.resources = {}
        self.validate_vlans()
        self.populate(action)
        return len(self.resources) > 0

    def populate(self, action: str) -> None:
        raise NotImplementedError

    def to_resources(self) -> ResourceMap:
        resources = copy.deepcopy(self.resources)
        for instances in resources.values():
            for config in instances.values():
                for prop in self.joined_properties:
                    if isinstance(config.get(prop), list):
                        config[prop] = ','.join(sorted(set(config[prop])))
        return resources


class Force10RackBuilder(PortResourceBuilder):
    joined_properties = ('tagged_vlan', 'untagged_vlan')
    vlan_type: ClassVar[str] = 'force10_vlan'
    portchannel_reference: ClassVar[str] = 'Force10_portchannel'

    def _portchannel(self, number: str, mtu: str) -> None:
        if self.has_resource('force10_portchannel', number):
            raise ConfigurationError(f'force10_portchannel[{number}] is '
                                     f'already being managed on '
                                     f'{self.certname}')

        self.resources.setdefault('force10_portchannel', {})[number] = {
            'ensure': 'present',
            'portmode': 'hybrid',
            'switchport': 'true',
            'shutdown': 'false',
            'mtu': mtu,
            'ungroup': 'true',
        }

    def _vlan(self, vlan: str, port: PortVlan) -> None:
        vlans = self.resources.setdefault(self.vlan_type, {})
        if vlan not in vlans:
            config = {
                'vlan_name': f'VLAN_{vlan}',
                'desc': 'VLAN Created by dcorch',
                'before': [],
            }
            if port.portchannel:
                key = 'tagged_portchannel' if port.tagged \
                    else 'untagged_portchannel'
                config[key] = port.portchannel
            vlans[vlan] = config

        config = vlans[vlan]
        for p in self.interface_map:
            if p.vlan != vlan:
                continue

            before = f'Force10_interface[{p.interface}]'
            if before not in config['before']:
                config['before'].append(before)
            if p.portchannel:
                require = config.setdefault('require', [])
                channel = f'{self.portchannel_reference}[{p.portchannel}]'
                if channel not in require:
                    require.append(channel)

    def populate(self, action: str) -> None:
        channels = dict.fromkeys(p.portchannel for p in self.interface_map
                                 if p.portchannel)
        for channel in channels:
            mtu = next(p.mtu for p in self.interface_map
                       if p.portchannel == channel)
            self._portchannel(channel, mtu)

        ports = [p for p in self.interface_map if p.action == action]
        interfaces = {}
        for port in ports:
            config = interfaces.setdefault(port.interface, {
                'shutdown': 'false',
                'mtu': port.mtu,
                'protocol': 'lldp',
                'ensure': 'present',
                'tagged_vlan': [],
                'untagged_vlan': [],
            })

            if port.portchannel:
                config['portchannel'] = port.portchannel
            else:
                key = 'tagged_vlan' if port.tagged else 'untagged_vlan'
                config[key].append(port.vlan)
                config.update({
                    'switchport': 'true',
                    'portmode': 'hybrid',
                    'portfast': 'portfast',
                    'edge_port': 'pvst,mstp,rstp',
                })

        if interfaces:
            self.resources['force10_interface'] = interfaces

        if action != REMOVE:
            for port in {p.vlan: p for p in ports}.values():
                self._vlan(port.vlan, port)


class Force10BladeMxlBuilder(Force10RackBuilder):
    """
    MXL blade switches take the same interface resources as the rack
    switches but manage their VLANs through ``asm::mxl``.
    """

    vlan_type = 'asm::mxl'
    portchannel_reference = 'Mxl_portchannel'


class Force10BladeIoaBuilder(PortResourceBuilder):
    """
    IOA blade switches are configured with one ``ioa_interface`` resource
    per port holding all of its VLAN memberships.
    """

    joined_properties = ('vlan_tagged', 'vlan_untagged', 'tagged_vlan',
                         'untagged_vlan')

    def validate_mode(self) -> None:
        teamed = any(p.portchannel for p in self.interface_map)
        if teamed and self.provider.facts.get('iom_mode') == 'standalone':
            raise ConfigurationError(f'IOA {self.certname} cannot be in '
                                     f'standalone mode for NIC teaming')

    def prepare(self, action: str) -> bool:
        self.validate_mode()
        return super(Force10BladeIoaBuilder, self).prepare(action)

    def _interface(self, name: str, tagged: List[str], untagged: List[str],
                   portchannel: str, mtu: str) -> None:
        if self.has_resource('ioa_interface', name):
            raise ConfigurationError(f'ioa_interface[{name}] is already being '
                                     f'managed on {self.certname}')

        config = {'shutdown': 'false', 'mtu': mtu}
        if portchannel:
            config['portchannel'] = portchannel
        else:
            config.update({
                'switchport': 'true',
                'portmode': 'hybrid',
                'vlan_tagged': tagged,
                'vlan_untagged': untagged,
            })
        self.resources.setdefault('ioa_interface', {})[name] = config

    def _portchannel(self, number: str, tagged: List[str],
                     untagged: List[str], mtu: str) -> None:
        channels = self.resources.setdefault('force10_portchannel', {})
        config = channels.setdefault(number, {
            'switchport': 'true',
            'portmode': 'hybrid',
            'shutdown': 'false',
            'tagged_vlan': [],
            'untagged_vlan': [],
            'ungroup': 'true',
            'mtu': mtu,
        })
        # members of a channel share its vlans
        config['tagged_vlan'].extend(tagged)
        config['untagged_vlan'].extend(untagged)

    def populate(self, action: str) -> None:
        for name in dict.fromkeys(p.interface for p in self.interface_map):
            ports = [p for p in self.interface_map
                     if p.interface == name and p.action == action]
            if not ports:
                continue

            tagged = [p.vlan for p in ports if p.tagged]
            untagged = [p.vlan for p in ports if not p.tagged]
            portchannel, mtu = ports[0].portchannel, ports[0].mtu

            if portchannel:
                self._portchannel(portchannel, tagged, untagged, mtu)
            self._interface(name, tagged, untagged, portchannel, mtu)


class PowerConnectRackBuilder(PortResourceBuilder):
    joined_properties = ('tagged_general_vlans', 'untagged_general_vlans',
                         'remove_general_vlans')

    def _interface(self, name: str, tagged: List[str], untagged: List[str],
                   portchannel: str, action: str) -> None:
        if self.has_resource('powerconnect_interface', name):
            raise ConfigurationError(f'powerconnect_interface[{name}] is '
                                     f'already being managed on '
                                     f'{self.certname}')

        config = {'shutdown': 'false'}
        if not portchannel:
            config.update({
                'switchport_mode': 'general',
                'portfast': 'true',
                'tagged_general_vlans': tagged,
                'untagged_general_vlans': untagged,
            })
        elif action == ADD:
            config['add_interface_to_portchannel'] = portchannel
        else:
            config['remove_interface_from_portchannel'] = portchannel

        self.resources.setdefault('powerconnect_interface', {})[name] = config

    def _portchannel(self, number: str, tagged: List[str],
                     untagged: List[str], action: str) -> None:
        config = {'shutdown': 'false', 'switchport_mode': 'general'}
        if action == ADD:
            config['tagged_general_vlans'] = tagged
            config['untagged_general_vlans'] = untagged
        else:
            config['remove_general_vlans'] = tagged + untagged

        self.resources.setdefault('powerconnect_portchannel', {})[number] = \
            config

    def _vlans(self, vlans: List[str]) -> None:
        for vlan in vlans:
            self.resources.setdefault('powerconnect_vlan', {}).setdefault(
                vlan, {'ensure': 'present'}
            )

    def populate(self, action: str) -> None:
        for name in dict.fromkeys(p.interface for p in self.interface_map):
            ports = [p for p in self.interface_map
                     if p.interface == name and p.action == action]
            if not ports:
                continue

            tagged = [p.vlan for p in ports if p.tagged]
            untagged = [p.vlan for p in ports if not p.tagged]
            portchannel = ports[0].portchannel

            if portchannel:
                self._portchannel(portchannel, tagged, untagged, action)
            self._vlans(tagged + untagged)
            self._interface(name, tagged, untagged, portchannel, action)


class SwitchProvider(Provider):
    """
    Common behaviour of all switch providers. The inventory record of the
    switch is the provider configuration.
    """

    builder_class: ClassVar[Optional[Type[PortResourceBuilder]]] = None
    run_type = 'device'

    schema = PropertySet(*(
        PropertyDefinition(name, validation=validation, tags='inventory')
        for name, validation in INVENTORY_PROPERTIES
    ))

    json_facts = (
        'Nameserver',
        'RemoteDeviceInfo',
        'Zone_Members',
        'flexio_modules',
        'modules',
        'nameserver_info',
        'port_channel_members',
        'port_channels',
        'quad_port_interfaces',
        'remote_device_info',
        'remote_fc_device_info',
        'snmp_community_string',
        'software_protocol_configured',
        'vlan_information',
        'vlans',
        ('interfaces', []),
        ('dcb-map', []),
        ('fcoe-map', []),
    )

    def __init__(self, resource=None):
        super(SwitchProvider, self).__init__(resource)
        self._builder: Optional[PortResourceBuilder] = None
        self.connection_url: Optional[str] = None

    @classmethod
    def handles_switch(cls, inventory: Mapping[str, Any]) -> bool:
        return False

    def configure(self, inventory: Mapping[str, Any]) -> None:
        for name in self.properties('inventory'):
            self.set(name, inventory.get(name, self.default_value(name)))

        self.uuid = self['refId']
        device_config = self.resource.device_config
        if device_config is not None:
            self.connection_url = device_config.url

        self.configure_hook()
        self.logger.debug(f'Configured {type(self).__name__} provider from '
                          f'inventory of {self.uuid}')

    @property
    def model(self) -> str:
        return self['model'] or ''

    @property
    def device_type(self) -> Optional[str]:
        return self['deviceType']

    @property
    def rack_switch(self) -> bool:
        return False

    @property
    def blade_switch(self) -> bool:
        return False

    @property
    def san_switch(self) -> bool:
        return False

    def create_builder(self) -> PortResourceBuilder:
        if self.builder_class is None:
            raise ConfigurationError(
                f'Do not know how to manage resources for switch '
                f'{self.resource.certname} with model {self.model}, no '
                f'suitable resource builder could be found'
            )
        return self.builder_class(self)

    @property
    def builder(self) -> PortResourceBuilder:
        if self._builder is None:
            self._builder = self.create_builder()
        return self._builder

    def reset_ports(self) -> None:
        self._builder = None

    def prepare(self, action: str) -> bool:
        return self._builder is not None and self._builder.prepare(action)

    def additional_resources(self) -> ResourceMap:
        if self._builder is None:
            return {}
        return self._builder.to_resources()

    @staticmethod
    def valid_mac(mac: str) -> bool:
        return bool(_MAC.match(mac.lower()))

    @staticmethod
    def valid_wwpn(wwpn: str) -> bool:
        return bool(_WWPN.match(wwpn.lower()))

    def find_mac(self, mac: str) -> Optional[str]:
        """
        Looks up the port a MAC address was seen on in the LLDP neighbour
        facts of the switch.
        """
        remote = self.facts.get('remote_device_info')
        if not remote or not mac:
            return None

        mac = mac.lower()
        if isinstance(remote, Mapping):
            for interface, details in remote.items():
                if (details.get('remote_mac') or '').lower() == mac:
                    return interface
        else:
            for details in remote:
                if (details.get('remote_mac') or '').lower() == mac:
                    return details.get('interface')
        return None

    def validate_network_config(self, server) -> bool:
        switch = self.resource
        results = []
        for interface in server.network_interfaces:
            if not interface.partitions:
                continue

            port = switch.find_mac(interface.partitions[0].mac_address,
                                   server=server)
            if port is None:
                continue

            for network in interface.networks:
                if switch.configured_network(network, server):
                    results.append(server.valid_network(network, port, switch))
        return all(results)

    def use_portchannel(self, server, interface) -> bool:
        os_type = server.os_image_type or ''
        if re.search(r'vmware_esxi|windows', os_type):
            return False

        mac = interface.partitions[0].mac_address
        for team in server.network_config.teams:
            if mac in team.mac_addresses:
                return len(team.mac_addresses) > 1
        return False

    def find_portchannel(self, server, interface) -> str:
        raise ConfigurationError(f'LACP teaming not implemented for '
                                 f'{type(self).__name__}')

    def provision_server_interface(self, server, interface) -> None:
        switch = self.resource
        partition = interface.partitions[0]
        port = switch.find_mac(partition.mac_address, server=server)
        if port is None:
            return

        self.logger.info(f'Configuring NIC {server.certname} / '
                         f'{partition.fqdd} connected on {switch.certname} '
                         f'port {port}')

        if self.use_portchannel(server, interface):
            portchannel = self.find_portchannel(server, interface)
            mtu = str(server.network_params.get('mtu') or DEFAULT_MTU)
        else:
            portchannel, mtu = '', DEFAULT_MTU

        untagged_seen = False
        for network in interface.networks:
            if not switch.configured_network(network, server):
                self.logger.info(f'Skipping un-configured network '
                                 f'{network.name} VLAN {network.vlan_id} on '
                                 f'NIC {server.certname} / {partition.fqdd}')
                continue

            tagged = switch.tagged_network(network, server)
            untagged_seen = untagged_seen or not tagged
            self.logger.info(f'Configuring NIC {server.certname} / '
                             f'{partition.fqdd} on network {network.name} '
                             f'{"tagged" if tagged else "untagged"} VLAN '
                             f'{network.vlan_id}')
            self.builder.configure_interface_vlan(
                port, network.vlan_id, tagged, server.teardown, portchannel, mtu
            )

        if not untagged_seen:
            self.logger.info(f'Configuring native VLAN on NIC '
                             f'{server.certname} / {partition.fqdd}')
            self.builder.configure_interface_vlan(port, NATIVE_VLAN, False,
                                                  server.teardown)

    def provision_server_networking(self, server) -> None:
        for interface in server.configured_interfaces:
            self.provision_server_interface(server, interface)

    def teardown_server_networking(self, server) -> None:
        switch = self.resource
        for interface in server.configured_interfaces:
            partition = interface.partitions[0]
            port = switch.find_mac(partition.mac_address, server=server)
            if port is None:
                continue

            self.logger.info(f'Resetting port {server.certname} / '
                             f'{partition.fqdd} to untagged vlan 1 and no '
                             f'tagged vlans')
            self.builder.configure_interface_vlan(port, NATIVE_VLAN, False,
                                                  remove=True)

    def configure_server(self, server, staged: bool = False) -> None:
        if server.teardown:
            self.teardown_server_networking(server)
        else:
            self.provision_server_networking(server)

        if not staged:
            self.resource.process()


class Force10Switch(SwitchProvider):
    provider_name: ClassVar[str] = 'force10'
    protocol_types = ('force10',)

    @classmethod
    def handles_switch(cls, inventory: Mapping[str, Any]) -> bool:
        return bool(re.match(r'^(dell_ftos|dell_iom)',
                             inventory.get('refId') or ''))

    def normalize_facts(self, raw_facts: Mapping[str, Any]) -> Dict[str, Any]:
        facts = super(Force10Switch, self).normalize_facts(raw_facts)
        facts['interfaces'] = [
            json.loads(i) if isinstance(i, str) and 'untagged_vlans' in i
            else i
            for i in facts['interfaces']
        ]
        return facts

    @property
    def rack_switch(self) -> bool:
        return (self['refId'] or '').startswith('dell_ftos')

    @property
    def blade_ioa_switch(self) -> bool:
        return bool(re.search(r'Aggregator|IOA|PE-FN', self.model))

    @property
    def blade_mxl_switch(self) -> bool:
        return 'MXL' in self.model

    @property
    def blade_switch(self) -> bool:
        return self.blade_ioa_switch or self.blade_mxl_switch

    @property
    def san_switch(self) -> bool:
        return self.facts.get('switch_fc_mode') == 'Fabric-Services'

    def create_builder(self) -> PortResourceBuilder:
        if self.rack_switch:
            return Force10RackBuilder(self)
        if self.blade_ioa_switch:
            return Force10BladeIoaBuilder(self)
        if self.blade_mxl_switch:
            return Force10BladeMxlBuilder(self)
        return super(Force10Switch, self).create_builder()

    def supports_server(self, server) -> bool:
        if (server.rack_server or server.tower_server) and self.rack_switch:
            return True
        return server.blade_server and self.blade_switch


class PowerConnectSwitch(SwitchProvider):
    provider_name: ClassVar[str] = 'powerconnect'
    protocol_types = ('dell_powerconnect',)
    builder_class = PowerConnectRackBuilder

    @classmethod
    def handles_switch(cls, inventory: Mapping[str, Any]) -> bool:
        return (inventory.get('refId') or '').startswith('dell_powerconnect')

    @property
    def rack_switch(self) -> bool:
        return True


class GenericSwitch(SwitchProvider):
    """
    Switches we can only read facts from. Their configuration is validated
    but never changed.
    """

    provider_name: ClassVar[str] = 'generic'
    protocol_types = ('generic_switch',)

    @classmethod
    def handles_switch(cls, inventory: Mapping[str, Any]) -> bool:
        return inventory.get('deviceType') == 'genericswitch'

    @property
    def rack_switch(self) -> bool:
        return True

    def configure_server(self, server, staged: bool = False) -> None:
        self.logger.warning(f'Cannot configure server {server.certname} '
                            f'networking on generic switch '
                            f'{self.resource.certname}')

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

from typing import Any, Dict, List, Mapping, Optional

from .. import vlan
from ..component import Component
from ..network import Network
from .base import Resource


class Switch(Resource):
    """
    A switch found in the managed device inventory. Its inventory record
    is the configuration of its provider.
    """

    category = 'switch'

    def __init__(self, component, provider_class, inventory, context,
                 service=None):
        super(Switch, self).__init__(component, provider_class, inventory,
                                     context, service)
        self._inventory = dict(inventory)

    @classmethod
    def create_from_inventory(cls,
                              inventory: Mapping[str, Any],
                              context,
                              service=None) -> List[Switch]:
        """
        One switch per provider claiming the inventory record.
        """
        providers = context.registry.select(
            cls.category, lambda p: p.handles_switch(inventory)
        )

        switches = []
        for provider_class in providers:
            component = Component.for_device(inventory['refId'], 'SWITCH',
                                             service)
            switches.append(cls(component, provider_class, inventory,
                                context, service))
        return switches

    # tagging policy
    def configured_network(self, network: Network, server) -> bool:
        return vlan.configured(network, server.snapshot)

    def tagged_network(self, network: Network, server) -> bool:
        return vlan.tagged(network, server.snapshot)

    # port lookups
    def find_mac(self,
                 mac: str,
                 server=None,
                 update_facts: bool = False,
                 update_inventory: bool = False) -> Optional[str]:
        """
        Finds the port a MAC address is connected to on this switch.

        Parameters
        ----------
        mac
            The MAC address.
        server
            When the MAC address is not in the switch facts, fall back to
            the topology cache of this server.
        update_facts
            Refresh the facts before searching.
        update_inventory
            Refresh the inventory, and so the facts, before searching.

        Returns
        -------
        Optional[str]
            The port name, None when the MAC address was not found.
        """
        if not mac:
            return None

        if update_inventory:
            self.update_inventory()
        if update_inventory or update_facts:
            self.retrieve_facts()

        port = self.provider.find_mac(mac)

        if port is None and server is not None:
            cached = server.network_topology_cache.get(mac.lower())
            if cached is not None and cached[0] == self.certname:
                port = cached[1]
        return port

    def has_mac(self, mac: str, **options) -> bool:
        return self.find_mac(mac, **options) is not None

    # server networking
    def connected_servers(self) -> List[Resource]:
        return [s for s in self.related_servers() if s.connected]

    def configure_server(self, server, staged: bool = False) -> None:
        self.delegate(self.provider, 'configure_server', server, staged)

    def configure_server_networking(self, staged: bool = False) -> None:
        for server in self.connected_servers():
            server.configure_networking(staged, switch=self)

    def validate_network_config(self, server) -> bool:
        return self.delegate(self.provider, 'validate_network_config', server)

    def validate_server_networking(self, update_inventory: bool = False) \
            -> bool:
        """
        Checks the current configuration of this switch for every connected
        server. All servers are checked so every problem gets logged.
        """
        if update_inventory:
            self.update_inventory()

        results = [self.validate_network_config(s)
                   for s in self.connected_servers()]
        return all(results)

    def process(self) -> Dict[str, Any]:
        """
        Runs the staged port changes, removals before additions.
        """
        provider = self.provider
        result = {}
        try:
            for action in ('remove', 'add'):
                if provider.prepare(action):
                    result = super(Switch, self).process()
        finally:
            provider.reset_ports()
        return result

    # facts
    @property
    def vlan_information(self) -> Optional[Dict[str, Any]]:
        return self.facts.get('vlan_information')

    @property
    def portchannel_members(self) -> Optional[Dict[str, Any]]:
        return self.facts.get('port_channel_members')

    @property
    def model(self) -> str:
        return self.provider.model

    @property
    def device_type(self) -> Optional[str]:
        return self.provider.device_type

    @property
    def connection_url(self) -> Optional[str]:
        return self.provider.connection_url

    @property
    def rack_switch(self) -> bool:
        return self.provider.rack_switch

    @property
    def blade_switch(self) -> bool:
        return self.provider.blade_switch

    @property
    def san_switch(self) -> bool:
        return self.provider.san_switch

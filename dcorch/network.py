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
Server network configuration model.

Parsed from the camelCase mapping attached to a server component::

    {"id": "...",
     "interfaces": [                       # one entry per NIC card
        {"id": "...", "fabrictype": "ethernet", "nicInfo": {"product": ...},
         "interfaces": [                   # one entry per port
            {"id": "...", "name": "Port 1", "partitioned": false,
             "partitions": [
                {"name": "1", "fqdd": "NIC.Integrated.1-1-1",
                 "mac_address": "00:0A:F7:06:88:50",
                 "networkObjects": [
                    {"id": "ff80...", "name": "PXE", "type": "PXE",
                     "vlanId": 20, "static": false}]}]}]}]}
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dataclasses_json import LetterCase, config, dataclass_json

WORKLOAD_NETWORK_TYPES = ('PUBLIC_LAN', 'PRIVATE_LAN')


def _tuple_or_empty(obj, name: str) -> None:
    if getattr(obj, name) is None:
        object.__setattr__(obj, name, ())
    else:
        object.__setattr__(obj, name, tuple(getattr(obj, name)))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class Network:
    id: str
    name: str = ''
    type: str = ''
    vlan_id: int = 0
    static: bool = False


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class Partition:
    name: str = ''
    fqdd: Optional[str] = None
    mac_address: Optional[str] = field(
        default=None, metadata=config(field_name='mac_address')
    )
    networks: Tuple[Network, ...] = field(
        default=(), metadata=config(field_name='networkObjects')
    )

    def __post_init__(self):
        _tuple_or_empty(self, 'networks')

    def network_types(self) -> List[str]:
        return [n.type for n in self.networks]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class Interface:
    id: str = ''
    name: str = ''
    partitioned: bool = False
    partitions: Tuple[Partition, ...] = ()

    def __post_init__(self):
        _tuple_or_empty(self, 'partitions')

    @property
    def networks(self) -> List[Network]:
        """
        Unique networks over all partitions of this port, in order.
        """
        return list(OrderedDict.fromkeys(
            n for p in self.partitions for n in p.networks
        ))

    @property
    def configured(self) -> bool:
        return len(self.networks) > 0


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class NicInfo:
    product: str = ''
    vendor: str = ''


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class Card:
    id: str = ''
    fabrictype: str = 'ethernet'
    nictype: str = ''
    enabled: bool = True
    nic_info: NicInfo = NicInfo()
    interfaces: Tuple[Interface, ...] = ()

    def __post_init__(self):
        _tuple_or_empty(self, 'interfaces')
        if self.nic_info is None:
            object.__setattr__(self, 'nic_info', NicInfo())


@dataclass(frozen=True, eq=True)
class Team:
    """
    Partitions carrying the same set of workload networks.
    """
    networks: Tuple[Network, ...]
    mac_addresses: Tuple[str, ...]


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True, eq=True)
class NetworkConfiguration:
    id: Optional[str] = None
    cards: Tuple[Card, ...] = field(
        default=(), metadata=config(field_name='interfaces')
    )

    def __post_init__(self):
        _tuple_or_empty(self, 'cards')

    @staticmethod
    def parse(raw: Optional[Mapping[str, Any]]) -> 'NetworkConfiguration':
        if not raw:
            return NetworkConfiguration()
        return NetworkConfiguration.from_dict(dict(raw))

    @property
    def interfaces(self) -> List[Interface]:
        return [i for c in self.cards for i in c.interfaces]

    @property
    def partitions(self) -> List[Partition]:
        return [p for i in self.interfaces for p in i.partitions]

    def get_networks(self, *types: str) -> List[Network]:
        seen = OrderedDict()
        for partition in self.partitions:
            for network in partition.networks:
                if network.type in types:
                    seen.setdefault(network.id, network)
        return list(seen.values())

    def get_network(self, network_type: str) -> Optional[Network]:
        networks = self.get_networks(network_type)
        return networks[0] if networks else None

    def get_partitions(self, *types: str) -> List[Partition]:
        return [p for p in self.partitions
                if any(t in types for t in p.network_types())]

    @property
    def teams(self) -> List[Team]:
        """
        Groups partitions by their workload networks. Two partitions are in
        the same team when they carry exactly the same workload networks.
        """
        groups: Dict[Tuple[str, ...], Tuple[List[Network], List[str]]] = \
            OrderedDict()

        for partition in self.partitions:
            workload = [n for n in partition.networks
                        if n.type in WORKLOAD_NETWORK_TYPES]
            if not workload:
                continue

            key = tuple(sorted(n.id for n in workload))
            networks, macs = groups.setdefault(key, (workload, []))
            if partition.mac_address and partition.mac_address not in macs:
                macs.append(partition.mac_address)

        return [Team(networks=tuple(networks), mac_addresses=tuple(macs))
                for networks, macs in groups.values()]

    def mac_addresses(self) -> Iterable[str]:
        for partition in self.partitions:
            if partition.mac_address:
                yield partition.mac_address


@dataclass_json
@dataclass(frozen=True, eq=True)
class FcInterface:
    fqdd: str
    wwpn: str

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
VLAN tagging decisions for server facing switch ports.

All functions here are pure: they only look at a :class:`NetworkSnapshot`
and a :class:`ServerSnapshot`, so two calls with equal inputs always give
the same answer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from .errors import PolicyViolation
from .network import Network, NetworkConfiguration

# networks are already immutable value objects
NetworkSnapshot = Network

HYPERVISOR_OS_TYPES = ('vmware_esxi', 'hyperv')
SPEED_BUCKETS = ('tengigabit', 'fortygigabit')

_INTERFACE_GROUP = re.compile(r'(\d*-*\d*)')


@dataclass(frozen=True, eq=True)
class ServerSnapshot:
    certname: str
    os_image_type: Optional[str] = None
    os_installed: bool = False
    boot_from_iscsi: bool = False
    network_config: NetworkConfiguration = NetworkConfiguration()

    @staticmethod
    def from_server(server) -> ServerSnapshot:
        """
        Captures the state of a Server resource relevant to VLAN tagging.
        """
        return ServerSnapshot(
            certname=server.certname,
            os_image_type=server.os_image_type,
            os_installed=server.os_installed,
            boot_from_iscsi=server.boot_from_iscsi,
            network_config=server.network_config,
        )

    @property
    def esxi(self) -> bool:
        return self.os_image_type == 'vmware_esxi'

    @property
    def hypervisor(self) -> bool:
        return (self.os_image_type is not None
                and self.os_image_type.lower() in HYPERVISOR_OS_TYPES)

    @property
    def hyperv(self) -> bool:
        return (self.os_image_type is not None
                and self.os_image_type.lower() == 'hyperv')

    @property
    def fcoe(self) -> bool:
        return len(self.network_config.get_networks('STORAGE_FCOE_SAN')) > 0

    @property
    def workload_vlans(self) -> List[int]:
        return [n.vlan_id for n in self.network_config.get_networks(
            'PUBLIC_LAN', 'PRIVATE_LAN')]


def configured(network: NetworkSnapshot, server: ServerSnapshot) -> bool:
    if network.type == 'FIP_SNOOPING':
        return False
    elif network.type == 'PXE':
        return server.esxi or not server.os_installed
    return True


def _hyperv_with_dedicated_intel_iscsi(network: NetworkSnapshot,
                                       server: ServerSnapshot) -> bool:
    if network.type != 'STORAGE_ISCSI_SAN' or not server.hyperv:
        return False

    cards = server.network_config.cards
    if len(cards) < 2:
        return False
    return 'Intel' in cards[1].nic_info.product


def hypervisor_tagged(network: NetworkSnapshot,
                       server: ServerSnapshot) -> bool:
    if network.type == 'PXE':
        return server.fcoe and server.esxi and server.os_installed
    elif _hyperv_with_dedicated_intel_iscsi(network, server):
        return False
    return True


def workload_network_count(network: NetworkSnapshot,
                           server: ServerSnapshot) -> int:
    """
    Number of MAC addresses in the NIC team carrying the network's VLAN,
    1 when no team carries it.
    """
    count = 1
    for team in server.network_config.teams:
        if any(n.vlan_id == network.vlan_id for n in team.networks):
            count = len(team.mac_addresses)
    return count


def workload_with_pxe(network: NetworkSnapshot,
                      server: ServerSnapshot) -> bool:
    partitions = server.network_config.get_partitions(network.type)
    if len(partitions) > 1:
        return True

    pxe_partitions = server.network_config.get_partitions('PXE')
    if not pxe_partitions or not partitions:
        return False
    return partitions[0].mac_address == pxe_partitions[0].mac_address


def bare_metal_tagged(network: NetworkSnapshot,
                       server: ServerSnapshot) -> bool:
    if network.type == 'PXE':
        return server.os_installed
    elif len(server.workload_vlans) > 1:
        return True
    elif workload_network_count(network, server) > 1:
        return True
    return workload_with_pxe(network, server)


def tagged(network: NetworkSnapshot, server: ServerSnapshot) -> bool:
    """
    Decides whether a network is tagged on the switch ports of a server.

    Raises
    ------
    PolicyViolation
        If the network should not be configured on the server at all.
    """
    if not configured(network, server):
        raise PolicyViolation(
            f'Network {network.name} VLAN {network.vlan_id} should not be '
            f'configured on {server.certname}'
        )

    if server.boot_from_iscsi and network.type == 'STORAGE_ISCSI_SAN':
        return False
    elif server.hypervisor:
        return hypervisor_tagged(network, server)
    return bare_metal_tagged(network, server)


def parse_interface(interface: str) -> Tuple[List[str], str, str]:
    """
    Splits an interface name into its numeric groups.

    >>> parse_interface('Te1/0/2-12')
    (['1', '0'], '2-12', '1/0')

    Returns
    -------
    Tuple
        The leading groups, the port (last group) and the stack, which is
        the leading groups joined with '/'.
    """
    groups = [g for g in _INTERFACE_GROUP.findall(interface) if g]
    port = groups.pop() if groups else ''
    return groups, port, '/'.join(groups)


def interface_in_ranges(ranges: str, interface: str) -> bool:
    """
    Checks if an interface is part of a comma separated list of interface
    ranges as reported by switches, e.g. ``Te1/0/2-12,Te1/0/29``.
    """
    _, wanted_port, wanted_stack = parse_interface(interface)

    for group in ranges.split(','):
        if not group.strip():
            continue

        _, port, stack = parse_interface(group)
        if stack != wanted_stack:
            continue

        if '-' in port:
            start, _, end = port.partition('-')
            try:
                if int(start) <= int(wanted_port) <= int(end):
                    return True
            except ValueError:
                continue
        elif port == wanted_port:
            return True
    return False


def interface_in_vlan(vlan_information: Optional[Mapping[str, Any]],
                      interface: str,
                      vlan: Any,
                      is_tagged: bool) -> bool:
    """
    Checks the ``vlan_information`` switch fact for an interface being a
    tagged or untagged member of a VLAN.
    """
    if not vlan_information:
        return False

    info = vlan_information.get(str(vlan))
    if not info:
        return False

    prefix = 'tagged' if is_tagged else 'untagged'
    for speed in SPEED_BUCKETS:
        ranges = info.get(f'{prefix}_{speed}')
        if ranges and interface_in_ranges(ranges, interface):
            return True
    return False

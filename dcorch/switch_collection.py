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
The switches of a deployment, discovered from the managed device inventory,
and the workflow configuring server facing switch ports.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Optional, Tuple

from loguru import logger

from .errors import ConfigurationError, OrchestratorError, \
    UnconnectedServerError
from .resources.switch import Switch

SWITCH_DEVICE_TYPES = ('dellswitch', 'genericswitch')


class SwitchCollection:
    """
    Lazily built list of :class:`~dcorch.resources.switch.Switch` resources,
    one per managed switch in inventory.

    Parameters
    ----------
    service
        The owning :class:`~dcorch.service.Service`, may be None for a
        collection used outside of a deployment.
    context
        The deployment context, taken from service by default.
    """

    def __init__(self, service=None, context=None):
        if context is None:
            if service is None:
                raise ConfigurationError('A switch collection needs either a '
                                         'service or a deployment context')
            context = service.context

        self.service = service
        self.context = context
        self._lock = threading.Lock()
        self._switches: Optional[List[Switch]] = None

    def inventories(self) -> List[dict]:
        return [d for d in self.context.inventory.managed_devices()
                if d.get('deviceType') in SWITCH_DEVICE_TYPES]

    def populate(self) -> List[Switch]:
        switches = []
        for inventory in self.inventories():
            switches.extend(Switch.create_from_inventory(inventory,
                                                         self.context,
                                                         self.service))
        logger.debug(f'Found {len(switches)} managed switches')
        return switches

    @property
    def switches(self) -> List[Switch]:
        with self._lock:
            if self._switches is None:
                self._switches = self.populate()
            return list(self._switches)

    def reset(self) -> None:
        with self._lock:
            self._switches = None

    def __iter__(self) -> Iterator[Switch]:
        return iter(self.switches)

    def __len__(self) -> int:
        return len(self.switches)

    def switch_by_certname(self, certname: str) -> Optional[Switch]:
        for switch in self.switches:
            if switch.certname == certname:
                return switch
        return None

    def switch_by_id(self, component_id: str) -> Optional[Switch]:
        for switch in self.switches:
            if switch.id == component_id:
                return switch
        return None

    def switch_port_for_mac(self, mac: str) -> Optional[Tuple[Switch, str]]:
        """
        The first switch reporting a MAC address and the port it is on.
        """
        for switch in self.switches:
            port = switch.find_mac(mac)
            if port is not None:
                return switch, port
        return None

    def switch_for_mac(self, mac: Optional[str], **options) \
            -> Optional[Switch]:
        # partially configured interfaces might not have an address yet
        if not mac:
            return None

        for switch in self.switches:
            if switch.has_mac(mac, **options):
                return switch
        return None

    @staticmethod
    def _refresh(switch: Switch) -> None:
        switch.update_inventory()
        switch.retrieve_facts()

    def update_inventory(self,
                         predicate: Callable[[Switch], bool] = lambda s: True) \
            -> None:
        """
        Refreshes the inventory and facts of the selected switches in
        parallel, waiting for all of them. The first failure is raised.
        """
        selected = [s for s in self.switches if predicate(s)]
        if not selected:
            return

        with ThreadPoolExecutor(max_workers=self.context.config.max_workers) \
                as pool:
            futures = [pool.submit(self._refresh, s) for s in selected]
            for future in futures:
                future.result()

    @staticmethod
    def missing_topology(servers) -> list:
        return [s for s in servers if s.missing_network_topology]

    @staticmethod
    def missing_ports(server) -> str:
        """
        Describes the server ports without known switch port, e.g.
        ``NIC.Integrated.1-1-1 (54:9F:35:0C:59:C0)``.
        """
        return ', '.join(f'{p.fqdd} ({p.mac_address})'
                         for p in server.missing_network_topology)

    def await_inventory(self,
                        servers,
                        sleep_secs: Optional[float] = None,
                        max_tries: Optional[int] = None) -> bool:
        """
        Refreshes switch inventories until the topology of every server has
        been found or max_tries refreshes have been done.

        Returns
        -------
        bool
            True if the topology of all servers was found.
        """
        config = self.context.config
        if sleep_secs is None:
            sleep_secs = config.inventory_sleep_secs
        if max_tries is None:
            max_tries = config.inventory_max_tries

        tries = 0
        missing = list(servers)
        while missing and tries < max_tries:
            tries += 1
            self.context.sleep(sleep_secs)
            self.update_inventory()
            missing = self.missing_topology(servers)
            for server in missing:
                logger.debug(f'Waiting for connectivity info for '
                             f'{server.certname} NICs '
                             f'{self.missing_ports(server)} try '
                             f'{tries}/{max_tries}')

        return not missing

    def configure_server_switches(self, update_inventory: bool = False) \
            -> None:
        """
        Configures the server facing ports of every managed switch with
        related servers, and validates those of unmanaged switches.

        Raises
        ------
        ConfigurationError
            If an unmanaged switch is not configured correctly.
        OrchestratorError
            If applying the configuration failed on any switch.
        """
        configurable = [s for s in self.switches if s.related_servers()]

        invalid = []
        for switch in configurable:
            if not switch.valid_inventory():
                continue

            if switch.managed:
                logger.info(f'Configuring server VLANs on {switch.certname}')
                switch.configure_server_networking(staged=True)
            else:
                logger.info(f'Skipping switch configuration on unmanaged '
                            f'switch {switch.certname}, validating '
                            f'configuration only')
                if not switch.validate_server_networking(update_inventory):
                    invalid.append(switch.certname)

        if invalid:
            raise ConfigurationError(f'Invalid switch configurations found '
                                     f'on unmanaged switches: '
                                     f'{", ".join(invalid)}')

        if not configurable:
            return

        failed = []
        with ThreadPoolExecutor(max_workers=self.context.config.max_workers) \
                as pool:
            futures = {}
            for switch in configurable:
                logger.info(f'Applying server VLANs on {switch.certname}')
                futures[switch.certname] = pool.submit(switch.process)

            for certname, future in futures.items():
                error = future.exception()
                if error is not None:
                    logger.error(f'Switch configuration failed for '
                                 f'{certname}: {error}')
                    failed.append(certname)

        if failed:
            raise OrchestratorError(f'Switch configuration failed for '
                                    f'{", ".join(failed)}')

    def configure_server_networking(self, server_uuid: Optional[str] = None) \
            -> None:
        """
        Finds the switch ports of every server in the service and
        configures them.

        Parameters
        ----------
        server_uuid
            Only configure the server with this uuid.

        Raises
        ------
        UnconnectedServerError
            If the switch ports of any server could not be found. The other
            servers are configured before this is raised.
        """
        if self.service is None:
            raise ConfigurationError('Cannot configure networking without a '
                                     'service')

        servers = [s for s in self.service.servers if not s.brownfield]
        if server_uuid is not None:
            logger.debug(f'Only searching switch connectivity for server '
                         f'{server_uuid}')
            servers = [s for s in servers if s.uuid == server_uuid]

        if not servers:
            return

        logger.info(f'Beginning server network configuration for '
                    f'{", ".join(s.certname for s in servers)}')

        missing = self.missing_topology(servers)
        self.update_inventory(lambda s: s.san_switch)

        if not missing:
            update_inventory = True
        else:
            logger.info('Polling switch inventory for server connectivity')
            if not self.await_inventory(missing):
                for server in self.missing_topology(missing):
                    logger.error(f'Unable to find switch connectivity for '
                                 f'server {server.serial_number} '
                                 f'{server.management_ip} on NICs: '
                                 f'{self.missing_ports(server)}')
            update_inventory = False

        unconnected = self.missing_topology(servers)
        if len(servers) > len(unconnected):
            self.configure_server_switches(update_inventory)

        if unconnected:
            raise UnconnectedServerError(s.certname for s in unconnected)

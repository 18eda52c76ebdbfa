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
Server NIC to switch port topology.

Discovered connections are cached per server in the ``network_topology``
fact as a JSON list of ``[identifier, switch certname, port]`` triples,
where the identifier is the lower case MAC address of the first partition
of an ethernet port or the WWPN of a fibre channel port.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .errors import NetworkTopologyError
from .network import FcInterface, Interface, Partition

TOPOLOGY_FACT = 'network_topology'

ETHERNET = 'ethernet'
FC = 'fc'


@dataclass(frozen=True)
class TopologyEntry:
    interface: Union[Interface, FcInterface]
    interface_type: str
    switch: Any = None
    port: Optional[str] = None


def interface_identifier(interface: Union[Interface, FcInterface]) \
        -> Tuple[Optional[str], str]:
    """
    Returns the identifier and type of a server interface.
    """
    if isinstance(interface, FcInterface):
        return interface.wwpn, FC

    if not interface.partitions:
        return None, ETHERNET
    return interface.partitions[0].mac_address, ETHERNET


def parse_topology_fact(raw: Any) -> List[Tuple[str, str, str]]:
    """
    Parses the stored topology fact. Rows that are not three strings are
    logged and skipped.

    Raises
    ------
    NetworkTopologyError
        If the fact is not JSON or not a list.
    """
    if raw is None or raw == '':
        return []

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise NetworkTopologyError(
                f'Could not parse {TOPOLOGY_FACT} fact: {e}'
            ) from e

    if isinstance(raw, dict) and not raw:
        return []

    if not isinstance(raw, list):
        raise NetworkTopologyError(
            f'{TOPOLOGY_FACT} should be a list, got {type(raw).__name__}'
        )

    rows = []
    for row in raw:
        if not isinstance(row, (list, tuple)) or len(row) != 3 \
                or not all(isinstance(v, str) for v in row):
            logger.warning(f'Skipping invalid {TOPOLOGY_FACT} entry {row!r}')
            continue
        rows.append((row[0], row[1], row[2]))
    return rows


class NetworkTopologyResolver:
    """
    Resolves the switch ports the NICs of one server are connected to.

    Connections are looked up in the cached topology first, falling back to
    searching the switch inventories through the switch collection. Newly
    found connections are written back to the fact store.

    The server passed in needs ``certname``, ``facts``,
    ``switch_collection``, ``network_interfaces``, ``fc_interfaces``,
    ``add_relation()`` and ``save_facts()``.
    """

    def __init__(self, server):
        self._server = server
        self._lock = threading.RLock()
        self._cache: Optional[Dict[str, Tuple[str, str]]] = None
        self._dirty = False

    @property
    def server(self):
        return self._server

    @property
    def dirty(self) -> bool:
        return self._dirty

    def _relate(self, switch) -> None:
        self._server.add_relation(switch)
        switch.add_relation(self._server)

    def _hydrate(self) -> Dict[str, Tuple[str, str]]:
        server = self._server
        collection = server.switch_collection

        try:
            rows = parse_topology_fact(server.facts.get(TOPOLOGY_FACT))
        except NetworkTopologyError as e:
            logger.warning(f'Ignoring topology cache of {server.certname}: '
                           f'{e}')
            rows = []

        cache = {}
        for identifier, switch_cert, port in rows:
            if collection.switch_by_certname(switch_cert) is None:
                logger.warning(f'Rejected switch {switch_cert} from '
                               f'{server.certname} topology cache because it '
                               f'is not in inventory')
                continue
            cache[identifier.lower()] = (switch_cert, port)

        for switch_cert in dict.fromkeys(cert for cert, _ in cache.values()):
            self._relate(collection.switch_by_certname(switch_cert))

        logger.debug(f'Loaded {len(cache)} topology entries for '
                     f'{server.certname}')
        return cache

    def _loaded(self) -> Dict[str, Tuple[str, str]]:
        with self._lock:
            if self._cache is None:
                self._cache = self._hydrate()
            return self._cache

    @property
    def cache(self) -> Dict[str, Tuple[str, str]]:
        return dict(self._loaded())

    def lookup(self, identifier: str) -> Optional[Tuple[str, str]]:
        return self.cache.get(identifier.lower())

    def add(self, identifier: str, switch, port: str) -> None:
        with self._lock:
            cache = self._loaded()
            self._relate(switch)
            cache[identifier.lower()] = (switch.certname, port)
            self._dirty = True

    def resolve(self,
                interfaces: Optional[Sequence[Union[Interface, FcInterface]]]
                = None) -> List[TopologyEntry]:
        """
        Finds the switch and port of every interface.

        Parameters
        ----------
        interfaces
            Interfaces to resolve, all ethernet and fibre channel interfaces
            of the server by default.

        Returns
        -------
        List
            One :class:`TopologyEntry` per interface, with switch and port
            None when no connection could be found.
        """
        server = self._server
        if interfaces is None:
            interfaces = list(server.network_interfaces) + \
                         list(server.fc_interfaces)

        collection = server.switch_collection
        entries = []
        with self._lock:
            cache = self._loaded()

            for interface in interfaces:
                identifier, interface_type = interface_identifier(interface)
                switch, port = None, None

                if identifier is not None:
                    hit = cache.get(identifier.lower())
                    if hit is not None:
                        switch = collection.switch_by_certname(hit[0])
                        port = hit[1]

                    if switch is None:
                        found = collection.switch_port_for_mac(identifier)
                        if found is not None:
                            switch, port = found
                            self.add(identifier, switch, port)
                        else:
                            port = None

                entries.append(TopologyEntry(interface, interface_type,
                                             switch, port))

            self.persist()
        return entries

    def persist(self) -> bool:
        """
        Writes the cache back to the fact store if it changed.

        Returns
        -------
        bool
            True if the fact was written.
        """
        with self._lock:
            if not self._dirty:
                return False

            triples = [[identifier, switch_cert, port]
                       for identifier, (switch_cert, port)
                       in self._cache.items()]
            facts = dict(self._server.facts)
            facts[TOPOLOGY_FACT] = json.dumps(triples)
            self._server.save_facts(facts)
            self._dirty = False
            logger.info(f'Saved {len(triples)} topology entries for '
                        f'{self._server.certname}')
            return True

    def missing_topology(self) -> List[Partition]:
        """
        First partition of every configured ethernet port with no known
        switch port.
        """
        return [entry.interface.partitions[0]
                for entry in self.resolve(self._server.network_interfaces)
                if entry.interface_type == ETHERNET
                and entry.port is None
                and entry.interface.configured]

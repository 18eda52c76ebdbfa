import json
from typing import Any, Dict, List, Optional
from unittest import TestCase

from dcorch.errors import NetworkTopologyError
from dcorch.network import FcInterface, NetworkConfiguration
from dcorch.topology import (
    ETHERNET,
    FC,
    TOPOLOGY_FACT,
    NetworkTopologyResolver,
    parse_topology_fact,
)

from helpers import (
    make_card,
    make_network,
    make_network_config,
    make_partition,
    make_port,
)

PXE = make_network('pxe', 'PXE', 20)
PUBLIC = make_network('public', 'PUBLIC_LAN', 30)


class FakeSwitch:
    def __init__(self, certname: str, ports: Dict[str, str]):
        self.certname = certname
        self.ports = {mac.lower(): port for mac, port in ports.items()}
        self.relations: List[Any] = []

    def add_relation(self, other) -> None:
        self.relations.append(other)


class FakeCollection:
    def __init__(self, *switches: FakeSwitch):
        self.switches = list(switches)
        self.discovery_calls: List[str] = []

    def switch_by_certname(self, certname: str) -> Optional[FakeSwitch]:
        for switch in self.switches:
            if switch.certname == certname:
                return switch
        return None

    def switch_port_for_mac(self, mac: str):
        self.discovery_calls.append(mac)
        for switch in self.switches:
            port = switch.ports.get(mac.lower())
            if port is not None:
                return switch, port
        return None


class FakeServer:
    def __init__(self, collection: FakeCollection, facts: Dict[str, Any],
                 *cards, fc_interfaces=()):
        self.certname = 'rackserver-abc1234'
        self.facts = facts
        self.switch_collection = collection
        self.network_interfaces = NetworkConfiguration.parse(
            make_network_config(*cards)).interfaces
        self.fc_interfaces = list(fc_interfaces)
        self.relations: List[Any] = []
        self.saved: List[Dict[str, Any]] = []

    def add_relation(self, other) -> None:
        self.relations.append(other)

    def save_facts(self, facts: Dict[str, Any]) -> None:
        self.saved.append(facts)
        self.facts = facts


def two_ports():
    return make_card(
        'card1',
        make_port('Port 1', make_partition('NIC.Integrated.1-1-1',
                                           '00:0A:F7:06:88:50', PXE, PUBLIC)),
        make_port('Port 2', make_partition('NIC.Integrated.1-2-1',
                                           '00:0A:F7:06:88:52', PUBLIC)),
    )


class TestTopologyFact(TestCase):
    def test_parse(self) -> None:
        raw = json.dumps([['00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1',
                           'Te 0/1']])
        self.assertEqual([('00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1',
                           'Te 0/1')], parse_topology_fact(raw))

    def test_parse_empty(self) -> None:
        for raw in (None, '', {}, '[]'):
            self.assertEqual([], parse_topology_fact(raw))

    def test_parse_invalid(self) -> None:
        for raw in ('not json', '{"a": 1}', 42):
            with self.assertRaises(NetworkTopologyError):
                parse_topology_fact(raw)

    def test_parse_skips_invalid_rows(self) -> None:
        raw = [['00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1', 'Te 0/1'],
               ['00:0a:f7:06:88:52', 'dell_ftos-172.17.0.1', 3],
               ['only', 'two'],
               'Te 0/4']
        self.assertEqual([('00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1',
                           'Te 0/1')], parse_topology_fact(raw))
        self.assertEqual([], parse_topology_fact([[1, 2, 3]]))


class TestNetworkTopologyResolver(TestCase):
    def setUp(self) -> None:
        self.switch = FakeSwitch('dell_ftos-172.17.0.1', {
            '00:0A:F7:06:88:50': 'Te 0/1',
            '00:0A:F7:06:88:52': 'Te 0/2',
        })
        self.collection = FakeCollection(self.switch)

    def test_cache_hit_skips_discovery(self) -> None:
        facts = {TOPOLOGY_FACT: json.dumps([
            ['00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1', 'Te 0/1'],
            ['00:0a:f7:06:88:52', 'dell_ftos-172.17.0.1', 'Te 0/2'],
        ])}
        server = FakeServer(self.collection, facts, two_ports())
        resolver = NetworkTopologyResolver(server)

        entries = resolver.resolve()

        self.assertEqual([], self.collection.discovery_calls)
        self.assertEqual(['Te 0/1', 'Te 0/2'], [e.port for e in entries])
        self.assertTrue(all(e.switch is self.switch for e in entries))
        self.assertEqual([], server.saved)

    def test_unknown_switch_rejected(self) -> None:
        facts = {TOPOLOGY_FACT: json.dumps([
            ['00:0a:f7:06:88:50', 'dell_ftos-10.0.0.99', 'Te 0/9'],
        ])}
        server = FakeServer(self.collection, facts, two_ports())
        resolver = NetworkTopologyResolver(server)

        self.assertEqual({}, resolver.cache)

        entries = resolver.resolve()
        self.assertEqual('Te 0/1', entries[0].port)
        self.assertIs(self.switch, entries[0].switch)

    def test_miss_discovers_and_persists(self) -> None:
        server = FakeServer(self.collection, {}, two_ports())
        resolver = NetworkTopologyResolver(server)

        entries = resolver.resolve()
        self.assertEqual(['00:0A:F7:06:88:50', '00:0A:F7:06:88:52'],
                         self.collection.discovery_calls)
        self.assertEqual(['Te 0/1', 'Te 0/2'], [e.port for e in entries])
        self.assertEqual([ETHERNET, ETHERNET],
                         [e.interface_type for e in entries])

        self.assertEqual(1, len(server.saved))
        stored = parse_topology_fact(server.saved[0][TOPOLOGY_FACT])
        self.assertIn(('00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1',
                       'Te 0/1'), stored)
        self.assertFalse(resolver.dirty)

        resolver.resolve()
        self.assertEqual(2, len(self.collection.discovery_calls))
        self.assertEqual(1, len(server.saved))

        # a fresh resolver reads back what was stored
        fresh = NetworkTopologyResolver(server)
        fresh.resolve()
        self.assertEqual(2, len(self.collection.discovery_calls))

    def test_garbage_fact_treated_as_empty(self) -> None:
        server = FakeServer(self.collection, {TOPOLOGY_FACT: '{broken'},
                            two_ports())
        resolver = NetworkTopologyResolver(server)

        self.assertEqual({}, resolver.cache)
        entries = resolver.resolve()
        self.assertEqual(['Te 0/1', 'Te 0/2'], [e.port for e in entries])

    def test_invalid_row_keeps_valid_entries(self) -> None:
        # the switch no longer reports either MAC address
        switch = FakeSwitch('dell_ftos-172.17.0.1', {})
        collection = FakeCollection(switch)
        facts = {TOPOLOGY_FACT: json.dumps([
            ['00:0a:f7:06:88:50', 'dell_ftos-172.17.0.1', 'Te 0/1'],
            ['00:0a:f7:06:88:52', 'dell_ftos-172.17.0.1', 3],
        ])}
        server = FakeServer(collection, facts, two_ports())
        resolver = NetworkTopologyResolver(server)

        self.assertEqual({'00:0a:f7:06:88:50': ('dell_ftos-172.17.0.1',
                                                'Te 0/1')}, resolver.cache)

        entries = resolver.resolve()
        self.assertEqual(['Te 0/1', None], [e.port for e in entries])
        self.assertEqual(['00:0A:F7:06:88:52'], collection.discovery_calls)
        self.assertIn(switch, server.relations)

    def test_relations_added_both_ways(self) -> None:
        server = FakeServer(self.collection, {}, two_ports())
        NetworkTopologyResolver(server).resolve()

        self.assertIn(self.switch, server.relations)
        self.assertIn(server, self.switch.relations)

    def test_missing_topology(self) -> None:
        switch = FakeSwitch('dell_ftos-172.17.0.1',
                            {'00:0A:F7:06:88:50': 'Te 0/1'})
        collection = FakeCollection(switch)
        card = make_card(
            'card1',
            make_port('Port 1', make_partition('NIC.Integrated.1-1-1',
                                               '00:0A:F7:06:88:50', PXE)),
            make_port('Port 2', make_partition('NIC.Integrated.1-2-1',
                                               '00:0A:F7:06:88:52', PUBLIC)),
            make_port('Port 3', make_partition('NIC.Integrated.1-3-1',
                                               '00:0A:F7:06:88:54')),
        )
        server = FakeServer(collection, {}, card)

        missing = NetworkTopologyResolver(server).missing_topology()
        self.assertEqual(['NIC.Integrated.1-2-1'], [p.fqdd for p in missing])

    def test_fc_interfaces(self) -> None:
        switch = FakeSwitch('brocade-172.17.0.5',
                            {'20:01:74:86:7a:d9:05:2c': '3'})
        collection = FakeCollection(switch)
        server = FakeServer(collection, {}, fc_interfaces=[
            FcInterface('FC.Slot.1-1', '20:01:74:86:7A:D9:05:2C'),
        ])

        entries = NetworkTopologyResolver(server).resolve()
        self.assertEqual(1, len(entries))
        self.assertEqual(FC, entries[0].interface_type)
        self.assertEqual('3', entries[0].port)

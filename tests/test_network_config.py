from unittest import TestCase

from dcorch.network import NetworkConfiguration

from helpers import (
    make_card,
    make_network,
    make_network_config,
    make_partition,
    make_port,
)

PXE = make_network('pxe', 'PXE', 20)
PUBLIC = make_network('public', 'PUBLIC_LAN', 30)
PRIVATE = make_network('private', 'PRIVATE_LAN', 40)
ISCSI = make_network('iscsi', 'STORAGE_ISCSI_SAN', 50)


class TestNetworkConfiguration(TestCase):
    def setUp(self) -> None:
        self.config = NetworkConfiguration.parse(make_network_config(
            make_card(
                'card1',
                make_port('Port 1',
                          make_partition('NIC.Integrated.1-1-1',
                                         '00:0A:F7:06:88:50', PXE, PUBLIC),
                          make_partition('NIC.Integrated.1-1-2',
                                         '00:0A:F7:06:88:54', ISCSI,
                                         name='2')),
                make_port('Port 2',
                          make_partition('NIC.Integrated.1-2-1',
                                         '00:0A:F7:06:88:52', PUBLIC)),
            ),
            make_card(
                'card2',
                make_port('Port 1',
                          make_partition('NIC.Slot.2-1-1',
                                         '00:0A:F7:06:99:50', PRIVATE)),
                make_port('Port 2'),
                product='Intel(R) Ethernet 10G X520',
            ),
        ))

    def test_parse(self) -> None:
        self.assertEqual(2, len(self.config.cards))
        self.assertEqual('Intel(R) Ethernet 10G X520',
                         self.config.cards[1].nic_info.product)

        partition = self.config.cards[0].interfaces[0].partitions[0]
        self.assertEqual('NIC.Integrated.1-1-1', partition.fqdd)
        self.assertEqual('00:0A:F7:06:88:50', partition.mac_address)
        self.assertEqual(['PXE', 'PUBLIC_LAN'], partition.network_types())
        self.assertEqual(20, partition.networks[0].vlan_id)

    def test_parse_empty(self) -> None:
        self.assertEqual((), NetworkConfiguration.parse(None).cards)
        self.assertEqual([], NetworkConfiguration.parse({}).interfaces)

    def test_interfaces(self) -> None:
        interfaces = self.config.interfaces
        self.assertEqual(4, len(interfaces))
        self.assertTrue(interfaces[0].configured)
        self.assertFalse(interfaces[3].configured)
        self.assertEqual(['pxe', 'public', 'iscsi'],
                         [n.id for n in interfaces[0].networks])

    def test_get_networks(self) -> None:
        self.assertEqual(['public', 'private'], [
            n.id for n in self.config.get_networks('PUBLIC_LAN',
                                                   'PRIVATE_LAN')
        ])
        self.assertEqual(50, self.config.get_network('STORAGE_ISCSI_SAN')
                         .vlan_id)
        self.assertIsNone(self.config.get_network('STORAGE_FCOE_SAN'))

    def test_get_partitions(self) -> None:
        self.assertEqual(['NIC.Integrated.1-1-1', 'NIC.Integrated.1-2-1'], [
            p.fqdd for p in self.config.get_partitions('PUBLIC_LAN')
        ])

    def test_teams(self) -> None:
        teams = self.config.teams
        self.assertEqual(2, len(teams))

        public, private = teams
        self.assertEqual(['public'], [n.id for n in public.networks])
        self.assertEqual(('00:0A:F7:06:88:50', '00:0A:F7:06:88:52'),
                         public.mac_addresses)
        self.assertEqual(('00:0A:F7:06:99:50',), private.mac_addresses)

    def test_round_trip_keeps_wire_names(self) -> None:
        raw = self.config.to_dict()
        partition = raw['interfaces'][0]['interfaces'][0]['partitions'][0]
        self.assertIn('mac_address', partition)
        self.assertIn('networkObjects', partition)
        self.assertEqual(20, partition['networkObjects'][0]['vlanId'])

from types import SimpleNamespace
from unittest import TestCase

from loguru import logger

from dcorch.config import DeviceConfig
from dcorch.errors import ConfigurationError, ResourceError
from dcorch.providers.switch import (
    Force10BladeIoaBuilder,
    Force10BladeMxlBuilder,
    Force10RackBuilder,
    Force10Switch,
    GenericSwitch,
    PowerConnectRackBuilder,
    PowerConnectSwitch,
    SwitchProvider,
)
from dcorch.resources import Switch
from dcorch.stores import RecordingExecutor

from helpers import make_context, make_switch_inventory

FORCE10 = 'dell_ftos-172.17.0.1'
IOM = 'dell_iom-172.17.9.171'


class FakeProvider:
    def __init__(self, certname: str = FORCE10, facts=None):
        self.resource = SimpleNamespace(certname=certname)
        self.logger = logger.bind(certname=certname)
        self.facts = facts or {}


class FakeSwitchResource:
    def __init__(self, facts):
        self.certname = FORCE10
        self.logger = logger.bind(certname=FORCE10)
        self.facts = facts


class TestForce10RackBuilder(TestCase):
    def setUp(self) -> None:
        self.builder = Force10RackBuilder(FakeProvider())

    def test_add(self) -> None:
        self.builder.configure_interface_vlan('Te 0/1', 20, False)
        self.builder.configure_interface_vlan('Te 0/1', 40, True)
        self.builder.configure_interface_vlan('Te 0/1', 30, True)

        self.assertFalse(self.builder.prepare('remove'))
        self.assertTrue(self.builder.prepare('add'))

        resources = self.builder.to_resources()
        self.assertEqual({
            'shutdown': 'false',
            'mtu': '12000',
            'protocol': 'lldp',
            'ensure': 'present',
            'tagged_vlan': '30,40',
            'untagged_vlan': '20',
            'switchport': 'true',
            'portmode': 'hybrid',
            'portfast': 'portfast',
            'edge_port': 'pvst,mstp,rstp',
        }, resources['force10_interface']['Te 0/1'])

        self.assertEqual(['20', '30', '40'],
                         sorted(resources['force10_vlan']))
        self.assertEqual({
            'vlan_name': 'VLAN_20',
            'desc': 'VLAN Created by dcorch',
            'before': ['Force10_interface[Te 0/1]'],
        }, resources['force10_vlan']['20'])

    def test_remove(self) -> None:
        self.builder.configure_interface_vlan('Te 0/2', 1, False, remove=True)

        self.assertFalse(self.builder.prepare('add'))
        self.assertTrue(self.builder.prepare('remove'))

        resources = self.builder.to_resources()
        self.assertNotIn('force10_vlan', resources)
        interface = resources['force10_interface']['Te 0/2']
        self.assertEqual('1', interface['untagged_vlan'])
        self.assertEqual('', interface['tagged_vlan'])

    def test_portchannel(self) -> None:
        self.builder.configure_interface_vlan('Te 0/1', 20, True,
                                              portchannel='10', mtu='9000')
        self.builder.configure_interface_vlan('Te 0/2', 20, True,
                                              portchannel='10', mtu='9000')
        self.assertTrue(self.builder.prepare('add'))

        resources = self.builder.to_resources()
        self.assertEqual({
            'ensure': 'present',
            'portmode': 'hybrid',
            'switchport': 'true',
            'shutdown': 'false',
            'mtu': '9000',
            'ungroup': 'true',
        }, resources['force10_portchannel']['10'])
        self.assertEqual('10',
                         resources['force10_interface']['Te 0/1']
                         ['portchannel'])

        vlan = resources['force10_vlan']['20']
        self.assertEqual('10', vlan['tagged_portchannel'])
        self.assertEqual(['Force10_portchannel[10]'], vlan['require'])
        self.assertEqual(['Force10_interface[Te 0/1]',
                          'Force10_interface[Te 0/2]'], vlan['before'])

    def test_multiple_untagged_rejected(self) -> None:
        self.builder.configure_interface_vlan('Te 0/1', 20, False)
        self.builder.configure_interface_vlan('Te 0/1', 30, False)

        with self.assertRaises(ConfigurationError):
            self.builder.prepare('add')

    def test_interface_required(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.builder.configure_interface_vlan('', 20, False)


class TestForce10BladeMxlBuilder(TestCase):
    def setUp(self) -> None:
        self.builder = Force10BladeMxlBuilder(FakeProvider(IOM))

    def test_add(self) -> None:
        self.builder.configure_interface_vlan('Te 0/4', 20, False)
        self.builder.configure_interface_vlan('Te 0/4', 30, True)
        self.assertTrue(self.builder.prepare('add'))

        resources = self.builder.to_resources()
        self.assertNotIn('force10_vlan', resources)
        self.assertEqual('30', resources['force10_interface']['Te 0/4']
                         ['tagged_vlan'])
        self.assertEqual(['20', '30'], sorted(resources['asm::mxl']))
        self.assertEqual({
            'vlan_name': 'VLAN_30',
            'desc': 'VLAN Created by dcorch',
            'before': ['Force10_interface[Te 0/4]'],
        }, resources['asm::mxl']['30'])

    def test_portchannel(self) -> None:
        self.builder.configure_interface_vlan('Te 0/4', 20, False,
                                              portchannel='12')
        self.assertTrue(self.builder.prepare('add'))

        vlan = self.builder.to_resources()['asm::mxl']['20']
        self.assertEqual('12', vlan['untagged_portchannel'])
        self.assertEqual(['Mxl_portchannel[12]'], vlan['require'])


class TestForce10BladeIoaBuilder(TestCase):
    def test_add(self) -> None:
        builder = Force10BladeIoaBuilder(FakeProvider(IOM))
        builder.configure_interface_vlan('Te 0/3', 20, False)
        builder.configure_interface_vlan('Te 0/3', 40, True)
        builder.configure_interface_vlan('Te 0/3', 30, True)

        self.assertFalse(builder.prepare('remove'))
        self.assertTrue(builder.prepare('add'))
        self.assertEqual({'ioa_interface': {'Te 0/3': {
            'shutdown': 'false',
            'mtu': '12000',
            'switchport': 'true',
            'portmode': 'hybrid',
            'vlan_tagged': '30,40',
            'vlan_untagged': '20',
        }}}, builder.to_resources())

    def test_remove(self) -> None:
        builder = Force10BladeIoaBuilder(FakeProvider(IOM))
        builder.configure_interface_vlan('Te 0/3', 1, False, remove=True)

        self.assertTrue(builder.prepare('remove'))
        interface = builder.to_resources()['ioa_interface']['Te 0/3']
        self.assertEqual('1', interface['vlan_untagged'])
        self.assertEqual('', interface['vlan_tagged'])

    def test_portchannel(self) -> None:
        builder = Force10BladeIoaBuilder(FakeProvider(IOM))
        builder.configure_interface_vlan('Te 0/3', 20, True,
                                         portchannel='7', mtu='9000')
        builder.configure_interface_vlan('Te 0/5', 30, True,
                                         portchannel='7', mtu='9000')
        self.assertTrue(builder.prepare('add'))

        resources = builder.to_resources()
        self.assertEqual({
            'switchport': 'true',
            'portmode': 'hybrid',
            'shutdown': 'false',
            'tagged_vlan': '20,30',
            'untagged_vlan': '',
            'ungroup': 'true',
            'mtu': '9000',
        }, resources['force10_portchannel']['7'])
        self.assertEqual({'shutdown': 'false', 'mtu': '9000',
                          'portchannel': '7'},
                         resources['ioa_interface']['Te 0/5'])

    def test_standalone_teaming_rejected(self) -> None:
        builder = Force10BladeIoaBuilder(
            FakeProvider(IOM, facts={'iom_mode': 'standalone'}))
        builder.configure_interface_vlan('Te 0/3', 20, True, portchannel='7')

        with self.assertRaises(ConfigurationError):
            builder.prepare('add')


class TestPowerConnectRackBuilder(TestCase):
    def setUp(self) -> None:
        self.builder = PowerConnectRackBuilder(
            FakeProvider('dell_powerconnect-172.17.0.2'))

    def test_add(self) -> None:
        self.builder.configure_interface_vlan('Gi1/0/1', 20, False)
        self.builder.configure_interface_vlan('Gi1/0/1', 30, True)
        self.assertTrue(self.builder.prepare('add'))

        resources = self.builder.to_resources()
        self.assertEqual({
            'shutdown': 'false',
            'switchport_mode': 'general',
            'portfast': 'true',
            'tagged_general_vlans': '30',
            'untagged_general_vlans': '20',
        }, resources['powerconnect_interface']['Gi1/0/1'])
        self.assertEqual({'20': {'ensure': 'present'},
                          '30': {'ensure': 'present'}},
                         resources['powerconnect_vlan'])

    def test_remove_from_portchannel(self) -> None:
        self.builder.configure_interface_vlan('Gi1/0/2', 20, False,
                                              remove=True, portchannel='5')
        self.assertFalse(self.builder.prepare('add'))
        self.assertTrue(self.builder.prepare('remove'))

        resources = self.builder.to_resources()
        self.assertEqual({
            'shutdown': 'false',
            'switchport_mode': 'general',
            'remove_general_vlans': '20',
        }, resources['powerconnect_portchannel']['5'])
        self.assertEqual({
            'shutdown': 'false',
            'remove_interface_from_portchannel': '5',
        }, resources['powerconnect_interface']['Gi1/0/2'])


class TestSwitchProvider(TestCase):
    def test_handles_switch(self) -> None:
        force10 = make_switch_inventory('dell_ftos-172.17.0.1')
        iom = make_switch_inventory('dell_iom-172.17.0.3')
        powerconnect = make_switch_inventory('dell_powerconnect-172.17.0.2')
        generic = make_switch_inventory('cisco-172.17.0.4',
                                        device_type='genericswitch')

        self.assertTrue(Force10Switch.handles_switch(force10))
        self.assertTrue(Force10Switch.handles_switch(iom))
        self.assertFalse(Force10Switch.handles_switch(powerconnect))
        self.assertTrue(PowerConnectSwitch.handles_switch(powerconnect))
        self.assertTrue(GenericSwitch.handles_switch(generic))
        self.assertFalse(GenericSwitch.handles_switch(force10))
        self.assertFalse(SwitchProvider.handles_switch(force10))

    def test_valid_addresses(self) -> None:
        self.assertTrue(SwitchProvider.valid_mac('00:0A:F7:06:88:50'))
        self.assertTrue(SwitchProvider.valid_mac('00-0a-f7-06-88-50'))
        self.assertFalse(SwitchProvider.valid_mac('00:0a-f7:06:88:50'))
        self.assertFalse(SwitchProvider.valid_mac('00:0a:f7:06:88'))
        self.assertTrue(SwitchProvider.valid_wwpn('20:01:74:86:7a:d9:05:2c'))
        self.assertFalse(SwitchProvider.valid_wwpn('00:0a:f7:06:88:50'))

    def test_find_mac(self) -> None:
        mapping = FakeSwitchResource({'remote_device_info': {
            'Te 0/1': {'remote_mac': '00:0A:F7:06:88:50'},
            'Te 0/2': {'remote_mac': None},
        }})
        provider = Force10Switch(mapping)
        self.assertEqual('Te 0/1', provider.find_mac('00:0a:f7:06:88:50'))
        self.assertIsNone(provider.find_mac('00:0a:f7:06:88:99'))
        self.assertIsNone(provider.find_mac(''))

        listed = FakeSwitchResource({'remote_device_info': [
            {'interface': 'Gi1/0/7', 'remote_mac': '00:0a:f7:06:88:52'},
        ]})
        provider = PowerConnectSwitch(listed)
        self.assertEqual('Gi1/0/7', provider.find_mac('00:0A:F7:06:88:52'))

        empty = FakeSwitchResource({})
        self.assertIsNone(Force10Switch(empty).find_mac('00:0a:f7:06:88:52'))

    def test_force10_normalize_facts(self) -> None:
        facts = Force10Switch().normalize_facts({
            'interfaces': ['{"untagged_vlans": [1]}', 'Te 0/1'],
            'vlan_information': '{"20": {}}',
        })
        self.assertEqual([{'untagged_vlans': [1]}, 'Te 0/1'],
                         facts['interfaces'])
        self.assertEqual({'20': {}}, facts['vlan_information'])
        self.assertEqual({}, facts['remote_device_info'])


class TestSwitchResource(TestCase):
    def create(self, inventory, **context_options):
        context = make_context(devices=[inventory], **context_options)
        switches = Switch.create_from_inventory(inventory, context)
        self.assertEqual(1, len(switches))
        return switches[0]

    def test_configure_from_inventory(self) -> None:
        switch = self.create(
            make_switch_inventory(FORCE10, model='PowerEdge-MXL'),
            device_configs={FORCE10: DeviceConfig(
                'dell_ftos', host='172.17.0.1', url='ssh://admin@172.17.0.1'
            )},
        )

        self.assertIsInstance(switch.provider, Force10Switch)
        self.assertEqual(FORCE10, switch.certname)
        self.assertEqual(FORCE10, switch.id)
        self.assertEqual(FORCE10, switch.provider.uuid)
        self.assertEqual('172.17.0.1', switch.provider['ipAddress'])
        self.assertEqual('ssh://admin@172.17.0.1', switch.connection_url)
        self.assertEqual('172.17.0.1', switch.management_ip)
        self.assertTrue(switch.rack_switch)
        self.assertTrue(switch.blade_switch)
        self.assertFalse(switch.san_switch)
        self.assertEqual('device', switch.provider.run_type)
        self.assertTrue(switch.should_inventory())

    def test_blade_switch_builders(self) -> None:
        ioa = self.create(make_switch_inventory(
            IOM, model='PowerEdge-M I/O Aggregator', ip='172.17.9.171'))
        self.assertFalse(ioa.rack_switch)
        self.assertTrue(ioa.blade_switch)
        self.assertIsInstance(ioa.provider.builder, Force10BladeIoaBuilder)

        mxl = self.create(make_switch_inventory(
            'dell_iom-172.17.9.172', model='MXL-10/40GbE', ip='172.17.9.172'))
        self.assertIsInstance(mxl.provider.builder, Force10BladeMxlBuilder)

    def test_blade_switch_process(self) -> None:
        executor = RecordingExecutor()
        switch = self.create(make_switch_inventory(
            IOM, model='PowerEdge-M I/O Aggregator', ip='172.17.9.171'),
            executor=executor)

        switch.provider.builder.configure_interface_vlan('Te 0/3', 20, False)
        switch.process()

        self.assertEqual(1, len(executor.calls))
        _, resources, _ = executor.calls[0]
        self.assertEqual('20',
                         resources['ioa_interface']['Te 0/3']['vlan_untagged'])

    def test_unclaimed_inventory(self) -> None:
        inventory = make_switch_inventory('brocade-172.17.0.5')
        context = make_context(devices=[inventory])
        self.assertEqual([], Switch.create_from_inventory(inventory, context))

    def test_generic_switch(self) -> None:
        switch = self.create(make_switch_inventory(
            'cisco-172.17.0.4', device_type='genericswitch'))
        self.assertIsInstance(switch.provider, GenericSwitch)
        self.assertTrue(switch.rack_switch)

        with self.assertRaises(ConfigurationError):
            switch.provider.builder

    def test_process_removes_before_adding(self) -> None:
        executor = RecordingExecutor()
        switch = self.create(make_switch_inventory(FORCE10),
                             executor=executor)

        builder = switch.provider.builder
        builder.configure_interface_vlan('Te 0/1', 20, False)
        builder.configure_interface_vlan('Te 0/2', 1, False, remove=True)
        switch.process()

        self.assertEqual(2, len(executor.calls))
        (first_cert, removed, run_type), (_, added, _) = executor.calls
        self.assertEqual(FORCE10, first_cert)
        self.assertEqual('device', run_type)
        self.assertEqual(['Te 0/2'], list(removed['force10_interface']))
        self.assertNotIn('force10_vlan', removed)
        self.assertEqual(['Te 0/1'], list(added['force10_interface']))
        self.assertIn('20', added['force10_vlan'])

        # staged ports are dropped once processed
        self.assertEqual({}, switch.provider.additional_resources())
        switch.process()
        self.assertEqual(2, len(executor.calls))

    def test_process_resets_ports_on_failure(self) -> None:
        executor = RecordingExecutor(failures={FORCE10: RuntimeError('down')})
        switch = self.create(make_switch_inventory(FORCE10),
                             executor=executor)

        switch.provider.builder.configure_interface_vlan('Te 0/1', 20, False)
        with self.assertRaises(ResourceError):
            switch.process()
        self.assertEqual({}, switch.provider.additional_resources())

    def test_vlan_information(self) -> None:
        switch = self.create(make_switch_inventory(FORCE10), facts={FORCE10: {
            'vlan_information': '{"20": {"untagged_tengigabit": "Te 0/1"}}',
        }})
        self.assertEqual({'20': {'untagged_tengigabit': 'Te 0/1'}},
                         switch.vlan_information)
        self.assertEqual({}, switch.portchannel_members)

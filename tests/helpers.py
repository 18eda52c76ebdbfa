"""
Builders for the deployment data used across the tests.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from frozendict import frozendict

from dcorch.config import DeploymentContext, OrchestratorConfig
from dcorch.stores import (
    InMemoryFactStore,
    RecordingExecutor,
    StaticDeviceInventory,
)


def make_network(network_id: str, network_type: str, vlan_id: int,
                 name: Optional[str] = None) -> Dict[str, Any]:
    return {'id': network_id, 'name': name or network_type,
            'type': network_type, 'vlanId': vlan_id, 'static': False}


def make_partition(fqdd: str, mac: Optional[str], *networks,
                   name: str = '1') -> Dict[str, Any]:
    return {'name': name, 'fqdd': fqdd, 'mac_address': mac,
            'networkObjects': list(networks)}


def make_port(name: str, *partitions) -> Dict[str, Any]:
    return {'id': name, 'name': name, 'partitioned': len(partitions) > 1,
            'partitions': list(partitions)}


def make_card(card_id: str, *ports,
              product: str = 'Broadcom 57810') -> Dict[str, Any]:
    return {'id': card_id, 'fabrictype': 'ethernet', 'nictype': '2',
            'enabled': True, 'nicInfo': {'product': product, 'vendor': ''},
            'interfaces': list(ports)}


def make_network_config(*cards) -> Dict[str, Any]:
    return {'id': 'netconfig', 'interfaces': list(cards)}


def param(param_id: str, value: Any,
          param_type: str = 'STRING') -> Dict[str, Any]:
    p = {'id': param_id, 'type': param_type}
    if param_type == 'NETWORKCONFIGURATION':
        p['networkConfiguration'] = value
    else:
        p['value'] = value
    return p


def make_resource(resource_id: str, title: str, *params) -> Dict[str, Any]:
    return {'id': resource_id,
            'parameters': [param('title', title)] + list(params)}


def make_component(component_id: str,
                   certname: str,
                   component_type: str,
                   resources: List[Mapping[str, Any]],
                   related: Iterable[str] = (),
                   **extra) -> Dict[str, Any]:
    component = {'id': component_id,
                 'puppetCertName': certname,
                 'type': component_type,
                 'name': certname,
                 'teardown': False,
                 'brownfield': False,
                 'relatedComponents': {r: r for r in related},
                 'resources': list(resources)}
    component.update(extra)
    return component


def make_server_component(component_id: str,
                          certname: str,
                          os_image_type: Optional[str] = None,
                          network_config: Optional[Mapping] = None,
                          related: Iterable[str] = (),
                          target_boot_device: Optional[str] = None,
                          **extra) -> Dict[str, Any]:
    server_params = []
    if os_image_type is not None:
        server_params.append(param('os_image_type', os_image_type))
    resources = [make_resource('asm::server', certname, *server_params)]

    if network_config is not None:
        resources.append(make_resource(
            'asm::esxiscsiconfig', certname,
            param('network_configuration', network_config,
                  'NETWORKCONFIGURATION')
        ))

    if target_boot_device is not None:
        resources.append(make_resource(
            'asm::idrac', certname,
            param('target_boot_device', target_boot_device)
        ))

    return make_component(component_id, certname, 'SERVER', resources,
                          related, **extra)


def make_switch_inventory(ref_id: str,
                          model: str = 'PowerEdge S4810',
                          state: str = 'MANAGED',
                          device_type: str = 'dellswitch',
                          ip: str = '172.17.0.1') -> Dict[str, Any]:
    return {'refId': ref_id, 'ipAddress': ip, 'model': model,
            'deviceType': device_type, 'state': state,
            'displayName': ref_id}


def make_service_data(*components) -> Dict[str, Any]:
    return {'id': 'service-1', 'deploymentName': 'Test deployment',
            'serviceTemplate': {'components': list(components)}}


def make_context(devices: Iterable[Mapping[str, Any]] = (),
                 facts: Optional[Mapping[str, Mapping[str, Any]]] = None,
                 executor: Optional[RecordingExecutor] = None,
                 sleep=None,
                 registry=None,
                 device_configs=None,
                 **config) -> DeploymentContext:
    cfg = OrchestratorConfig(device_configs=frozendict(device_configs or {}),
                             **config)
    return DeploymentContext(cfg,
                             InMemoryFactStore(facts or {}),
                             StaticDeviceInventory(devices),
                             executor or RecordingExecutor(),
                             registry=registry,
                             deployment_id='test',
                             sleep=sleep or (lambda secs: None))

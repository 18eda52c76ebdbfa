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
Components are the external description of one device in a deployment::

    {"id": "ID1", "puppetCertName": "rackserver-5xbc5y1", "type": "SERVER",
     "name": "Server 1", "teardown": false, "brownfield": false,
     "relatedComponents": {"ID2": "Switch 1"},
     "resources": [
        {"id": "asm::server",
         "parameters": [{"id": "title", "value": "rackserver-5xbc5y1"},
                        {"id": "os_host_name", "value": "host1"}]}]}
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError
from .providers.base import ResourceMap

# component types whose category differs from the lower cased type
COMPONENT_CATEGORIES = {
    'STORAGE': 'volume',
}


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == 'true'


def category_for(component_type: str) -> str:
    return COMPONENT_CATEGORIES.get(component_type, component_type.lower())


def _parameter_value(param: Mapping[str, Any]) -> Any:
    param_type = param.get('type')
    if param_type == 'NETWORKCONFIGURATION':
        keys = ('networkConfiguration', 'networks')
    elif param_type in ('LIST', 'ENUMERATED'):
        keys = ('networks', 'value')
    elif param_type == 'BOOLEAN':
        value = param.get('value')
        return None if value is None else to_boolean(value)
    elif param_type == 'RAIDCONFIGURATION':
        keys = ('raidConfiguration',)
    else:
        keys = ('value',)

    for key in keys:
        if param.get(key) is not None:
            return param[key]
    return None


def build_configuration(resources: List[Mapping[str, Any]],
                        decrypt: bool = False) -> ResourceMap:
    """
    Builds the ``protocolType -> title -> parameters`` map of a list of
    component resources.

    Read only parameters and parameters without a value are skipped.
    Parameter names are lower cased except for BIOS settings.

    Raises
    ------
    ConfigurationError
        If a resource has no parameters or no title, or when two resources
        share a type and title.
    """
    configuration: ResourceMap = {}

    for resource in resources:
        resource_type = resource['id'].lower()
        params = resource.get('parameters')
        if params is None:
            raise ConfigurationError(f'Resource of type {resource_type} has '
                                     f'no parameters')

        values = {}
        for param in params:
            if param.get('readOnly'):
                continue

            value = _parameter_value(param)
            if value is not None:
                name = param['id']
                if resource['id'] != 'asm::bios':
                    name = name.lower()
                values[name] = value

            if param.get('value') and param.get('type') == 'PASSWORD':
                values['decrypt'] = decrypt

        title = values.pop('title', None)
        if resource_type == 'class':
            title = resource['id']

        if not title:
            raise ConfigurationError(f'Component has resource {resource_type} '
                                     f'with no title')

        instances = configuration.setdefault(resource_type, {})
        if title in instances:
            raise ConfigurationError(f'Resource {resource_type}/{title} '
                                     f'already existed in the configuration')
        instances[title] = values

    return configuration


class ComponentResource:
    """
    One resource of a component, like its ``asm::idrac`` settings.
    """

    def __init__(self, component: Component, raw: Mapping[str, Any]):
        self.component = component
        self._raw = raw
        self.configuration = build_configuration([raw])

    @property
    def id(self) -> str:
        return self._raw['id']

    @property
    def title(self) -> str:
        return next(iter(self.configuration[self.id.lower()]))

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.configuration[self.id.lower()][self.title]

    def __getitem__(self, name: str) -> Any:
        return self.parameters.get(name)

    def __repr__(self) -> str:
        return f'<ComponentResource id: {self.id} title: {self.title}>'


class Component:
    def __init__(self,
                 raw: Mapping[str, Any],
                 service=None,
                 decrypt: bool = False):
        self._raw = copy.deepcopy(dict(raw))
        self._raw.setdefault('relatedComponents', {})
        self._raw.setdefault('resources', [])
        self.service = service
        self.decrypt = decrypt
        self._resources: Optional[List[ComponentResource]] = None

    @staticmethod
    def for_device(ref_id: str,
                   component_type: str,
                   service=None) -> Component:
        """
        A resource-less component for devices that only exist in inventory,
        like switches.
        """
        return Component({'id': ref_id,
                          'puppetCertName': ref_id,
                          'type': component_type,
                          'relatedComponents': {},
                          'resources': []}, service)

    def __repr__(self) -> str:
        return (f'<Component name: {self.name} type: {self.type} '
                f'id: {self.id}>')

    @property
    def id(self) -> str:
        return self._raw['id']

    @property
    def certname(self) -> Optional[str]:
        return self._raw.get('puppetCertName')

    @property
    def type(self) -> str:
        return self._raw.get('type', '')

    @property
    def category(self) -> str:
        return category_for(self.type)

    @property
    def name(self) -> Optional[str]:
        return self._raw.get('name')

    @property
    def guid(self) -> Optional[str]:
        return self._raw.get('asmGUID')

    @property
    def teardown(self) -> bool:
        return bool(self._raw.get('teardown'))

    @property
    def brownfield(self) -> bool:
        return bool(self._raw.get('brownfield'))

    @property
    def resources(self) -> List[ComponentResource]:
        if self._resources is None:
            self._resources = [ComponentResource(self, r)
                               for r in self._raw['resources']]
        return self._resources

    @property
    def resource_ids(self) -> List[str]:
        return [r.id for r in self.resources]

    def resource_by_id(self, resource_id: str) -> Optional[ComponentResource]:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def related_component_ids(self) -> List[str]:
        return list(self._raw['relatedComponents'])

    def add_relation(self, component: Component) -> None:
        self._raw['relatedComponents'][component.id] = component.name

    def configuration(self) -> ResourceMap:
        return build_configuration(self._raw['resources'], self.decrypt)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._raw)

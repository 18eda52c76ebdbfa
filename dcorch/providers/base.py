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
Base class for hardware specific providers.

A provider owns the validated properties of one resource and knows how to
turn them into the ``protocolType -> instanceId -> properties`` map the
configuration executor consumes.
"""

from __future__ import annotations

import copy
import json
import weakref
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from ..errors import ConfigurationError, StateError
from ..properties import PropertyStore

RUN_TYPES = ('apply', 'device')
OUTPUT_TAG = 'puppet'

JsonFact = Union[str, Tuple[str, Any]]
ResourceMap = Dict[str, Dict[str, Dict[str, Any]]]


class Provider(PropertyStore):
    provider_name: ClassVar[str] = ''
    protocol_types: ClassVar[Tuple[str, ...]] = ()
    run_type: ClassVar[str] = 'apply'
    json_facts: ClassVar[Tuple[JsonFact, ...]] = ()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.run_type not in RUN_TYPES:
            raise ConfigurationError(
                f'Invalid run type {cls.run_type!r} on {cls.__name__}, '
                f'should be one of {", ".join(RUN_TYPES)}'
            )

    def __init__(self, resource=None):
        super(Provider, self).__init__()
        self.uuid: Optional[str] = None
        self._resource_ref = None
        if resource is not None:
            self.attach(resource)

    def attach(self, resource) -> None:
        self._resource_ref = weakref.ref(resource)

    @property
    def resource(self):
        if self._resource_ref is None:
            raise StateError(
                f'{type(self).__name__} has not been attached to a resource'
            )

        resource = self._resource_ref()
        if resource is None:
            raise StateError(
                f'The resource owning {type(self).__name__} no longer exists'
            )
        return resource

    @property
    def logger(self):
        return self.resource.logger

    @property
    def protocol_type(self) -> str:
        if not self.protocol_types:
            raise ConfigurationError(
                f'{type(self).__name__} does not declare a protocol type'
            )
        return self.protocol_types[0]

    @property
    def debug(self) -> bool:
        return self.resource.debug

    @property
    def facts(self) -> Dict[str, Any]:
        return self.resource.facts

    def __repr__(self) -> str:
        try:
            certname = self.resource.certname
        except StateError:
            certname = None
        return (f'<{type(self).__name__} uuid: {self.uuid} '
                f'type: {self.protocol_types[:1]} certname: {certname}>')

    def configure(self, config: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Configures the provider from an ``{instance_id: {property: value}}``
        mapping, then runs :meth:`configure_hook`.
        """
        for uuid, values in config.items():
            self.uuid = uuid
            self.merge(values)

        self.configure_hook()
        self.logger.debug(f'Configured {type(self).__name__} provider with '
                          f'resource {self.uuid} for {self.protocol_types}')

    def configure_hook(self) -> None:
        pass

    def normalize_facts(self, raw_facts: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Decodes the facts listed in :attr:`json_facts` that hold JSON text.

        Facts listed with a list default that hold a string not starting with
        ``[`` are wrapped in a list instead of parsed.
        """
        if not isinstance(raw_facts, Mapping):
            raise StateError(f'Facts have to be a mapping, got '
                             f'{type(raw_facts).__name__}')

        facts = dict(raw_facts)
        seen = set()
        for fact in self.json_facts:
            name, default = fact if isinstance(fact, tuple) else (fact, {})
            if name in seen:
                continue
            seen.add(name)

            value = facts.get(name)
            if isinstance(value, str):
                if isinstance(default, list) and not value.startswith('['):
                    value = [value]
                else:
                    value = json.loads(value)

            if value is None:
                value = copy.deepcopy(default)
            facts[name] = value
        return facts

    def additional_resources(self) -> ResourceMap:
        return {}

    def materialize(self) -> ResourceMap:
        """
        Builds the resource map handed to the executor.

        The owning resource's component configuration is overridden by this
        provider's own output properties, which are in turn overridden by
        :meth:`additional_resources`. An empty map means there is nothing to
        run.
        """
        resources: ResourceMap = {}
        if self.properties(OUTPUT_TAG):
            resources.update(self.resource.component_configuration())
            resources[self.protocol_type] = {
                self.uuid: self.to_dict(exclude_none=True, tags=OUTPUT_TAG)
            }

        additional = self.additional_resources()
        if additional:
            resources.update(additional)
        return resources

    def should_inventory(self) -> bool:
        if self.debug or self.run_type == 'device':
            return True

        if self.run_type == 'apply':
            device_config = self.resource.device_config
            if device_config is not None and device_config.provider == 'script':
                return True
        return False

    def update_inventory(self) -> None:
        resource = self.resource
        self.logger.info(f'Updating inventory data for {resource.certname}')
        if not self.debug:
            resource.context.inventory.refresh(resource.certname)

    def prepare_for_teardown(self) -> bool:
        return True

    def supports_volume(self, volume) -> bool:
        return True

    def supports_server(self, server) -> bool:
        return True

    def supports_cluster(self, cluster) -> bool:
        return True

    def supports_virtual_machine(self, vm) -> bool:
        return True

    def supports_switch(self, switch) -> bool:
        return True

    def supports_controller(self, controller) -> bool:
        return False

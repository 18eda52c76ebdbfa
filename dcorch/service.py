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
The service graph: the components of a deployment, the resources built from
them and the relations between them.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterator, List, Mapping, Optional

from loguru import logger

from .component import Component
from .resources import Resource, resource_class
from .switch_collection import SwitchCollection

UNSUPPORTED_COMPONENT_TYPES = ('SERVICE',)


class Service:
    """
    A deployment: its components, one resource per supported component and
    the switch collection built from inventory.

    Parameters
    ----------
    raw
        Deployment data with components under ``serviceTemplate``.
    context
        The :class:`~dcorch.config.DeploymentContext` of this run.
    """

    def __init__(self, raw: Mapping[str, Any], context):
        self._raw = raw
        self.context = context
        self._lock = threading.RLock()

        template = raw.get('serviceTemplate') or {}
        self.components = [Component(c, self)
                           for c in template.get('components', [])]

        self.switch_collection = SwitchCollection(self)

        self._resources: List[Resource] = []
        self._by_id: Dict[str, Resource] = {}
        for component in self.components:
            if component.type in UNSUPPORTED_COMPONENT_TYPES:
                logger.debug(f'Skipping unsupported component {component}')
                continue

            resource = resource_class(component.category).create(
                component, context, service=self
            )
            self._resources.append(resource)
            self._by_id[resource.id] = resource

    def __repr__(self) -> str:
        return f'<Service name: {self.deployment_name} id: {self.id}>'

    @property
    def id(self) -> Optional[str]:
        return self._raw.get('id')

    @property
    def deployment_name(self) -> Optional[str]:
        return self._raw.get('deploymentName')

    @property
    def teardown(self) -> bool:
        return bool(self._raw.get('teardown'))

    @property
    def retry(self) -> bool:
        return bool(self._raw.get('retry'))

    @property
    def debug(self) -> bool:
        return self.context.debug

    @property
    def resources(self) -> List[Resource]:
        return list(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def component_by_id(self, component_id: str) -> Optional[Component]:
        for component in self.components:
            if component.id == component_id:
                return component

        # switches are discovered from inventory
        switch = self.switch_collection.switch_by_id(component_id)
        return switch.component if switch is not None else None

    def components_by_type(self, component_type: str) -> List[Component]:
        return [c for c in self.components if c.type == component_type]

    def resource_by_id(self, component_id: str) -> Optional[Resource]:
        resource = self._by_id.get(component_id)
        if resource is None:
            resource = self.switch_collection.switch_by_id(component_id)
        return resource

    def resource_by_certname(self, certname: str) -> Optional[Resource]:
        for resource in self._resources:
            if resource.certname == certname:
                return resource
        return self.switch_collection.switch_by_certname(certname)

    def resources_by_category(self, category: str) -> List[Resource]:
        return [r for r in self._resources if r.category == category.lower()]

    @property
    def servers(self) -> List[Resource]:
        return self.resources_by_category('server')

    def related_component_ids(self, component: Component,
                              category: Optional[str] = None) -> List[str]:
        """
        Ids of the components related to a component, optionally only those
        of a resource category.
        """
        ids = []
        with self._lock:
            related = component.related_component_ids()

        for component_id in related:
            other = self.component_by_id(component_id)
            if other is None:
                continue
            if category is None or other.category == category.lower():
                ids.append(component_id)
        return ids

    def add_relation(self, component: Component, other: Component) -> None:
        with self._lock:
            component.add_relation(other)

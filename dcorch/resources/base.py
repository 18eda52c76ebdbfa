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
Resources wrap a deployment component and the provider handling it.

The provider is built lazily the first time it is needed and at most once,
even when several threads ask for it at the same time.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, ClassVar, Dict, List, Optional, TypeVar

from loguru import logger

from ..errors import ResourceError, ResourceLookupError, StateError
from ..providers.base import ResourceMap

UNMANAGED_STATES = ('UNMANAGED', 'RESERVED')

T = TypeVar('T')


class Resource:
    category: ClassVar[str] = ''

    def __init__(self,
                 component,
                 provider_class: type,
                 provider_config: Any,
                 context,
                 service=None):
        self.component = component
        self.provider_class = provider_class
        self.provider_config = provider_config
        self.context = context
        self.service = service

        self._certname: Optional[str] = component.certname
        self.logger = logger.bind(certname=self._certname)

        self._provider = None
        self._provider_lock = threading.Lock()
        self._facts: Optional[Dict[str, Any]] = None
        self._inventory: Optional[Dict[str, Any]] = None
        self._cache_lock = threading.RLock()

    @classmethod
    def create(cls, component, context, service=None) -> Resource:
        """
        Builds a resource for a component, using the provider of the first
        component resource the registry knows in this category.

        Raises
        ------
        ResourceLookupError
            If no provider handles any of the component resources.
        """
        registry = context.registry
        configuration = component.configuration()

        for resource_id in component.resource_ids:
            try:
                provider_class = registry.resolve(cls.category, resource_id)
            except ResourceLookupError:
                continue

            return cls(component, provider_class,
                       configuration.get(resource_id.lower(), {}),
                       context, service)

        raise ResourceLookupError(
            f'Could not find a provider to handle configuration for '
            f'{component!r} with resources '
            f'{", ".join(component.resource_ids)} using {cls.__name__}'
        )

    def __repr__(self) -> str:
        return f'<{type(self).__name__}:{self.provider_path} {self.certname}>'

    @property
    def provider(self):
        provider = self._provider
        if provider is None:
            with self._provider_lock:
                if self._provider is None:
                    self._provider = self.build_provider()
                provider = self._provider
        return provider

    def build_provider(self):
        provider = self.provider_class(self)
        provider.configure(self.provider_config)
        return provider

    @property
    def provider_name(self) -> str:
        return self.provider_class.provider_name

    @property
    def provider_path(self) -> str:
        return f'{self.category}/{self.provider_name}'

    @property
    def id(self) -> str:
        return self.component.id

    @property
    def name(self) -> Optional[str]:
        return self.component.name

    @property
    def guid(self) -> Optional[str]:
        return self.component.guid

    @property
    def teardown(self) -> bool:
        return self.component.teardown

    @property
    def brownfield(self) -> bool:
        return self.component.brownfield

    @property
    def certname(self) -> Optional[str]:
        return self._certname

    @certname.setter
    def certname(self, certname: str) -> None:
        self._certname = certname
        self.logger = logger.bind(certname=certname)

    @property
    def debug(self) -> bool:
        return self.context.debug

    @property
    def device_config(self):
        return self.context.device_config(self.certname)

    @property
    def management_ip(self) -> Optional[str]:
        device_config = self.device_config
        return device_config.host if device_config is not None else None

    def component_configuration(self) -> ResourceMap:
        return self.component.configuration()

    def delegate(self, target: Any, operation: str, *args, **kwargs) -> Any:
        self.logger.debug(f'{self!r} calling delegated method {operation} on '
                          f'{target!r}')
        return getattr(target, operation)(*args, **kwargs)

    def do_with_retry(self,
                      tries: int,
                      sleep_seconds: float,
                      fail_message: str,
                      body: Callable[[], T],
                      sleep: Optional[Callable[[float], None]] = None) -> T:
        """
        Calls body until it succeeds or has failed tries times.

        Parameters
        ----------
        tries
            Total number of attempts.
        sleep_seconds
            Time to wait between attempts.
        fail_message
            Logged with the error after every failed attempt.
        body
            Zero argument callable to run.
        sleep
            Sleep function, the one of the deployment context by default.

        Returns
        -------
        Any
            What body returned.

        Raises
        ------
        Exception
            The error of the last attempt, unchanged.
        """
        sleep = sleep or self.context.sleep

        while True:
            try:
                return body()
            except Exception as e:
                self.logger.warning(f'{fail_message} sleeping for '
                                    f'{sleep_seconds}: {type(e).__name__}: '
                                    f'{e}')
                tries -= 1
                if tries <= 0:
                    raise
                sleep(sleep_seconds)

    # facts and inventory
    def _load_facts(self) -> Dict[str, Any]:
        raw = self.context.facts.read(self.certname)
        return self.provider.normalize_facts(raw)

    @property
    def facts(self) -> Dict[str, Any]:
        with self._cache_lock:
            if self._facts is None:
                self._facts = self._load_facts()
            return self._facts

    def retrieve_facts(self) -> Dict[str, Any]:
        with self._cache_lock:
            self._facts = self._load_facts()
            return self._facts

    def save_facts(self, facts: Dict[str, Any]) -> None:
        self.context.facts.write(self.certname, facts)
        with self._cache_lock:
            self._facts = self.provider.normalize_facts(facts)

    @property
    def inventory(self) -> Dict[str, Any]:
        with self._cache_lock:
            if self._inventory is None:
                self._inventory = self.context.inventory.fetch(self.certname)
            return self._inventory

    def retrieve_inventory(self) -> Dict[str, Any]:
        with self._cache_lock:
            self._inventory = self.context.inventory.fetch(self.certname)
            return self._inventory

    def valid_inventory(self) -> bool:
        return bool(self.inventory)

    @property
    def managed(self) -> bool:
        return self.inventory.get('state') not in UNMANAGED_STATES

    # relations
    @property
    def switch_collection(self):
        return self._service().switch_collection

    def _service(self):
        if self.service is None:
            raise StateError(f'{self.certname} is not part of a service')
        return self.service

    def related_components(self, category: str) -> List[Resource]:
        """
        Resources of the components related to this one in a category.
        Switches are looked up in the switch collection since they are
        discovered from inventory rather than declared in the service.
        """
        category = category.lower()
        service = self._service()
        ids = service.related_component_ids(self.component, category)

        if category == 'switch':
            lookup = service.switch_collection.switch_by_id
        else:
            lookup = service.resource_by_id

        return [r for r in (lookup(i) for i in ids) if r is not None]

    def related_servers(self) -> List[Resource]:
        return self.related_components('server')

    def related_clusters(self) -> List[Resource]:
        return self.related_components('cluster')

    def related_volumes(self) -> List[Resource]:
        return self.related_components('volume')

    def related_switches(self) -> List[Resource]:
        return self.related_components('switch')

    def related_vms(self) -> List[Resource]:
        return self.related_components('virtualmachine')

    def add_relation(self, other: Resource) -> None:
        if self.service is None:
            self.component.add_relation(other.component)
        else:
            self.service.add_relation(self.component, other.component)

    def supports_resource(self, other: Resource) -> bool:
        self.logger.debug(f'Checking if provider {self.provider_path} '
                          f'supports a resource of provider '
                          f'{other.provider_path}')

        checks = {
            'volume': 'supports_volume',
            'server': 'supports_server',
            'cluster': 'supports_cluster',
            'virtualmachine': 'supports_virtual_machine',
            'controller': 'supports_controller',
            'switch': 'supports_switch',
        }
        if other.category not in checks:
            raise ResourceLookupError(f'Do not know how to check if a '
                                      f'resource of type {other.category} '
                                      f'is supported')
        return getattr(self.provider, checks[other.category])(other)

    def prepare_for_teardown(self) -> bool:
        return self.delegate(self.provider, 'prepare_for_teardown')

    # processing
    def run(self, certname: str, resources: ResourceMap,
            run_type: str) -> Dict[str, Any]:
        """
        Hands a resource map to the executor. Empty maps are never run and
        in debug mode nothing is run at all.

        Raises
        ------
        ResourceError
            If the executor fails, chaining its error.
        """
        if not resources:
            self.logger.debug(f'Nothing to run for {certname}')
            return {}

        if self.debug:
            self.logger.info(f'Would have run {run_type} for {certname} with '
                             f'resources {", ".join(sorted(resources))}')
            return {}

        self.logger.info(f'Running {run_type} for {certname}')
        try:
            return self.context.executor.apply(certname, resources, run_type)
        except Exception as e:
            raise ResourceError(certname, f'{run_type} run', e) from e

    def process(self) -> Dict[str, Any]:
        provider = self.provider
        return self.run(self.certname, provider.materialize(),
                        provider.run_type)

    def should_inventory(self) -> bool:
        return self.provider.should_inventory()

    def update_inventory(self) -> bool:
        """
        Refreshes the inventory of the device if its provider supports it.

        Returns
        -------
        bool
            True if the inventory was refreshed.
        """
        if not self.should_inventory():
            return False

        self.delegate(self.provider, 'update_inventory')
        with self._cache_lock:
            self._inventory = None
        return True

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

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Callable, Dict, Optional, Type, Union

import yaml
from dataclasses_json import dataclass_json
from frozendict import frozendict
from loguru import logger

from .interfaces import DeviceInventory, Executor, FactStore
from .providers import register_builtin_providers
from .providers.registry import ProviderRegistry
from .stores import InMemoryFactStore, StaticDeviceInventory, YamlFactStore
from .topology import NetworkTopologyResolver


@dataclass_json
@dataclass(frozen=True, eq=True)
class DeviceConfig:
    provider: str
    host: Optional[str] = None
    url: Optional[str] = None


@dataclass_json
@dataclass(frozen=True, eq=True)
class OrchestratorConfig:
    debug: bool = False
    fact_dir: Optional[str] = None
    inventory_path: Optional[str] = None
    retry_tries: int = 3
    retry_sleep_secs: float = 10.0
    inventory_sleep_secs: float = 60.0
    inventory_max_tries: int = 10
    max_workers: int = 8
    device_configs: frozendict[str, DeviceConfig] = field(
        default_factory=frozendict
    )

    def __post_init__(self):
        if self.retry_tries < 1:
            raise ValueError('retry_tries must be at least 1')
        if self.max_workers < 1:
            raise ValueError('max_workers must be at least 1')

    @classmethod
    def from_yaml(
        cls: Type[OrchestratorConfig],
        cfg_path: Union[PathLike, str],
    ) -> OrchestratorConfig:
        cfg_path = Path(cfg_path)

        with cfg_path.open('r') as fp:
            d = yaml.safe_load(fp) or {}

        return cls.from_dict(d)

    def device_config(self, certname: str) -> Optional[DeviceConfig]:
        return self.device_configs.get(certname)


class DeploymentContext:
    """
    Everything one deployment run shares between its resources: the
    configuration, the external collaborators and the per-server network
    topology resolvers.

    The context owns the lifetime of its caches, create a new one for every
    run.
    """

    def __init__(self,
                 config: OrchestratorConfig,
                 facts: FactStore,
                 inventory: DeviceInventory,
                 executor: Executor,
                 registry: Optional[ProviderRegistry] = None,
                 deployment_id: Optional[str] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.facts = facts
        self.inventory = inventory
        self.executor = executor
        self.deployment_id = deployment_id or uuid.uuid4().hex
        self.sleep = sleep

        if registry is None:
            registry = register_builtin_providers(ProviderRegistry())
        self.registry = registry

        self._resolvers: Dict[str, NetworkTopologyResolver] = {}
        self._resolvers_lock = threading.Lock()

    @property
    def debug(self) -> bool:
        return self.config.debug

    @staticmethod
    def from_config(config: OrchestratorConfig,
                    executor: Executor,
                    **kwargs) -> DeploymentContext:
        """
        Builds a context with the file backed stores named in config,
        falling back to in-memory ones.
        """
        if config.fact_dir is not None:
            facts = YamlFactStore(config.fact_dir)
        else:
            facts = InMemoryFactStore()

        if config.inventory_path is not None:
            inventory = StaticDeviceInventory.from_yaml(config.inventory_path)
        else:
            inventory = StaticDeviceInventory()

        return DeploymentContext(config, facts, inventory, executor, **kwargs)

    def device_config(self, certname: str) -> Optional[DeviceConfig]:
        return self.config.device_config(certname)

    def topology_for(self, server):
        """
        The network topology resolver of a server, created on first use.
        """
        with self._resolvers_lock:
            resolver = self._resolvers.get(server.certname)
            if resolver is None:
                logger.debug(f'Creating network topology resolver for '
                             f'{server.certname}')
                resolver = NetworkTopologyResolver(server)
                self._resolvers[server.certname] = resolver
            return resolver

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
Collaborators consumed by the orchestration core, described as protocols.

See :mod:`dcorch.stores` for in-memory and file backed implementations.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Protocol

ResourceMap = Mapping[str, Mapping[str, Mapping[str, Any]]]


class Executor(Protocol):
    def apply(self,
              certname: str,
              resources: ResourceMap,
              run_type: str) -> Dict[str, Any]:
        """
        Applies a non-empty resource map to a device, raising on failure.
        """
        ...


class FactStore(Protocol):
    def read(self, certname: str) -> Dict[str, Any]:
        ...

    def write(self, certname: str, facts: Mapping[str, Any]) -> None:
        ...


class DeviceInventory(Protocol):
    def fetch(self, certname: str) -> Dict[str, Any]:
        """
        Inventory of a single device, an empty dict when unavailable.
        """
        ...

    def managed_devices(self) -> List[Dict[str, Any]]:
        ...

    def refresh(self, certname: str) -> None:
        ...


class ServiceGraph(Protocol):
    switch_collection: Any

    def resource_by_id(self, component_id: str) -> Any:
        ...

    def related_component_ids(self, component: Any, category: str) \
            -> List[str]:
        ...

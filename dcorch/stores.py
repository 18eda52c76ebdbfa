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

import copy
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml
from loguru import logger

from .interfaces import ResourceMap


class InMemoryFactStore:
    def __init__(self, facts: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._lock = threading.Lock()
        self._facts: Dict[str, Dict[str, Any]] = {
            certname: dict(values) for certname, values in (facts or {}).items()
        }

    def read(self, certname: str) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._facts.get(certname, {}))

    def write(self, certname: str, facts: Mapping[str, Any]) -> None:
        with self._lock:
            self._facts[certname] = copy.deepcopy(dict(facts))


class YamlFactStore:
    """
    Stores the facts of every device in its own YAML file, named after the
    certname, inside a directory.
    """

    def __init__(self, directory: Union[str, Path]):
        self._directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, certname: str) -> Path:
        return self._directory / f'{certname}.yaml'

    def read(self, certname: str) -> Dict[str, Any]:
        path = self._path(certname)
        with self._lock:
            if not path.exists():
                logger.debug(f'No facts stored for {certname} in {path}')
                return {}

            with path.open('r') as fp:
                return yaml.safe_load(fp) or {}

    def write(self, certname: str, facts: Mapping[str, Any]) -> None:
        path = self._path(certname)
        with self._lock:
            self._directory.mkdir(parents=True, exist_ok=True)
            with path.open('w') as fp:
                yaml.safe_dump(dict(facts), fp, default_flow_style=False)
        logger.debug(f'Wrote facts for {certname} to {path}')


class StaticDeviceInventory:
    """
    Device inventory from a fixed list of device records, optionally backed
    by a YAML file holding a list of such records under ``devices``.

    Records are matched on their ``refId``.
    """

    def __init__(self,
                 devices: Iterable[Mapping[str, Any]] = (),
                 path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._devices: List[Dict[str, Any]] = [dict(d) for d in devices]

    @staticmethod
    def from_yaml(path: Union[str, Path]) -> StaticDeviceInventory:
        inventory = StaticDeviceInventory(path=path)
        inventory.reload()
        return inventory

    def reload(self) -> None:
        if self._path is None:
            return

        with self._path.open('r') as fp:
            data = yaml.safe_load(fp) or {}

        with self._lock:
            self._devices = [dict(d) for d in data.get('devices', [])]
        logger.debug(f'Loaded {len(self._devices)} devices from {self._path}')

    def fetch(self, certname: str) -> Dict[str, Any]:
        with self._lock:
            for device in self._devices:
                if device.get('refId') == certname:
                    return copy.deepcopy(device)
        return {}

    def managed_devices(self) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._devices)

    def refresh(self, certname: str) -> None:
        self.reload()


class RecordingExecutor:
    """
    Executor that only records what it was asked to apply.

    Parameters
    ----------
    result
        Returned from every successful :meth:`apply`.
    failures
        Maps certnames to exceptions raised when applying to them.
    """

    def __init__(self,
                 result: Optional[Mapping[str, Any]] = None,
                 failures: Optional[Mapping[str, Exception]] = None):
        self._lock = threading.Lock()
        self._result = dict(result or {})
        self._failures = dict(failures or {})
        self.calls: List[Tuple[str, ResourceMap, str]] = []

    def apply(self,
              certname: str,
              resources: ResourceMap,
              run_type: str) -> Dict[str, Any]:
        with self._lock:
            self.calls.append((certname, copy.deepcopy(resources), run_type))

        logger.info(f'Recorded {run_type} run for {certname} with '
                    f'{len(resources)} resource types')
        if certname in self._failures:
            raise self._failures[certname]
        return dict(self._result)

    def certnames(self) -> List[str]:
        with self._lock:
            return [certname for certname, _, _ in self.calls]

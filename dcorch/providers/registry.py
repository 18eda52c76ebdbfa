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

from collections import defaultdict
from typing import Callable, Dict, List, Type, TypeVar

from loguru import logger

from ..errors import ResourceLookupError

ProviderClass = TypeVar('ProviderClass', bound=type)


class ProviderRegistry:
    """
    Explicit table of provider classes, grouped by resource category.

    Categories are the lower case resource kinds ('server', 'switch',
    'volume', ...). Within a category classes are kept in registration
    order, which is also the order :meth:`resolve` searches them in.
    """

    def __init__(self):
        self._providers: Dict[str, List[type]] = defaultdict(list)

    def register(self, category: str, cls: type) -> type:
        category = category.lower()
        if cls in self._providers[category]:
            return cls

        logger.debug(f'Registering provider {cls.__name__} for {category} '
                     f'handling {", ".join(cls.protocol_types)}')
        self._providers[category].append(cls)
        return cls

    def provider(self, category: str) -> Callable[[ProviderClass],
                                                  ProviderClass]:
        """
        Class decorator registering the decorated provider under category.
        """

        def _register(cls: ProviderClass) -> ProviderClass:
            return self.register(category, cls)

        return _register

    def select(self, category: str, predicate: Callable[[type], bool]) \
            -> List[type]:
        return [cls for cls in self._providers.get(category.lower(), [])
                if predicate(cls)]

    def resolve(self, category: str, protocol_type: str) -> Type:
        """
        Finds the provider class handling a protocol type.

        Parameters
        ----------
        category
            Resource category to search in.
        protocol_type
            Name of the protocol type, for example 'asm::server'.

        Returns
        -------
        type
            The first class registered in the category declaring the
            protocol type.

        Raises
        ------
        ResourceLookupError
            If no provider in the category handles the protocol type.
        """

        matches = self.select(category,
                              lambda cls: protocol_type in cls.protocol_types)
        if not matches:
            raise ResourceLookupError(
                f'Could not find a {category} provider for resource type '
                f'{protocol_type!r}'
            )
        return matches[0]

    def categories(self) -> List[str]:
        return sorted(c for c, classes in self._providers.items() if classes)

    def __contains__(self, cls: object) -> bool:
        return any(cls in classes for classes in self._providers.values())

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
Validated, tagged property schemas and the value stores built on them.

A :class:`PropertySet` is declared once per provider class and lists its
:class:`PropertyDefinition` entries. Every provider instance then holds its
own values in a :class:`PropertyStore`, seeded with deep copies of the
declared defaults.

Usage example::

    class Example(PropertyStore):
        schema = PropertySet(
            PropertyDefinition('ensure', default='present',
                               validation=['present', 'absent']),
            PropertyDefinition('hosts', default_factory=list,
                               validation=list),
            PropertyDefinition('address', validation=Check.IPV4,
                               tags=('puppet', 'inventory')),
        )

    ex = Example()
    ex.set('ensure', 'absent')
    ex.properties(['inventory'])  # ['address']
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .errors import ConfigurationError, ResourceLookupError
from .validators import describe, validate

DEFAULT_TAGS: FrozenSet[str] = frozenset({'puppet'})

PrefetchHook = Callable[[Any], None]
Munger = Callable[[Any, Any, Any], Any]
UpdateHook = Callable[[Any, Any], None]


def _as_tags(tags: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    if tags is None:
        return frozenset()
    elif isinstance(tags, str):
        return frozenset({tags})
    return frozenset(tags)


@dataclass(frozen=True)
class PropertyDefinition:
    """
    Static definition of a single property.

    name
        Unique within the schema.
    default
        Value returned before anything is set. Deep copied into every store.
    default_factory
        Zero argument callable producing the default, overrides default.
    validation
        Anything :func:`dcorch.validators.validate` accepts, or None.
    tags
        Tags used to select properties for output, defaults to puppet.
    prefetch
        Called with the store before every :meth:`PropertyStore.get`, used
        for lazy population.
    munger
        Called with (store, old, new) on assignment; its return value is
        what gets validated and stored.
    on_update
        Called with (store, old) after a value has been stored.
    """

    name: str
    default: Any = None
    default_factory: Optional[Callable[[], Any]] = None
    validation: Any = None
    tags: FrozenSet[str] = DEFAULT_TAGS
    prefetch: Optional[PrefetchHook] = field(default=None, compare=False)
    munger: Optional[Munger] = field(default=None, compare=False)
    on_update: Optional[UpdateHook] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'tags', _as_tags(self.tags))

    def default_value(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return copy.deepcopy(self.default)

    def is_default(self, value: Any) -> bool:
        if self.default_factory is not None:
            return value == self.default_factory()
        return value == self.default

    def check(self, value: Any) -> None:
        """
        Validates a value for this property.

        Values equal to the default are never validated, this allows None
        defaults for properties that are strictly validated once assigned.

        Raises
        ------
        ConfigurationError
            If the value fails validation.
        """
        if self.validation is None or self.is_default(value):
            return

        if value is None:
            raise ConfigurationError(
                f'{self.name} should be {describe(self.validation)} '
                f'but got None'
            )

        ok, reason = validate(value, self.validation)
        if not ok:
            raise ConfigurationError(
                f'{self.name} failed to validate against '
                f'{describe(self.validation)}: {reason}, got {value!r}'
            )


class PropertySet(Mapping[str, PropertyDefinition]):
    """
    Ordered schema of property definitions.
    """

    def __init__(self,
                 *definitions: PropertyDefinition,
                 parent: Optional[PropertySet] = None):
        self._definitions: Dict[str, PropertyDefinition] = {}
        if parent is not None:
            self._definitions.update(parent._definitions)

        for definition in definitions:
            self.add(definition)

    def add(self, definition: PropertyDefinition) -> PropertyDefinition:
        if definition.name in self._definitions:
            raise ConfigurationError(
                f'Already have a property {definition.name}'
            )
        self._definitions[definition.name] = definition
        return definition

    def define(self, name: str, default: Any = None, **kwargs: Any) \
            -> PropertyDefinition:
        """
        Creates and adds a definition, see :class:`PropertyDefinition` for
        the accepted keyword arguments.
        """
        return self.add(PropertyDefinition(name, default, **kwargs))

    def extend(self, *definitions: PropertyDefinition) -> PropertySet:
        """
        Returns a new schema containing this one plus the given definitions.
        """
        return PropertySet(*definitions, parent=self)

    def lookup(self, name: str) -> PropertyDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise ResourceLookupError(f'No such property: {name}')

    def names(self, tags: Union[str, Iterable[str], None] = None) \
            -> List[str]:
        """
        Sorted property names. When tags are given only those properties
        carrying all of them are returned.
        """
        if tags is None:
            return sorted(self._definitions)

        wanted = _as_tags(tags)
        return sorted(name for name, d in self._definitions.items()
                      if not wanted - d.tags)

    def __getitem__(self, name: str) -> PropertyDefinition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f'PropertySet({", ".join(self._definitions)})'


class PropertyStore:
    """
    Per-instance values for the schema declared on the class.

    Reading through :meth:`get` triggers prefetch hooks while item access
    (``store['name']``) does not, so hooks can read their own property
    without recursing.
    """

    schema: ClassVar[PropertySet] = PropertySet()

    def __init__(self):
        self._values: Dict[str, Any] = {
            name: definition.default_value()
            for name, definition in self.schema.items()
        }

    def get(self, name: str) -> Any:
        definition = self.schema.lookup(name)
        if definition.prefetch is not None:
            definition.prefetch(self)
        return self._values[name]

    def set(self, name: str, value: Any) -> Any:
        definition = self.schema.lookup(name)
        old = self._values[name]

        if definition.munger is not None:
            value = definition.munger(self, old, value)

        definition.check(value)
        self._values[name] = value

        if definition.on_update is not None:
            definition.on_update(self, old)

        return value

    def default_value(self, name: str) -> Any:
        return self.schema.lookup(name).default_value()

    def properties(self, tags: Union[str, Iterable[str], None] = None) \
            -> List[str]:
        return self.schema.names(tags)

    def to_dict(self,
                exclude_none: bool = False,
                tags: Union[str, Iterable[str], None] = None) \
            -> Dict[str, Any]:
        values = {}
        for name in self.properties(tags):
            value = self.get(name)
            if exclude_none and value is None:
                continue
            values[name] = value
        return values

    def merge(self, other: Mapping[str, Any]) -> PropertyStore:
        """
        Shallow merge restricted to the schema: known properties present in
        other are set (and validated), everything else is discarded.
        """
        for name in self.properties():
            if name in other:
                self.set(name, other[name])
        return self

    def __getitem__(self, name: str) -> Any:
        self.schema.lookup(name)
        return self._values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: Any) -> bool:
        return name in self.schema

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        for name in self.properties():
            yield name, self.get(name)

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
Standardised validation of property values.

A validation can be any of:

* a :class:`Check` member - named checks for booleans and IP addresses
* a compiled regular expression - the value must be a string matching it
* a list, tuple, set or frozenset - the value must be one of its members
* a class - the value must be an instance of it
* a callable - the value must make it return a truthy value
* anything else - the value must be equal to it

Every validation returns an ``(ok, reason)`` tuple, where reason is None on
success.
"""

from __future__ import annotations

import enum
import re
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Any, Optional, Tuple

ValidationResult = Tuple[bool, Optional[str]]


class Check(enum.Enum):
    BOOLEAN = 'boolean'
    IPV4 = 'ipv4'
    IPV6 = 'ipv6'
    ANY_IP = 'any-ip'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        # older templates call any-ip 'ipaddress'
        if value == 'ipaddress':
            return cls.ANY_IP
        return None


def _parse_ip(value: Any):
    try:
        return ip_address(str(value))
    except ValueError:
        return None


def _check(value: Any, check: Check) -> ValidationResult:
    if check == Check.BOOLEAN:
        if isinstance(value, bool):
            return True, None
        return False, 'should be boolean'

    addr = _parse_ip(value)
    if check == Check.IPV4:
        if isinstance(addr, IPv4Address):
            return True, None
        return False, 'should be a valid IPv4 address'
    elif check == Check.IPV6:
        if isinstance(addr, IPv6Address):
            return True, None
        return False, 'should be a valid IPv6 address'
    else:
        if addr is not None:
            return True, None
        return False, 'should be a valid IPv4 or IPv6 address'


def validate(value: Any, validation: Any) -> ValidationResult:
    """
    Validates a value against a validation.

    Parameters
    ----------
    value
        The value to check.
    validation
        See the module documentation for accepted validations.

    Returns
    -------
    Tuple
        (True, None) when the value passes, (False, reason) otherwise.
    """

    if isinstance(validation, Check):
        return _check(value, validation)

    elif isinstance(validation, re.Pattern):
        if isinstance(value, str) and validation.search(value):
            return True, None
        return False, f'should match regular expression {validation.pattern!r}'

    elif isinstance(validation, (list, tuple, set, frozenset)):
        # unhashable values cannot be looked up in sets
        if any(value == v for v in validation):
            return True, None
        members = ', '.join(str(v) for v in validation)
        return False, f'should be one of: {members}'

    elif isinstance(validation, type):
        if isinstance(value, validation):
            return True, None
        return False, (f'should be a {validation.__name__} but is a '
                       f'{type(value).__name__}')

    elif callable(validation):
        if validation(value):
            return True, None
        return False, 'should validate against given function'

    if value == validation:
        return True, None
    return False, f'should match {validation!r}'


def describe(validation: Any) -> str:
    """
    Human readable name of a validation, used in error messages.
    """
    if isinstance(validation, re.Pattern):
        return f'/{validation.pattern}/'
    elif isinstance(validation, type):
        return validation.__name__
    elif callable(validation) and not isinstance(validation, Check):
        return getattr(validation, '__name__', repr(validation))
    return str(validation)

# Copyright 2018 Allan Saddi <allan@saddi.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from ._config import PropertyMap


__all__ = ['normalize_profile',
           'PROVIDER']


PROVIDER = 'Cerbere'


def _take(attributes, key):
    """Pops `key` from the working bag. Single-element lists unwrap."""
    if key is None:
        return None
    value = attributes.pop(key, None)
    if isinstance(value, list):
        if not value:
            return None
        if len(value) == 1:
            return value[0]
        return list(value)
    return value


def _display_name(*parts):
    return ' '.join(p for p in parts if isinstance(p, str) and p)


def normalize_profile(subject_id, attributes, property_map):
    """
    Maps a raw attribute bag onto the profile schema described by
    `property_map`.

    Each attribute is consumed by at most one profile field. Attributes
    the property map does not mention are dropped rather than passed
    through.
    """
    if not isinstance(property_map, PropertyMap):
        property_map = PropertyMap(property_map)
    bag = dict(attributes or {})

    user_id = _take(bag, property_map.id)
    if user_id is None:
        user_id = subject_id

    names = property_map.name
    civility = _take(bag, names.civility)
    given_name = _take(bag, names.givenName)
    family_name = _take(bag, names.familyName)
    middle_name = _take(bag, names.middleName)

    profile = {
        'provider': PROVIDER,
        'id': user_id,
        'name': {
            'civility': civility,
            'familyName': family_name,
            'givenName': given_name,
            'middleName': middle_name,
            'displayName': _display_name(civility, given_name, family_name),
        },
        'emails': [{'value': _take(bag, e.key), 'type': e.type}
                   for e in property_map.emails],
        'telephones': [{'value': _take(bag, t.key), 'type': t.type}
                       for t in property_map.telephones],
        'addresses': [],
        'organizations': [],
    }

    for a in property_map.addresses:
        profile['addresses'].append({
            'street': _take(bag, a.street),
            'town': _take(bag, a.town),
            'streetcode': _take(bag, a.streetcode),
            'country': _take(bag, a.country),
            'type': a.type,
        })

    for o in property_map.organizations:
        profile['organizations'].append({
            'code': _take(bag, o.code),
            'name': _take(bag, o.name),
            'type': o.type,
        })

    for field, key in property_map.extras:
        profile[field] = _take(bag, key)

    return profile

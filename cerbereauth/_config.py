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

from collections import namedtuple
from urllib.parse import urlparse

from ._errors import ConfigurationError


__all__ = ['CerbereConfig',
           'PropertyMap',
           'NameMap',
           'ContactKey',
           'AddressKey',
           'OrganizationKey']


NameMap = namedtuple('NameMap', 'civility givenName familyName middleName')

# {key, type} entries of the emails and telephones sections
ContactKey = namedtuple('ContactKey', 'key type')

AddressKey = namedtuple('AddressKey', 'street town streetcode country type')

OrganizationKey = namedtuple('OrganizationKey', 'code name type')


_NAME_FIELDS = NameMap._fields
_ADDRESS_FIELDS = ('street', 'town', 'streetcode', 'country')
_ORGANIZATION_FIELDS = ('code', 'name')

# Sections with a fixed shape. Anything else in a property map is an
# extra scalar field.
_FIXED_SECTIONS = ('id', 'name', 'emails', 'telephones', 'addresses',
                   'organizations')


def _check_key(value, where):
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(
            'propertyMap {} must be an attribute name, not {!r}'.format(
                where, value))
    return value


def _check_list(value, where):
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(
            'propertyMap {} must be a list'.format(where))
    for i, entry in enumerate(value):
        if not isinstance(entry, dict) or 'key' not in entry:
            raise ConfigurationError(
                'propertyMap {}[{}] must be a mapping with a key'.format(
                    where, i))
    return value


def _check_sub_keys(entry, fields, where):
    keys = entry['key']
    if not isinstance(keys, dict):
        raise ConfigurationError(
            'propertyMap {}.key must be a mapping'.format(where))
    unknown = set(keys) - set(fields)
    if unknown:
        raise ConfigurationError(
            'propertyMap {}.key has unknown fields: {}'.format(
                where, ', '.join(sorted(unknown))))
    return [_check_key(keys.get(f), '{}.key.{}'.format(where, f))
            for f in fields]


class PropertyMap(object):
    """
    Translation from raw Cerbere attribute names to profile fields.

    Built from a plain mapping, e.g.

      {
        'id': 'UTILISATEUR.ID',
        'name': {'givenName': 'UTILISATEUR.PRENOM',
                 'familyName': 'UTILISATEUR.NOM'},
        'emails': [{'key': 'UTILISATEUR.MEL', 'type': 'work'}],
        'addresses': [{'key': {'street': 'ENTREPRISE.ADR_RUE',
                               'town': 'ENTREPRISE.ADR_VILLE'},
                       'type': 'work'}],
        'unit': 'UTILISATEUR.UNITE',
      }

    Every section is checked here, once, so per-request normalization
    never has to second-guess the shape.
    """

    def __init__(self, mapping=None):
        mapping = dict(mapping or {})

        self.id = _check_key(mapping.get('id'), 'id')

        name = mapping.get('name') or {}
        if not isinstance(name, dict):
            raise ConfigurationError('propertyMap name must be a mapping')
        unknown = set(name) - set(_NAME_FIELDS)
        if unknown:
            raise ConfigurationError(
                'propertyMap name has unknown fields: {}'.format(
                    ', '.join(sorted(unknown))))
        self.name = NameMap(*[_check_key(name.get(f), 'name.' + f)
                              for f in _NAME_FIELDS])

        self.emails = tuple(self._contacts(mapping, 'emails'))
        self.telephones = tuple(self._contacts(mapping, 'telephones'))

        addresses = []
        for i, entry in enumerate(_check_list(mapping.get('addresses'),
                                              'addresses')):
            where = 'addresses[{}]'.format(i)
            keys = _check_sub_keys(entry, _ADDRESS_FIELDS, where)
            addresses.append(AddressKey(*(keys + [entry.get('type')])))
        self.addresses = tuple(addresses)

        organizations = []
        for i, entry in enumerate(_check_list(mapping.get('organizations'),
                                              'organizations')):
            where = 'organizations[{}]'.format(i)
            keys = _check_sub_keys(entry, _ORGANIZATION_FIELDS, where)
            organizations.append(OrganizationKey(*(keys + [entry.get('type')])))
        self.organizations = tuple(organizations)

        extras = []
        for field in mapping:
            if field in _FIXED_SECTIONS:
                continue
            if field == 'provider':
                raise ConfigurationError(
                    'propertyMap may not redefine the provider field')
            extras.append((field, _check_key(mapping[field], field)))
        self.extras = tuple(extras)

    @staticmethod
    def _contacts(mapping, section):
        for i, entry in enumerate(_check_list(mapping.get(section), section)):
            where = '{}[{}].key'.format(section, i)
            yield ContactKey(_check_key(entry['key'], where),
                             entry.get('type'))

    def __repr__(self):
        return '<PropertyMap id={!r} extras={!r}>'.format(
            self.id, [f for f, _ in self.extras])


class CerbereConfig(object):
    """
    Immutable per-instance configuration.

    cas_url - Cerbere CAS server URL including its base path, e.g.
      https://authentification.din.developpement-durable.gouv.fr/cas/public

    service_url - Fixed service URL. When None, the service URL is
      reconstructed from each request.

    property_map - A PropertyMap or a plain mapping to build one from.

    pass_environ_to_callback - When true, the WSGI environ is the first
      argument of the verify callback.
    """

    __slots__ = ('_cas_url', '_service_url', '_property_map',
                 '_pass_environ_to_callback')

    def __init__(self, cas_url, service_url=None, property_map=None,
                 pass_environ_to_callback=False):
        if not cas_url or not isinstance(cas_url, str):
            raise ConfigurationError('Required Cerbere option `cas_url` missing.')
        parsed = urlparse(cas_url)
        if parsed.scheme != 'https':
            raise ConfigurationError('Cerbere url supports only https protocol.')
        if not parsed.hostname:
            raise ConfigurationError(
                'Option `cas_url` must be a valid url like: '
                'https://authentification.din.developpement-durable.gouv.fr/cas/public')

        if not isinstance(property_map, PropertyMap):
            property_map = PropertyMap(property_map)

        object.__setattr__(self, '_cas_url', cas_url.rstrip('/'))
        object.__setattr__(self, '_service_url', service_url)
        object.__setattr__(self, '_property_map', property_map)
        object.__setattr__(self, '_pass_environ_to_callback',
                           bool(pass_environ_to_callback))

    def __setattr__(self, name, value):
        raise AttributeError('CerbereConfig is immutable')

    @property
    def cas_url(self):
        return self._cas_url

    @property
    def service_url(self):
        return self._service_url

    @property
    def property_map(self):
        return self._property_map

    @property
    def pass_environ_to_callback(self):
        return self._pass_environ_to_callback

    _OPTION_ALIASES = {
        'casURL': 'cas_url',
        'serviceURL': 'service_url',
        'propertyMap': 'property_map',
        'passReqToCallback': 'pass_environ_to_callback',
    }

    @classmethod
    def from_options(cls, options):
        """
        Build a config from a flat options mapping. Both the snake_case
        names and the camelCase names used by the older strategy
        (casURL, serviceURL, propertyMap, passReqToCallback) are accepted.
        """
        kwargs = {}
        for name, value in options.items():
            name = cls._OPTION_ALIASES.get(name, name)
            if name not in ('cas_url', 'service_url', 'property_map',
                            'pass_environ_to_callback'):
                raise ConfigurationError('Unknown Cerbere option `{}`'.format(name))
            kwargs[name] = value
        if 'cas_url' not in kwargs:
            raise ConfigurationError('Required Cerbere option `cas_url` missing.')
        return cls(**kwargs)

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

"""
Validation response parsing.

Cerbere answers in one of two shapes:

  * the CAS 2.0 tagged-element format (cas:serviceResponse with
    cas:authenticationSuccess or cas:authenticationFailure), where
    repeated attribute tags accumulate into a list;

  * a SAML 1.1 assertion wrapped in a SOAP envelope, as returned by
    samlValidate, where only the last value of each attribute is kept.

The asymmetry is what the server side has always produced; callers
that read Variant B attributes get a str, not a list.
"""

import logging
import xml.dom.minidom
from collections import namedtuple
from xml.parsers.expat import ExpatError

from ._errors import ParseError, ProtocolError


__all__ = ['ValidationResult',
           'ResponseParser',
           'TaggedResponseParser',
           'SamlResponseParser',
           'parse_response',
           'SAML_SUCCESS']


log = logging.getLogger(__name__)

SAML_SUCCESS = 'Success'


ValidationResult = namedtuple('ValidationResult',
                              'success subject_id attributes code message')


def success(subject_id, attributes):
    return ValidationResult(True, subject_id, attributes, None, None)


def failure(code, message):
    return ValidationResult(False, None, None, code, message)


def _local_name(node):
    return node.localName or node.tagName.rsplit(':', 1)[-1]


def _elements(node):
    return [c for c in node.childNodes if c.nodeType == c.ELEMENT_NODE]


def _child(node, name):
    for c in _elements(node):
        if _local_name(c) == name:
            return c
    return None


def _children(node, name):
    return [c for c in _elements(node) if _local_name(c) == name]


def _text(node):
    if node is None:
        return ''
    return ''.join(c.data for c in node.childNodes
                   if c.nodeType in (c.TEXT_NODE, c.CDATA_SECTION_NODE)).strip()


def _descendant(node, name):
    if _local_name(node) == name:
        return node
    nodes = node.getElementsByTagNameNS('*', name)
    return nodes[0] if nodes else None


class ResponseParser(object):
    """Turns the root element of a validation response into a result."""

    variant = None

    def parse(self, root):
        raise NotImplementedError


class TaggedResponseParser(ResponseParser):

    variant = 'cas'

    def parse(self, root):
        node = _descendant(root, 'authenticationSuccess')
        if node is not None:
            subject_id = _text(_child(node, 'user'))
            if not subject_id:
                raise ProtocolError('missing subject identifier')

            attributes = {}
            container = _child(node, 'attributes')
            if container is not None:
                for attr in _elements(container):
                    key = _local_name(attr).lower()
                    attributes.setdefault(key, []).append(_text(attr))
            return success(subject_id, attributes)

        node = _descendant(root, 'authenticationFailure')
        if node is not None:
            return failure(node.getAttribute('code') or None, _text(node))

        raise ProtocolError('unrecognized response format')


class SamlResponseParser(ResponseParser):

    variant = 'saml'

    def _path(self, node, *names):
        for name in names:
            node = _child(node, name)
            if node is None:
                raise ProtocolError('unrecognized response format')
        return node

    def parse(self, root):
        response = self._path(root, 'Body', 'Response')
        status = self._path(response, 'Status')
        status_code = self._path(status, 'StatusCode')
        # QName such as samlp:Success, the prefix varies between servers
        code = status_code.getAttribute('Value').rsplit(':', 1)[-1]

        if code != SAML_SUCCESS:
            message = _text(_child(status, 'StatusMessage')) or \
                _text(status_code)
            return failure(code or None, message)

        statement = self._path(response, 'Assertion', 'AttributeStatement')
        subject_id = _text(_child(_child(statement, 'Subject') or statement,
                                  'NameIdentifier'))
        if not subject_id:
            raise ProtocolError('missing subject identifier')

        attributes = {}
        for attr in _children(statement, 'Attribute'):
            name = attr.getAttribute('AttributeName')
            if not name:
                continue
            values = _children(attr, 'AttributeValue')
            # Last one wins, no multi-value accumulation here
            attributes[name] = _text(values[-1]) if values else ''
        return success(subject_id, attributes)


_tagged = TaggedResponseParser()
_saml = SamlResponseParser()


def parse_response(text):
    """
    Parses a validation response, given as bytes or str. Bytes are
    decoded by expat itself (BOM, prolog encoding, UTF-8 otherwise).
    Returns a ValidationResult, raises ParseError for malformed XML and
    ProtocolError for a response that cannot be interpreted.
    """
    try:
        dom = xml.dom.minidom.parseString(text)
    except (ExpatError, LookupError, ValueError, TypeError) as e:
        log.debug('Unparseable validation response: %r', text)
        raise ParseError('Malformed validation response: {}'.format(e),
                         payload=text) from e

    try:
        root = dom.documentElement
        parser = _saml if _local_name(root) == 'Envelope' else _tagged
        log.debug('Parsing %s validation response', parser.variant)
        return parser.parse(root)
    finally:
        dom.unlink()

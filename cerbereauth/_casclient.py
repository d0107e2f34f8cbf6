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

import logging
import uuid
from collections import namedtuple
from datetime import datetime, timezone
from urllib.parse import urlencode
from xml.sax.saxutils import escape, quoteattr

from ._config import CerbereConfig
from ._errors import ProtocolError
from ._parser import parse_response
from ._profile import normalize_profile
from ._transport import RequestsTransport


__all__ = ['CerbereClient',
           'ValidationRequest',
           'build_validation_request',
           'login_url',
           'logout_url']


log = logging.getLogger(__name__)


ValidationRequest = namedtuple('ValidationRequest',
                               'method url headers body ticket service '
                               'request_id issue_instant')


VALIDATE_HEADERS = (
    ('soapaction', 'http://www.oasis-open.org/committees/security'),
    ('content-type', 'text/xml; charset=utf-8'),
    ('accept', 'text/xml'),
    ('connection', 'keep-alive'),
    ('cache-control', 'no-cache'),
    ('pragma', 'no-cache'),
)

SOAP_ENVELOPE = (
    '<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">'
    '<SOAP-ENV:Header/>'
    '<SOAP-ENV:Body>'
    '<samlp:Request xmlns:samlp="urn:oasis:names:tc:SAML:1.0:protocol"'
    ' MajorVersion="1" MinorVersion="1" RequestID={request_id}'
    ' IssueInstant={issue_instant}>'
    '<samlp:AssertionArtifact>{ticket}</samlp:AssertionArtifact>'
    '</samlp:Request>'
    '</SOAP-ENV:Body>'
    '</SOAP-ENV:Envelope>'
)


def _issue_instant():
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + \
        '{:03d}Z'.format(now.microsecond // 1000)


def build_validation_request(cas_url, ticket, service):
    """
    Builds the samlValidate POST for `ticket`. `cas_url` is the server
    URL including its base path.
    """
    if not ticket:
        raise ValueError('ticket must be a non-empty string')
    if not service:
        raise ValueError('service must be a non-empty URL')

    request_id = str(uuid.uuid4())
    issue_instant = _issue_instant()
    body = SOAP_ENVELOPE.format(request_id=quoteattr(request_id),
                                issue_instant=quoteattr(issue_instant),
                                ticket=escape(ticket))
    url = cas_url.rstrip('/') + '/samlValidate?' + \
        urlencode({'TARGET': service})
    return ValidationRequest('POST', url, VALIDATE_HEADERS, body,
                             ticket, service, request_id, issue_instant)


def login_url(cas_url, service):
    return cas_url.rstrip('/') + '/login?' + urlencode({'service': service})


def logout_url(cas_url, return_url=None, do_redirect=False):
    """
    Cerbere logout URL.

    With no `return_url` the user stays on the server's logout page.
    Otherwise the server either shows a link back (`url=`) or, with
    `do_redirect`, sends the user back itself (`service=`).
    """
    url = cas_url.rstrip('/') + '/logout'
    if return_url and do_redirect:
        url += '?' + urlencode({'service': return_url})
    elif return_url:
        url += '?' + urlencode({'url': return_url})
    return url


class CerbereClient(object):
    """
    Cerbere (CAS 2.0 / SAML 1.1) client.

    config - CerbereConfig.

    transport - Anything with a send(ValidationRequest) method returning
      the response body. Defaults to a RequestsTransport.
    """
    def __init__(self, config, transport=None):
        if not isinstance(config, CerbereConfig):
            raise TypeError('config must be a CerbereConfig')
        self.config = config
        if transport is None:
            transport = RequestsTransport()
        self.transport = transport

    def build_validation_request(self, ticket, service):
        return build_validation_request(self.config.cas_url, ticket, service)

    def validate(self, ticket, service):
        """
        Validates a ticket with the Cerbere server. Returns a
        ValidationResult, which may be a failure.
        """
        request = self.build_validation_request(ticket, service)
        return parse_response(self.transport.send(request))

    def authenticate(self, ticket, service):
        """
        Validates a ticket and normalizes its attributes. Returns
        (subject_id, profile) or raises ProtocolError if the server
        refused the ticket.
        """
        result = self.validate(ticket, service)
        if not result.success:
            log.warning('Ticket rejected [%s]: %s', result.code, result.message)
            raise ProtocolError(result.message, code=result.code)

        log.info('Validated ticket for %s', result.subject_id)
        profile = normalize_profile(result.subject_id, result.attributes,
                                    self.config.property_map)
        return profile['id'], profile

    def login_url(self, service):
        return login_url(self.config.cas_url, service)

    def logout_url(self, return_url=None, do_redirect=False):
        return logout_url(self.config.cas_url, return_url, do_redirect)

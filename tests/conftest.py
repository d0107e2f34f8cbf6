import io

import pytest

from cerbereauth import CerbereConfig


CAS_URL = 'https://cas.example.org/cas/public'


CAS_SUCCESS = """<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationSuccess>
    <cas:user>alice</cas:user>
    <cas:attributes>
      <cas:mail>a@x.com</cas:mail>
    </cas:attributes>
  </cas:authenticationSuccess>
</cas:serviceResponse>
"""

CAS_FAILURE = """<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationFailure code="INVALID_TICKET">
    ticket expired
  </cas:authenticationFailure>
</cas:serviceResponse>
"""

SAML_SUCCESS = """<?xml version="1.0" encoding="UTF-8"?>
<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">
  <SOAP-ENV:Header/>
  <SOAP-ENV:Body>
    <Response xmlns="urn:oasis:names:tc:SAML:1.0:protocol"
              xmlns:ns2="urn:oasis:names:tc:SAML:1.0:assertion"
              MajorVersion="1" MinorVersion="1" ResponseID="_r1">
      <Status>
        <StatusCode Value="ns2:Success"/>
      </Status>
      <ns2:Assertion AssertionID="_a1" MajorVersion="1" MinorVersion="1">
        <ns2:AttributeStatement>
          <ns2:Subject>
            <ns2:NameIdentifier>bob</ns2:NameIdentifier>
          </ns2:Subject>
          <ns2:Attribute AttributeName="UTILISATEUR.MEL"
                         AttributeNamespace="http://www.ja-sig.org/products/cas/">
            <ns2:AttributeValue>b@x.com</ns2:AttributeValue>
          </ns2:Attribute>
        </ns2:AttributeStatement>
      </ns2:Assertion>
    </Response>
  </SOAP-ENV:Body>
</SOAP-ENV:Envelope>
"""

SAML_FAILURE = """<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">
  <SOAP-ENV:Body>
    <Response xmlns="urn:oasis:names:tc:SAML:1.0:protocol"
              xmlns:samlp="urn:oasis:names:tc:SAML:1.0:protocol">
      <Status>
        <StatusCode Value="samlp:Responder"/>
        <StatusMessage>Ticket ST-1 not recognized</StatusMessage>
      </Status>
    </Response>
  </SOAP-ENV:Body>
</SOAP-ENV:Envelope>
"""


class FakeTransport(object):

    def __init__(self, response=CAS_SUCCESS, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def send(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class StartResponse(object):

    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers, exc_info=None):
        self.status = status
        self.headers = dict(headers)


@pytest.fixture
def config():
    return CerbereConfig(CAS_URL, property_map={
        'name': {'givenName': 'givenname', 'familyName': 'sn'},
        'emails': [{'key': 'mail', 'type': 'work'}],
    })


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def start_response():
    return StartResponse()


def make_environ(path='/app', query='', **extra):
    environ = {
        'REQUEST_METHOD': 'GET',
        'SCRIPT_NAME': '',
        'PATH_INFO': path,
        'QUERY_STRING': query,
        'SERVER_NAME': 'app.example.org',
        'SERVER_PORT': '443',
        'HTTP_HOST': 'app.example.org',
        'wsgi.url_scheme': 'https',
        'wsgi.errors': io.StringIO(),
    }
    environ.update(extra)
    return environ

import pytest
import requests

from cerbereauth import (CerbereClient, CerbereConfig, CerbereMiddleware,
                         ParseError, RequestsTransport, ResponseTooLarge,
                         TransportError, build_validation_request,
                         parse_response)

from conftest import CAS_URL, CAS_SUCCESS, make_environ


class FakeResponse(object):

    def __init__(self, chunks, status=200, headers=None):
        self._chunks = chunks
        self.status_code = status
        self.headers = headers or {'content-type': 'text/xml'}
        self.consumed = 0
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError('{} error'.format(self.status_code))

    def iter_content(self, chunk_size):
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk

    def close(self):
        self.closed = True


class FakeSession(object):

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def validation_request():
    return build_validation_request(CAS_URL, 'ST-1', 'https://app/')


def test_send(validation_request):
    session = FakeSession(FakeResponse([b'<a>', 'é</a>'.encode('utf-8')]))
    transport = RequestsTransport(timeout=3, session=session)
    assert transport.send(validation_request) == '<a>é</a>'.encode('utf-8')

    method, url, kwargs = session.calls[0]
    assert method == 'POST'
    assert url == validation_request.url
    assert kwargs['timeout'] == 3
    assert kwargs['stream'] is True
    assert kwargs['headers']['content-type'] == 'text/xml; charset=utf-8'
    assert b'ST-1' in kwargs['data']
    assert session.response.closed


def test_prolog_encoding_reaches_parser(validation_request):
    body = ('<?xml version="1.0" encoding="ISO-8859-1"?>'
            '<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">'
            '<cas:authenticationSuccess><cas:user>hélène</cas:user>'
            '</cas:authenticationSuccess></cas:serviceResponse>')
    response = FakeResponse([body.encode('latin-1')])
    transport = RequestsTransport(session=FakeSession(response))
    result = parse_response(transport.send(validation_request))
    assert result.subject_id == 'hélène'


def test_bogus_charset_header_is_ignored(start_response):
    # Content-Type charset plays no part, expat decodes the body
    response = FakeResponse([CAS_SUCCESS.encode('utf-8')],
                            headers={'content-type':
                                     'text/xml; charset=bogus'})
    client = CerbereClient(CerbereConfig(CAS_URL),
                           RequestsTransport(session=FakeSession(response)))
    verified = []

    def verify(subject_id, profile, done):
        verified.append(subject_id)
        done(None, subject_id)

    def application(environ, start_response):
        start_response('200 OK', [('Content-Type', 'text/plain')])
        return [b'ok']

    middleware = CerbereMiddleware(application, verify, client=client)
    body = middleware(make_environ('/app', 'ticket=ST-1'), start_response)
    assert start_response.status == '200 OK'
    assert body == [b'ok']
    assert verified == ['alice']


def test_unknown_prolog_encoding_is_parse_error(validation_request):
    response = FakeResponse([b'<?xml version="1.0" encoding="bogus"?><a/>'])
    transport = RequestsTransport(session=FakeSession(response))
    with pytest.raises(ParseError):
        parse_response(transport.send(validation_request))


def test_too_large(validation_request):
    response = FakeResponse([b'x' * 600, b'x' * 600, b'x' * 600])
    transport = RequestsTransport(max_response_size=1000,
                                  session=FakeSession(response))
    with pytest.raises(ResponseTooLarge):
        transport.send(validation_request)
    # Stopped reading at the chunk crossing the ceiling
    assert response.consumed == 2
    assert response.closed


def test_too_large_is_transport_error(validation_request):
    response = FakeResponse([b'x' * 1000001])
    transport = RequestsTransport(session=FakeSession(response))
    with pytest.raises(TransportError):
        transport.send(validation_request)


def test_connection_error(validation_request):
    session = FakeSession(error=requests.ConnectionError('refused'))
    with pytest.raises(TransportError) as exc:
        RequestsTransport(session=session).send(validation_request)
    assert 'refused' in str(exc.value)


def test_timeout(validation_request):
    session = FakeSession(error=requests.Timeout('read timed out'))
    with pytest.raises(TransportError):
        RequestsTransport(session=session).send(validation_request)


def test_http_error(validation_request):
    response = FakeResponse([b'oops'], status=502)
    with pytest.raises(TransportError):
        RequestsTransport(session=FakeSession(response)).send(validation_request)
    assert response.closed


def test_default_uses_requests(monkeypatch, validation_request):
    session = FakeSession(FakeResponse([b'<ok/>']))
    monkeypatch.setattr(requests, 'request', session.request)
    assert RequestsTransport().send(validation_request) == b'<ok/>'
    assert session.calls[0][2]['timeout'] == 10

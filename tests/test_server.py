"""Tests for the mantohtml HTTP service."""

from fastapi.testclient import TestClient

from mantohtml_server import SERVER_VERSION, app

client = TestClient(app)


def test_health():
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'ok'
    assert response.json()['version'] == SERVER_VERSION


def test_convert_single_document():
    response = client.post('/convert', json={
        'documents': [{'name': 'ls.1', 'content': ".TH ls 1\n.SH NAME\nls \\- list\n"}],
    })
    assert response.status_code == 200
    body = response.json()
    assert '<h2 id="ls.1.name">Name</h2>' in body['html']
    assert body['diagnostics'] == []


def test_convert_links_known_pages():
    response = client.post('/convert', json={
        'documents': [{'name': 'man/ls.1', 'content': ".TH ls 1\n.BR cp (1)\n.BR mv (1)\n"}],
        'known_pages': ['cp.1'],
    })
    assert response.status_code == 200
    html = response.json()['html']
    assert '<a href="cp.html"><strong>cp</strong>(1)</a>' in html
    assert 'mv.html' not in html


def test_convert_multiple_documents_with_metadata():
    response = client.post('/convert', json={
        'documents': [
            {'name': 'a.1', 'content': ".TH a 1\n"},
            {'name': 'b.1', 'content': ".TH b 1\n"},
        ],
        'metadata': {'title': 'Both', 'chapter': 'Pages'},
    })
    assert response.status_code == 200
    html = response.json()['html']
    assert html.count('<!DOCTYPE html>') == 1
    assert '<title>Both</title>' in html
    assert '<h2 id="a.1">a(1)</h2>' in html
    assert '<h2 id="b.1">b(1)</h2>' in html


def test_convert_returns_diagnostics():
    response = client.post('/convert', json={
        'documents': [{'name': 'x.1', 'content': ".TH x 1\n.XY\n"}],
    })
    assert response.status_code == 200
    assert response.json()['diagnostics'] == ["Unsupported command/macro '.XY' on line 2 of 'x.1'."]


def test_convert_without_topic_heading():
    response = client.post('/convert', json={
        'documents': [{'name': 'x.1', 'content': "just text\n"}],
    })
    assert response.status_code == 422
    assert '.TH' in response.json()['detail']


def test_convert_fatal_error():
    response = client.post('/convert', json={
        'documents': [{'name': 'x.1', 'content': ".TH x\n"}],
    })
    assert response.status_code == 422
    assert "Missing section in '.TH' on line 1 of 'x.1'." == response.json()['detail']


def test_local_stylesheet_is_refused():
    response = client.post('/convert', json={
        'documents': [{'name': 'x.1', 'content': ".TH x 1\n"}],
        'metadata': {'stylesheet': '/etc/passwd'},
    })
    assert response.status_code == 400


def test_empty_request_is_rejected():
    response = client.post('/convert', json={'documents': []})
    assert response.status_code == 422

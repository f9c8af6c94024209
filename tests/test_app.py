import json
import logging

from flask import render_template_string

from academy.logging_config import JsonFormatter, ProductionFilter, GENERIC_ERROR_MESSAGE


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok'}


def test_request_id_is_echoed(client):
    resp = client.get('/health', headers={'X-Request-ID': 'abc-123'})
    assert resp.headers['X-Request-ID'] == 'abc-123'
    assert client.get('/health').headers['X-Request-ID']


def test_not_found_renders_html_or_json(client):
    resp = client.get('/no-such-page')
    assert resp.status_code == 404
    assert b'does not exist' in resp.data

    resp = client.get('/no-such-page', headers={'Accept': 'application/json'})
    assert resp.status_code == 404
    assert resp.get_json()['error']


def test_public_pages_render(client, course):
    for path in ('/', '/about', '/privacy', '/contact', '/courses/'):
        assert client.get(path).status_code == 200, path
    assert b'Introduction to Python' in client.get('/').data


def test_contact_message_is_stored(client, db):
    resp = client.post('/contact', data={
        'name': 'Visitor', 'email': 'visitor@example.com', 'subject': 'Batches',
        'message': 'Do you offer weekend batches?',
    })
    assert resp.status_code == 302
    messages = list(db.docs('contact_messages').values())
    assert messages[0]['email'] == 'visitor@example.com'
    assert messages[0]['status'] == 'new'
    assert messages[0]['subject'] == 'Batches'


def test_contact_message_requires_subject(client, db):
    resp = client.post('/contact', data={
        'name': 'Visitor', 'email': 'visitor@example.com', 'message': 'Hello',
    })
    assert resp.status_code == 200
    assert b'Enter a subject' in resp.data
    assert db.docs('contact_messages') == {}


def test_json_formatter_includes_context():
    record = logging.LogRecord('academy.payments', logging.INFO, __file__, 1, 'paid %s', ('o1',), None)
    record.request_id = 'rid'
    record.order_id = 'o1'
    payload = json.loads(JsonFormatter().format(record))
    assert payload['message'] == 'paid o1'
    assert payload['request_id'] == 'rid'
    assert payload['order_id'] == 'o1'


def test_production_filter_hides_error_details():
    flt = ProductionFilter()
    info = logging.LogRecord('academy.routes', logging.INFO, __file__, 1, 'noise', (), None)
    assert not flt.filter(info)

    error = logging.LogRecord('academy.routes', logging.ERROR, __file__, 1, 'secret %s', ('x',), None)
    assert flt.filter(error)
    assert error.getMessage() == GENERIC_ERROR_MESSAGE


def test_imported_macros_can_format_prices(ctx):
    html = render_template_string(
        "{% from '_macros.html' import price_tag %}{{ price_tag(course) }}",
        course={'price': 129999, 'original_price': 149999, 'currency': 'INR'},
    )
    assert '₹1,29,999' in html
    assert '₹1,49,999' in html

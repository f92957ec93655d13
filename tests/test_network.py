"""
Tests for Network Path Extraction
=================================
Client IP resolution and proxy/CDN header capture.
"""

from diagnostics_store.models import RequestContext
from diagnostics_store.network import (
    NETWORK_HEADER_ALLOWLIST, extract_network_headers, first_forwarded_for, resolve_client_ip
)


def ctx(remote_addr='10.0.0.1', **headers):
    return RequestContext.from_headers(
        {k.replace('_', '-'): v for k, v in headers.items()}, remote_addr=remote_addr
    )


class TestResolveClientIp:
    """Tests for resolve_client_ip()."""

    def test_edge_header_wins_over_forwarded_for(self):
        context = ctx(cf_connecting_ip='1.2.3.4', x_forwarded_for='5.6.7.8, 9.9.9.9')
        assert resolve_client_ip(context) == '1.2.3.4'

    def test_leftmost_forwarded_for_entry_trimmed(self):
        context = ctx(x_forwarded_for='5.6.7.8, 9.9.9.9')
        assert resolve_client_ip(context) == '5.6.7.8'

    def test_forwarded_for_with_leading_whitespace(self):
        assert resolve_client_ip(ctx(x_forwarded_for='  5.6.7.8  ,9.9.9.9')) == '5.6.7.8'

    def test_real_ip_before_true_client_ip(self):
        context = ctx(x_real_ip='7.7.7.7', true_client_ip='8.8.8.8')
        assert resolve_client_ip(context) == '7.7.7.7'

    def test_true_client_ip(self):
        assert resolve_client_ip(ctx(true_client_ip='8.8.8.8')) == '8.8.8.8'

    def test_falls_back_to_peer_address(self):
        assert resolve_client_ip(ctx()) == '10.0.0.1'

    def test_empty_headers_are_skipped(self):
        context = ctx(cf_connecting_ip='', x_forwarded_for=' , 9.9.9.9', x_real_ip='7.7.7.7')
        assert resolve_client_ip(context) == '7.7.7.7'

    def test_no_information(self):
        assert resolve_client_ip(RequestContext()) is None

    def test_header_names_are_case_insensitive(self):
        context = RequestContext.from_headers({'CF-Connecting-IP': '1.2.3.4'})
        assert resolve_client_ip(context) == '1.2.3.4'


class TestFirstForwardedFor:

    def test_single(self):
        assert first_forwarded_for('5.6.7.8') == '5.6.7.8'

    def test_empty(self):
        assert first_forwarded_for('') is None
        assert first_forwarded_for(None) is None


class TestExtractNetworkHeaders:
    """Tests for extract_network_headers()."""

    def test_captures_allow_listed_headers(self):
        context = ctx(cf_ray='8a1b2c3d4e5f-LHR', cf_ipcountry='GB', via='1.1 varnish',
                      host='diag.example.com', accept_language='en-GB')
        headers = extract_network_headers(context)
        assert headers == {
            'cf-ipcountry': 'GB',
            'cf-ray': '8a1b2c3d4e5f-LHR',
            'via': '1.1 varnish',
            'accept-language': 'en-GB',
            'host': 'diag.example.com',
        }

    def test_ignores_unlisted_headers(self):
        headers = extract_network_headers(ctx(cookie='session=1', user_agent='Mozilla/5.0',
                                              content_type='application/json'))
        assert headers == {}

    def test_captures_any_x_prefixed_header(self):
        headers = extract_network_headers(ctx(x_amzn_trace_id='Root=1-abc', x_request_id='r-1'))
        assert headers == {'x-amzn-trace-id': 'Root=1-abc', 'x-request-id': 'r-1'}

    def test_allow_list_first_then_prefix_scan(self):
        context = RequestContext.from_headers({
            'X-Custom': 'a',
            'Via': '1.1 proxy',
            'X-Forwarded-For': '5.6.7.8',
        })
        assert list(extract_network_headers(context)) == ['x-forwarded-for', 'via', 'x-custom']

    def test_absent_and_empty_headers_omitted(self):
        headers = extract_network_headers(ctx(x_forwarded_for='', via='1.1 proxy'))
        assert 'x-forwarded-for' not in headers
        assert None not in headers.values()

    def test_allow_list_is_lowercase_and_unique(self):
        assert all(name == name.lower() for name in NETWORK_HEADER_ALLOWLIST)
        assert len(set(NETWORK_HEADER_ALLOWLIST)) == len(NETWORK_HEADER_ALLOWLIST)

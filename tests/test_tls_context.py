"""Tests for tls_context module."""

import ssl

from remote_syslog.tls_context import create_client_context


class TestCreateClientContext:
    def test_verified_by_default(self):
        ctx = create_client_context()
        assert ctx.verify_mode == ssl.CERT_REQUIRED
        assert ctx.check_hostname is True
        assert ctx.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_unverified(self):
        ctx = create_client_context(verify=False)
        assert ctx.verify_mode == ssl.CERT_NONE
        assert ctx.check_hostname is False

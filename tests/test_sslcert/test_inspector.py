"""Tests for the certificate inspection strategies and their fallback chain."""

import socket
import subprocess
import tempfile
import unittest
from unittest.mock import patch

from certfactory import make_certificate, make_info, pem, write_live_certificate
from sslcert.errors import InspectionError, StrategyError
from sslcert.inspector import (
    CertificateInspector,
    FilesystemStrategy,
    InspectionStrategy,
    NetworkStrategy,
    OpenSSLStrategy,
)
from sslcert.live_store import LiveCertificateStore


class _Static(InspectionStrategy):

    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error
        self.calls = 0

    def inspect(self, domain):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


class TestCertificateInspector(unittest.TestCase):

    def test_first_success_wins(self):
        info = make_info()
        first = _Static("network", result=info)
        second = _Static("openssl", result=make_info())
        inspector = CertificateInspector([first, second])
        self.assertIs(inspector.inspect("example.com"), info)
        self.assertEqual(second.calls, 0)

    def test_falls_back_in_order(self):
        info = make_info(source="filesystem")
        strategies = [
            _Static("network", error=StrategyError("refused")),
            _Static("openssl", error=StrategyError("missing binary")),
            _Static("filesystem", result=info),
        ]
        self.assertIs(CertificateInspector(strategies).inspect("example.com"), info)
        self.assertTrue(all(s.calls == 1 for s in strategies))

    def test_all_fail_aggregates_messages(self):
        inspector = CertificateInspector([
            _Static("network", error=StrategyError("refused")),
            _Static("openssl", error=StrategyError("missing binary")),
            _Static("filesystem", error=StrategyError("no file", not_found=True)),
        ])
        with self.assertRaises(InspectionError) as ctx:
            inspector.inspect("example.com")
        exc = ctx.exception
        self.assertIn("network: refused", exc.message)
        self.assertIn("openssl: missing binary", exc.message)
        self.assertIn("filesystem: no file", exc.message)
        self.assertEqual(len(exc.failures), 3)
        self.assertFalse(exc.not_found)

    def test_not_found_only_when_every_strategy_says_so(self):
        inspector = CertificateInspector([
            _Static("network", error=StrategyError("nxdomain", not_found=True)),
            _Static("filesystem", error=StrategyError("no file", not_found=True)),
        ])
        with self.assertRaises(InspectionError) as ctx:
            inspector.inspect("missing.example")
        self.assertTrue(ctx.exception.not_found)

    def test_no_strategies(self):
        with self.assertRaises(InspectionError) as ctx:
            CertificateInspector([]).inspect("example.com")
        self.assertFalse(ctx.exception.not_found)
        self.assertTrue(ctx.exception.message)


class TestNetworkStrategy(unittest.TestCase):

    @patch("sslcert.inspector.socket.create_connection")
    def test_dns_failure_is_not_found(self, mock_connect):
        mock_connect.side_effect = socket.gaierror(-2, "Name or service not known")
        with self.assertRaises(StrategyError) as ctx:
            NetworkStrategy(timeout=1).inspect("missing.example")
        self.assertTrue(ctx.exception.not_found)

    @patch("sslcert.inspector.socket.create_connection")
    def test_connection_refused_is_error(self, mock_connect):
        mock_connect.side_effect = ConnectionRefusedError(111, "Connection refused")
        with self.assertRaises(StrategyError) as ctx:
            NetworkStrategy(timeout=1).inspect("example.com")
        self.assertFalse(ctx.exception.not_found)

    @patch("sslcert.inspector.socket.setdefaulttimeout")
    @patch("sslcert.inspector.socket.create_connection")
    def test_timeout_is_per_connection(self, mock_connect, mock_set_default):
        mock_connect.side_effect = TimeoutError("timed out")
        with self.assertRaises(StrategyError) as ctx:
            NetworkStrategy(timeout=3).inspect("example.com")
        self.assertIn("timed out", ctx.exception.message)
        self.assertEqual(mock_connect.call_args.kwargs["timeout"], 3)
        mock_set_default.assert_not_called()


class TestOpenSSLStrategy(unittest.TestCase):

    @patch("sslcert.inspector.subprocess.run")
    def test_fetches_then_dumps_leaf(self, mock_run):
        cert = make_certificate(san=("example.com", "www.example.com"))
        dump = (
            "subject=CN = example.com\n"
            "issuer=C = US, O = Let's Encrypt, CN = R3\n"
            "notBefore=Jan  1 00:00:00 2025 GMT\n"
            "notAfter=Apr  1 00:00:00 2025 GMT\n"
            "serial=1234ABCD\n"
            "    DNS:example.com, DNS:www.example.com\n"
        )
        mock_run.side_effect = [
            subprocess.CompletedProcess([], 0, stdout=f"CONNECTED\n{pem(cert)}", stderr=""),
            subprocess.CompletedProcess([], 0, stdout=dump, stderr=""),
        ]
        info = OpenSSLStrategy().inspect("example.com")
        self.assertEqual(info.domains, ["example.com", "www.example.com"])
        self.assertEqual(info.source, "openssl")

        s_client_args = mock_run.call_args_list[0].args[0]
        self.assertEqual(s_client_args[:2], ["openssl", "s_client"])
        self.assertIn("-servername", s_client_args)
        self.assertIn("example.com:443", s_client_args)
        self.assertEqual(mock_run.call_args_list[0].kwargs["input"], "")
        self.assertIn("BEGIN CERTIFICATE", mock_run.call_args_list[1].kwargs["input"])

    @patch("sslcert.inspector.subprocess.run")
    def test_missing_binary_is_strategy_error(self, mock_run):
        mock_run.side_effect = FileNotFoundError("openssl")
        with self.assertRaises(StrategyError) as ctx:
            OpenSSLStrategy().inspect("example.com")
        self.assertIn("not installed", ctx.exception.message)

    @patch("sslcert.inspector.subprocess.run")
    def test_timeout_is_strategy_error(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired("openssl", 15)
        with self.assertRaises(StrategyError):
            OpenSSLStrategy().inspect("example.com")

    @patch("sslcert.inspector.subprocess.run")
    def test_unresolvable_host_is_not_found(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            [], 1, stdout="", stderr="BIO_lookup_ex:system lib:getaddrinfo failure\n",
        )
        with self.assertRaises(StrategyError) as ctx:
            OpenSSLStrategy().inspect("missing.example")
        self.assertTrue(ctx.exception.not_found)


class TestFilesystemStrategy(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = LiveCertificateStore(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_direct_directory(self):
        write_live_certificate(self._tmp.name, "example.com", make_certificate())
        info = FilesystemStrategy(self.store).inspect("example.com")
        self.assertEqual(info.source, "filesystem")
        self.assertTrue(info.certificate_path.endswith("fullchain.pem"))

    def test_scans_san_lists_when_directory_name_differs(self):
        write_live_certificate(
            self._tmp.name, "bundle-0001",
            make_certificate(common_name="a.example", san=("a.example", "b.example")),
        )
        info = FilesystemStrategy(self.store).inspect("b.example")
        self.assertIn("b.example", info.domains)

    def test_missing_is_not_found(self):
        with self.assertRaises(StrategyError) as ctx:
            FilesystemStrategy(self.store).inspect("nothing.example")
        self.assertTrue(ctx.exception.not_found)

    def test_default_chain_order(self):
        inspector = CertificateInspector.default(self.store)
        self.assertEqual(
            [s.name for s in inspector.strategies], ["network", "openssl", "filesystem"],
        )


if __name__ == "__main__":
    unittest.main()

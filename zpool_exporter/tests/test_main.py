import argparse
import io
import unittest
from contextlib import redirect_stdout
from unittest import mock

from zpool_exporter.context import AppContext
from zpool_exporter.main import build_parser, parse_listen_address, run


class ListenAddressTests(unittest.TestCase):
    def test_ipv4(self):
        self.assertEqual(parse_listen_address("127.0.0.1:8734"), ("127.0.0.1", 8734))

    def test_ipv6(self):
        self.assertEqual(parse_listen_address("[::1]:9000"), ("::1", 9000))

    def test_invalid(self):
        for value in ["8734", ":8734", "localhost:http", "127.0.0.1:70000"]:
            with self.subTest(value=value):
                with self.assertRaises(argparse.ArgumentTypeError):
                    parse_listen_address(value)

    def test_parser_defaults(self):
        args = build_parser().parse_args(["0.0.0.0:9100"])

        self.assertEqual(args.listen_address, ("0.0.0.0", 9100))
        self.assertFalse(args.oneshot_test_print)


class RunTests(unittest.TestCase):
    def test_refuses_super_user(self):
        with mock.patch("os.geteuid", return_value=0):
            self.assertEqual(run(["127.0.0.1:0"]), 1)

    def test_oneshot_prints_metrics(self):
        stdout = io.StringIO()
        with mock.patch("os.geteuid", return_value=1000), \
                mock.patch.object(AppContext, "get_metrics_now", return_value="# no pools reported\n"), \
                redirect_stdout(stdout):
            self.assertEqual(run(["--oneshot-test-print"]), 0)

        self.assertEqual(stdout.getvalue(), "# no pools reported\n")

    def test_missing_auth_file(self):
        with mock.patch("os.geteuid", return_value=1000):
            code = run(["127.0.0.1:0", "--basic-auth-keys-file", "/nonexistent/keys"])
        self.assertEqual(code, 1)

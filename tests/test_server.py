import unittest
import io
import sys
import os
from unittest.mock import patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from kchain import server


class TestServerMain(unittest.TestCase):
    def run_main(self, argv, text):
        with patch('sys.stdin', io.StringIO(text)), \
             patch('sys.stdout', new_callable=io.StringIO) as out, \
             patch('kchain.server.configure_logging'):
            status = server.main(argv)
        return status, out.getvalue()

    def test_stdin_mode(self):
        status, out = self.run_main([], "i 1 0\nl 0\nzzz\n")
        self.assertEqual(status, 0)
        self.assertEqual(out, "0 1\n0 1 1\n255\n")

    def test_fold_malformed(self):
        _, out = self.run_main(["--fold-malformed"], "zzz\n")
        self.assertEqual(out, "1\n")

    def test_allow_overwrite(self):
        _, out = self.run_main(["--allow-overwrite"], "i 1 0\ni 2 1\ni 2 0\nl 0\n")
        self.assertEqual(out, "0 1\n0 2\n0 1\n0 2 2\n")

        _, out = self.run_main([], "i 1 0\ni 1 0\n")
        self.assertEqual(out, "0 1\n1\n")

    def test_parse_args_env(self):
        with patch.dict(os.environ, {"KCHAIN_RPC_USER": "alice", "KCHAIN_RPC_PASSWORD": "secret"}):
            args = server.parse_args(["--rpcport", "9440"])
        self.assertEqual(args.rpcport, 9440)
        self.assertEqual(args.rpcuser, "alice")
        self.assertEqual(args.rpcpassword, "secret")
        self.assertEqual(args.bind, "127.0.0.1")


if __name__ == '__main__':
    unittest.main()

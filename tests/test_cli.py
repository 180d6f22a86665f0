import unittest
import io
import json
import sys
import os
from unittest.mock import MagicMock, patch

import requests

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from kchain import cli


def mock_response(result=None, error=None):
    response = MagicMock()
    response.json.return_value = {"result": result, "error": error, "id": 1}
    return response


class TestCLI(unittest.TestCase):
    @patch('kchain.cli.requests.post')
    def test_insert(self, mock_post):
        mock_post.return_value = mock_response({"id": 1, "depth": 1})

        with patch('sys.stdout', new_callable=io.StringIO) as out:
            status = cli.main(["--rpcconnect", "http://127.0.0.1:1", "insert", "1", "0"])

        self.assertEqual(status, 0)
        self.assertEqual(json.loads(out.getvalue()), {"id": 1, "depth": 1})
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://127.0.0.1:1")
        self.assertEqual(kwargs["json"]["method"], "insert")
        self.assertEqual(kwargs["json"]["params"], [1, 0])
        self.assertIsNone(kwargs["auth"])

    @patch('kchain.cli.requests.post')
    def test_leader_defaults_to_root(self, mock_post):
        mock_post.return_value = mock_response({"id": 0, "depth": 0})
        with patch('sys.stdout', new_callable=io.StringIO):
            cli.main(["--rpcuser", "u", "--rpcpassword", "p", "leader"])
        _, kwargs = mock_post.call_args
        self.assertEqual(kwargs["json"]["params"], [0])
        self.assertEqual(kwargs["auth"], ("u", "p"))

    @patch('kchain.cli.requests.post')
    def test_rpc_error(self, mock_post):
        mock_post.return_value = mock_response(error={"code": -5, "message": "Block 9 not found"})
        with patch('sys.stderr', new_callable=io.StringIO) as err:
            status = cli.main(["chain", "9", "3"])
        self.assertEqual(status, 1)
        self.assertIn("-5", err.getvalue())

    @patch('kchain.cli.requests.post')
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(cli.RPCCallError):
            cli.rpc_call("http://127.0.0.1:1", "getinfo")

    @patch('kchain.cli.requests.post')
    def test_non_object_response(self, mock_post):
        response = MagicMock()
        response.json.return_value = ["not", "an", "object"]
        mock_post.return_value = response
        with self.assertRaises(cli.RPCCallError):
            cli.rpc_call("http://127.0.0.1:1", "getinfo")

    def test_no_command(self):
        with patch('sys.stdout', new_callable=io.StringIO):
            self.assertEqual(cli.main([]), 1)


if __name__ == '__main__':
    unittest.main()

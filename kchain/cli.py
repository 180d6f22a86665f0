import argparse
import json
import os
import sys

import requests

# No logging here, CLI output is plain stdout.

DEFAULT_URL = "http://127.0.0.1:9440"


class RPCCallError(Exception):
    pass


def rpc_call(url, method, params=None, auth=None, timeout=10):
    payload = {
        "method": method,
        "params": params or [],
        "jsonrpc": "2.0",
        "id": 1,
    }
    try:
        response = requests.post(url, json=payload, auth=auth, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        raise RPCCallError(f"RPC Error: {e}")

    if not isinstance(data, dict):
        raise RPCCallError(f"RPC Error: unexpected response {data!r}")

    if data.get('error'):
        err = data['error']
        raise RPCCallError(f"RPC Error {err.get('code')}: {err.get('message')}")
    return data.get('result')


def build_parser():
    parser = argparse.ArgumentParser(description="kchain CLI")
    parser.add_argument("--rpcconnect", default=os.environ.get("KCHAIN_RPC_URL", DEFAULT_URL), help="JSON-RPC server URL")
    parser.add_argument("--rpcuser", default=os.environ.get("KCHAIN_RPC_USER"), help="Username for JSON-RPC connections")
    parser.add_argument("--rpcpassword", default=os.environ.get("KCHAIN_RPC_PASSWORD"), help="Password for JSON-RPC connections")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("getinfo", help="Get block count and overall leader")

    insert_parser = subparsers.add_parser("insert", help="Insert a block under a parent")
    insert_parser.add_argument("id", type=int)
    insert_parser.add_argument("parent", type=int)

    leader_parser = subparsers.add_parser("leader", help="Get the leader of a subtree")
    leader_parser.add_argument("id", type=int, nargs="?", default=0)

    chain_parser = subparsers.add_parser("chain", help="List ids from a subtree leader toward the root")
    chain_parser.add_argument("id", type=int)
    chain_parser.add_argument("max", type=int)

    getblock_parser = subparsers.add_parser("getblock", help="Show a block")
    getblock_parser.add_argument("id", type=int)

    subparsers.add_parser("stop", help="Stop the server")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "insert":
        params = [args.id, args.parent]
    elif args.command == "chain":
        params = [args.id, args.max]
    elif args.command in ("leader", "getblock"):
        params = [args.id]
    else:
        params = []

    auth = (args.rpcuser, args.rpcpassword) if args.rpcuser else None
    try:
        result = rpc_call(args.rpcconnect, args.command, params, auth=auth)
    except RPCCallError as e:
        print(e, file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

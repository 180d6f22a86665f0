import asyncio
import argparse
import logging
import os
import sys

from kchain.core.tree import BlockTree
from kchain.protocol.commands import CommandProcessor, serve_stream, STATUS_FAILED, STATUS_MALFORMED

logger = logging.getLogger("KChainNode")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="kchain block tree")
    parser.add_argument("--rpcport", type=int, help="Serve JSON-RPC on <port> instead of reading stdin")
    parser.add_argument("--bind", default="127.0.0.1", help="Bind JSON-RPC to given address")
    parser.add_argument("--rpcuser", default=os.environ.get("KCHAIN_RPC_USER"), help="Username for JSON-RPC connections")
    parser.add_argument("--rpcpassword", default=os.environ.get("KCHAIN_RPC_PASSWORD"), help="Password for JSON-RPC connections")
    parser.add_argument("--allow-overwrite", action="store_true", help="Re-inserting an existing id replaces it instead of failing")
    parser.add_argument("--fold-malformed", action="store_true", help="Answer malformed lines with 1 instead of 255")
    parser.add_argument("--debug", action="store_true", help="Output extra debugging information")
    parser.add_argument("--logfile", help="Also write log output to <file>")
    return parser.parse_args(argv)


def configure_logging(args):
    # stdout carries protocol responses, so logs go to stderr
    handlers = [logging.StreamHandler(sys.stderr)]
    if args.logfile:
        handlers.append(logging.FileHandler(args.logfile))
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


async def run_rpc(tree, args):
    from kchain.rpc.rpc_server import RPCServer

    rpc_server = RPCServer(
        tree,
        port=args.rpcport,
        bind_address=args.bind,
        user=args.rpcuser,
        password=args.rpcpassword
    )
    await rpc_server.start()
    try:
        await rpc_server.stopped.wait()
    finally:
        await rpc_server.stop()
    return 0


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args)

    tree = BlockTree(allow_overwrite=args.allow_overwrite)

    if args.rpcport:
        logger.info(f"Starting kchain RPC node on port {args.rpcport}")
        try:
            return asyncio.run(run_rpc(tree, args))
        except KeyboardInterrupt:
            logger.info("Node stopping...")
            return 0

    processor = CommandProcessor(
        tree,
        malformed_status=STATUS_FAILED if args.fold_malformed else STATUS_MALFORMED
    )
    return serve_stream(processor, sys.stdin, sys.stdout)


if __name__ == "__main__":
    sys.exit(main())

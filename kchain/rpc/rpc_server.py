import asyncio
import base64
import logging
from aiohttp import web
from kchain.core.tree import DuplicateBlockError, ROOT_ID

logger = logging.getLogger("RPCServer")

# JSON-RPC error codes
RPC_PARSE_ERROR = -32700
RPC_METHOD_NOT_FOUND = -32601
RPC_INVALID_PARAMS = -32602
RPC_BLOCK_NOT_FOUND = -5
RPC_DUPLICATE_BLOCK = -27


class RPCError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


def _int_params(params, count, defaults=()):
    """Check the first `count` params are non-negative ints, filling trailing gaps from defaults."""
    if not isinstance(params, list):
        raise RPCError(RPC_INVALID_PARAMS, "params must be a list")
    values = list(params[:count])
    missing = count - len(values)
    if 0 < missing <= len(defaults):
        values += list(defaults[len(defaults) - missing:])
    if len(values) < count:
        raise RPCError(RPC_INVALID_PARAMS, f"Expected {count} params, got {len(params)}")
    ints = values[:count]
    # bool is an int subclass, floats (including Infinity) are rejected outright
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in ints):
        raise RPCError(RPC_INVALID_PARAMS, f"Params must be integers: {params}")
    if any(v < 0 for v in ints):
        raise RPCError(RPC_INVALID_PARAMS, f"Params must be non-negative: {params}")
    return ints


class RPCServer:
    def __init__(self, tree, port, bind_address='127.0.0.1', user=None, password=None):
        self.tree = tree
        self.port = port
        self.bind_address = bind_address
        self.user = user
        self.password = password
        self.enforce_auth = bool(user and password)
        self.stopped = asyncio.Event()
        self.app = web.Application()
        self.app.router.add_post('/', self.handle_request)
        self.runner = None
        self.site = None

        self.methods = {
            'getinfo': self.rpc_getinfo,
            'insert': self.rpc_insert,
            'leader': self.rpc_leader,
            'chain': self.rpc_chain,
            'getblock': self.rpc_getblock,
            'stop': self.rpc_stop,
        }

    async def start(self):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.bind_address, self.port)
        await self.site.start()
        logger.info(f"RPC Server started on {self.bind_address}:{self.port}")

    async def stop(self):
        if self.runner:
            await self.runner.cleanup()
        logger.info("RPC Server stopped")

    def check_auth(self, request):
        if not self.enforce_auth:
            return True
        auth_header = request.headers.get('Authorization')
        if not auth_header:
            return False
        try:
            auth_type, encoded = auth_header.split(None, 1)
            if auth_type.lower() != 'basic':
                return False
            decoded = base64.b64decode(encoded).decode('utf-8')
            username, password = decoded.split(':', 1)
        except ValueError:
            return False
        return username == self.user and password == self.password

    async def handle_request(self, request):
        if not self.check_auth(request):
            return web.Response(text="Unauthorized", status=401, headers={'WWW-Authenticate': 'Basic realm="RPC"'})

        try:
            data = await request.json()
        except ValueError:
            return web.Response(text="Invalid JSON", status=400)
        if not isinstance(data, dict):
            return web.json_response({"result": None, "error": {"code": RPC_PARSE_ERROR, "message": "Request must be an object"}, "id": None})

        method = data.get('method')
        params = data.get('params') or []
        req_id = data.get('id')

        result = None
        error = None

        logger.debug(f"RPC Request: {method} {params}")

        handler = self.methods.get(method)
        if handler is None:
            error = {"code": RPC_METHOD_NOT_FOUND, "message": f"Method not found: {method}"}
        else:
            try:
                result = handler(params)
            except RPCError as e:
                logger.info(f"RPC {method} failed: {e.message}")
                error = {"code": e.code, "message": e.message}

        return web.json_response({
            "result": result,
            "error": error,
            "id": req_id
        })

    def _require_block(self, block_id):
        block = self.tree.get_block(block_id)
        if block is None:
            raise RPCError(RPC_BLOCK_NOT_FOUND, f"Block {block_id} not found")
        return block

    def rpc_getinfo(self, params):
        leader = self.tree.leader()
        return {
            "blocks": len(self.tree),
            "leader": leader.id,
            "depth": leader.depth,
        }

    def rpc_insert(self, params):
        block_id, parent_id = _int_params(params, 2)
        try:
            block = self.tree.insert(block_id, parent_id)
        except DuplicateBlockError as e:
            raise RPCError(RPC_DUPLICATE_BLOCK, str(e))
        if block is None:
            raise RPCError(RPC_BLOCK_NOT_FOUND, f"Parent block {parent_id} not found")
        return block.to_dict()

    def rpc_leader(self, params):
        block_id, = _int_params(params, 1, defaults=(ROOT_ID,))
        return self.tree.leader_of(self._require_block(block_id)).to_dict()

    def rpc_chain(self, params):
        block_id, limit = _int_params(params, 2)
        self._require_block(block_id)
        return self.tree.chain(block_id, limit)

    def rpc_getblock(self, params):
        block_id, = _int_params(params, 1)
        block = self._require_block(block_id)
        parent = self.tree.parent_of(block)
        info = block.to_dict()
        info["parent"] = parent.id if parent else None
        info["leader"] = self.tree.leader_of(block).id
        return info

    def rpc_stop(self, params):
        logger.info("Shutdown requested via RPC")
        self.stopped.set()
        return "kchain server stopping"

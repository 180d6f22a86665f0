import logging
import re
from kchain.core.tree import DuplicateBlockError

logger = logging.getLogger("Protocol")

STATUS_OK = 0
STATUS_FAILED = 1
STATUS_MALFORMED = 255

# Insert command `i <id> <parent>`
P_INSERT = re.compile(r'^\s*i\s+(\d+)\s(\d+)\s*$', re.ASCII)
# Leader query command `l <id>`
P_LEADER = re.compile(r'^\s*l\s+(\d+)\s*$', re.ASCII)
# Chain query command `c <id> <max>`
P_CHAIN = re.compile(r'^\s*c\s+(\d+)\s(\d+)\s*$', re.ASCII)


def format_response(status, items):
    """A non-empty item list always means success."""
    if items:
        return " ".join(str(x) for x in [STATUS_OK] + items)
    return str(status if status > 0 else STATUS_FAILED)


class CommandProcessor:
    def __init__(self, tree, malformed_status=STATUS_MALFORMED):
        self.tree = tree
        self.malformed_status = malformed_status

    def execute(self, line):
        """Run one request line against the tree and return the response line."""
        status = STATUS_OK
        items = []

        m = P_INSERT.match(line)
        if m:
            items = self._insert(int(m.group(1)), int(m.group(2)))
            return format_response(status, items)

        m = P_LEADER.match(line)
        if m:
            block = self.tree.leader(int(m.group(1)))
            if block is not None:
                items = [block.id, block.depth]
            return format_response(status, items)

        m = P_CHAIN.match(line)
        if m:
            items = self.tree.chain(int(m.group(1)), int(m.group(2))) or []
            return format_response(status, items)

        logger.debug(f"Malformed command: {line.rstrip()!r}")
        return format_response(self.malformed_status, items)

    def _insert(self, block_id, parent_id):
        try:
            block = self.tree.insert(block_id, parent_id)
        except DuplicateBlockError as e:
            logger.info(f"Insert failed: {e}")
            return []
        if block is None:
            return []
        return [block.depth]


def serve_stream(processor, infile, outfile):
    """
    Answer one request per input line until EOF, flushing after each response.
    Returns the process exit status: 1 if reading the input failed, else 0.
    """
    # Undecodable bytes must reach the grammar as a malformed line
    if hasattr(infile, "reconfigure"):
        infile.reconfigure(errors="surrogateescape")

    count = 0
    try:
        for line in infile:
            outfile.write(processor.execute(line) + "\n")
            outfile.flush()
            count += 1
    except OSError as e:
        logger.error(f"Input stream error after {count} requests: {e}")
        return 1

    logger.info(f"End of input after {count} requests")
    return 0

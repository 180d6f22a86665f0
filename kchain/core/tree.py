import logging
from kchain.core.primitives import Block

logger = logging.getLogger("BlockTree")

ROOT_ID = 0


class BlockTreeError(Exception):
    pass


class DuplicateBlockError(BlockTreeError):
    def __init__(self, block_id):
        super().__init__(f"Block {block_id} already exists")
        self.block_id = block_id


class BlockTree:
    """
    Append-only tree of blocks that tracks, for every block, the deepest
    descendant in its subtree (its leader).

    Blocks live in an arena (self.blocks) and are addressed by id through
    self.index. Ties between equally deep descendants go to whichever was
    inserted first.
    """

    def __init__(self, allow_overwrite=False):
        self.allow_overwrite = allow_overwrite
        self.blocks = [] # slot -> Block
        self.index = {} # block id -> slot

        self._add(Block(ROOT_ID, 0, None, 0))

    def _add(self, block):
        self.blocks.append(block)
        self.index[block.id] = block.slot
        return block

    @property
    def root(self):
        return self.blocks[0]

    def __len__(self):
        return len(self.index)

    def __contains__(self, block_id):
        return block_id in self.index

    def get_block(self, block_id):
        """Return the block currently addressed by block_id, or None."""
        slot = self.index.get(block_id)
        if slot is None:
            return None
        return self.blocks[slot]

    def parent_of(self, block):
        if block.parent is None:
            return None
        return self.blocks[block.parent]

    def leader_of(self, block):
        return self.blocks[block.leader]

    def insert(self, block_id, parent_id):
        """
        Attach a new block under parent_id.

        Returns the new Block, or None when the parent is unknown.
        Raises DuplicateBlockError if block_id is taken and overwriting is off.
        """
        parent = self.get_block(parent_id)
        if parent is None:
            logger.debug(f"Insert {block_id} rejected: parent {parent_id} unknown")
            return None

        if block_id in self.index:
            if not self.allow_overwrite:
                logger.warning(f"Insert {block_id} rejected: id already in tree")
                raise DuplicateBlockError(block_id)
            logger.warning(f"Block {block_id} re-inserted under {parent_id}, previous entry displaced")

        block = self._add(Block(block_id, parent.depth + 1, parent.slot, len(self.blocks)))

        # Walk up until an ancestor already leads with an equal or deeper block
        pb = parent
        while pb is not None and self.leader_of(pb).depth < block.depth:
            pb.leader = block.slot
            pb = self.parent_of(pb)

        logger.debug(f"Block {block_id} inserted at depth {block.depth}")
        return block

    def leader(self, block_id=ROOT_ID):
        """Return the leader of block_id's subtree, or None if unknown."""
        block = self.get_block(block_id)
        if block is None:
            return None
        return self.leader_of(block)

    def chain(self, block_id, limit):
        """
        Return up to `limit` ids starting at the leader of block_id and
        ascending through parents toward the root. None if block_id is unknown.
        """
        pb = self.leader(block_id)
        if pb is None:
            return None

        ids = []
        while pb is not None and len(ids) < limit:
            ids.append(pb.id)
            pb = self.parent_of(pb)
        return ids

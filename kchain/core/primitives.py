class Block:
    """
    A node in the block tree.

    parent and leader are arena slots owned by the BlockTree, not object
    references. Only leader changes after construction.
    """
    __slots__ = ('id', 'depth', 'parent', 'slot', 'leader')

    def __init__(self, id=0, depth=0, parent=None, slot=0):
        self.id = id
        self.depth = depth
        self.parent = parent # None only for the root
        self.slot = slot
        self.leader = slot # Every block starts as its own leader

    @property
    def is_root(self):
        return self.parent is None

    def to_dict(self):
        return {
            "id": self.id,
            "depth": self.depth,
        }

    def __repr__(self):
        return f"Block(id={self.id}, depth={self.depth})"

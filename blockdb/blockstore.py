import functools
import os

from blockchain_parser.block import Block
from blockchain_parser.blockchain import get_block

from blockdb.config import BLOCK_CACHE_SIZE
from blockdb.errors import MalformedFile
from blockdb.locindex import dat_filename

class BlockStore:
    """
    Read decoded blocks and transactions back from the block files.

    Recently used blocks are kept decoded, since the transactions of one
    block tend to be looked at together.
    """
    def __init__(self, datadir, cache_size=BLOCK_CACHE_SIZE):
        self.datadir = datadir
        self._fetch = functools.lru_cache(maxsize=cache_size)(self._load_block)

    def _load_block(self, file_idx, offset):
        path = os.path.join(self.datadir, dat_filename(file_idx))
        return Block(get_block(path, offset), blk_file=path)

    def get_block(self, location):
        block = self._fetch(location.file_idx, location.offset)
        if block.hash != location.hash:
            raise MalformedFile(
                block.blk_file, location.offset,
                'expected block {} found {}, files changed since indexing?'.format(location.hash, block.hash)
            )
        return block

    def get_tx(self, location):
        block = self._fetch(location.file_idx, location.block_offset)
        transactions = block.transactions
        if location.idx >= len(transactions) or transactions[location.idx].txid != location.txid:
            raise MalformedFile(
                block.blk_file, location.block_offset,
                'tx {} not at position {}, files changed since indexing?'.format(location.txid, location.idx)
            )
        return transactions[location.idx]

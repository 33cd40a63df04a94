import collections
import logging
import mmap
import os
import re
import struct
import time

from blockchain_parser.block import Block

from blockdb.config import NETWORK_MAGIC
from blockdb.errors import MalformedFile, NotFound

logger = logging.getLogger(__name__)

BlockLocation = collections.namedtuple(
    'BlockLocation', ['hash', 'file_idx', 'offset', 'timestamp', 'tx_hashes']
)
TxLocation = collections.namedtuple(
    'TxLocation', ['txid', 'block_hash', 'idx', 'file_idx', 'block_offset']
)
ScannedBlock = collections.namedtuple('ScannedBlock', ['file_idx', 'offset', 'timestamp', 'block'])

NON_ZERO = re.compile(rb'[^\x00]')

def basename_to_int(basename):
    match = re.match(r'blk(\d+)\.dat$', basename)
    if match is None:
        raise ValueError('not a block file name: {}'.format(basename))
    return int(match.group(1))

def dat_filename(file_idx):
    return 'blk{:05}.dat'.format(file_idx)

def iter_raw_blocks(path, magic):
    """
    Yield (offset, raw_block) for every block in one blkNNNNN.dat file.

    Each block is stored as <magic><u32 size><block>, offset points at the
    first byte of <block>, which is also where bitcoind's block index points.
    Only zero preallocation may sit between blocks, anything else raises
    MalformedFile.
    """
    if os.path.getsize(path) == 0:
        return
    with open(path, 'rb') as f:
        with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as raw_data:
            length = len(raw_data)
            match = NON_ZERO.search(raw_data)
            while match is not None:
                offset = match.start()
                if raw_data[offset:offset + 4] != magic:
                    raise MalformedFile(path, offset, 'expected magic')
                if offset + 8 > length:
                    raise MalformedFile(path, offset, 'truncated block header')
                size = struct.unpack('<I', raw_data[offset + 4:offset + 8])[0]
                start = offset + 8
                if start + size > length:
                    raise MalformedFile(
                        path, offset, 'block of {} bytes runs past end of file'.format(size)
                    )
                yield start, raw_data[start:start + size]
                match = NON_ZERO.search(raw_data, start + size)

def scan_block_files(paths, magic=NETWORK_MAGIC['mainnet']):
    """
    Decode every block of the given files, in the given order.
    """
    for path in paths:
        try:
            file_idx = basename_to_int(os.path.basename(path))
        except ValueError as e:
            raise MalformedFile(path, 0, str(e)) from e
        start_time = time.time()
        nblocks = 0
        for offset, raw in iter_raw_blocks(path, magic):
            try:
                block = Block(raw, blk_file=path)
                # Force the lazy parse so that errors surface here.
                for tx in block.transactions:
                    tx.txid
                timestamp = struct.unpack('<I', raw[68:72])[0]
            except Exception as e:
                raise MalformedFile(path, offset, 'cannot decode block: {!r}'.format(e)) from e
            nblocks += 1
            yield ScannedBlock(file_idx, offset, timestamp, block)
        logger.info(
            '%s: %d blocks in %.3f s', os.path.basename(path), nblocks, time.time() - start_time
        )

class LocationIndex:
    """
    Block hash and txid -> position in the block files.
    """
    def __init__(self, connection):
        self.connection = connection
        self.finalized = True

    @classmethod
    def build(cls, block_files, connection, magic=NETWORK_MAGIC['mainnet']):
        index = cls(connection)
        index.create()
        for scanned in scan_block_files(block_files, magic):
            index.add_block(scanned)
        index.finalize()
        return index

    def create(self):
        self.connection.execute('DROP TABLE IF EXISTS block')
        self.connection.execute('DROP TABLE IF EXISTS tx')
        self.connection.execute(
            'CREATE TABLE block (hash TEXT PRIMARY KEY, file INT, offset INT, timestamp INT)'
        )
        self.connection.execute('CREATE TABLE tx (txid TEXT, block TEXT, idx INT, file INT, offset INT)')
        self.finalized = False

    def add_block(self, scanned):
        """
        Return False if the block was already indexed, bitcoind sometimes
        stores the same block twice.
        """
        if self.finalized:
            raise RuntimeError('location index is read only')
        block = scanned.block
        cursor = self.connection.execute(
            'INSERT OR IGNORE INTO block VALUES (?, ?, ?, ?)',
            (block.hash, scanned.file_idx, scanned.offset, scanned.timestamp)
        )
        if cursor.rowcount == 0:
            logger.warning('duplicate block %s in %s', block.hash, dat_filename(scanned.file_idx))
            return False
        self.connection.executemany(
            'INSERT INTO tx VALUES (?, ?, ?, ?, ?)',
            (
                (tx.txid, block.hash, idx, scanned.file_idx, scanned.offset)
                for idx, tx in enumerate(block.transactions)
            )
        )
        return True

    def finalize(self):
        # Faster to build the indexes once all rows are in.
        self.connection.execute('CREATE INDEX IF NOT EXISTS txid_index ON tx (txid)')
        self.connection.execute('CREATE INDEX IF NOT EXISTS block_index ON tx (block, idx)')
        self.connection.commit()
        self.finalized = True

    def get_block_location(self, block_hash):
        row = self.connection.execute(
            'SELECT hash, file, offset, timestamp FROM block WHERE hash = ?', (block_hash,)
        ).fetchone()
        if row is None:
            raise NotFound('block {} not found'.format(block_hash))
        tx_hashes = tuple(
            txid for (txid,) in self.connection.execute(
                'SELECT txid FROM tx WHERE block = ? ORDER BY idx', (block_hash,)
            )
        )
        return BlockLocation(*row, tx_hashes)

    def get_tx_location(self, txid):
        # Two early coinbase txids appear twice in the chain, the first one wins.
        row = self.connection.execute(
            'SELECT txid, block, idx, file, offset FROM tx WHERE txid = ? ORDER BY rowid LIMIT 1', (txid,)
        ).fetchone()
        if row is None:
            raise NotFound('tx {} not found'.format(txid))
        return TxLocation(*row)

    def block_count(self):
        return self.connection.execute('SELECT COUNT(*) FROM block').fetchone()[0]

    def tx_count(self):
        return self.connection.execute('SELECT COUNT(*) FROM tx').fetchone()[0]

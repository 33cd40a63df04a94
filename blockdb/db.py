import logging
import os
import sqlite3

from blockchain_parser.blockchain import get_files

from blockdb.block import BlockView
from blockdb.blockstore import BlockStore
from blockdb.errors import NotFound
from blockdb.locindex import LocationIndex, basename_to_int, scan_block_files
from blockdb.spendindex import SpendIndex
from blockdb.tx import TxView

logger = logging.getLogger(__name__)

INDEX_TABLES = {'block', 'tx', 'spent'}

def connect(path):
    # Indexes are read only once built, so readers may share the connection.
    return sqlite3.connect(path, check_same_thread=False)

def list_block_files(datadir, end_file=None):
    files = get_files(datadir)
    if end_file is not None:
        files = [f for f in files if basename_to_int(os.path.basename(f)) < end_file]
    return files

class BlockDB:
    """
    Lookup of blocks and transactions by hash over a directory of
    blkNNNNN.dat files.

    Use BlockDB.build to scan the files and write the indexes, and
    BlockDB.open to reuse indexes written by an earlier build.
    """
    def __init__(self, config, connection, locindex, spendindex):
        self.config = config
        self.connection = connection
        self.locindex = locindex
        self.spendindex = spendindex
        self.store = BlockStore(config.datadir, config.block_cache_size)
        config.select_params()

    @classmethod
    def build(cls, config, end_file=None):
        """
        Scan the block files once, in file order, filling both indexes.

        The indexes are written next to config.index_path and only moved
        over it once complete, so a failed build keeps the previous index.
        """
        block_files = list_block_files(config.datadir, end_file)
        logger.info('indexing %d block files from %s', len(block_files), config.datadir)
        in_memory = config.index_path == ':memory:'
        build_path = config.index_path if in_memory else config.index_path + '.tmp'
        if not in_memory and os.path.exists(build_path):
            os.remove(build_path)
        connection = connect(build_path)
        try:
            locindex = LocationIndex(connection)
            spendindex = SpendIndex(connection, config.coinbase_hash)
            locindex.create()
            spendindex.create()
            for scanned in scan_block_files(block_files, config.magic):
                if locindex.add_block(scanned):
                    for tx in scanned.block.transactions:
                        spendindex.add_tx(tx)
            locindex.finalize()
            spendindex.finalize()
        except BaseException:
            connection.close()
            if not in_memory:
                os.remove(build_path)
            raise
        logger.info(
            'indexed %d blocks, %d txs, %d spent outputs',
            locindex.block_count(), locindex.tx_count(), len(spendindex)
        )
        if in_memory:
            return cls(config, connection, locindex, spendindex)
        connection.close()
        os.replace(build_path, config.index_path)
        return cls.open(config)

    @classmethod
    def open(cls, config):
        if config.index_path != ':memory:' and not os.path.exists(config.index_path):
            raise NotFound('no index at {}, build it first'.format(config.index_path))
        connection = connect(config.index_path)
        tables = {
            name for (name,) in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        if not INDEX_TABLES <= tables:
            connection.close()
            raise NotFound('incomplete index at {}, rebuild it'.format(config.index_path))
        return cls(
            config, connection, LocationIndex(connection), SpendIndex(connection, config.coinbase_hash)
        )

    def close(self):
        self.connection.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def get_tx(self, txid):
        location = self.locindex.get_tx_location(txid)
        return TxView(self.store.get_tx(location), location, self)

    def get_block(self, block_hash):
        return BlockView(self.locindex.get_block_location(block_hash), self)

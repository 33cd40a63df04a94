import os
import pathlib

import bitcoin

SATOSHIS_PER_BTC = 100000000
# Previous output hash referenced by coinbase inputs.
COINBASE_HASH = '0' * 64
# Smallest output value, used as a marker by data embedding schemes.
DUST_VALUE = 1
TXINDEX_SQLITE = 'txindex.sqlite3'
BLOCK_CACHE_SIZE = 64
# Magic bytes that prefix every block in blkNNNNN.dat.
NETWORK_MAGIC = {
    'mainnet': bytes.fromhex('f9beb4d9'),
    'testnet': bytes.fromhex('0b110907'),
    'signet': bytes.fromhex('0a03cf40'),
    'regtest': bytes.fromhex('fabfb5da'),
}

def init_datadir(datadir):
    if datadir is None:
        envvar = os.getenv('BITCOIN_DATA_DIR')
        if envvar is None:
            return os.path.join(pathlib.Path.home(), '.bitcoin', 'blocks')
        else:
            return os.path.join(envvar, 'blocks')
    else:
        return datadir

class Config:
    """
    Everything needed to build or open a BlockDB.

    index_path is the SQLite file holding both indexes, ':memory:' keeps them
    in RAM for the lifetime of the process.
    """
    def __init__(
        self,
        datadir=None,
        network='mainnet',
        index_path=TXINDEX_SQLITE,
        coinbase_hash=COINBASE_HASH,
        dust_value=DUST_VALUE,
        block_cache_size=BLOCK_CACHE_SIZE,
    ):
        if network not in NETWORK_MAGIC:
            raise ValueError('unknown network: {}'.format(network))
        self.datadir = init_datadir(datadir)
        self.network = network
        self.index_path = index_path
        self.coinbase_hash = coinbase_hash
        self.dust_value = dust_value
        self.block_cache_size = block_cache_size

    @classmethod
    def from_env(cls, datadir=None, network=None, index_path=None):
        if network is None:
            network = os.getenv('BLOCKDB_NETWORK', 'mainnet')
        if index_path is None:
            index_path = os.getenv('BLOCKDB_INDEX', TXINDEX_SQLITE)
        return cls(datadir=datadir, network=network, index_path=index_path)

    @property
    def magic(self):
        return NETWORK_MAGIC[self.network]

    def select_params(self):
        # python-bitcoinlib keeps address prefixes in global state.
        bitcoin.SelectParams('testnet' if self.network == 'signet' else self.network)

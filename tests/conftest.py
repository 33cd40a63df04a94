from types import SimpleNamespace

import pytest
from bitcoin.core import COIN
from bitcoin.core.script import OP_RETURN

import utils
from blockdb import BlockDB, Config

@pytest.fixture
def chain(tmp_path):
    """
    Three blocks over two files:

    blk00000.dat: b0 [cb0], b1 [cb1, tx_a]
    blk00001.dat: b2 [cb2, tx_b, tx_c]

    tx_a spends cb0:0 into three dust outputs and change, tx_b spends the
    change and tx_c two of the dust outputs.
    """
    datadir = tmp_path / 'blocks'
    datadir.mkdir()
    cb0 = utils.coinbase([50 * COIN], b'cb0')
    cb1 = utils.coinbase([50 * COIN], b'cb1')
    tx_a = utils.spend(
        [(utils.txid(cb0), 0)],
        [
            (1, [OP_RETURN, b'hello ']),
            (1, [OP_RETURN, b'world']),
            (1, utils.MULTISIG),
            (4999990000, utils.P2PKH),
        ],
    )
    cb2 = utils.coinbase([50 * COIN + 10001], b'cb2')
    tx_b = utils.spend([(utils.txid(tx_a), 3)], [4999980000])
    tx_c = utils.spend([(utils.txid(tx_a), 0), (utils.txid(tx_a), 2)], [1])
    b0 = utils.block([cb0])
    b1 = utils.block([cb1, tx_a], prev=b0.GetHash(), ntime=utils.GENESIS_TIME + 600)
    b2 = utils.block([cb2, tx_b, tx_c], prev=b1.GetHash(), ntime=utils.GENESIS_TIME + 1200)
    offsets0 = utils.write_blk_file(str(datadir), 0, [b0, b1], padding=64)
    offsets1 = utils.write_blk_file(str(datadir), 1, [b2])
    return SimpleNamespace(
        datadir=str(datadir),
        index_path=str(tmp_path / 'txindex.sqlite3'),
        blocks=[b0, b1, b2],
        offsets=[offsets0[0], offsets0[1], offsets1[0]],
        cb0=cb0, cb1=cb1, cb2=cb2,
        tx_a=tx_a, tx_b=tx_b, tx_c=tx_c,
    )

@pytest.fixture
def config(chain):
    return Config(datadir=chain.datadir, index_path=chain.index_path)

@pytest.fixture
def db(config):
    db = BlockDB.build(config)
    yield db
    db.close()

import concurrent.futures
import os

import pytest

import main
import utils
from blockdb import BlockDB, Config, FeeStatus
from blockdb.errors import MalformedFile, NotFound, Unspent

def test_get_tx(db, chain):
    tx = db.get_tx(utils.txid(chain.tx_a))
    assert tx.txid == utils.txid(chain.tx_a)
    assert tx.block_hash == utils.block_hash(chain.blocks[1])
    assert tx.index_in_block == 1
    assert tx.dat_filename() == 'blk00000.dat'
    assert tx.block_offset == chain.offsets[1]
    assert tx.block_timestamp == utils.GENESIS_TIME + 600
    assert not tx.is_coinbase()
    assert db.get_tx(utils.txid(chain.cb0)).is_coinbase()

def test_fees(db, chain):
    tx_a = db.get_tx(utils.txid(chain.tx_a))
    assert tx_a.fee() == 50 * 100000000 - 4999990003
    assert tx_a.fee().format_btc() == '0.00009997'
    assert tx_a.fee_status is FeeStatus.COMPUTED
    assert db.get_tx(utils.txid(chain.tx_b)).fee() == 10000
    assert db.get_tx(utils.txid(chain.tx_c)).fee() == 1

def test_fee_predecessor_outside_index(config, chain):
    with BlockDB.build(config, end_file=1) as db:
        assert db.locindex.block_count() == 2
        with pytest.raises(NotFound):
            db.get_tx(utils.txid(chain.tx_b))
        tx_a = db.get_tx(utils.txid(chain.tx_a))
        with pytest.raises(Unspent):
            tx_a.spending_tx(3)

def test_spenders(db, chain):
    tx_a = db.get_tx(utils.txid(chain.tx_a))
    assert tx_a.spending_tx(3).txid == utils.txid(chain.tx_b)
    assert tx_a.spending_tx(0).txid == utils.txid(chain.tx_c)
    assert tx_a.spending_tx(2).txid == utils.txid(chain.tx_c)
    assert not tx_a.is_spent(1)
    with pytest.raises(Unspent):
        tx_a.spending_tx(1)
    cb0 = db.get_tx(utils.txid(chain.cb0))
    assert cb0.spending_tx(0).txid == utils.txid(chain.tx_a)

def test_payloads_and_heuristics(db, chain):
    tx_a = db.get_tx(utils.txid(chain.tx_a))
    assert tx_a.concat_marked_payloads() == b'hello world'
    assert tx_a.has_dust_pattern()
    assert tx_a.find_max_value_output_index() == 3
    assert [len(a) for a in tx_a.get_all_output_addresses()] == [0, 0, 2, 1]

def test_get_block(db, chain):
    b2 = db.get_block(utils.block_hash(chain.blocks[2]))
    assert b2.file_idx == 1
    assert b2.dat_filename() == 'blk00001.dat'
    assert b2.offset == chain.offsets[2]
    assert b2.timestamp == utils.GENESIS_TIME + 1200
    assert b2.tx_hashes == tuple(utils.txid(t) for t in [chain.cb2, chain.tx_b, chain.tx_c])
    assert [tx.txid for tx in b2.transactions()] == list(b2.tx_hashes)
    assert b2.decode().hash == b2.hash
    assert b2.transactions()[1].fee() == 10000
    with pytest.raises(NotFound):
        db.get_block('11' * 32)

def test_open_existing_index(db, config, chain):
    db.close()
    with BlockDB.open(config) as reopened:
        tx_b = reopened.get_tx(utils.txid(chain.tx_b))
        assert tx_b.fee() == 10000
        assert reopened.get_tx(utils.txid(chain.tx_a)).spending_tx(3).txid == tx_b.txid

def test_open_missing_index(tmp_path):
    with pytest.raises(NotFound):
        BlockDB.open(Config(datadir=str(tmp_path), index_path=str(tmp_path / 'missing.sqlite3')))

def test_failed_build_leaves_no_index(config, chain):
    with open(os.path.join(chain.datadir, 'blk00002.dat'), 'wb') as f:
        f.write(utils.MAINNET_MAGIC + b'\xff\xff\x00\x00')
    with pytest.raises(MalformedFile):
        BlockDB.build(config)
    assert not os.path.exists(config.index_path)
    assert not os.path.exists(config.index_path + '.tmp')
    with pytest.raises(NotFound):
        BlockDB.open(config)

def test_failed_rebuild_keeps_previous_index(db, config, chain):
    db.close()
    with open(os.path.join(chain.datadir, 'blk00002.dat'), 'wb') as f:
        f.write(b'\x13\x37' * 5000)
    with pytest.raises(MalformedFile):
        BlockDB.build(config)
    assert not os.path.exists(config.index_path + '.tmp')
    with BlockDB.open(config) as reopened:
        assert reopened.locindex.block_count() == 3
        assert reopened.get_tx(utils.txid(chain.tx_a)).spending_tx(3).txid == utils.txid(chain.tx_b)

def test_concurrent_readers(db, chain):
    tx_a = utils.txid(chain.tx_a)
    expected = {
        'txid': tx_a,
        'fee': 9997,
        'spenders': [utils.txid(chain.tx_c), utils.txid(chain.tx_b)],
        'spent': [True, False, True, True],
    }

    def read(i):
        # Fresh views so that every call goes back to the shared connection and cache.
        tx = db.get_tx(tx_a)
        return {
            'txid': tx.txid,
            'fee': tx.fee(),
            'spenders': [tx.spending_tx(0).txid, tx.spending_tx(3).txid],
            'spent': [tx.is_spent(vout) for vout in range(4)],
        }

    with concurrent.futures.ThreadPoolExecutor(max_workers=16) as executor:
        results = list(executor.map(read, range(400)))
    assert results == [expected] * 400

def test_cli(chain, capsys):
    common = ['-d', chain.datadir, '--index', chain.index_path]
    assert main.main(common + ['build']) == 0
    assert main.main(common + ['tx', utils.txid(chain.tx_a), '--fee', '--spender', '3']) == 0
    out = capsys.readouterr().out
    assert 'fee 0.00009997' in out
    assert 'spent by {}'.format(utils.txid(chain.tx_b)) in out
    assert main.main(common + ['tx', utils.txid(chain.tx_a), '--payload', 'op-return']) == 0
    assert b'hello world'.hex() in capsys.readouterr().out
    assert main.main(common + ['block', utils.block_hash(chain.blocks[0])]) == 0
    assert utils.txid(chain.cb0) in capsys.readouterr().out
    assert main.main(common + ['tx', '22' * 32]) == 1

import collections
import sqlite3

from blockdb.config import COINBASE_HASH
from blockdb.errors import DuplicateSpend, NotFound

SpentOutputKey = collections.namedtuple('SpentOutputKey', ['txid', 'vout'])
SpentOutputRecord = collections.namedtuple('SpentOutputRecord', ['spender', 'vin'])

class SpendIndex:
    """
    Output (txid, vout) -> the input that spends it.

    Filled by a single pass over every transaction in chain file order, then
    finalized. Lookups are read only and may come from any thread.
    """
    def __init__(self, connection, coinbase_hash=COINBASE_HASH):
        self.connection = connection
        self.coinbase_hash = coinbase_hash
        self.finalized = True

    @classmethod
    def build(cls, transactions, connection, coinbase_hash=COINBASE_HASH):
        index = cls(connection, coinbase_hash)
        index.create()
        for tx in transactions:
            index.add_tx(tx)
        index.finalize()
        return index

    def create(self):
        self.connection.execute('DROP TABLE IF EXISTS spent')
        self.connection.execute(
            'CREATE TABLE spent (txid TEXT, vout INT, spender TEXT, vin INT, PRIMARY KEY (txid, vout))'
        )
        self.finalized = False

    def add_tx(self, tx):
        if self.finalized:
            raise RuntimeError('spend index is read only')
        rows = [
            (inp.transaction_hash, inp.transaction_index, tx.txid, vin)
            for vin, inp in enumerate(tx.inputs)
            if inp.transaction_hash != self.coinbase_hash
        ]
        try:
            self.connection.executemany('INSERT INTO spent VALUES (?, ?, ?, ?)', rows)
        except sqlite3.IntegrityError as e:
            for txid, vout, spender, vin in rows:
                key = SpentOutputKey(txid, vout)
                new = SpentOutputRecord(spender, vin)
                try:
                    old = self.lookup(key)
                except NotFound:
                    continue
                if old != new:
                    raise DuplicateSpend(key, old, new) from e
            raise

    def finalize(self):
        self.connection.commit()
        self.finalized = True

    def lookup(self, key):
        row = self.connection.execute(
            'SELECT spender, vin FROM spent WHERE txid = ? AND vout = ?', (key.txid, key.vout)
        ).fetchone()
        if row is None:
            raise NotFound('output {}:{} is not spent'.format(key.txid, key.vout))
        return SpentOutputRecord(*row)

    def __len__(self):
        return self.connection.execute('SELECT COUNT(*) FROM spent').fetchone()[0]

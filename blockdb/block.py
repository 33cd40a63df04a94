from blockdb.locindex import TxLocation, dat_filename
from blockdb.tx import TxView

class BlockView:
    def __init__(self, location, db):
        self.location = location
        self.db = db

    def __repr__(self):
        return 'BlockView({})'.format(self.hash)

    @property
    def hash(self):
        return self.location.hash

    @property
    def file_idx(self):
        return self.location.file_idx

    @property
    def offset(self):
        return self.location.offset

    @property
    def timestamp(self):
        return self.location.timestamp

    @property
    def tx_hashes(self):
        return self.location.tx_hashes

    def dat_filename(self):
        return dat_filename(self.file_idx)

    def decode(self):
        """
        The blockchain_parser Block, read from disk on first use.
        """
        return self.db.store.get_block(self.location)

    def transactions(self):
        ret = []
        for idx, txid in enumerate(self.tx_hashes):
            location = TxLocation(txid, self.hash, idx, self.file_idx, self.offset)
            ret.append(TxView(self.db.store.get_tx(location), location, self.db))
        return ret

class BlockDBError(Exception):
    pass

class NotFound(BlockDBError):
    pass

class Unspent(NotFound):
    def __init__(self, txid, vout):
        super().__init__('output {}:{} is not spent by any indexed transaction'.format(txid, vout))
        self.txid = txid
        self.vout = vout

class PredecessorNotFound(NotFound):
    """
    Fee computation could not resolve the output spent by one input.
    Nothing is cached, so the call may be retried.
    """
    def __init__(self, txid, vin, prev_txid, prev_vout):
        super().__init__(
            'tx {} input {} spends unknown output {}:{}'.format(txid, vin, prev_txid, prev_vout)
        )
        self.txid = txid
        self.vin = vin
        self.prev_txid = prev_txid
        self.prev_vout = prev_vout

class MalformedFile(BlockDBError):
    def __init__(self, path, offset, reason):
        super().__init__('{} at offset {}: {}'.format(path, offset, reason))
        self.path = path
        self.offset = offset

class DuplicateSpend(BlockDBError):
    def __init__(self, key, first, second):
        super().__init__(
            'output {}:{} spent twice: by {}:{} and by {}:{}'.format(
                key.txid, key.vout, first.spender, first.vin, second.spender, second.vin)
        )
        self.key = key
        self.first = first
        self.second = second

class ExtractionError(BlockDBError):
    """
    Payload extraction failed for one script. Helpers that aggregate over
    many scripts skip the script instead of failing.
    """

class NotMarked(ExtractionError):
    pass

class CorruptEncoding(ExtractionError):
    pass

class UnrecognizedScriptType(ExtractionError):
    pass

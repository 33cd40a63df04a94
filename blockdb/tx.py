import decimal
import enum
import logging
import threading

from blockdb.addresses import script_addresses
from blockdb.errors import NotFound, PredecessorNotFound, Unspent
from blockdb.locindex import dat_filename
from blockdb.payload import (
    concat_across_inputs,
    concat_across_outputs,
    decode_satoshi_encoding,
    extract_marked_payload,
    extract_nonpush_bytes,
    extract_pushdata_bytes,
)
from blockdb.spendindex import SpentOutputKey

logger = logging.getLogger(__name__)

class Satoshis(int):
    """
    Integer amount of satoshis. Only converted to BTC for display.
    """
    def to_btc(self):
        return decimal.Decimal(int(self)).scaleb(-8)

    def format_btc(self):
        return '{:.8f}'.format(self.to_btc())

class FeeStatus(enum.Enum):
    NOT_COMPUTED = 'NOT_COMPUTED'
    COMPUTED = 'COMPUTED'
    # Last attempt failed, the next call tries again.
    FAILED = 'FAILED'

class TxView:
    """
    Query surface for one decoded transaction.

    Wraps a blockchain_parser Transaction together with where it was found
    and the BlockDB it came from, so that questions about predecessors and
    spenders can go back to the indexes.
    """
    def __init__(self, tx, location, db):
        self.tx = tx
        self.location = location
        self.db = db
        self._fee = None
        self._fee_status = FeeStatus.NOT_COMPUTED
        self._fee_lock = threading.Lock()

    def __repr__(self):
        return 'TxView({})'.format(self.txid)

    @property
    def txid(self):
        return self.tx.txid

    @property
    def inputs(self):
        return self.tx.inputs

    @property
    def outputs(self):
        return self.tx.outputs

    @property
    def block_hash(self):
        return self.location.block_hash

    @property
    def index_in_block(self):
        return self.location.idx

    @property
    def file_idx(self):
        return self.location.file_idx

    @property
    def block_offset(self):
        return self.location.block_offset

    @property
    def block_timestamp(self):
        return self.db.locindex.get_block_location(self.block_hash).timestamp

    def dat_filename(self):
        return dat_filename(self.file_idx)

    def get_block(self):
        return self.db.get_block(self.block_hash)

    def is_coinbase(self):
        return any(inp.transaction_hash == self.db.config.coinbase_hash for inp in self.inputs)

    ## Fee.

    @property
    def fee_status(self):
        return self._fee_status

    def fee(self):
        """
        Sum of the spent outputs minus sum of the own outputs.

        Computed once, concurrent first callers wait for the first one.
        Failures are not remembered.
        """
        if self._fee_status is FeeStatus.COMPUTED:
            return self._fee
        with self._fee_lock:
            if self._fee_status is FeeStatus.COMPUTED:
                return self._fee
            try:
                fee = self._compute_fee()
            except PredecessorNotFound:
                self._fee_status = FeeStatus.FAILED
                raise
            self._fee = fee
            self._fee_status = FeeStatus.COMPUTED
            return fee

    def _compute_fee(self):
        coinbase_hash = self.db.config.coinbase_hash
        out_value = sum(out.value for out in self.outputs)
        in_value = 0
        for vin, inp in enumerate(self.inputs):
            if inp.transaction_hash == coinbase_hash:
                continue
            try:
                prev_tx = self.db.get_tx(inp.transaction_hash)
                in_value += prev_tx.outputs[inp.transaction_index].value
            except (NotFound, IndexError) as e:
                logger.warning(
                    'cannot resolve %s:%d while calculating fee for %s (input %d)',
                    inp.transaction_hash, inp.transaction_index, self.txid, vin
                )
                raise PredecessorNotFound(
                    self.txid, vin, inp.transaction_hash, inp.transaction_index
                ) from e
        return Satoshis(in_value - out_value)

    ## Spenders.

    def spending_tx(self, output_idx):
        try:
            record = self.db.spendindex.lookup(SpentOutputKey(self.txid, output_idx))
        except NotFound as e:
            raise Unspent(self.txid, output_idx) from e
        return self.db.get_tx(record.spender)

    def is_spent(self, output_idx):
        try:
            self.db.spendindex.lookup(SpentOutputKey(self.txid, output_idx))
        except NotFound:
            return False
        return True

    ## Output values.

    def find_max_value_output_index(self):
        """
        First index of the largest output. There must be at least one output.
        """
        outputs = self.outputs
        return max(range(len(outputs)), key=lambda i: outputs[i].value)

    def has_dust_pattern(self):
        """
        All outputs but one are dust. Typical of data carrying transactions,
        where the dust outputs hold the data and the last one the change.
        """
        ndust = sum(1 for out in self.outputs if out.value == self.db.config.dust_value)
        return ndust > 0 and ndust == len(self.outputs) - 1

    ## Addresses.

    def get_output_address(self, output_idx):
        return script_addresses(self.outputs[output_idx].script.hex)

    def get_all_output_addresses(self):
        return [script_addresses(out.script.hex) for out in self.outputs]

    ## Payloads.

    def marked_payload(self, output_idx):
        return extract_marked_payload(self.outputs[output_idx].script.hex)

    def concat_marked_payloads(self):
        return concat_across_outputs(self.outputs, extract_marked_payload)

    def input_nonpush_bytes(self, input_idx):
        return extract_nonpush_bytes(self.inputs[input_idx].script.hex)

    def output_nonpush_bytes(self, output_idx):
        return extract_nonpush_bytes(self.outputs[output_idx].script.hex)

    def input_pushdata(self, input_idx):
        return extract_pushdata_bytes(self.inputs[input_idx].script.hex)

    def output_pushdata(self, output_idx):
        return extract_pushdata_bytes(self.outputs[output_idx].script.hex)

    def concat_input_nonpush_bytes(self):
        return concat_across_inputs(self.inputs, extract_nonpush_bytes)

    def concat_output_nonpush_bytes(self):
        return concat_across_outputs(self.outputs, extract_nonpush_bytes)

    def concat_input_pushdata(self):
        return concat_across_inputs(self.inputs, extract_pushdata_bytes)

    def concat_output_pushdata(self):
        return concat_across_outputs(self.outputs, extract_pushdata_bytes)

    def concat_input_scripts(self):
        return b''.join(inp.script.hex for inp in self.inputs)

    def satoshi_data(self, extractor=extract_pushdata_bytes):
        """
        Decode a Satoshi uploader payload, <u32 length><u32 crc32><data>,
        spread over the outputs.

        Reads the output pushdata by default, since the uploader hides its
        data in the fake public keys of multisig outputs. Pass
        extract_nonpush_bytes to decode the non-push byte stream instead.
        """
        return decode_satoshi_encoding(concat_across_outputs(self.outputs, extractor))

"""
Pull embedded data out of transaction scripts.

Arbitrary data ends up in scripts in three ways: after an OP_RETURN marker,
as the operands of push opcodes (fake public keys and hashes), and as
literal bytes in place of opcodes. Each extractor below picks one of those
out of a single script. The concat_* helpers glue the result of one
extractor over every input or output of a transaction, since large payloads
are split over many of them.
"""

import binascii
import logging
import struct

from bitcoin.core.script import (
    CScript,
    CScriptInvalidError,
    OP_PUSHDATA1,
    OP_PUSHDATA2,
    OP_PUSHDATA4,
    OP_RETURN,
)

from blockdb.errors import CorruptEncoding, ExtractionError, NotMarked

logger = logging.getLogger(__name__)

# Bytes taken by a push opcode and its length field, everything below
# OP_PUSHDATA1 encodes the length in the opcode itself.
PUSH_HEADER_LEN = {
    OP_PUSHDATA1: 2,
    OP_PUSHDATA2: 3,
    OP_PUSHDATA4: 5,
}

def split_script(script):
    """
    Return (pushed, other): the concatenated push operands, and every byte
    that is neither a push operand nor push framing.

    Never raises. A push that runs past the end of the script is not a push,
    so the whole tail starting at its opcode goes to other.
    """
    script = bytes(script)
    pushed = []
    other = []
    end = 0
    try:
        for opcode, data, sop_idx in CScript(script).raw_iter():
            if data is None:
                other.append(script[sop_idx:sop_idx + 1])
                end = sop_idx + 1
            else:
                pushed.append(data)
                end = sop_idx + PUSH_HEADER_LEN.get(opcode, 1) + len(data)
    except CScriptInvalidError:
        other.append(script[end:])
    return b''.join(pushed), b''.join(other)

def extract_pushdata_bytes(script):
    return split_script(script)[0]

def extract_nonpush_bytes(script):
    return split_script(script)[1]

def extract_marked_payload(script):
    """
    Data pushed after a leading OP_RETURN.
    """
    if not script or script[0] != OP_RETURN:
        raise NotMarked('script does not start with OP_RETURN')
    return extract_pushdata_bytes(script[1:])

def _concat(ios, extractor, kind):
    ret = []
    for ioidx, io in enumerate(ios):
        try:
            ret.append(extractor(io.script.hex))
        except ExtractionError as e:
            logger.debug('skipping %s %d: %s', kind, ioidx, e)
    return b''.join(ret)

def concat_across_outputs(outputs, extractor):
    return _concat(outputs, extractor, 'output')

def concat_across_inputs(inputs, extractor):
    return _concat(inputs, extractor, 'input')

def decode_satoshi_encoding(data):
    """
    Unpack the format used by the Satoshi uploader script:
    <u32 length><u32 crc32><payload>, both little endian.

    https://gist.github.com/cirosantilli/7e9af25f4f742b97074c10b9c5816f3d
    """
    if len(data) < 8:
        raise CorruptEncoding('need 8 header bytes, got {}'.format(len(data)))
    length = struct.unpack('<L', data[0:4])[0]
    checksum = struct.unpack('<L', data[4:8])[0]
    payload = data[8:8+length]
    # An empty payload has crc 0, so all-zero data would otherwise pass.
    if length == 0:
        raise CorruptEncoding('zero length')
    if len(payload) < length:
        raise CorruptEncoding('declared length {} but only {} bytes'.format(length, len(payload)))
    if checksum != binascii.crc32(payload):
        raise CorruptEncoding('crc32 mismatch')
    return payload

import binascii
import os
import struct

from bitcoin.core import CBlock, COutPoint, CTransaction, CTxIn, CTxOut, b2lx, lx
from bitcoin.core.script import (
    OP_2,
    OP_CHECKMULTISIG,
    OP_CHECKSIG,
    OP_DUP,
    OP_EQUALVERIFY,
    OP_HASH160,
    OP_TRUE,
    CScript,
)
from blockchain_parser.transaction import Transaction

MAINNET_MAGIC = bytes.fromhex('f9beb4d9')
GENESIS_TIME = 1231006505
PUBKEY_A = b'\x02' + b'\xaa' * 32
PUBKEY_B = b'\x03' + b'\xbb' * 32
MULTISIG = CScript([1, PUBKEY_A, PUBKEY_B, OP_2, OP_CHECKMULTISIG])
P2PKH = CScript([OP_DUP, OP_HASH160, b'\x11' * 20, OP_EQUALVERIFY, OP_CHECKSIG])

def coinbase(values, tag=b'cb'):
    # The tag keeps coinbase txids of different blocks apart.
    return CTransaction(
        [CTxIn(COutPoint(), CScript([tag]))],
        [CTxOut(v, CScript([OP_TRUE])) for v in values],
    )

def spend(prevouts, outputs, script_sig=None):
    """
    prevouts: [(txid hex, vout)]
    outputs: [value] or [(value, script)]
    """
    if script_sig is None:
        script_sig = CScript([b'sig'])
    vout = []
    for out in outputs:
        if isinstance(out, tuple):
            vout.append(CTxOut(out[0], CScript(out[1])))
        else:
            vout.append(CTxOut(out, CScript([OP_TRUE])))
    return CTransaction(
        [CTxIn(COutPoint(lx(txid), n), script_sig) for txid, n in prevouts],
        vout,
    )

def txid(ctx):
    return b2lx(ctx.GetTxid())

def txid_of_outpoint(prevout):
    return b2lx(prevout.hash)

def parse(ctx):
    """
    Round trip through the real decoder, as the index would see it.
    """
    return Transaction(ctx.serialize())

def block(txs, prev=b'\x00' * 32, ntime=GENESIS_TIME):
    unrooted = CBlock(nVersion=1, hashPrevBlock=prev, nTime=ntime, vtx=txs)
    return CBlock(
        nVersion=1,
        hashPrevBlock=prev,
        hashMerkleRoot=unrooted.calc_merkle_root(),
        nTime=ntime,
        nBits=0x1d00ffff,
        nNonce=0,
        vtx=txs,
    )

def block_hash(cblock):
    return b2lx(cblock.GetHash())

def satoshi_encode(payload):
    return struct.pack('<LL', len(payload), binascii.crc32(payload)) + payload

def write_blk_file(datadir, file_idx, blocks, magic=MAINNET_MAGIC, padding=0):
    """
    Write blkNNNNN.dat, return the data offset of each block.
    """
    offsets = []
    with open(os.path.join(datadir, 'blk{:05}.dat'.format(file_idx)), 'bw') as f:
        for b in blocks:
            raw = b.serialize()
            f.write(magic)
            f.write(struct.pack('<I', len(raw)))
            offsets.append(f.tell())
            f.write(raw)
        f.write(b'\x00' * padding)
    return offsets

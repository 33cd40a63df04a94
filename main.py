#!/usr/bin/env python3

# stdlib
import argparse
import logging
import sys
import time

# This project
from blockdb import BlockDB, BlockDBError, Config
from blockdb.config import NETWORK_MAGIC, TXINDEX_SQLITE

PAYLOAD_CHOICES = (
    'op-return',
    'nonpush',
    'pushdata',
    'satoshi',
)

def get_payload(tx, kind, _input):
    if kind == 'op-return':
        return tx.concat_marked_payloads()
    elif kind == 'nonpush':
        return tx.concat_input_nonpush_bytes() if _input else tx.concat_output_nonpush_bytes()
    elif kind == 'pushdata':
        return tx.concat_input_pushdata() if _input else tx.concat_output_pushdata()
    elif kind == 'satoshi':
        return tx.satoshi_data()

def cmd_build(config, args):
    start_time = time.time()
    print('indexing {}'.format(config.datadir), file=sys.stderr)
    db = BlockDB.build(config, end_file=args.end_file)
    print(
        'indexed {} blocks {} txs in {:.3f} s'.format(
            db.locindex.block_count(), db.locindex.tx_count(), time.time() - start_time
        ),
        file=sys.stderr
    )
    db.close()

def cmd_tx(config, args):
    with BlockDB.open(config) as db:
        tx = db.get_tx(args.txid)
        print('tx {} blk {} txno {} file {}'.format(
            tx.txid, tx.block_hash, tx.index_in_block, tx.dat_filename()))
        if args.fee:
            print('fee {}'.format(tx.fee().format_btc()))
        if args.spender is not None:
            spender = tx.spending_tx(args.spender)
            print('spent by {}'.format(spender.txid))
        if args.addresses:
            for ioidx, addresses in enumerate(tx.get_all_output_addresses()):
                print('out {} {}'.format(ioidx, ' '.join(str(a) for a in addresses)))
        if args.payload is not None:
            data = get_payload(tx, args.payload, args.input)
            if args.out is None:
                print(data.hex())
            else:
                with open(args.out, 'bw') as f:
                    f.write(data)

def cmd_block(config, args):
    with BlockDB.open(config) as db:
        block = db.get_block(args.hash)
        print('blk {} file {} offset {} time {}'.format(
            block.hash, block.dat_filename(), block.offset, block.timestamp))
        for txid in block.tx_hashes:
            print(txid)

def get_parser():
    parser = argparse.ArgumentParser(
        description='Index blkNNNNN.dat files and query transactions by txid'
    )
    parser.add_argument(
        '-d',
        '--datadir',
        default=None,
        help='/path/to/.bitcoin/blocks. Defaults to BITCOIN_DATA_DIR env variable, and if that is not set then ~/.bitcoin/blocks'
    )
    parser.add_argument(
        '--index',
        default=None,
        help='''SQLite file holding the indexes. Defaults to BLOCKDB_INDEX env variable, then {}'''.format(TXINDEX_SQLITE)
    )
    parser.add_argument(
        '--network',
        default=None,
        choices=sorted(NETWORK_MAGIC),
        help='''Defaults to BLOCKDB_NETWORK env variable, then mainnet'''
    )
    parser.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        default=False,
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    build = subparsers.add_parser('build', help='Scan the block files and write the indexes')
    build.add_argument(
        '-e',
        '--end-file',
        type=int,
        default=None,
        help='''Only index files before blkNNNNN.dat with this number (exclusive)'''
    )
    build.set_defaults(func=cmd_build)

    tx = subparsers.add_parser('tx', help='Query one transaction')
    tx.add_argument('txid')
    tx.add_argument('--fee', default=False, action='store_true')
    tx.add_argument('--spender', type=int, default=None, metavar='VOUT',
                    help='Show the transaction that spends this output')
    tx.add_argument('--addresses', default=False, action='store_true')
    tx.add_argument('--payload', default=None, choices=PAYLOAD_CHOICES)
    tx.add_argument(
        '-i',
        '--input',
        default=False,
        action='store_true',
        help='Extract nonpush and pushdata payloads from inputs instead of the default outputs'
    )
    tx.add_argument('-o', '--out', default=None, help='Write the payload here instead of hex to stdout')
    tx.set_defaults(func=cmd_tx)

    block = subparsers.add_parser('block', help='Query one block')
    block.add_argument('hash')
    block.set_defaults(func=cmd_block)
    return parser

def main(argv=None):
    args = get_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)
    config = Config.from_env(datadir=args.datadir, network=args.network, index_path=args.index)
    try:
        args.func(config, args)
    except BlockDBError as e:
        print('error: {}'.format(e), file=sys.stderr)
        return 1
    return 0

if __name__ == '__main__':
    sys.exit(main())

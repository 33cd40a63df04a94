from bitcoin.core import Hash160
from bitcoin.core.script import CScript, CScriptInvalidError, OP_CHECKMULTISIG, OP_RETURN
from bitcoin.wallet import CBitcoinAddress, CBitcoinAddressError, P2PKHBitcoinAddress

from blockdb.errors import UnrecognizedScriptType

def multisig_pubkeys(script):
    """
    Public keys of a bare m-of-n CHECKMULTISIG output, or None.
    """
    try:
        ops = list(CScript(script))
    except CScriptInvalidError:
        return None
    if len(ops) < 4 or ops[-1] != OP_CHECKMULTISIG:
        return None
    m = ops[0]
    n = ops[-2]
    pubkeys = ops[1:-2]
    # Small ints come out of CScript iteration as plain int.
    if type(m) is not int or type(n) is not int:
        return None
    if not 1 <= m <= n or n != len(pubkeys):
        return None
    if not all(type(k) is bytes and len(k) in (33, 65) for k in pubkeys):
        return None
    return pubkeys

def script_addresses(script):
    """
    Addresses that can spend an output with this locking script.

    Network prefixes come from the parameters selected with
    bitcoin.SelectParams, see Config.select_params.
    """
    script = bytes(script)
    if script[:1] == bytes([OP_RETURN]):
        return []
    pubkeys = multisig_pubkeys(script)
    if pubkeys is not None:
        # Hash the keys directly, they need not be valid curve points.
        return [P2PKHBitcoinAddress.from_bytes(Hash160(k)) for k in pubkeys]
    try:
        return [CBitcoinAddress.from_scriptPubKey(CScript(script))]
    except (CBitcoinAddressError, ValueError) as e:
        raise UnrecognizedScriptType('no address for script {}: {}'.format(script.hex(), e)) from e

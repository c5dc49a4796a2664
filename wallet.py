#!/usr/bin/env python3
"""
wallet.py

Key and signing helpers for building scripts that exercise OP_CHECKSIG with
a real transaction context:
- Generate a keypair
- Convert a pubkey to a Base58Check address and back to its hash160
- Build P2PKH locking scripts
- Create and sign transactions whose scriptSig is "<sig hex> <pubkey hex>"

NOTE:
- Signatures are raw 64-byte r||s over the double-SHA256 of the signing copy
  (see TxContext.sighash). Real wallets use DER plus a sighash type byte;
  the script machine accepts both.
"""

import hashlib
import logging
from typing import List, Tuple

import ecdsa

from crypto_utils import base58_check_decode, base58_check_encode, hash160
from transaction import Transaction, TxContext, TxInput, TxOutput

logger = logging.getLogger("ScriptDebugger")

ADDRESS_PREFIX = b"\x00"

def generate_keypair() -> Tuple[bytes, bytes]:
    sk = ecdsa.SigningKey.generate(curve=ecdsa.SECP256k1)
    vk = sk.verifying_key
    return sk.to_string(), vk.to_string()

def pubkey_to_address(pubkey_bytes: bytes, prefix: bytes = ADDRESS_PREFIX) -> str:
    """
    Real Bitcoin uses prefix=0x00 for P2PKH addresses. Then base58-check encoding.
    """
    h160 = hash160(pubkey_bytes)
    return base58_check_encode(prefix, h160)

def address_to_hash160(address: str) -> bytes:
    """
    Accepts a Base58Check address or a 40-char hex hash160.
    Raises ValueError for anything else.
    """
    if len(address) == 40:
        try:
            return bytes.fromhex(address)
        except ValueError:
            pass
    decoded = base58_check_decode(address)
    # skip prefix = decoded[0], payload = decoded[1:]
    if len(decoded) != 21:
        raise ValueError("Not a pubkey-hash address: %s" % address)
    return decoded[1:]

def p2pkh_locking_script(address: str) -> str:
    pubkey_hash_hex = address_to_hash160(address).hex()
    return f"OP_DUP OP_HASH160 {pubkey_hash_hex} OP_EQUALVERIFY OP_CHECKSIG"

def create_transaction(utxos: List[Tuple[str, int, int]], to_address: str, amount: int,
                       my_pubkey: bytes) -> Transaction:
    """
    utxos = list of (txid, vout, value)
    to_address = base58 or hex address
    amount = int (in satoshis)
    Whatever the inputs hold beyond `amount` goes back to my_pubkey as change.
    """
    tx_in = []
    total_in = 0
    for (txid, outidx, val) in utxos:
        total_in += val
        tx_in.append(TxInput(txid, outidx, ""))
    if amount > total_in:
        raise ValueError("Insufficient funds: %d > %d" % (amount, total_in))

    tx_out = [TxOutput(amount, p2pkh_locking_script(to_address))]
    leftover = total_in - amount
    if leftover:
        tx_out.append(TxOutput(leftover, p2pkh_locking_script(hash160(my_pubkey).hex())))
    return Transaction(1, tx_in, tx_out)

def sign_input(tx: Transaction, privkey: bytes, pubkey: bytes, idx: int):
    """
    Sign the sighash of input idx and store "sig pubkey" in its script_sig.
    """
    msg_hash = TxContext(tx, idx).sighash()
    sk = ecdsa.SigningKey.from_string(privkey, curve=ecdsa.SECP256k1)
    signature = sk.sign(msg_hash, hashfunc=hashlib.sha256)
    tx.tx_in[idx].script_sig = f"{signature.hex()} {pubkey.hex()}"
    logger.debug("Signed input %d of %s", idx, tx.tx_id())

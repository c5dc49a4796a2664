#!/usr/bin/env python3
"""
transaction.py

Transaction data structures and the transaction context handed to the
script machine, so that OP_CHECKSIG can verify real signatures.

Scripts are stored as text (the same token grammar the debugger parses),
e.g. script_sig = "<sig hex> <pubkey hex>" and
script_pubkey = "OP_DUP OP_HASH160 <hash hex> OP_EQUALVERIFY OP_CHECKSIG".
"""

import time
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from crypto_utils import double_sha256, verify_signature
from script_errors import ParseError
from stepper import initialize, run_to_completion

logger = logging.getLogger("ScriptDebugger")

SIGHASH_ALL = 0x01

@dataclass
class TxInput:
    prev_tx_id: str
    prev_out_index: int
    script_sig: str
    sequence: int = 0xFFFFFFFF

@dataclass
class TxOutput:
    value: int
    script_pubkey: str

@dataclass
class Transaction:
    version: int
    tx_in: List[TxInput]
    tx_out: List[TxOutput]
    lock_time: int = 0
    timestamp: float = field(default_factory=time.time)

    def tx_id(self) -> str:
        """
        TXID is double-sha256 of its serialized form (big-endian hex).
        """
        raw = self.serialize()
        return double_sha256(raw).hex()

    def serialize(self) -> bytes:
        """
        Full serialization including scriptSigs, as sorted-key JSON.
        """
        j_in = []
        for i in self.tx_in:
            j_in.append({
                'prev_tx_id': i.prev_tx_id,
                'prev_out_index': i.prev_out_index,
                'script_sig': i.script_sig,
                'sequence': i.sequence
            })
        j_out = []
        for o in self.tx_out:
            j_out.append({
                'value': o.value,
                'script_pubkey': o.script_pubkey
            })
        obj = {
            'version': self.version,
            'tx_in': j_in,
            'tx_out': j_out,
            'lock_time': self.lock_time,
            'timestamp': self.timestamp
        }
        return json.dumps(obj, sort_keys=True).encode('utf-8')

    @classmethod
    def deserialize(cls, raw: bytes) -> "Transaction":
        obj = json.loads(raw.decode('utf-8'))
        return cls(
            version=obj['version'],
            tx_in=[TxInput(**i) for i in obj['tx_in']],
            tx_out=[TxOutput(**o) for o in obj['tx_out']],
            lock_time=obj.get('lock_time', 0),
            timestamp=obj['timestamp']
        )

    def copy_for_signing(self):
        """
        Create a new Transaction object with every scriptSig blanked.
        """
        tx_copy = Transaction(
            version=self.version,
            tx_in=[],
            tx_out=[o for o in self.tx_out],
            lock_time=self.lock_time,
            timestamp=self.timestamp
        )
        for inp in self.tx_in:
            tx_copy.tx_in.append(TxInput(inp.prev_tx_id, inp.prev_out_index, "", inp.sequence))
        return tx_copy

    def serialize_for_signing(self, in_idx: int) -> bytes:
        """
        Blanked serialization followed by the signed input's index and
        SIGHASH_ALL, both as 4-byte little-endian.
        """
        return (self.copy_for_signing().serialize()
                + in_idx.to_bytes(4, 'little')
                + SIGHASH_ALL.to_bytes(4, 'little'))


@dataclass(frozen=True)
class TxContext:
    """The spending transaction and which of its inputs is being checked."""
    tx: Transaction
    input_index: int

    def sighash(self) -> bytes:
        return double_sha256(self.tx.serialize_for_signing(self.input_index))

    def check_sig(self, signature: bytes, pubkey: bytes) -> bool:
        return verify_signature(pubkey, signature, self.sighash())


def verify_input(tx: Transaction, in_idx: int, script_pubkey: str) -> bool:
    """
    Run the input's scriptSig followed by script_pubkey with real signature
    checks. Parse errors count as failure.
    """
    try:
        snapshot = initialize(tx.tx_in[in_idx].script_sig, script_pubkey,
                              context=TxContext(tx, in_idx))
    except ParseError as e:
        logger.warning("Input %d of %s does not parse: %s", in_idx, tx.tx_id(), e)
        return False
    final = run_to_completion(snapshot)
    # inline breakpoint markers pause the run; keep going
    while not final.complete:
        final = run_to_completion(final)
    if final.error:
        logger.info("Input %d of %s failed: %s", in_idx, tx.tx_id(), final.error)
    return final.complete and final.valid

def validate_transaction(tx: Transaction, utxo_set: Dict[Tuple[str, int], Tuple[int, str]]) -> bool:
    """
    Check inputs are unspent, scripts pass, and input sum >= output sum
    'utxo_set' is a dict: (txid, out_idx) -> (value, script_pubkey)
    """
    total_in = 0
    for i, inp in enumerate(tx.tx_in):
        key = (inp.prev_tx_id, inp.prev_out_index)
        if key not in utxo_set:
            return False
        (val, pub_script) = utxo_set[key]
        if not verify_input(tx, i, pub_script):
            return False
        total_in += val

    total_out = sum(o.value for o in tx.tx_out)
    if total_out > total_in:
        return False
    return True

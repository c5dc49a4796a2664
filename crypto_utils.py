#!/usr/bin/env python3
"""
crypto_utils.py

Cryptographic and utility functions: the script hash opcodes, base58check,
and ECDSA signature checks used by OP_CHECKSIG.
"""

import hashlib
import base58  # pip install base58
import ecdsa
from ecdsa.der import UnexpectedDER
from ecdsa.util import MalformedSignature, sigdecode_der, sigdecode_string

def double_sha256(b: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(b).digest()).digest()

def ripemd160(b: bytes) -> bytes:
    rip = hashlib.new('ripemd160')
    rip.update(b)
    return rip.digest()

def hash160(b: bytes) -> bytes:
    """RIPEMD160(SHA256(b))"""
    return ripemd160(hashlib.sha256(b).digest())

def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()

def sha1(b: bytes) -> bytes:
    return hashlib.sha1(b).digest()

def base58_check_encode(prefix: bytes, payload: bytes) -> str:
    """
    Convert prefix + payload to Base58Check.
    prefix might be 1 byte (like 0x00 for mainnet pubkey-hash in real Bitcoin).
    """
    data = prefix + payload
    checksum = double_sha256(data)[:4]
    return base58.b58encode(data + checksum).decode('utf-8')

def base58_check_decode(s: str) -> bytes:
    """
    Decode Base58Check string to raw bytes. Return prefix + payload.
    """
    full = base58.b58decode(s)
    data, checksum = full[:-4], full[-4:]
    if double_sha256(data)[:4] != checksum:
        raise ValueError("Invalid base58 checksum")
    return data

def _signature_encodings(signature: bytes):
    """
    Yield (sig, sigdecode) pairs to try. Signatures are either raw r||s
    (64 bytes) or DER, each optionally followed by a one-byte sighash type.
    """
    if signature[:1] == b"\x30":
        yield signature, sigdecode_der
        yield signature[:-1], sigdecode_der
    elif len(signature) in (64, 65):
        yield signature[:64], sigdecode_string

def verify_signature(pubkey: bytes, signature: bytes, msg_hash: bytes) -> bool:
    """
    Check an ECDSA/secp256k1 signature over msg_hash. pubkey may be raw
    (64 bytes), compressed or uncompressed SEC. Never raises on bad input.
    """
    try:
        vk = ecdsa.VerifyingKey.from_string(pubkey, curve=ecdsa.SECP256k1)
    except (ecdsa.MalformedPointError, ValueError):
        return False
    for sig, sigdecode in _signature_encodings(signature):
        try:
            if vk.verify(sig, msg_hash, hashfunc=hashlib.sha256, sigdecode=sigdecode):
                return True
        except (ecdsa.BadSignatureError, UnexpectedDER, MalformedSignature, ValueError):
            continue
    return False

from typing import Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature, encode_dss_signature

from .utils import group_address, sha256

CURVE = ec.SECP256K1()
# secp256k1 order (for low-s normalization)
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
ADDRESS_PREFIX = "MC"


def _low_s(s: int) -> int:
    return N - s if s > N // 2 else s


def generate_keypair() -> Dict[str, int]:
    key = ec.generate_private_key(CURVE)
    nums = key.private_numbers()
    return {"d": nums.private_value, "x": nums.public_numbers.x, "y": nums.public_numbers.y}


def public_key(priv: Dict[str, int]) -> Dict[str, int]:
    if "x" in priv and "y" in priv:
        return {"x": priv["x"], "y": priv["y"]}
    key = ec.derive_private_key(priv["d"], CURVE)
    pub = key.public_key().public_numbers()
    return {"x": pub.x, "y": pub.y}


def sign(message_hash_hex: str, priv: Dict[str, int]) -> str:
    key = ec.derive_private_key(priv["d"], CURVE)
    digest = bytes.fromhex(message_hash_hex)
    sig = key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    r, s = decode_dss_signature(sig)
    s = _low_s(s)
    return f"{r:x}:{s:x}"


def verify(message_hash_hex: str, signature: str, pub: Dict[str, int]) -> bool:
    try:
        r, s = (int(part, 16) for part in signature.split(":"))
    except ValueError:
        return False
    if r <= 0 or r >= N or s <= 0 or s >= N:
        return False
    try:
        key = ec.EllipticCurvePublicNumbers(pub["x"], pub["y"], CURVE).public_key()
        key.verify(
            encode_dss_signature(r, s),
            bytes.fromhex(message_hash_hex),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
    except (InvalidSignature, ValueError):
        return False
    return True


def key_to_hex(key: Dict[str, int]) -> Dict[str, str]:
    return {name: hex(key[name]) for name in ("d", "x", "y") if name in key}


def key_from_hex(key: Dict[str, str]) -> Dict[str, int]:
    return {name: int(key[name], 16) for name in ("d", "x", "y") if name in key}


def _check_digits(body: str) -> str:
    return f"{98 - int(body, 16) % 97:02d}"


def address_from_pubkey(pub: Dict[str, int]) -> str:
    """User-friendly address: prefix, two check digits, 40 hex chars, in groups of four."""
    body = sha256(f"ecdsa:{pub['x']}:{pub['y']}".encode())[:40].upper()
    return group_address(ADDRESS_PREFIX + _check_digits(body) + body)


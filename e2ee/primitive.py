import os
from typing import Tuple

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionFailed, DecryptReason, KeyGenerationFailed, MalformedEncoding

RSA_PUBLIC_EXPONENT = 65537
AES_KEY_SIZE = 32   # bytes, AES-256
NONCE_SIZE = 12     # bytes, GCM standard nonce
TAG_SIZE = 16


def rand_bytes(n: int) -> bytes:
    return os.urandom(n)

def rand_nonce(n: int = NONCE_SIZE) -> bytes:
    return rand_bytes(n)

def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )

def rsa_keypair(key_size: int) -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    try:
        priv = rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise KeyGenerationFailed(f"RSA-{key_size} key generation failed: {exc}") from exc
    return priv, priv.public_key()

def rsa_pub_to_pem(pub: rsa.RSAPublicKey) -> str:
    return pub.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")

def rsa_pub_from_pem(text: str) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(text.encode("ascii"))
    except (ValueError, UnicodeEncodeError, UnsupportedAlgorithm) as exc:
        raise MalformedEncoding(f"Invalid public key text: {exc}") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise MalformedEncoding(f"Expected an RSA public key, got {type(key).__name__}")
    return key

def rsa_priv_to_pem(priv: rsa.RSAPrivateKey, passphrase: str | None = None) -> str:
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return priv.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("ascii")

def rsa_priv_from_pem(text: str, passphrase: str | None = None) -> rsa.RSAPrivateKey:
    password = passphrase.encode("utf-8") if passphrase else None
    try:
        key = serialization.load_pem_private_key(text.encode("ascii"), password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise MalformedEncoding(f"Invalid private key text: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise MalformedEncoding(f"Expected an RSA private key, got {type(key).__name__}")
    return key

def rsa_oaep_wrap(pub: rsa.RSAPublicKey, key: bytes) -> bytes:
    return pub.encrypt(key, _oaep())

def rsa_oaep_unwrap(priv: rsa.RSAPrivateKey, wrapped: bytes) -> bytes:
    try:
        return priv.decrypt(wrapped, _oaep())
    except ValueError as exc:
        # wrong key and corrupted input are indistinguishable under OAEP
        raise DecryptionFailed(DecryptReason.KEY_UNWRAP) from exc

def aead_encrypt(key32: bytes, plaintext: bytes, aad: bytes | None = None) -> tuple[bytes, bytes]:
    nonce = rand_nonce(NONCE_SIZE)
    ct = AESGCM(key32).encrypt(nonce, plaintext, aad)
    return nonce, ct

def aead_decrypt(key32: bytes, nonce: bytes, ciphertext: bytes, aad: bytes | None = None) -> bytes:
    if len(key32) != AES_KEY_SIZE:
        raise DecryptionFailed(DecryptReason.BAD_KEY, f"expected {AES_KEY_SIZE} bytes, got {len(key32)}")
    if len(nonce) != NONCE_SIZE:
        raise DecryptionFailed(DecryptReason.BAD_NONCE, f"expected {NONCE_SIZE} bytes, got {len(nonce)}")
    try:
        return AESGCM(key32).decrypt(nonce, ciphertext, aad)
    except InvalidTag as exc:
        raise DecryptionFailed(DecryptReason.INTEGRITY) from exc

"""Sealed-box encryption of Actions secret values."""

from base64 import b64encode

from nacl import encoding, public


def seal_secret(value: str, public_key: str) -> str:
    """Encrypt a secret value for the Actions secrets API.

    Args:
        value: Plaintext secret value
        public_key: Base64 encoded Curve25519 key of the target scope

    Returns:
        Base64 encoded sealed-box ciphertext
    """
    key = public.PublicKey(public_key.encode('utf-8'), encoding.Base64Encoder())
    sealed_box = public.SealedBox(key)
    encrypted = sealed_box.encrypt(value.encode('utf-8'))
    return b64encode(encrypted).decode('utf-8')

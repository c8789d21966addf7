"""
Cipher Backends - Password-based encryption of the report artifact

Two interchangeable backends produce the same container, the one written by
`openssl enc -<cipher> -pbkdf2 -iter N -salt`:

    b"Salted__" | 8-byte random salt | AES-CBC ciphertext (PKCS#7 padded)

Key and IV are the leading bytes of PBKDF2-HMAC-SHA256(passphrase, salt, N).

- OpenSSLCipher shells out to the openssl binary and hands it the password
  through an environment variable reference, never argv.
- NativeCipher implements the same container with the cryptography library.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import CipherConfig
from .errors import EncryptionFailed
from .passphrase import Passphrase, cipher_environment
from .tools_shell import CommandRunner, SubprocessRunner, require_command

logger = logging.getLogger(__name__)

SALT_MAGIC = b"Salted__"
SALT_SIZE = 8
IV_SIZE = 16
BLOCK_BITS = 128

# Supported cipher names -> key size in bytes
KEY_SIZES = {
    "aes-128-cbc": 16,
    "aes-192-cbc": 24,
    "aes-256-cbc": 32,
}


class FileCipher(Protocol):
    """Protocol for cipher backends."""

    name: str

    def encrypt_file(self, source: Path, target: Path, passphrase: Passphrase) -> None:
        """Encrypt source into target."""
        ...


def derive_key_iv(password: str, salt: bytes, iterations: int, key_size: int = 32):
    """
    Derive key and IV from a password using PBKDF2-HMAC-SHA256.

    Args:
        password: Passphrase
        salt: 8-byte salt
        iterations: PBKDF2 iteration count
        key_size: Cipher key size in bytes

    Returns:
        (key, iv) tuple
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_size + IV_SIZE,
        salt=salt,
        iterations=iterations,
    )
    material = kdf.derive(password.encode("utf-8"))
    return material[:key_size], material[key_size:]


def _key_size(cipher_name: str) -> int:
    try:
        return KEY_SIZES[cipher_name.lower()]
    except KeyError:
        raise EncryptionFailed(f"Unsupported cipher: {cipher_name}") from None


# =============================================================================
# Native backend
# =============================================================================

class NativeCipher:
    """In-process backend writing OpenSSL-compatible salted containers."""

    name = "native"

    def __init__(self, config: Optional[CipherConfig] = None):
        self.config = config or CipherConfig()
        self.key_size = _key_size(self.config.cipher)

    def encrypt_bytes(self, plaintext: bytes, password: str, salt: Optional[bytes] = None) -> bytes:
        salt = salt if salt is not None else os.urandom(SALT_SIZE)
        if len(salt) != SALT_SIZE:
            raise ValueError(f"Salt must be exactly {SALT_SIZE} bytes")
        key, iv = derive_key_iv(password, salt, self.config.iterations, self.key_size)

        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return SALT_MAGIC + salt + encryptor.update(padded) + encryptor.finalize()

    def decrypt_bytes(self, blob: bytes, password: str) -> bytes:
        """
        Decrypt a salted container.

        Raises:
            ValueError: If the header is missing or the password is wrong
        """
        header = len(SALT_MAGIC) + SALT_SIZE
        if len(blob) < header + IV_SIZE or not blob.startswith(SALT_MAGIC):
            raise ValueError("Not an OpenSSL salted container")
        salt = blob[len(SALT_MAGIC):header]
        key, iv = derive_key_iv(password, salt, self.config.iterations, self.key_size)

        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(blob[header:]) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

    def encrypt_file(self, source: Path, target: Path, passphrase: Passphrase) -> None:
        try:
            plaintext = Path(source).read_bytes()
            blob = self.encrypt_bytes(plaintext, passphrase.value)
            Path(target).write_bytes(blob)
        except (OSError, ValueError) as e:
            raise EncryptionFailed(f"Encryption failed: {e}") from e
        logger.debug(f"Encrypted {source} -> {target} ({len(blob)} bytes)")

    def decrypt_file(self, source: Path, target: Path, passphrase: Passphrase) -> None:
        try:
            plaintext = self.decrypt_bytes(Path(source).read_bytes(), passphrase.value)
            Path(target).write_bytes(plaintext)
        except (OSError, ValueError) as e:
            raise EncryptionFailed(f"Decryption failed: {e}") from e


# =============================================================================
# OpenSSL backend
# =============================================================================

class OpenSSLCipher:
    """Backend delegating to `openssl enc`."""

    name = "openssl"

    def __init__(self, config: Optional[CipherConfig] = None, runner: Optional[CommandRunner] = None):
        self.config = config or CipherConfig()
        self.runner = runner or SubprocessRunner()

    def check_available(self) -> str:
        return require_command(self.config.openssl_bin)

    def build_command(self, source: Path, target: Path, pass_var: str) -> list:
        return [
            self.config.openssl_bin, "enc", f"-{self.config.cipher}",
            "-pbkdf2", "-iter", str(self.config.iterations),
            "-salt",
            "-in", str(source),
            "-out", str(target),
            "-pass", f"env:{pass_var}",
        ]

    def encrypt_file(self, source: Path, target: Path, passphrase: Passphrase) -> None:
        pass_var = f"OPENSSL_PASSPHRASE_{os.getpid()}"
        env = cipher_environment(passphrase, pass_var)
        cmd = self.build_command(source, target, pass_var)

        result = self.runner.run(cmd, env=env)
        if not result.ok:
            raise EncryptionFailed(
                f"openssl exited with status {result.returncode}",
                exit_code=result.returncode,
            )
        logger.debug(f"Encrypted {source} -> {target} via openssl")


def create_cipher(config: CipherConfig, runner: Optional[CommandRunner] = None) -> FileCipher:
    """
    Factory function to create a cipher backend.

    Args:
        config: Cipher configuration
        runner: Command runner for the openssl backend

    Returns:
        FileCipher instance

    Raises:
        ValueError: If the backend is unknown
    """
    if config.backend == "native":
        return NativeCipher(config)
    elif config.backend == "openssl":
        return OpenSSLCipher(config, runner)
    else:
        raise ValueError(f"Unknown cipher backend: {config.backend}")

"""
Exceptions for the ShadowKeep secret store
Every failure surfaced to callers derives from ShadowKeepError so the
command layer has a single thing to catch.
"""


class ShadowKeepError(Exception):
    # general container for errors
    pass


class KeyAccessError(ShadowKeepError):
    # raised when key material cannot be obtained (machine id, keyring, passphrase)
    pass


class EncodingError(ShadowKeepError):
    # raised on invalid base64 or on bytes that are not valid UTF-8 text
    pass


class CryptoError(ShadowKeepError):
    # raised when a blob cannot be decrypted
    pass


class CryptoTooShortError(CryptoError):
    # decoded blob is shorter than the nonce
    pass


class AuthenticationFailure(CryptoError):
    # GCM tag mismatch: wrong key or tampered data
    pass


class StorageError(ShadowKeepError):
    # raised if the filesystem fails in some way
    pass


class InvalidKeyNameError(StorageError):
    # raised when a key name cannot be mapped into the secure directory
    pass

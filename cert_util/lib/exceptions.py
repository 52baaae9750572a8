"""Exceptions raised by the issuance library."""


class IssuanceError(Exception):
    """Base class for certificate issuance failures."""


class CAMaterialError(IssuanceError):
    """CA key or certificate is missing, unreadable, or inconsistent."""


class ExtensionFileError(IssuanceError):
    """X.509 extension file is missing or malformed."""

"""UAMI Demo — Key Vault secret retrieval with managed identities."""

__version__ = "0.1.0"

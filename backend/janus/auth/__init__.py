# janus/auth/__init__.py
"""
Authentication modules for Janus.

This package contains:
- persona.py: identity assertion verification against the remote verifier
"""
from janus.auth.persona import AssertionVerificationError, VerifiedAssertion, verify_assertion

__all__ = ["AssertionVerificationError", "VerifiedAssertion", "verify_assertion"]

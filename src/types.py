# SPDX-License-Identifier: GPL-3.0-only
"""Common type definitions for the application."""

from enum import Enum


class VerificationStatus(Enum):
    """Lifecycle states of a verification request."""

    PENDING = "pending"
    CODE_SENT = "code_sent"
    VERIFIED = "verified"
    EXPIRED = "expired"
    INCORRECT = "incorrect"

    @classmethod
    def active(cls):
        """States in which a request can still progress."""
        return (cls.PENDING, cls.CODE_SENT)

    @classmethod
    def terminal(cls):
        """States a request never leaves."""
        return (cls.VERIFIED, cls.EXPIRED, cls.INCORRECT)


class AccountOTPPurpose(Enum):
    """Purposes the platform's own account flows request codes for."""

    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"

# SPDX-License-Identifier: GPL-3.0-only
"""One-time code generation."""

import secrets

OTP_CODE_MIN = 100000
OTP_CODE_MAX = 999999


def generate_otp_code() -> str:
    """Generate a six-digit numeric OTP from the OS CSPRNG.

    ``secrets.randbelow`` rejection-samples, so every value in
    100000..999999 is equally likely and the result never has a leading zero.
    """
    return str(OTP_CODE_MIN + secrets.randbelow(OTP_CODE_MAX - OTP_CODE_MIN + 1))

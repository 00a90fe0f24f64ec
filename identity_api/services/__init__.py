"""Service modules wrapping tokens, OTP codes, storage and third-party APIs."""

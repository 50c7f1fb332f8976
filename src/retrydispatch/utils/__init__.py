from .redact import mask_secret, redact_headers, redact_mapping

__all__ = [
    "mask_secret",
    "redact_headers",
    "redact_mapping",
]

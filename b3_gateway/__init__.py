"""B3 gateway: mTLS + OAuth2 client-credentials forwarding to the B3 API."""

__version__ = "0.1.0"

"""
Utils Package
=============
Utility modules for file naming and service authentication.

Usage:
    from utils import file_manager, ClientCredentialTokenProvider

    # Upload naming
    name = file_manager.upload_filename("application/pdf", call_id)

    # Bearer tokens
    tokens = ClientCredentialTokenProvider(token_url, client_id, client_secret)
"""

from utils.file_manager import FileManager, file_manager
from utils.auth import ClientCredentialTokenProvider, AccessToken


__all__ = [
    "FileManager",
    "file_manager",
    "ClientCredentialTokenProvider",
    "AccessToken",
]

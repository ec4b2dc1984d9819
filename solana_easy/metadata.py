"""
Client identification for requests sent to Solana RPC nodes.

Every request made by :class:`solana_easy.async_client.RpcClient` carries a
``solana-client`` header so node operators can tell this package apart from
other clients when debugging or rate limiting.

Examples:
    Build the header by hand::

        headers = {Metadata.CLIENT_HEADER: Metadata.get_client_header_val()}
        # {"solana-client": "py/solana-easy/0.1.0"}
"""

import importlib.metadata as metadata

# Package name constant for metadata lookup
PACKAGE_NAME = "solana-easy"


class Metadata:
    """Namespace for the client identification header."""

    CLIENT_HEADER = "solana-client"

    @staticmethod
    def get_client_header_val():
        """Header value in the form ``py/solana-easy/<version>``.

        A source checkout that was never installed reports ``0.0.0``.
        """
        try:
            version = metadata.version(PACKAGE_NAME)
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        return f"py/{PACKAGE_NAME}/{version}"
